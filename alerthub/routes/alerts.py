"""
Alert endpoints - a recipient's own alerts.
"""

from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from alerthub.core.context import get_context
from alerthub.core.exceptions import AlertNotFoundError, UserNotFoundError
from alerthub.models.alert import AlertType, Channel, Severity
from alerthub.routes.deps import get_current_user_id
from alerthub.services.alert_service import AlertService, get_alert_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["Alerts"])


@router.get("")
async def list_alerts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    severity: Optional[Severity] = None,
    alert_type: Optional[AlertType] = None,
    is_read: Optional[bool] = None,
    user_id: str = Depends(get_current_user_id),
    service: AlertService = Depends(get_alert_service),
):
    return service.list_alerts(
        user_id,
        severity=severity.value if severity else None,
        alert_type=alert_type.value if alert_type else None,
        is_read=is_read,
        page=page,
        limit=limit,
    )


@router.get("/stats")
async def alert_stats(
    user_id: str = Depends(get_current_user_id),
    service: AlertService = Depends(get_alert_service),
):
    return service.stats(user_id)


@router.put("/read-all")
async def mark_all_read(
    user_id: str = Depends(get_current_user_id),
    service: AlertService = Depends(get_alert_service),
):
    updated = service.mark_all_read(user_id)
    return {"message": "All alerts marked as read", "updated": updated}


@router.get("/{alert_id}")
async def get_alert(
    alert_id: str,
    user_id: str = Depends(get_current_user_id),
    service: AlertService = Depends(get_alert_service),
):
    try:
        return service.get_alert(user_id, alert_id).to_public()
    except AlertNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.put("/{alert_id}/read")
async def mark_read(
    alert_id: str,
    user_id: str = Depends(get_current_user_id),
    service: AlertService = Depends(get_alert_service),
):
    try:
        return service.mark_read(user_id, alert_id).to_public()
    except AlertNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/{alert_id}")
async def delete_alert(
    alert_id: str,
    user_id: str = Depends(get_current_user_id),
    service: AlertService = Depends(get_alert_service),
):
    try:
        service.deactivate(user_id, alert_id)
    except AlertNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"message": "Alert deleted successfully"}


@router.post("/{alert_id}/engagement/{channel}")
async def record_engagement(
    alert_id: str,
    channel: Channel,
    user_id: str = Depends(get_current_user_id),
    service: AlertService = Depends(get_alert_service),
):
    """Client callback: push clicked, email opened or SMS delivered."""
    try:
        service.get_alert(user_id, alert_id)
        recorded = get_context().router.record_engagement(alert_id, channel.value)
    except AlertNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"alert_id": alert_id, "channel": channel.value, "recorded": recorded}


@router.post("/{alert_id}/retry")
async def retry_alert(
    alert_id: str,
    user_id: str = Depends(get_current_user_id),
    service: AlertService = Depends(get_alert_service),
):
    """Re-attempt any channel that is still unsent for this alert."""
    try:
        service.get_alert(user_id, alert_id)
        outcome = await get_context().dispatcher.retry_alert(alert_id)
    except (AlertNotFoundError, UserNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"alert_id": alert_id, "channels": outcome}
