"""
User endpoints - registration, profile, alert preferences, the caller's own
reports and votes, the leaderboard and account deactivation.
"""

from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from alerthub.core.exceptions import UserNotFoundError
from alerthub.models.report import ReportStatus
from alerthub.models.user import AccountDeactivation, DeviceUpdate, GeoPoint, PreferencesUpdate, UserCreate
from alerthub.routes.deps import get_current_user_id, get_optional_user_id
from alerthub.services.report_service import ReportService, get_report_service
from alerthub.services.user_service import UserService, get_user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def register_user(user: UserCreate, service: UserService = Depends(get_user_service)):
    try:
        return service.register(user)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/leaderboard")
async def leaderboard(
    sort_by: str = Query("trust_score", description="trust_score, report_count or verification_count"),
    limit: int = Query(50, ge=1, le=100),
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: UserService = Depends(get_user_service),
):
    """Reputation leaderboard; my_rank is set when the caller is identified and ranked."""
    try:
        return service.leaderboard(sort_by=sort_by, limit=limit, user_id=user_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/me")
async def my_profile(
    user_id: str = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service),
):
    try:
        return service.get_user(user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.put("/me/preferences")
async def update_preferences(
    update: PreferencesUpdate,
    user_id: str = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service),
):
    try:
        return service.update_preferences(user_id, update)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.put("/me/location")
async def update_location(
    location: GeoPoint,
    user_id: str = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service),
):
    try:
        return service.update_location(user_id, location)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.put("/me/device")
async def update_device(
    device: DeviceUpdate,
    user_id: str = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service),
):
    try:
        return service.update_device(user_id, device)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/me/reports")
async def my_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    report_status: Optional[ReportStatus] = Query(None, alias="status"),
    user_id: str = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service),
):
    try:
        return service.reports_by_user(
            user_id,
            status=report_status.value if report_status else None,
            page=page,
            limit=limit,
        )
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/me/verifications")
async def my_verifications(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service),
):
    try:
        return service.verifications_by_user(user_id, page=page, limit=limit)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/me")
async def deactivate_account(
    request: AccountDeactivation,
    user_id: str = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service),
):
    """Deactivate the caller's account; the body must carry confirm_delete="DELETE"."""
    try:
        service.deactivate(user_id, request.confirm_delete)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"message": "Account deactivated successfully"}


@router.get("/{user_id}")
async def public_profile(user_id: str, service: UserService = Depends(get_user_service)):
    try:
        return service.public_profile(user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
