"""
Report endpoints - submission, listing, crowd verification and public lookups.
"""

from typing import Optional
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query, status

from alerthub.core.exceptions import ReportNotFoundError, ReportUpdateConflictError, UserNotFoundError
from alerthub.models.report import (
    FraudType,
    IdentifierCheckRequest,
    Priority,
    ReportCreate,
    ReportStatus,
    VoteRequest,
    VoteResponse,
)
from alerthub.routes.deps import get_current_user_id
from alerthub.services.report_service import ReportService, get_report_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_report(
    report: ReportCreate,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service),
):
    """
    Submit a new scam report.

    The report is stored and returned immediately; proximity and identifier
    alerts are dispatched in the background and never fail the submission.
    """
    try:
        created = await service.create_report(report, user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.error(f"POST /reports - Report creation failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Report creation failed: {str(e)}"
        )

    background_tasks.add_task(service.dispatch_alerts, created)
    return created.to_public(include_evidence=True)


@router.get("")
async def list_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    fraud_type: Optional[FraudType] = None,
    priority: Optional[Priority] = None,
    report_status: ReportStatus = Query(ReportStatus.ACTIVE, alias="status"),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: float = Query(10, ge=0.1, le=100),
    service: ReportService = Depends(get_report_service),
):
    """Public listing with filters and pagination; lat and lng narrow it to reports near that point."""
    try:
        return service.list_reports(
            fraud_type=fraud_type.value if fraud_type else None,
            priority=priority.value if priority else None,
            status=report_status.value,
            lat=lat,
            lng=lng,
            radius_km=radius_km,
            page=page,
            limit=limit,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/map-data")
async def map_data(
    bounds: str = Query(..., description="sw_lat,sw_lng,ne_lat,ne_lng"),
    fraud_types: Optional[str] = Query(None, description="Comma-separated fraud types"),
    service: ReportService = Depends(get_report_service),
):
    try:
        sw_lat, sw_lng, ne_lat, ne_lng = (float(part) for part in bounds.split(","))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="bounds must be four comma-separated numbers: sw_lat,sw_lng,ne_lat,ne_lng"
        )

    types = [t.strip() for t in fraud_types.split(",") if t.strip()] if fraud_types else None
    try:
        return service.map_data(sw_lat, sw_lng, ne_lat, ne_lng, types)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/check")
async def check_identifier(
    request: IdentifierCheckRequest,
    service: ReportService = Depends(get_report_service),
):
    """Has a phone number, email or website been reported as a scam?"""
    try:
        return service.check_identifier(request.type, request.value)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/{report_id}")
async def get_report(
    report_id: str,
    x_user_id: Optional[str] = Header(None),
    service: ReportService = Depends(get_report_service),
):
    try:
        report = service.get_report(report_id)
    except ReportNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    # Evidence identifiers are only shown back to the reporter
    return report.to_public(include_evidence=x_user_id == report.reported_by)


@router.post("/{report_id}/verify", response_model=VoteResponse)
async def verify_report(
    report_id: str,
    vote: VoteRequest,
    user_id: str = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service),
):
    """Confirm, deny or mark a report uncertain. A repeat vote replaces the previous one."""
    try:
        return await service.vote_on_report(report_id, user_id, vote.vote, vote.comment)
    except (ReportNotFoundError, UserNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ReportUpdateConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
