"""
Alert endpoints - report intake, listing and lifecycle actions.

Routes only translate HTTP to service calls. Error mapping lives in the
exception handlers registered in rapidaid.main.
"""

from typing import List, Optional
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
import logging

from rapidaid.core.settings import settings
from rapidaid.models.alert import (
    Alert,
    AlertCreateRequest,
    IncomingReport,
    ResolveRequest,
    StatusUpdateRequest,
    SubmissionOutcome,
    SubmissionResult,
)
from rapidaid.models.base import ServiceType
from rapidaid.services.alert_service import AlertService, get_alert_service, parse_report

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["Alerts"])


def _to_report(request: AlertCreateRequest, alert_type: ServiceType) -> IncomingReport:
    return parse_report({
        "user_id": request.user_id,
        "user_phone": request.user_phone,
        "type": alert_type,
        "location": {"lat": request.lat, "lng": request.lng},
        "description": request.description,
    })


async def _submit(
    request: AlertCreateRequest,
    alert_type: ServiceType,
    response: Response,
    service: AlertService,
) -> SubmissionResult:
    logger.info(f"📝 POST /alerts - {alert_type.value} report from {request.user_id or 'ANONYMOUS'}")
    result = await service.submit_report(_to_report(request, alert_type))
    if result.outcome == SubmissionOutcome.CREATED:
        response.status_code = status.HTTP_201_CREATED
    return result


@router.post("", response_model=SubmissionResult)
async def submit_alert(
    request: AlertCreateRequest,
    response: Response,
    service: AlertService = Depends(get_alert_service),
):
    """
    Submit an emergency report of any type.
    
    Returns 201 when a new incident was dispatched, 200 when the report
    was merged into an existing incident or was already reported.
    """
    if request.type is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Alert type is required. Must be one of: {', '.join(t.value for t in ServiceType)}",
        )
    return await _submit(request, request.type, response, service)


@router.post("/police", response_model=SubmissionResult)
async def submit_police_alert(
    request: AlertCreateRequest,
    response: Response,
    service: AlertService = Depends(get_alert_service),
):
    return await _submit(request, ServiceType.POLICE, response, service)


@router.post("/fire", response_model=SubmissionResult)
async def submit_fire_alert(
    request: AlertCreateRequest,
    response: Response,
    service: AlertService = Depends(get_alert_service),
):
    return await _submit(request, ServiceType.FIRE, response, service)


@router.post("/ambulance", response_model=SubmissionResult)
async def submit_ambulance_alert(
    request: AlertCreateRequest,
    response: Response,
    service: AlertService = Depends(get_alert_service),
):
    return await _submit(request, ServiceType.AMBULANCE, response, service)


@router.get("", response_model=List[Alert])
async def get_alerts(
    type: Optional[ServiceType] = None,
    limit: int = Query(settings.ALERT_LIST_LIMIT, ge=1, le=500),
    service: AlertService = Depends(get_alert_service),
):
    """All incidents, newest first, optionally filtered by type."""
    return await service.list_alerts(type, limit)


@router.get("/stats")
async def get_alert_stats(service: AlertService = Depends(get_alert_service)):
    return await service.alert_stats()


@router.get("/facility/{facility_id}", response_model=List[Alert])
async def get_facility_alerts(
    facility_id: str,
    type: Optional[ServiceType] = None,
    service: AlertService = Depends(get_alert_service),
):
    """Incidents dispatched to one facility."""
    return await service.list_facility_alerts(facility_id, type, settings.FACILITY_ALERT_LIMIT)


@router.get("/user/{user_id}", response_model=List[Alert])
async def get_user_alerts(
    user_id: str,
    limit: int = Query(settings.FACILITY_ALERT_LIMIT, ge=1, le=500),
    service: AlertService = Depends(get_alert_service),
):
    """Alert history of one reporter."""
    return await service.list_user_alerts(user_id, limit)


@router.get("/{alert_id}", response_model=Alert)
async def get_alert(alert_id: str, service: AlertService = Depends(get_alert_service)):
    return await service.get_alert(alert_id)


@router.put("/{alert_id}/acknowledge", response_model=Alert)
async def acknowledge_alert(alert_id: str, service: AlertService = Depends(get_alert_service)):
    """Facility responds. Only valid while the alert is pending."""
    return await service.lifecycle.acknowledge(alert_id)


@router.put("/{alert_id}/resolve", response_model=Alert)
async def resolve_alert(
    alert_id: str,
    request: Optional[ResolveRequest] = Body(None),
    service: AlertService = Depends(get_alert_service),
):
    """Emergency handled. Valid from pending or acknowledged."""
    request = request or ResolveRequest()
    return await service.lifecycle.resolve(alert_id, note=request.note, changed_by=request.changed_by)


@router.put("/{alert_id}/cancel", response_model=Alert)
async def cancel_alert(alert_id: str, service: AlertService = Depends(get_alert_service)):
    return await service.lifecycle.cancel(alert_id)


@router.patch("/{alert_id}/status", response_model=Alert)
async def update_alert_status(
    alert_id: str,
    request: StatusUpdateRequest,
    service: AlertService = Depends(get_alert_service),
):
    """Generic status change for facility dashboards (same transition rules)."""
    return await service.lifecycle.update_status(
        alert_id, request.status, changed_by=request.changed_by, note=request.note
    )
