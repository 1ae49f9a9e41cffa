from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from diagnostics_app.dependencies import get_current_user_id, get_tracking_service
from diagnostics_app.schemas.tracking import (
    AnomalyResponse,
    TrackingLinkCreate,
    TrackingLinkResponse,
    TrackingLinkUpdate,
    VisitorAnalytics,
    VisitorLogResponse,
    VisitorSessionResponse,
)
from diagnostics_app.services.tracking_service import TrackingService

router = APIRouter(prefix="/tracking/links", tags=["tracking"])


def _not_found():
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Tracking link not found"
    )


@router.post("", response_model=TrackingLinkResponse, status_code=status.HTTP_201_CREATED)
async def create_link(
    link_data: TrackingLinkCreate,
    user_id: str = Depends(get_current_user_id),
    tracking_service: TrackingService = Depends(get_tracking_service)
):
    return await tracking_service.create_link(user_id, link_data.to_fields())


@router.get("", response_model=List[TrackingLinkResponse])
async def list_links(
    user_id: str = Depends(get_current_user_id),
    tracking_service: TrackingService = Depends(get_tracking_service)
):
    return await tracking_service.list_links(user_id)


@router.get("/{link_id}", response_model=TrackingLinkResponse)
async def get_link(
    link_id: str,
    user_id: str = Depends(get_current_user_id),
    tracking_service: TrackingService = Depends(get_tracking_service)
):
    link = await tracking_service.get_link(link_id, user_id)
    if not link:
        raise _not_found()
    return link


@router.patch("/{link_id}", response_model=TrackingLinkResponse)
async def update_link(
    link_id: str,
    changes: TrackingLinkUpdate,
    user_id: str = Depends(get_current_user_id),
    tracking_service: TrackingService = Depends(get_tracking_service)
):
    link = await tracking_service.update_link(link_id, user_id, changes.to_fields(exclude_unset=True))
    if not link:
        raise _not_found()
    return link


@router.delete("/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link(
    link_id: str,
    user_id: str = Depends(get_current_user_id),
    tracking_service: TrackingService = Depends(get_tracking_service)
):
    """Delete a link with all its visits, sessions and anomalies"""
    if not await tracking_service.delete_link(link_id, user_id):
        raise _not_found()


@router.get("/{link_id}/logs", response_model=List[VisitorLogResponse])
async def list_logs(
    link_id: str,
    user_id: str = Depends(get_current_user_id),
    tracking_service: TrackingService = Depends(get_tracking_service)
):
    logs = await tracking_service.list_logs(link_id, user_id)
    if logs is None:
        raise _not_found()
    return logs


@router.get("/{link_id}/sessions", response_model=List[VisitorSessionResponse])
async def list_sessions(
    link_id: str,
    user_id: str = Depends(get_current_user_id),
    tracking_service: TrackingService = Depends(get_tracking_service)
):
    sessions = await tracking_service.list_sessions(link_id, user_id)
    if sessions is None:
        raise _not_found()
    return sessions


@router.get("/{link_id}/anomalies", response_model=List[AnomalyResponse])
async def list_anomalies(
    link_id: str,
    user_id: str = Depends(get_current_user_id),
    tracking_service: TrackingService = Depends(get_tracking_service)
):
    anomalies = await tracking_service.list_anomalies(link_id, user_id)
    if anomalies is None:
        raise _not_found()
    return anomalies


@router.get("/{link_id}/analytics", response_model=VisitorAnalytics)
async def visitor_analytics(
    link_id: str,
    user_id: str = Depends(get_current_user_id),
    tracking_service: TrackingService = Depends(get_tracking_service)
):
    analytics = await tracking_service.visitor_analytics(link_id, user_id)
    if analytics is None:
        raise _not_found()
    return analytics
