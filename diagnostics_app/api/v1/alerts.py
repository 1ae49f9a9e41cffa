from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from diagnostics_app.dependencies import get_alert_service, get_current_user_id
from diagnostics_app.schemas.alert import (
    AlertResponse,
    BlacklistCheck,
    BlacklistCreate,
    BlacklistResponse,
    CleanupResult,
    PatternCreate,
    PatternResponse,
)
from diagnostics_app.services.alert_service import AlertService

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=List[AlertResponse])
async def unread_alerts(
    user_id: str = Depends(get_current_user_id),
    alert_service: AlertService = Depends(get_alert_service)
):
    """Unread, unexpired alerts, newest first"""
    return await alert_service.unread_alerts(user_id)


@router.post("/{alert_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_read(
    alert_id: str,
    user_id: str = Depends(get_current_user_id),
    alert_service: AlertService = Depends(get_alert_service)
):
    if not await alert_service.mark_read(alert_id, user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert not found"
        )


@router.post("/cleanup", response_model=CleanupResult)
async def cleanup_expired(
    user_id: str = Depends(get_current_user_id),
    alert_service: AlertService = Depends(get_alert_service)
):
    return CleanupResult(removed=await alert_service.cleanup_expired())


@router.get("/blacklist", response_model=List[BlacklistResponse])
async def list_blacklist(
    user_id: str = Depends(get_current_user_id),
    alert_service: AlertService = Depends(get_alert_service)
):
    return await alert_service.list_blacklist(user_id)


@router.post("/blacklist", response_model=BlacklistResponse, status_code=status.HTTP_201_CREATED)
async def add_to_blacklist(
    entry: BlacklistCreate,
    user_id: str = Depends(get_current_user_id),
    alert_service: AlertService = Depends(get_alert_service)
):
    """Add an IP, or bump the detection count of its active entry"""
    return await alert_service.add_to_blacklist(
        user_id, entry.ip_address.strip(), entry.reason, entry.threat_level
    )


@router.get("/blacklist/check/{ip_address}", response_model=BlacklistCheck)
async def check_blacklist(
    ip_address: str,
    user_id: str = Depends(get_current_user_id),
    alert_service: AlertService = Depends(get_alert_service)
):
    entry = await alert_service.check_blacklist(user_id, ip_address)
    return BlacklistCheck(
        ip_address=ip_address,
        is_blacklisted=entry is not None,
        entry=BlacklistResponse.model_validate(entry) if entry else None,
    )


@router.delete("/blacklist/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_blacklist(
    entry_id: str,
    user_id: str = Depends(get_current_user_id),
    alert_service: AlertService = Depends(get_alert_service)
):
    if not await alert_service.remove_from_blacklist(entry_id, user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Blacklist entry not found"
        )


@router.get("/patterns", response_model=List[PatternResponse])
async def list_patterns(
    user_id: str = Depends(get_current_user_id),
    alert_service: AlertService = Depends(get_alert_service)
):
    return await alert_service.list_patterns(user_id)


@router.post("/patterns", response_model=PatternResponse, status_code=status.HTTP_201_CREATED)
async def add_pattern(
    pattern: PatternCreate,
    user_id: str = Depends(get_current_user_id),
    alert_service: AlertService = Depends(get_alert_service)
):
    return await alert_service.add_pattern(
        user_id, pattern.pattern_type, pattern.pattern_value, pattern.description, pattern.threat_level
    )


@router.post("/patterns/defaults", response_model=List[PatternResponse])
async def ensure_default_patterns(
    user_id: str = Depends(get_current_user_id),
    alert_service: AlertService = Depends(get_alert_service)
):
    """Seed the built-in suspicious ranges for the caller (idempotent)"""
    return await alert_service.ensure_default_patterns(user_id)


@router.delete("/patterns/{pattern_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_pattern(
    pattern_id: str,
    user_id: str = Depends(get_current_user_id),
    alert_service: AlertService = Depends(get_alert_service)
):
    if not await alert_service.delete_pattern(pattern_id, user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Pattern not found"
        )
