from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import RedirectResponse

from diagnostics_app.dependencies import get_tracking_service
from diagnostics_app.schemas.tracking import VisitRecorded
from diagnostics_app.services.tracking_service import TrackingService

router = APIRouter(tags=["track"])

SESSION_COOKIE = "visitor_session"
SESSION_COOKIE_MAX_AGE = 30 * 60


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else "unknown"


@router.get("/t/{link_code}", response_model=VisitRecorded)
async def record_visit(
    link_code: str,
    request: Request,
    response: Response,
    session_id: Optional[str] = None,
    tracking_service: TrackingService = Depends(get_tracking_service)
):
    """
    Public tracking endpoint.

    Records the visit, then redirects to the link's target URL (302) or
    acknowledges with JSON. The session id comes from ?session_id=, the
    visitor_session cookie, or is generated.
    404 for unknown or inactive links, 410 for expired or exhausted ones.
    """
    log = await tracking_service.record_visit(
        link_code,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
        session_id=session_id or request.cookies.get(SESSION_COOKIE),
    )

    if not log:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tracking link not found or inactive"
        )

    link = await tracking_service.resolve_code(link_code)
    if link and link.target_url:
        redirect = RedirectResponse(url=link.target_url, status_code=status.HTTP_302_FOUND)
        redirect.set_cookie(SESSION_COOKIE, log.session_id, max_age=SESSION_COOKIE_MAX_AGE, httponly=True)
        return redirect

    response.set_cookie(SESSION_COOKIE, log.session_id, max_age=SESSION_COOKIE_MAX_AGE, httponly=True)
    return VisitRecorded(
        link_name=link.link_name if link else link_code,
        session_id=log.session_id,
        threat_level=log.threat_level,
        visited_at=log.created_at,
    )
