from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends

from diagnostics_app.dependencies import get_geo_service
from diagnostics_app.services.geo_service import GeoService

router = APIRouter(tags=["ip-proxy"])


@router.post("/ip-proxy", response_model=List[Dict[str, Any]])
async def ip_proxy(
    payload: Any = Body(..., examples=[[{"query": "8.8.8.8"}, {"query": "1.1.1.1"}]]),
    geo_service: GeoService = Depends(get_geo_service)
):
    """
    Batch geolocation, same contract as the ip-api.com batch endpoint.

    400 for a malformed body or more than 50 entries, 502 when the upstream fails.
    """
    return await geo_service.lookup(payload)
