from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from diagnostics_app.dependencies import get_analysis_service, get_current_user_id
from diagnostics_app.schemas.analysis import (
    AnalysisReport,
    AnalysisRequest,
    AnalysisResultResponse,
    AnalysisSessionResponse,
)
from diagnostics_app.services.analysis_service import AnalysisService

router = APIRouter(prefix="/analysis", tags=["analysis"])


@router.post("", response_model=AnalysisReport, status_code=status.HTTP_201_CREATED)
async def analyze_ips(
    request: AnalysisRequest,
    user_id: str = Depends(get_current_user_id),
    analysis_service: AnalysisService = Depends(get_analysis_service)
):
    """Geolocate and score a batch of IPs and store it as a new session"""
    return await analysis_service.analyze(user_id, request.ips, request.session_name)


@router.get("/sessions", response_model=List[AnalysisSessionResponse])
async def list_sessions(
    mine: bool = False,
    user_id: str = Depends(get_current_user_id),
    analysis_service: AnalysisService = Depends(get_analysis_service)
):
    """All sessions (shared), or only the caller's with ?mine=true"""
    return await analysis_service.list_sessions(user_id if mine else None)


@router.get("/sessions/{session_id}/results", response_model=List[AnalysisResultResponse])
async def get_session_results(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    analysis_service: AnalysisService = Depends(get_analysis_service)
):
    results = await analysis_service.get_session_results(session_id)
    if results is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Analysis session not found"
        )
    return results


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    analysis_service: AnalysisService = Depends(get_analysis_service)
):
    """Delete a session and its results (creator only)"""
    session = await analysis_service.get_session(session_id)
    if not session:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Analysis session not found"
        )
    if session.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the creator can delete this session"
        )
    await analysis_service.delete_session(session)
