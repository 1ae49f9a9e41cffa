from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from diagnostics_app.dependencies import get_current_user_id, get_program_service
from diagnostics_app.schemas.program import (
    ProgramResponse,
    ProgramScanRequest,
    ProgramScanResponse,
    ProgramUpdate,
    RiskStatistics,
)
from diagnostics_app.services.program_service import ProgramService

router = APIRouter(prefix="/programs", tags=["programs"])


@router.post("/scans", response_model=ProgramScanResponse, status_code=status.HTTP_201_CREATED)
async def submit_scan(
    scan: ProgramScanRequest,
    user_id: str = Depends(get_current_user_id),
    program_service: ProgramService = Depends(get_program_service)
):
    """Store a client scan; duplicates are flagged and alerts raised"""
    programs = [p.model_dump() for p in scan.programs]
    return await program_service.submit_scan(user_id, programs, scan.scan_session_id)


@router.get("", response_model=List[ProgramResponse])
async def list_programs(
    search: Optional[str] = None,
    category: Optional[str] = None,
    risk_level: Optional[str] = None,
    hide_duplicates: bool = True,
    sort: str = Query("name", pattern="^(name|size|date|risk)$"),
    mine: bool = False,
    user_id: str = Depends(get_current_user_id),
    program_service: ProgramService = Depends(get_program_service)
):
    return await program_service.list_programs(
        user_id=user_id if mine else None,
        search=search,
        category=category,
        risk_level=risk_level,
        hide_duplicates=hide_duplicates,
        sort=sort,
    )


@router.get("/statistics", response_model=RiskStatistics)
async def risk_statistics(
    user_id: str = Depends(get_current_user_id),
    program_service: ProgramService = Depends(get_program_service)
):
    return await program_service.risk_statistics()


@router.get("/scans/{scan_session_id}", response_model=List[ProgramResponse])
async def get_scan(
    scan_session_id: str,
    user_id: str = Depends(get_current_user_id),
    program_service: ProgramService = Depends(get_program_service)
):
    programs = await program_service.get_scan(scan_session_id)
    if not programs:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Scan not found"
        )
    return programs


@router.patch("/{program_id}", response_model=ProgramResponse)
async def update_program(
    program_id: str,
    changes: ProgramUpdate,
    user_id: str = Depends(get_current_user_id),
    program_service: ProgramService = Depends(get_program_service)
):
    program = await program_service.get_program(program_id)
    if not program:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Program record not found"
        )
    if program.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the submitter can update this record"
        )
    return await program_service.update_program(program, changes.model_dump(exclude_unset=True))
