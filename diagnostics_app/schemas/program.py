from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Category = Literal["system", "productivity", "gaming", "media", "development", "utility", "unknown"]
RiskLevel = Literal["safe", "caution", "risky", "unknown"]
Recommendation = Literal["keep", "optional", "remove", "update"]
UsageFrequency = Literal["high", "medium", "low", "never", "unknown"]
Impact = Literal["low", "medium", "high"]


class ProgramIn(BaseModel):
    """One installed program as reported by the client scanner."""
    name: str = Field(..., min_length=1)
    version: Optional[str] = None
    publisher: Optional[str] = None
    install_date: Optional[date] = None
    size_kb: int = Field(0, ge=0)
    category: Category = "unknown"
    risk_level: RiskLevel = "unknown"
    recommendation: Recommendation = "keep"
    usage_frequency: UsageFrequency = "unknown"
    last_used: Optional[str] = None
    auto_start: bool = False
    system_impact: Impact = "low"
    reasons: List[str] = []
    description: Optional[str] = None


class ProgramScanRequest(BaseModel):
    programs: List[ProgramIn] = Field(..., min_length=1)
    scan_session_id: Optional[str] = None


class ProgramUpdate(BaseModel):
    category: Optional[Category] = None
    risk_level: Optional[RiskLevel] = None
    recommendation: Optional[Recommendation] = None
    usage_frequency: Optional[UsageFrequency] = None
    last_used: Optional[str] = None
    auto_start: Optional[bool] = None
    system_impact: Optional[Impact] = None
    analysis_reasons: Optional[List[str]] = None


class ProgramResponse(BaseModel):
    id: str
    user_id: str
    scan_session_id: str
    program_name: str
    version: Optional[str] = None
    publisher: Optional[str] = None
    install_date: Optional[date] = None
    size_kb: int
    category: str
    risk_level: str
    recommendation: str
    usage_frequency: str
    last_used: Optional[str] = None
    auto_start: bool
    system_impact: str
    analysis_reasons: List[str] = []
    program_details: Dict[str, Any] = {}
    is_duplicate: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CategoryStats(BaseModel):
    name: str
    count: int
    total_size: int
    risk_count: int


class ProgramScanResponse(BaseModel):
    scan_session_id: str
    programs: List[ProgramResponse]
    categories: List[CategoryStats]


class RiskStatistics(BaseModel):
    risk_levels: Dict[str, int]
    recommendations: Dict[str, int]
