from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AnalysisRequest(BaseModel):
    ips: List[str] = Field(..., min_length=1, description="IP addresses; blanks and repeats are dropped, max 50 kept")
    session_name: Optional[str] = Field(None, max_length=200)


class AnalysisSessionResponse(BaseModel):
    id: str
    user_id: str
    session_name: str
    total_ips: int
    high_risk_count: int
    medium_risk_count: int
    low_risk_count: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AnalysisResultResponse(BaseModel):
    id: str
    session_id: str
    ip_address: str
    country: Optional[str] = None
    country_code: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    isp: Optional[str] = None
    organization: Optional[str] = None
    threat_level: str
    risk_factors: List[str] = []
    is_proxy: bool
    is_hosting: bool
    is_mobile: bool
    analysis_data: Dict[str, Any] = {}
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReputationLink(BaseModel):
    name: str
    url: str


class AnalyzedIP(BaseModel):
    """One IP of a batch with everything derived from its geolocation record."""
    ip: str
    record: Dict[str, Any]
    threat: str
    risk_factors: List[str]
    score: int
    ip_type: str
    blacklist: Dict[str, Any]
    vpn_tor: Dict[str, Any]
    reputation_links: List[ReputationLink]
    suspicious_pattern: bool
    is_duplicate: bool
    last_seen: Optional[datetime] = None


class BatchStatistics(BaseModel):
    total: int
    by_threat_level: Dict[str, int]
    by_country: Dict[str, int]
    by_ip_type: Dict[str, int]
    blacklisted: int
    vpn_tor: int
    suspicious: int


class GeographicCluster(BaseModel):
    country: str
    count: int
    ips: List[str]


class DetectedPatterns(BaseModel):
    suspicious_ranges: List[str]
    common_isps: List[str]
    geographic_clusters: List[GeographicCluster]


class AnalysisReport(BaseModel):
    session: AnalysisSessionResponse
    results: List[AnalyzedIP]
    statistics: BatchStatistics
    patterns: DetectedPatterns
