from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, computed_field

from diagnostics_app.config import settings


class TrackingLinkBase(BaseModel):
    description: Optional[str] = None
    target_url: Optional[HttpUrl] = Field(None, description="Where visitors are redirected after logging")
    max_visits: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None

    def to_fields(self, exclude_unset: bool = False) -> Dict[str, Any]:
        """Column values ready for the ORM (URLs as plain strings)."""
        data = self.model_dump(exclude_unset=exclude_unset)
        if data.get("target_url") is not None:
            data["target_url"] = str(data["target_url"])
        return data


class TrackingLinkCreate(TrackingLinkBase):
    link_name: str = Field(..., min_length=1, max_length=200)
    collect_user_agent: bool = True
    collect_referrer: bool = True
    alert_on_suspicious: bool = True


class TrackingLinkUpdate(TrackingLinkBase):
    link_name: Optional[str] = Field(None, min_length=1, max_length=200)
    is_active: Optional[bool] = None
    collect_user_agent: Optional[bool] = None
    collect_referrer: Optional[bool] = None
    alert_on_suspicious: Optional[bool] = None


class TrackingLinkResponse(BaseModel):
    id: str
    user_id: str
    link_name: str
    link_code: str
    description: Optional[str] = None
    target_url: Optional[str] = None
    is_active: bool
    collect_user_agent: bool
    collect_referrer: bool
    alert_on_suspicious: bool
    max_visits: Optional[int] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def tracking_url(self) -> str:
        return f"{settings.base_url}/t/{self.link_code}"

    model_config = ConfigDict(from_attributes=True)


class VisitorLogResponse(BaseModel):
    id: str
    tracking_link_id: str
    ip_address: str
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timezone: Optional[str] = None
    isp: Optional[str] = None
    organization: Optional[str] = None
    asn: Optional[str] = None
    is_mobile: bool
    is_proxy: bool
    is_hosting: bool
    is_tor: bool
    is_vpn: bool
    threat_level: str
    risk_factors: List[str] = []
    session_id: Optional[str] = None
    visit_duration: Optional[int] = None
    page_views: int
    is_suspicious: bool
    anomaly_score: float
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VisitorSessionResponse(BaseModel):
    id: str
    tracking_link_id: str
    session_id: str
    ip_address: str
    first_visit: datetime
    last_visit: datetime
    total_visits: int
    total_page_views: int
    total_duration: int
    unique_ips: List[str] = []
    countries: List[str] = []
    user_agents: List[str] = []
    is_suspicious: bool
    anomaly_flags: List[Any] = []

    model_config = ConfigDict(from_attributes=True)


class AnomalyResponse(BaseModel):
    id: str
    visitor_log_id: str
    tracking_link_id: str
    anomaly_type: str
    severity: str
    description: str
    confidence_score: float
    evidence: Dict[str, Any] = {}
    auto_detected: bool
    is_false_positive: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CountryCount(BaseModel):
    country: str
    count: int


class IspCount(BaseModel):
    isp: str
    count: int


class TimelinePoint(BaseModel):
    date: str
    visits: int
    suspicious: int


class GeoPoint(BaseModel):
    country: str
    latitude: float
    longitude: float
    count: int
    suspicious: int


class VisitorAnalytics(BaseModel):
    total_visits: int
    unique_visitors: int
    suspicious_visits: int
    top_countries: List[CountryCount]
    top_isps: List[IspCount]
    threat_level_distribution: Dict[str, int]
    anomaly_types: Dict[str, int]
    timeline: List[TimelinePoint]
    geographic_data: List[GeoPoint]


class VisitRecorded(BaseModel):
    """Body returned by the public visit endpoint when the link has no target."""
    recorded: bool = True
    link_name: str
    session_id: str
    threat_level: str
    visited_at: datetime
