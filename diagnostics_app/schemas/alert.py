from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ThreatLevel = Literal["low", "medium", "high"]


class AlertResponse(BaseModel):
    id: str
    user_id: str
    alert_type: str
    title: str
    message: str
    severity: str
    is_read: bool
    related_data: Dict[str, Any] = {}
    created_at: datetime
    expires_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BlacklistCreate(BaseModel):
    ip_address: str = Field(..., min_length=1, max_length=45)
    reason: str = Field(..., min_length=1)
    threat_level: ThreatLevel = "medium"


class BlacklistResponse(BaseModel):
    id: str
    user_id: str
    ip_address: str
    reason: str
    threat_level: str
    auto_added: bool
    is_active: bool
    added_at: datetime
    last_seen: datetime
    detection_count: int

    model_config = ConfigDict(from_attributes=True)


class BlacklistCheck(BaseModel):
    ip_address: str
    is_blacklisted: bool
    entry: Optional[BlacklistResponse] = None


class PatternCreate(BaseModel):
    pattern_type: Literal["ip_range", "asn", "country", "isp"]
    pattern_value: str = Field(..., min_length=1)
    description: Optional[str] = None
    threat_level: ThreatLevel = "medium"


class PatternResponse(BaseModel):
    id: str
    user_id: str
    pattern_type: str
    pattern_value: str
    description: Optional[str] = None
    threat_level: str
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CleanupResult(BaseModel):
    removed: int
