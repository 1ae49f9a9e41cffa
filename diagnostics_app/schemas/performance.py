from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PerformanceMetrics(BaseModel):
    """Snapshot collected by the client. Percentages are 0-100."""
    cpu_usage: Optional[float] = Field(None, ge=0, le=100)
    cpu_temperature: Optional[float] = None
    memory_usage: Optional[float] = Field(None, ge=0, le=100)
    memory_total_mb: Optional[int] = Field(None, ge=0)
    disk_usage: Optional[float] = Field(None, ge=0, le=100)
    disk_total_gb: Optional[int] = Field(None, ge=0)
    network_latency: Optional[float] = Field(None, ge=0)
    network_download_speed: Optional[float] = Field(None, ge=0)
    network_upload_speed: Optional[float] = Field(None, ge=0)
    packet_loss: Optional[float] = Field(None, ge=0, le=100)


class PerformanceSubmit(BaseModel):
    scan_name: Optional[str] = Field(None, max_length=200)
    metrics: PerformanceMetrics


class PerformanceResponse(BaseModel):
    id: str
    user_id: str
    scan_name: str
    cpu_usage: Optional[float] = None
    cpu_temperature: Optional[float] = None
    memory_usage: Optional[float] = None
    memory_total_mb: Optional[int] = None
    disk_usage: Optional[float] = None
    disk_total_gb: Optional[int] = None
    network_latency: Optional[float] = None
    network_download_speed: Optional[float] = None
    network_upload_speed: Optional[float] = None
    issues_count: int
    critical_issues: int
    warning_issues: int
    issues_detected: List[Dict[str, Any]] = []
    system_metrics: Dict[str, Any] = {}
    recommendations: List[str] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
