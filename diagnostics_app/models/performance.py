from sqlalchemy import Column, Integer, String, DateTime, Float, BigInteger, JSON

from diagnostics_app.database.connection import Base
from diagnostics_app.models.common import new_id, utcnow


class PerformanceDiagnostic(Base):
    __tablename__ = "performance_diagnostics"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False, index=True)
    scan_name = Column(String, default="Performance scan")
    cpu_usage = Column(Float, nullable=True)
    cpu_temperature = Column(Float, nullable=True)
    memory_usage = Column(Float, nullable=True)
    memory_total_mb = Column(BigInteger, nullable=True)
    disk_usage = Column(Float, nullable=True)
    disk_total_gb = Column(BigInteger, nullable=True)
    network_latency = Column(Float, nullable=True)
    network_download_speed = Column(Float, nullable=True)
    network_upload_speed = Column(Float, nullable=True)
    issues_count = Column(Integer, default=0)
    critical_issues = Column(Integer, default=0)
    warning_issues = Column(Integer, default=0)
    issues_detected = Column(JSON, default=list)
    system_metrics = Column(JSON, default=dict)
    recommendations = Column(JSON, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
