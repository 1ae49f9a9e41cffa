from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, JSON

from diagnostics_app.database.connection import Base
from diagnostics_app.models.common import new_id, utcnow


class AnalysisSession(Base):
    """
    One batch of IPs submitted for analysis.

    Sessions are readable by every caller; only the creator can delete one.
    Risk counters are denormalised so listings need no join.
    """
    __tablename__ = "ip_analysis_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False, index=True)
    session_name = Column(String, nullable=False, default="Untitled session")
    total_ips = Column(Integer, default=0)
    high_risk_count = Column(Integer, default=0)
    medium_risk_count = Column(Integer, default=0)
    low_risk_count = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class AnalysisResult(Base):
    __tablename__ = "ip_analysis_results"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(
        String(36), ForeignKey("ip_analysis_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ip_address = Column(String(45), nullable=False, index=True)
    country = Column(String, nullable=True)
    country_code = Column(String(8), nullable=True)
    region = Column(String, nullable=True)
    city = Column(String, nullable=True)
    isp = Column(String, nullable=True)
    organization = Column(String, nullable=True)
    threat_level = Column(String(16), default="unknown", index=True)
    risk_factors = Column(JSON, default=list)
    is_proxy = Column(Boolean, default=False)
    is_hosting = Column(Boolean, default=False)
    is_mobile = Column(Boolean, default=False)
    analysis_data = Column(JSON, default=dict)  # Raw geolocation record
    created_at = Column(DateTime(timezone=True), default=utcnow)
