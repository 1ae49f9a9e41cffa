from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float, ForeignKey, JSON, Text

from diagnostics_app.database.connection import Base
from diagnostics_app.models.common import new_id, utcnow


class TrackingLink(Base):
    """
    A link handed out to visitors.

    Every hit on /t/{link_code} is stored as a VisitorLog row owned by the
    link. Only the link owner can read the collected data.
    """
    __tablename__ = "ip_tracking_links"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False, index=True)
    link_name = Column(String, nullable=False)
    # unique=True creates the index
    link_code = Column(String(32), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    target_url = Column(String, nullable=True)  # Optional redirect after recording
    is_active = Column(Boolean, default=True)
    collect_user_agent = Column(Boolean, default=True)
    collect_referrer = Column(Boolean, default=True)
    alert_on_suspicious = Column(Boolean, default=True)
    max_visits = Column(Integer, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class VisitorLog(Base):
    """One recorded visit, enriched with geolocation and threat data."""
    __tablename__ = "visitor_ip_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    tracking_link_id = Column(
        String(36), ForeignKey("ip_tracking_links.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ip_address = Column(String(45), nullable=False, index=True)
    user_agent = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)
    country = Column(String, nullable=True)
    country_code = Column(String(8), nullable=True)
    region = Column(String, nullable=True)
    city = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    timezone = Column(String, nullable=True)
    isp = Column(String, nullable=True)
    organization = Column(String, nullable=True)
    asn = Column(String, nullable=True)
    is_mobile = Column(Boolean, default=False)
    is_proxy = Column(Boolean, default=False)
    is_hosting = Column(Boolean, default=False)
    is_tor = Column(Boolean, default=False)
    is_vpn = Column(Boolean, default=False)
    threat_level = Column(String(16), default="unknown")  # low / medium / high / unknown
    risk_factors = Column(JSON, default=list)
    session_id = Column(String(64), nullable=True, index=True)
    visit_duration = Column(Integer, nullable=True)  # Seconds
    page_views = Column(Integer, default=1)
    is_suspicious = Column(Boolean, default=False)
    anomaly_score = Column(Float, default=0.0)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)


class VisitorSession(Base):
    """Roll-up of all visits sharing a browser session id on one link."""
    __tablename__ = "visitor_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    tracking_link_id = Column(
        String(36), ForeignKey("ip_tracking_links.id", ondelete="CASCADE"), nullable=False, index=True
    )
    session_id = Column(String(64), nullable=False, index=True)
    ip_address = Column(String(45), nullable=False)
    first_visit = Column(DateTime(timezone=True), default=utcnow)
    last_visit = Column(DateTime(timezone=True), default=utcnow)
    total_visits = Column(Integer, default=1)
    total_page_views = Column(Integer, default=1)
    total_duration = Column(Integer, default=0)
    unique_ips = Column(JSON, default=list)
    countries = Column(JSON, default=list)
    user_agents = Column(JSON, default=list)
    is_suspicious = Column(Boolean, default=False)
    anomaly_flags = Column(JSON, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class AnomalyDetection(Base):
    """A finding raised while recording a visit."""
    __tablename__ = "ip_anomaly_detection"

    id = Column(String(36), primary_key=True, default=new_id)
    visitor_log_id = Column(String(36), ForeignKey("visitor_ip_logs.id", ondelete="CASCADE"), nullable=False)
    tracking_link_id = Column(
        String(36), ForeignKey("ip_tracking_links.id", ondelete="CASCADE"), nullable=False, index=True
    )
    anomaly_type = Column(String(32), nullable=False, index=True)
    severity = Column(String(16), default="medium")  # low / medium / high / critical
    description = Column(Text, nullable=False)
    confidence_score = Column(Float, default=0.0)
    evidence = Column(JSON, default=dict)
    auto_detected = Column(Boolean, default=True)
    is_false_positive = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
