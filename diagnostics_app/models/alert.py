from datetime import timedelta

from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, Text

from diagnostics_app.config import settings
from diagnostics_app.database.connection import Base
from diagnostics_app.models.common import new_id, utcnow


def _alert_expiry():
    return utcnow() + timedelta(days=settings.alert_ttl_days)


class AlertNotification(Base):
    """
    Local notification for one user.

    Stands in for desktop notifications: the dashboard polls unread alerts.
    """
    __tablename__ = "alert_notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False, index=True)
    # suspicious_ip / high_risk_program / performance_critical / duplicate_detected
    alert_type = Column(String(32), nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    severity = Column(String(16), default="warning")  # info / warning / critical
    is_read = Column(Boolean, default=False)
    related_data = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    expires_at = Column(DateTime(timezone=True), default=_alert_expiry)


class BlacklistEntry(Base):
    __tablename__ = "ip_blacklist"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False, index=True)
    ip_address = Column(String(45), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    threat_level = Column(String(16), default="medium")
    auto_added = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    added_at = Column(DateTime(timezone=True), default=utcnow)
    last_seen = Column(DateTime(timezone=True), default=utcnow)
    detection_count = Column(Integer, default=1)


class SuspiciousPattern(Base):
    __tablename__ = "suspicious_patterns"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False, index=True)
    pattern_type = Column(String(16), nullable=False)  # ip_range / asn / country / isp
    pattern_value = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    threat_level = Column(String(16), default="medium")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
