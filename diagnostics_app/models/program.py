from sqlalchemy import Column, String, DateTime, Boolean, BigInteger, JSON, Date

from diagnostics_app.database.connection import Base
from diagnostics_app.models.common import new_id, utcnow


class ProgramRecord(Base):
    """
    Metadata for one installed program, as reported by a client scan.

    All rows from the same scan share scan_session_id.
    """
    __tablename__ = "program_analysis"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False, index=True)
    scan_session_id = Column(String(36), nullable=False, index=True, default=new_id)
    program_name = Column(String, nullable=False)
    version = Column(String, nullable=True)
    publisher = Column(String, nullable=True)
    install_date = Column(Date, nullable=True)
    size_kb = Column(BigInteger, default=0)
    category = Column(String(16), default="unknown")
    risk_level = Column(String(16), default="unknown", index=True)
    recommendation = Column(String(16), default="keep", index=True)
    usage_frequency = Column(String(16), default="unknown")
    last_used = Column(String, nullable=True)
    auto_start = Column(Boolean, default=False)
    system_impact = Column(String(16), default="low")
    analysis_reasons = Column(JSON, default=list)
    program_details = Column(JSON, default=dict)
    is_duplicate = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
