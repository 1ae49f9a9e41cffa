"""
Database models for the diagnostics center.

Importing this package registers every table with Base.
"""

from .tracking import TrackingLink, VisitorLog, VisitorSession, AnomalyDetection
from .analysis import AnalysisSession, AnalysisResult
from .program import ProgramRecord
from .performance import PerformanceDiagnostic
from .alert import AlertNotification, BlacklistEntry, SuspiciousPattern

__all__ = [
    "TrackingLink",
    "VisitorLog",
    "VisitorSession",
    "AnomalyDetection",
    "AnalysisSession",
    "AnalysisResult",
    "ProgramRecord",
    "PerformanceDiagnostic",
    "AlertNotification",
    "BlacklistEntry",
    "SuspiciousPattern",
]
