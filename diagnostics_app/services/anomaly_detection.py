"""
Per-visit anomaly detection and session roll-up.

Runs inside the unit of work that inserts a VisitorLog, so a visit, its
anomalies and its session totals are committed together or not at all.
"""

import logging
import math
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from diagnostics_app.config import settings
from diagnostics_app.models.common import as_utc, utcnow
from diagnostics_app.models.tracking import AnomalyDetection, VisitorLog, VisitorSession

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
POINTS_PER_ANOMALY = 25.0
MAX_ANOMALY_SCORE = 100.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def _place(log: VisitorLog) -> str:
    return f"{log.city or 'Unknown'}, {log.country or 'Unknown'}"


def _finding(anomaly_type: str, severity: str, description: str, confidence: float, evidence: Dict) -> Dict:
    return {
        "anomaly_type": anomaly_type,
        "severity": severity,
        "description": description,
        "confidence_score": confidence,
        "evidence": evidence,
    }


def detect_anomalies(new_log: VisitorLog, previous_log: Optional[VisitorLog] = None,
                     now: Optional[datetime] = None) -> List[Dict]:
    """
    Findings for a visit that is about to be stored.

    Args:
        new_log: The visit being recorded (not necessarily flushed yet)
        previous_log: Latest geolocated visit in the same link and session
        now: Timestamp of the new visit; defaults to new_log.created_at or utcnow()
    """
    findings = []
    ip = new_log.ip_address

    if new_log.is_tor:
        findings.append(_finding("tor_usage", "high", "Visit from a Tor exit node", 0.95,
                                 {"ip": ip, "tor_detected": True}))
    if new_log.is_vpn:
        findings.append(_finding("vpn_usage", "medium", "Visit from a VPN server", 0.85,
                                 {"ip": ip, "vpn_detected": True}))
    if new_log.is_hosting:
        findings.append(_finding("datacenter_ip", "medium", "Visit from a datacenter IP", 0.80,
                                 {"ip": ip, "hosting_detected": True}))

    if (
        previous_log is not None
        and new_log.latitude is not None and new_log.longitude is not None
        and previous_log.latitude is not None and previous_log.longitude is not None
    ):
        current = as_utc(now or new_log.created_at) or utcnow()
        minutes = (current - as_utc(previous_log.created_at)).total_seconds() / 60
        distance = haversine_km(previous_log.latitude, previous_log.longitude,
                                new_log.latitude, new_log.longitude)

        if minutes < settings.rapid_change_window_minutes and distance > settings.rapid_change_distance_km:
            findings.append(_finding(
                "rapid_location_change", "high",
                f"Rapid location change: {round(distance)} km in {round(minutes)} minutes",
                0.90,
                {
                    "distance_km": round(distance, 2),
                    "time_diff_minutes": round(minutes, 2),
                    "prev_location": _place(previous_log),
                    "new_location": _place(new_log),
                },
            ))

    return findings


def score_findings(findings: List[Dict]) -> Tuple[float, bool]:
    """Return (anomaly_score, is_suspicious)."""
    return min(POINTS_PER_ANOMALY * len(findings), MAX_ANOMALY_SCORE), len(findings) > 0


def find_previous_geolocated_log(db: Session, link_id: str, session_id: str,
                                  exclude_id: Optional[str] = None) -> Optional[VisitorLog]:
    query = db.query(VisitorLog).filter(
        VisitorLog.tracking_link_id == link_id,
        VisitorLog.session_id == session_id,
        VisitorLog.latitude.isnot(None),
        VisitorLog.longitude.isnot(None),
    )
    if exclude_id is not None:
        query = query.filter(VisitorLog.id != exclude_id)
    return query.order_by(VisitorLog.created_at.desc()).first()


def apply_anomaly_detection(db: Session, log: VisitorLog) -> List[AnomalyDetection]:
    """
    Score the visit and stage one AnomalyDetection row per finding.

    The log must already have an id (flushed) and created_at set.
    """
    previous = find_previous_geolocated_log(db, log.tracking_link_id, log.session_id, exclude_id=log.id)

    findings = detect_anomalies(log, previous, now=log.created_at)
    log.anomaly_score, log.is_suspicious = score_findings(findings)

    rows = []
    for finding in findings:
        row = AnomalyDetection(visitor_log_id=log.id, tracking_link_id=log.tracking_link_id, **finding)
        db.add(row)
        rows.append(row)

    if rows:
        logger.info("Visit %s on link %s raised %s", log.id, log.tracking_link_id,
                    ", ".join(r.anomaly_type for r in rows))
    return rows


def _append_unseen(values: Optional[List], value) -> List:
    current = list(values or [])
    if value is not None and value not in current:
        current.append(value)
    return current


def roll_up_session(db: Session, log: VisitorLog, anomaly_types: Optional[List[str]] = None) -> VisitorSession:
    """Find or create the VisitorSession for (link, session id) and fold the visit into it."""
    session = (
        db.query(VisitorSession)
        .filter(
            VisitorSession.tracking_link_id == log.tracking_link_id,
            VisitorSession.session_id == log.session_id,
        )
        .first()
    )
    page_views = log.page_views or 1

    if session is None:
        session = VisitorSession(
            tracking_link_id=log.tracking_link_id,
            session_id=log.session_id,
            ip_address=log.ip_address,
            first_visit=log.created_at,
            last_visit=log.created_at,
            total_visits=1,
            total_page_views=page_views,
            unique_ips=_append_unseen([], log.ip_address),
            countries=_append_unseen([], log.country),
            user_agents=_append_unseen([], log.user_agent),
            is_suspicious=bool(log.is_suspicious),
            anomaly_flags=list(dict.fromkeys(anomaly_types or [])),
        )
        db.add(session)
        return session

    # JSON columns are replaced, not mutated, so SQLAlchemy sees the change
    session.last_visit = log.created_at
    session.total_visits = (session.total_visits or 0) + 1
    session.total_page_views = (session.total_page_views or 0) + page_views
    session.unique_ips = _append_unseen(session.unique_ips, log.ip_address)
    session.countries = _append_unseen(session.countries, log.country)
    session.user_agents = _append_unseen(session.user_agents, log.user_agent)
    flags = list(session.anomaly_flags or [])
    for anomaly_type in anomaly_types or []:
        flags = _append_unseen(flags, anomaly_type)
    session.anomaly_flags = flags
    session.is_suspicious = bool(session.is_suspicious) or bool(log.is_suspicious)
    return session
