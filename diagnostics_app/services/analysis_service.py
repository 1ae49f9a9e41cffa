import logging
from collections import Counter, OrderedDict
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from diagnostics_app.config import settings
from diagnostics_app.exceptions import ValidationError
from diagnostics_app.models.analysis import AnalysisResult, AnalysisSession
from diagnostics_app.models.common import utcnow
from diagnostics_app.services.alert_service import AlertService
from diagnostics_app.services.geo_service import GeoService
from diagnostics_app.services.threat_assessment import (
    assess_threat,
    check_blacklist,
    check_vpn_tor,
    determine_ip_type,
    is_suspicious_ip,
    reputation_links,
)

logger = logging.getLogger(__name__)


def normalize_ips(ips: List[str], limit: int) -> List[str]:
    """Trim, drop blanks, de-duplicate keeping first occurrence, cap at limit."""
    seen = OrderedDict()
    for raw in ips:
        ip = (raw or "").strip()
        if ip and ip not in seen:
            seen[ip] = None
    return list(seen)[:limit]


def batch_statistics(results: List[Dict]) -> Dict:
    stats = {
        "total": len(results),
        "by_threat_level": {},
        "by_country": {},
        "by_ip_type": {},
        "blacklisted": 0,
        "vpn_tor": 0,
        "suspicious": 0,
    }
    for result in results:
        threat = result["threat"]
        country = result["record"].get("country") or "Unknown"
        stats["by_threat_level"][threat] = stats["by_threat_level"].get(threat, 0) + 1
        stats["by_country"][country] = stats["by_country"].get(country, 0) + 1
        stats["by_ip_type"][result["ip_type"]] = stats["by_ip_type"].get(result["ip_type"], 0) + 1
        if result["blacklist"]["is_blacklisted"]:
            stats["blacklisted"] += 1
        if result["vpn_tor"]["is_vpn"] or result["vpn_tor"]["is_tor"]:
            stats["vpn_tor"] += 1
        if threat != "low":
            stats["suspicious"] += 1
    return stats


def detect_patterns(results: List[Dict]) -> Dict:
    """
    Group a batch by /24 range, ISP and country.

    A /24 shows up under suspicious_ranges only when more than one IP in the
    batch falls inside it.
    """
    ranges: Dict[str, List[str]] = OrderedDict()
    for result in results:
        octets = result["ip"].split(".")
        if len(octets) != 4:
            continue
        ranges.setdefault(".".join(octets[:3]) + ".0/24", []).append(result["ip"])

    isp_counts = Counter(result["record"].get("isp") or "Unknown" for result in results)

    clusters: Dict[str, List[str]] = OrderedDict()
    for result in results:
        clusters.setdefault(result["record"].get("country") or "Unknown", []).append(result["ip"])

    return {
        "suspicious_ranges": [r for r, ips in ranges.items() if len(ips) > 1],
        "common_isps": [isp for isp, _ in isp_counts.most_common(5)],
        "geographic_clusters": sorted(
            ({"country": country, "count": len(ips), "ips": ips} for country, ips in clusters.items()),
            key=lambda cluster: cluster["count"],
            reverse=True,
        ),
    }


class AnalysisService:
    """
    IP analysis sessions.

    Sessions and results are shared: every caller can list and read them,
    only the creator may delete.
    """

    def __init__(self, db: Session, geo: GeoService, alerts: AlertService):
        self.db = db
        self.geo = geo
        self.alerts = alerts

    def _previously_seen(self, user_id: str, ips: List[str]) -> Dict[str, object]:
        """Latest time each IP appeared in one of the caller's earlier sessions."""
        if not ips:
            return {}
        rows = (
            self.db.query(AnalysisResult.ip_address, func.max(AnalysisResult.created_at))
            .join(AnalysisSession, AnalysisSession.id == AnalysisResult.session_id)
            .filter(AnalysisSession.user_id == user_id, AnalysisResult.ip_address.in_(ips))
            .group_by(AnalysisResult.ip_address)
            .all()
        )
        return {ip: seen_at for ip, seen_at in rows}

    async def analyze(self, user_id: str, ips: List[str], session_name: Optional[str] = None) -> Dict:
        """
        Geolocate and score a batch, persist it as a session and raise alerts.

        Raises GeoLookupError before anything is stored when the lookup fails.
        """
        ips = normalize_ips(ips, settings.geo_batch_limit)
        if not ips:
            raise ValidationError("No IP addresses to analyze.")
        previously_seen = self._previously_seen(user_id, ips)
        records = await self.geo.lookup([{"query": ip} for ip in ips])

        session = AnalysisSession(
            user_id=user_id,
            session_name=session_name or f"IP analysis - {utcnow():%Y-%m-%d %H:%M}",
        )
        self.db.add(session)
        self.db.flush()

        results = []
        counts = Counter()
        for ip, record in zip(ips, records):
            assessment = assess_threat(record)
            counts[assessment.threat] += 1
            last_seen = previously_seen.get(ip)

            self.db.add(AnalysisResult(
                session_id=session.id,
                ip_address=ip,
                country=record.get("country"),
                country_code=record.get("countryCode"),
                region=record.get("regionName"),
                city=record.get("city"),
                isp=record.get("isp"),
                organization=record.get("org"),
                threat_level=assessment.threat,
                risk_factors=assessment.risk_factors,
                is_proxy=bool(record.get("proxy")),
                is_hosting=bool(record.get("hosting")),
                is_mobile=bool(record.get("mobile")),
                analysis_data=record,
            ))

            results.append({
                "ip": ip,
                "record": record,
                "threat": assessment.threat,
                "risk_factors": assessment.risk_factors,
                "score": assessment.score,
                "ip_type": determine_ip_type(record),
                "blacklist": check_blacklist(ip),
                "vpn_tor": check_vpn_tor(ip),
                "reputation_links": reputation_links(ip),
                "suspicious_pattern": is_suspicious_ip(ip),
                "is_duplicate": last_seen is not None,
                "last_seen": last_seen,
            })

        session.total_ips = len(results)
        session.high_risk_count = counts["high"]
        session.medium_risk_count = counts["medium"]
        session.low_risk_count = counts["low"]
        self.db.commit()
        self.db.refresh(session)

        logger.info("Analysis session %s: %d IPs, %d high risk", session.id, len(results), counts["high"])

        for result in results:
            if result["record"].get("status") != "success":
                continue
            await self.alerts.trigger_suspicious_ip_alert(
                user_id, result["ip"], result["threat"], result["risk_factors"],
                record=result["record"], flagged=result["suspicious_pattern"],
            )

        return {
            "session": session,
            "results": results,
            "statistics": batch_statistics(results),
            "patterns": detect_patterns(results),
        }

    async def list_sessions(self, user_id: Optional[str] = None, limit: int = 100) -> List[AnalysisSession]:
        """Newest first. Pass user_id to see only that caller's sessions."""
        query = self.db.query(AnalysisSession)
        if user_id is not None:
            query = query.filter(AnalysisSession.user_id == user_id)
        return query.order_by(AnalysisSession.created_at.desc()).limit(limit).all()

    async def get_session(self, session_id: str) -> Optional[AnalysisSession]:
        return self.db.query(AnalysisSession).filter(AnalysisSession.id == session_id).first()

    async def get_session_results(self, session_id: str) -> Optional[List[AnalysisResult]]:
        if not await self.get_session(session_id):
            return None
        return (
            self.db.query(AnalysisResult)
            .filter(AnalysisResult.session_id == session_id)
            .order_by(AnalysisResult.created_at.desc())
            .all()
        )

    async def delete_session(self, session: AnalysisSession) -> bool:
        """Delete a session and its results. Ownership is checked by the caller."""
        self.db.query(AnalysisResult).filter(AnalysisResult.session_id == session.id).delete(
            synchronize_session=False
        )
        self.db.delete(session)
        self.db.commit()
        logger.info("Deleted analysis session %s", session.id)
        return True
