import logging
import secrets
from collections import Counter, OrderedDict
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from diagnostics_app.cache.factory import CacheNamespace
from diagnostics_app.cache.strategies import CacheStrategy
from diagnostics_app.exceptions import GeoLookupError, LinkUnavailableError
from diagnostics_app.models.common import as_utc, utcnow
from diagnostics_app.models.tracking import AnomalyDetection, TrackingLink, VisitorLog, VisitorSession
from diagnostics_app.services.alert_service import AlertService
from diagnostics_app.services.anomaly_detection import apply_anomaly_detection, roll_up_session
from diagnostics_app.services.geo_service import GeoService
from diagnostics_app.services.link_code_factory import LinkCodeFactory
from diagnostics_app.services.threat_assessment import assess_threat, check_vpn_tor

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "link_name", "description", "target_url", "is_active", "collect_user_agent",
    "collect_referrer", "alert_on_suspicious", "max_visits", "expires_at",
)
# Fields an explicit null clears; null is ignored for the rest
CLEARABLE_FIELDS = ("description", "target_url", "max_visits", "expires_at")


def new_session_id() -> str:
    return secrets.token_hex(12)


class TrackingService:
    """
    Tracking links and the visits recorded against them.

    Link management and every read of collected data is scoped to the link
    owner; record_visit is the only entry point that needs no identity.
    """

    def __init__(
        self,
        db: Session,
        geo: GeoService,
        alerts: AlertService,
        cache: Optional[CacheStrategy] = None,
    ):
        self.db = db
        self.geo = geo
        self.alerts = alerts
        self.cache = cache
        self.link_code_strategy = LinkCodeFactory.create_strategy()

    # Links

    async def create_link(self, user_id: str, data: Dict) -> TrackingLink:
        sequence = (self.db.query(func.count(TrackingLink.id)).scalar() or 0) + 1
        link = TrackingLink(
            user_id=user_id,
            link_code=self.link_code_strategy.generate(sequence, self.db),
            **{k: v for k, v in data.items() if k in UPDATABLE_FIELDS and v is not None},
        )
        self.db.add(link)
        self.db.commit()
        self.db.refresh(link)

        if self.cache:
            await self.cache.set(CacheNamespace.LINK.key(link.link_code), link.id, ttl=CacheNamespace.LINK.ttl)

        logger.info("Created tracking link %s (%s) for %s", link.id, link.link_code, user_id)
        return link

    async def list_links(self, user_id: str) -> List[TrackingLink]:
        return (
            self.db.query(TrackingLink)
            .filter(TrackingLink.user_id == user_id)
            .order_by(TrackingLink.created_at.desc())
            .all()
        )

    async def get_link(self, link_id: str, user_id: str) -> Optional[TrackingLink]:
        return self.db.query(TrackingLink).filter(
            TrackingLink.id == link_id,
            TrackingLink.user_id == user_id,
        ).first()

    async def update_link(self, link_id: str, user_id: str, changes: Dict) -> Optional[TrackingLink]:
        link = await self.get_link(link_id, user_id)
        if not link:
            return None

        for field, value in changes.items():
            if field not in UPDATABLE_FIELDS:
                continue
            if value is None and field not in CLEARABLE_FIELDS:
                continue
            setattr(link, field, value)
        self.db.commit()
        self.db.refresh(link)

        # Deactivated links must stop resolving immediately
        if self.cache:
            await self.cache.delete(CacheNamespace.LINK.key(link.link_code))
        return link

    async def delete_link(self, link_id: str, user_id: str) -> bool:
        link = await self.get_link(link_id, user_id)
        if not link:
            return False

        for model in (AnomalyDetection, VisitorSession, VisitorLog):
            self.db.query(model).filter(model.tracking_link_id == link.id).delete(synchronize_session=False)
        self.db.delete(link)
        self.db.commit()

        if self.cache:
            await self.cache.delete(CacheNamespace.LINK.key(link.link_code))

        logger.info("Deleted tracking link %s", link_id)
        return True

    async def resolve_code(self, link_code: str) -> Optional[TrackingLink]:
        """Active link for a code, cache-aside on link:{code} -> link id."""
        cache_key = CacheNamespace.LINK.key(link_code)

        if self.cache:
            cached_id = await self.cache.get(cache_key)
            if cached_id:
                link = self.db.query(TrackingLink).filter(
                    TrackingLink.id == cached_id,
                    TrackingLink.is_active == True,
                ).first()
                if link:
                    return link
                await self.cache.delete(cache_key)

        link = self.db.query(TrackingLink).filter(
            TrackingLink.link_code == link_code,
            TrackingLink.is_active == True,
        ).first()

        if link and self.cache:
            await self.cache.set(cache_key, link.id, ttl=CacheNamespace.LINK.ttl)
        return link

    # Visits

    def _ensure_available(self, link: TrackingLink):
        expires_at = as_utc(link.expires_at)
        if expires_at is not None and expires_at <= utcnow():
            raise LinkUnavailableError("Tracking link has expired", details={"link_code": link.link_code})

        if link.max_visits is not None:
            visits = self.db.query(func.count(VisitorLog.id)).filter(
                VisitorLog.tracking_link_id == link.id
            ).scalar()
            if visits >= link.max_visits:
                raise LinkUnavailableError(
                    "Tracking link reached its visit limit",
                    details={"link_code": link.link_code, "max_visits": link.max_visits},
                )

    async def _geolocate(self, ip_address: str) -> Dict:
        try:
            return await self.geo.lookup_one(ip_address)
        except GeoLookupError as e:
            logger.warning("Geolocation failed for visitor %s: %s", ip_address, e.details.get("reason"))
            return {"status": "fail", "message": "lookup failed", "query": ip_address}

    async def record_visit(
        self,
        link_code: str,
        ip_address: str,
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Optional[VisitorLog]:
        """
        Store one visit with its geolocation, threat data and anomalies.

        Returns None for unknown or inactive codes. Raises
        LinkUnavailableError when the link expired or hit max_visits.
        A failed geolocation still records the visit with threat "unknown".
        """
        link = await self.resolve_code(link_code)
        if not link:
            return None
        self._ensure_available(link)

        record = await self._geolocate(ip_address)
        log = VisitorLog(
            tracking_link_id=link.id,
            ip_address=ip_address,
            user_agent=user_agent if link.collect_user_agent else None,
            referrer=referrer if link.collect_referrer else None,
            session_id=session_id or new_session_id(),
            threat_level="unknown",
            risk_factors=[],
            page_views=1,
            created_at=utcnow(),
        )

        if record.get("status") == "success":
            assessment = assess_threat(record)
            network = check_vpn_tor(ip_address)
            log.country = record.get("country")
            log.country_code = record.get("countryCode")
            log.region = record.get("regionName")
            log.city = record.get("city")
            log.latitude = record.get("lat")
            log.longitude = record.get("lon")
            log.timezone = record.get("timezone")
            log.isp = record.get("isp")
            log.organization = record.get("org")
            log.asn = record.get("as")
            log.is_mobile = bool(record.get("mobile"))
            log.is_proxy = bool(record.get("proxy"))
            log.is_hosting = bool(record.get("hosting"))
            log.is_tor = network["is_tor"]
            log.is_vpn = network["is_vpn"]
            log.threat_level = assessment.threat
            log.risk_factors = assessment.risk_factors

        self.db.add(log)
        self.db.flush()

        anomalies = apply_anomaly_detection(self.db, log)
        roll_up_session(self.db, log, [a.anomaly_type for a in anomalies])
        self.db.commit()
        self.db.refresh(log)

        if log.is_suspicious and link.alert_on_suspicious:
            await self._alert_owner(link, log, anomalies)

        return log

    async def _alert_owner(self, link: TrackingLink, log: VisitorLog, anomalies: List[AnomalyDetection]):
        kinds = [a.anomaly_type for a in anomalies]
        critical = log.threat_level == "high" or any(a.severity in ("high", "critical") for a in anomalies)
        await self.alerts.create_alert(
            link.user_id,
            "suspicious_ip",
            f"Suspicious visit on {link.link_name}",
            f"Visitor {log.ip_address} triggered {', '.join(kinds)}",
            severity="critical" if critical else "warning",
            related_data={
                "tracking_link_id": link.id,
                "visitor_log_id": log.id,
                "ip_address": log.ip_address,
                "threat_level": log.threat_level,
                "anomalies": kinds,
                "anomaly_score": log.anomaly_score,
            },
        )

    # Collected data

    async def list_logs(self, link_id: str, user_id: str) -> Optional[List[VisitorLog]]:
        if not await self.get_link(link_id, user_id):
            return None
        return (
            self.db.query(VisitorLog)
            .filter(VisitorLog.tracking_link_id == link_id)
            .order_by(VisitorLog.created_at.desc())
            .all()
        )

    async def list_sessions(self, link_id: str, user_id: str) -> Optional[List[VisitorSession]]:
        if not await self.get_link(link_id, user_id):
            return None
        return (
            self.db.query(VisitorSession)
            .filter(VisitorSession.tracking_link_id == link_id)
            .order_by(VisitorSession.last_visit.desc())
            .all()
        )

    async def list_anomalies(self, link_id: str, user_id: str) -> Optional[List[AnomalyDetection]]:
        if not await self.get_link(link_id, user_id):
            return None
        return (
            self.db.query(AnomalyDetection)
            .filter(AnomalyDetection.tracking_link_id == link_id)
            .order_by(AnomalyDetection.created_at.desc())
            .all()
        )

    async def visitor_analytics(self, link_id: str, user_id: str) -> Optional[Dict]:
        logs = await self.list_logs(link_id, user_id)
        if logs is None:
            return None
        anomalies = await self.list_anomalies(link_id, user_id)

        countries = Counter(log.country for log in logs if log.country)
        isps = Counter(log.isp for log in logs if log.isp)

        timeline: Dict[str, Dict[str, int]] = {}
        geographic: Dict[str, Dict] = OrderedDict()
        # Oldest first so each country keeps the coordinates of its first visit
        for log in reversed(logs):
            day = as_utc(log.created_at).date().isoformat()
            bucket = timeline.setdefault(day, {"visits": 0, "suspicious": 0})
            bucket["visits"] += 1
            if log.is_suspicious:
                bucket["suspicious"] += 1

            if log.country and log.latitude is not None and log.longitude is not None:
                point = geographic.setdefault(log.country, {
                    "country": log.country,
                    "latitude": log.latitude,
                    "longitude": log.longitude,
                    "count": 0,
                    "suspicious": 0,
                })
                point["count"] += 1
                if log.is_suspicious:
                    point["suspicious"] += 1

        return {
            "total_visits": len(logs),
            "unique_visitors": len({log.ip_address for log in logs}),
            "suspicious_visits": sum(1 for log in logs if log.is_suspicious),
            "top_countries": [{"country": c, "count": n} for c, n in countries.most_common(10)],
            "top_isps": [{"isp": i, "count": n} for i, n in isps.most_common(10)],
            "threat_level_distribution": dict(Counter(log.threat_level or "unknown" for log in logs)),
            "anomaly_types": dict(Counter(a.anomaly_type for a in anomalies)),
            "timeline": [{"date": day, **counts} for day, counts in sorted(timeline.items())],
            "geographic_data": list(geographic.values()),
        }
