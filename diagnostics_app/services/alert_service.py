import ipaddress
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from diagnostics_app.exceptions import ValidationError
from diagnostics_app.models.alert import AlertNotification, BlacklistEntry, SuspiciousPattern
from diagnostics_app.models.common import utcnow

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS = [
    ("ip_range", "95.223.0.0/16", "Suspicious range with frequent malicious activity", "high"),
    ("ip_range", "185.0.0.0/8", "Range common for VPN and proxy exits", "medium"),
]

PATTERN_TYPES = ("ip_range", "asn", "country", "isp")
THREAT_LEVELS = ("low", "medium", "high")


class AlertService:
    """
    Per-user alerts, IP blacklist and suspicious patterns.

    Other services raise alerts through this class; every public method
    commits its own work unless told otherwise.
    """

    def __init__(self, db: Session):
        self.db = db

    def _finish(self, commit: bool):
        if commit:
            self.db.commit()
        else:
            self.db.flush()

    # Alerts

    async def create_alert(
        self,
        user_id: str,
        alert_type: str,
        title: str,
        message: str,
        severity: str = "warning",
        related_data: Optional[Dict] = None,
        commit: bool = True,
    ) -> AlertNotification:
        alert = AlertNotification(
            user_id=user_id,
            alert_type=alert_type,
            title=title,
            message=message,
            severity=severity,
            related_data=related_data or {},
        )
        self.db.add(alert)
        self._finish(commit)

        log = logger.warning if severity == "critical" else logger.info
        log("Alert for %s [%s/%s]: %s", user_id, alert_type, severity, title)
        return alert

    async def unread_alerts(self, user_id: str) -> List[AlertNotification]:
        return (
            self.db.query(AlertNotification)
            .filter(
                AlertNotification.user_id == user_id,
                AlertNotification.is_read == False,
                AlertNotification.expires_at > utcnow(),
            )
            .order_by(AlertNotification.created_at.desc())
            .all()
        )

    async def mark_read(self, alert_id: str, user_id: str) -> bool:
        alert = self.db.query(AlertNotification).filter(
            AlertNotification.id == alert_id,
            AlertNotification.user_id == user_id,
        ).first()

        if not alert:
            return False

        alert.is_read = True
        self.db.commit()
        return True

    async def cleanup_expired(self) -> int:
        """Delete expired alerts for every user. Returns the number removed."""
        removed = (
            self.db.query(AlertNotification)
            .filter(AlertNotification.expires_at < utcnow())
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if removed:
            logger.info("Removed %d expired alerts", removed)
        return removed

    # Blacklist

    async def check_blacklist(self, user_id: str, ip_address: str) -> Optional[BlacklistEntry]:
        return self.db.query(BlacklistEntry).filter(
            BlacklistEntry.user_id == user_id,
            BlacklistEntry.ip_address == ip_address,
            BlacklistEntry.is_active == True,
        ).first()

    async def add_to_blacklist(
        self,
        user_id: str,
        ip_address: str,
        reason: str,
        threat_level: str = "medium",
        auto_added: bool = False,
        commit: bool = True,
    ) -> BlacklistEntry:
        """Insert an entry, or bump detection_count on the active one."""
        entry = await self.check_blacklist(user_id, ip_address)

        if entry:
            entry.detection_count = (entry.detection_count or 0) + 1
            entry.last_seen = utcnow()
            entry.threat_level = threat_level
        else:
            entry = BlacklistEntry(
                user_id=user_id,
                ip_address=ip_address,
                reason=reason,
                threat_level=threat_level,
                auto_added=auto_added,
            )
            self.db.add(entry)

        self._finish(commit)
        return entry

    async def list_blacklist(self, user_id: str, include_inactive: bool = False) -> List[BlacklistEntry]:
        query = self.db.query(BlacklistEntry).filter(BlacklistEntry.user_id == user_id)
        if not include_inactive:
            query = query.filter(BlacklistEntry.is_active == True)
        return query.order_by(BlacklistEntry.last_seen.desc()).all()

    async def remove_from_blacklist(self, entry_id: str, user_id: str) -> bool:
        """Deactivate an entry; history is kept."""
        entry = self.db.query(BlacklistEntry).filter(
            BlacklistEntry.id == entry_id,
            BlacklistEntry.user_id == user_id,
        ).first()

        if not entry:
            return False

        entry.is_active = False
        self.db.commit()
        return True

    # Suspicious patterns

    async def list_patterns(self, user_id: str) -> List[SuspiciousPattern]:
        return (
            self.db.query(SuspiciousPattern)
            .filter(SuspiciousPattern.user_id == user_id, SuspiciousPattern.is_active == True)
            .order_by(SuspiciousPattern.created_at)
            .all()
        )

    async def add_pattern(
        self,
        user_id: str,
        pattern_type: str,
        pattern_value: str,
        description: Optional[str] = None,
        threat_level: str = "medium",
        commit: bool = True,
    ) -> SuspiciousPattern:
        if pattern_type not in PATTERN_TYPES:
            raise ValidationError(f"Unknown pattern type: {pattern_type}")
        if threat_level not in THREAT_LEVELS:
            raise ValidationError(f"Unknown threat level: {threat_level}")
        if pattern_type == "ip_range":
            try:
                pattern_value = str(ipaddress.ip_network(pattern_value.strip(), strict=False))
            except ValueError as e:
                raise ValidationError(f"Invalid IP range: {pattern_value}") from e

        pattern = SuspiciousPattern(
            user_id=user_id,
            pattern_type=pattern_type,
            pattern_value=pattern_value,
            description=description,
            threat_level=threat_level,
        )
        self.db.add(pattern)
        self._finish(commit)
        return pattern

    async def delete_pattern(self, pattern_id: str, user_id: str) -> bool:
        pattern = self.db.query(SuspiciousPattern).filter(
            SuspiciousPattern.id == pattern_id,
            SuspiciousPattern.user_id == user_id,
        ).first()

        if not pattern:
            return False

        self.db.delete(pattern)
        self.db.commit()
        return True

    async def ensure_default_patterns(self, user_id: str) -> List[SuspiciousPattern]:
        """Seed the built-in ip_range patterns once per user."""
        existing = {
            (p.pattern_type, p.pattern_value)
            for p in self.db.query(SuspiciousPattern).filter(SuspiciousPattern.user_id == user_id).all()
        }
        for pattern_type, value, description, threat_level in DEFAULT_PATTERNS:
            if (pattern_type, value) not in existing:
                await self.add_pattern(user_id, pattern_type, value, description, threat_level, commit=False)
        self.db.commit()
        return await self.list_patterns(user_id)

    async def match_patterns(self, user_id: str, ip_address: str,
                             record: Optional[Dict] = None) -> List[SuspiciousPattern]:
        record = record or {}
        try:
            address = ipaddress.ip_address(ip_address)
        except ValueError:
            address = None

        matched = []
        for pattern in await self.list_patterns(user_id):
            value = pattern.pattern_value
            if pattern.pattern_type == "ip_range":
                if address is None:
                    continue
                try:
                    if address in ipaddress.ip_network(value, strict=False):
                        matched.append(pattern)
                except (ValueError, TypeError):
                    logger.warning("Skipping malformed ip_range pattern %s", value)
            elif pattern.pattern_type == "country":
                if value.upper() in ((record.get("countryCode") or "").upper(), (record.get("country") or "").upper()):
                    matched.append(pattern)
            elif pattern.pattern_type == "isp":
                haystack = f"{record.get('isp') or ''} {record.get('org') or ''}".lower()
                if value.lower() in haystack:
                    matched.append(pattern)
            elif pattern.pattern_type == "asn":
                haystack = f"{record.get('as') or ''} {record.get('asname') or ''}".lower()
                if value.lower() in haystack:
                    matched.append(pattern)
        return matched

    async def trigger_suspicious_ip_alert(
        self,
        user_id: str,
        ip_address: str,
        threat_level: str,
        risk_factors: List[str],
        record: Optional[Dict] = None,
        flagged: bool = False,
    ) -> Optional[AlertNotification]:
        """
        Blacklist and alert when the IP matches a pattern or is high threat.

        flagged forces the alert for IPs the caller already considers
        suspicious. Returns the alert, or None when nothing was raised.
        """
        matched = await self.match_patterns(user_id, ip_address, record)
        if not matched and threat_level != "high" and not flagged:
            return None

        factors = ", ".join(risk_factors) or "matched suspicious pattern"
        await self.add_to_blacklist(
            user_id, ip_address, f"Auto-detected: {factors}",
            threat_level if threat_level in THREAT_LEVELS else "medium",
            auto_added=True, commit=False,
        )
        label = "high risk" if threat_level == "high" else "suspicious"
        return await self.create_alert(
            user_id,
            "suspicious_ip",
            "Suspicious IP address detected",
            f"IP address {ip_address} was flagged as {label}. Risk factors: {factors}",
            severity="critical" if threat_level == "high" else "warning",
            related_data={
                "ip_address": ip_address,
                "threat_level": threat_level,
                "risk_factors": risk_factors,
                "matched_patterns": [p.description or p.pattern_value for p in matched],
            },
        )

    async def trigger_duplicate_alert(self, user_id: str, item_type: str, identifier: str,
                                      count: int, commit: bool = True) -> AlertNotification:
        label = "IP address" if item_type == "ip_address" else "Program"
        return await self.create_alert(
            user_id,
            "duplicate_detected",
            "Duplicate detected",
            f'{label} "{identifier}" appears {count} times',
            severity="info",
            related_data={"item_type": item_type, "item_identifier": identifier, "duplicate_count": count},
            commit=commit,
        )
