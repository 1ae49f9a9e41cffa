import logging
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from diagnostics_app.models.common import utcnow
from diagnostics_app.models.performance import PerformanceDiagnostic
from diagnostics_app.services.alert_service import AlertService

logger = logging.getLogger(__name__)

# (metric, threshold, issue id, severity, category, title, impact, solutions, auto fix, unit)
THRESHOLDS = [
    ("cpu_usage", 80, "high-cpu", "critical", "cpu", "High CPU usage",
     "Slow response, delayed program start, possible freezes",
     ["End the processes using the most CPU", "Disable unneeded startup items",
      "Scan for malware", "Improve cooling or upgrade the CPU"], True, "%"),
    ("cpu_temperature", 70, "high-temp", "warning", "cpu", "High CPU temperature",
     "The CPU may throttle; sustained heat can damage hardware",
     ["Clean dust from the heatsink", "Check that fans are working",
      "Reapply thermal paste", "Improve case airflow"], False, "°C"),
    ("memory_usage", 85, "high-memory", "critical", "memory", "High memory usage",
     "The system is swapping; programs may crash or hang",
     ["Close unused programs and browser tabs", "Restart to free memory",
      "Disable memory-heavy startup items", "Add physical memory"], True, "%"),
    ("disk_usage", 90, "disk-full", "critical", "disk", "Low disk space",
     "Slowdowns, failed installs, possible system crashes",
     ["Run disk cleanup", "Uninstall unused programs",
      "Empty the recycle bin", "Move large files to external storage"], True, "%"),
    ("network_latency", 100, "high-latency", "warning", "network", "High network latency",
     "Slow page loads, lag in games and calls",
     ["Restart the router and modem", "Check cable connections",
      "Update network drivers", "Close bandwidth-heavy programs"], False, "ms"),
    ("packet_loss", 1, "packet-loss", "warning", "network", "Packet loss",
     "Unstable connection, interrupted transfers",
     ["Check network cables for damage", "Restart network equipment",
      "Update network drivers", "Ask the provider to check the line"], False, "%"),
]


def detect_issues(metrics: Dict) -> List[Dict]:
    """Issues for every metric strictly above its threshold; missing metrics are skipped."""
    issues = []
    for metric, limit, issue_id, severity, category, title, impact, solutions, auto_fix, unit in THRESHOLDS:
        value = metrics.get(metric)
        if value is None or value <= limit:
            continue
        issues.append({
            "id": issue_id,
            "type": severity,
            "category": category,
            "title": title,
            "description": f"{title}: {value:.1f}{unit} (threshold {limit}{unit})",
            "impact": impact,
            "solutions": solutions,
            "auto_fix_available": auto_fix,
            "value": value,
            "threshold": limit,
        })
    return issues


class PerformanceService:
    def __init__(self, db: Session, alerts: AlertService):
        self.db = db
        self.alerts = alerts

    async def submit(self, user_id: str, scan_name: Optional[str], metrics: Dict) -> PerformanceDiagnostic:
        issues = detect_issues(metrics)
        critical = [i for i in issues if i["type"] == "critical"]
        warnings = [i for i in issues if i["type"] == "warning"]

        diagnostic = PerformanceDiagnostic(
            user_id=user_id,
            scan_name=scan_name or f"Performance scan - {utcnow():%Y-%m-%d %H:%M}",
            cpu_usage=metrics.get("cpu_usage"),
            cpu_temperature=metrics.get("cpu_temperature"),
            memory_usage=metrics.get("memory_usage"),
            memory_total_mb=metrics.get("memory_total_mb"),
            disk_usage=metrics.get("disk_usage"),
            disk_total_gb=metrics.get("disk_total_gb"),
            network_latency=metrics.get("network_latency"),
            network_download_speed=metrics.get("network_download_speed"),
            network_upload_speed=metrics.get("network_upload_speed"),
            issues_count=len(issues),
            critical_issues=len(critical),
            warning_issues=len(warnings),
            issues_detected=issues,
            system_metrics=metrics,
            recommendations=[i["solutions"][0] for i in issues],
        )
        self.db.add(diagnostic)
        self.db.commit()
        self.db.refresh(diagnostic)

        if critical:
            await self.alerts.create_alert(
                user_id,
                "performance_critical",
                "Critical performance issues",
                "; ".join(i["description"] for i in critical),
                severity="critical",
                related_data={"diagnostic_id": diagnostic.id, "issues": [i["id"] for i in critical]},
            )

        logger.info("Stored diagnostic %s with %d issues (%d critical)", diagnostic.id, len(issues), len(critical))
        return diagnostic

    async def list_diagnostics(self, user_id: Optional[str] = None) -> List[PerformanceDiagnostic]:
        """Newest first: 100 shared records, or the caller's latest 50."""
        query = self.db.query(PerformanceDiagnostic)
        limit = 100
        if user_id is not None:
            query = query.filter(PerformanceDiagnostic.user_id == user_id)
            limit = 50
        return query.order_by(PerformanceDiagnostic.created_at.desc()).limit(limit).all()

    async def trends(self, days: int = 30) -> List[PerformanceDiagnostic]:
        since = utcnow() - timedelta(days=days)
        return (
            self.db.query(PerformanceDiagnostic)
            .filter(PerformanceDiagnostic.created_at >= since)
            .order_by(PerformanceDiagnostic.created_at.asc())
            .all()
        )
