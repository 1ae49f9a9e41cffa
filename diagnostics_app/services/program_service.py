import logging
from collections import Counter, OrderedDict
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import case, or_
from sqlalchemy.orm import Session

from diagnostics_app.models.common import new_id
from diagnostics_app.models.program import ProgramRecord
from diagnostics_app.services.alert_service import AlertService

logger = logging.getLogger(__name__)

RISK_ORDER = {"risky": 3, "caution": 2, "unknown": 1, "safe": 0}
SORT_OPTIONS = ("name", "size", "date", "risk")
UPDATABLE_FIELDS = (
    "category", "risk_level", "recommendation", "usage_frequency", "last_used",
    "auto_start", "system_impact", "analysis_reasons",
)
CLEARABLE_FIELDS = ("last_used",)


def mark_duplicates(programs: List[Dict]) -> List[Dict]:
    """
    Flag every copy of a program (same name, case-insensitive) except the
    most recently installed one. Missing install dates count as oldest.
    """
    groups: Dict[str, List[int]] = OrderedDict()
    for index, program in enumerate(programs):
        groups.setdefault(program["name"].lower(), []).append(index)

    flagged = [dict(p, is_duplicate=False) for p in programs]
    for indexes in groups.values():
        if len(indexes) < 2:
            continue
        keep = max(indexes, key=lambda i: programs[i].get("install_date") or date.min)
        for i in indexes:
            if i != keep:
                flagged[i]["is_duplicate"] = True
    return flagged


def category_statistics(programs: List[Dict]) -> List[Dict]:
    stats: Dict[str, Dict] = OrderedDict()
    for program in programs:
        category = program.get("category") or "unknown"
        entry = stats.setdefault(category, {"name": category, "count": 0, "total_size": 0, "risk_count": 0})
        entry["count"] += 1
        entry["total_size"] += program.get("size_kb") or 0
        if program.get("risk_level") in ("risky", "caution"):
            entry["risk_count"] += 1
    return list(stats.values())


class ProgramService:
    """
    Installed-program metadata submitted by client scans.

    Records are readable by every caller; only the submitter may edit them.
    """

    def __init__(self, db: Session, alerts: AlertService):
        self.db = db
        self.alerts = alerts

    async def submit_scan(self, user_id: str, programs: List[Dict],
                          scan_session_id: Optional[str] = None) -> Dict:
        scan_session_id = scan_session_id or new_id()
        programs = mark_duplicates(programs)

        records = []
        for program in programs:
            record = ProgramRecord(
                user_id=user_id,
                scan_session_id=scan_session_id,
                program_name=program["name"],
                version=program.get("version"),
                publisher=program.get("publisher"),
                install_date=program.get("install_date"),
                size_kb=program.get("size_kb") or 0,
                category=program.get("category") or "unknown",
                risk_level=program.get("risk_level") or "unknown",
                recommendation=program.get("recommendation") or "keep",
                usage_frequency=program.get("usage_frequency") or "unknown",
                last_used=program.get("last_used"),
                auto_start=bool(program.get("auto_start")),
                system_impact=program.get("system_impact") or "low",
                analysis_reasons=program.get("reasons") or [],
                program_details={
                    "description": program.get("description"),
                    "usage_frequency": program.get("usage_frequency"),
                    "last_used": program.get("last_used"),
                },
                is_duplicate=program["is_duplicate"],
            )
            self.db.add(record)
            records.append(record)
        self.db.commit()

        duplicate_names = Counter(p["name"].lower() for p in programs)
        reported = set()
        for program in programs:
            key = program["name"].lower()
            if program["is_duplicate"] and key not in reported:
                reported.add(key)
                await self.alerts.trigger_duplicate_alert(
                    user_id, "program_name", program["name"], duplicate_names[key], commit=False
                )
        for program in programs:
            if program.get("risk_level") == "risky":
                await self.alerts.create_alert(
                    user_id,
                    "high_risk_program",
                    "High risk program detected",
                    f'"{program["name"]}" is flagged as risky',
                    severity="warning",
                    related_data={"program_name": program["name"], "reasons": program.get("reasons") or []},
                    commit=False,
                )
        self.db.commit()

        for record in records:
            self.db.refresh(record)

        logger.info("Stored scan %s: %d programs, %d duplicates", scan_session_id, len(records),
                    sum(1 for p in programs if p["is_duplicate"]))
        return {
            "scan_session_id": scan_session_id,
            "programs": records,
            "categories": category_statistics(programs),
        }

    async def list_programs(
        self,
        user_id: Optional[str] = None,
        search: Optional[str] = None,
        category: Optional[str] = None,
        risk_level: Optional[str] = None,
        hide_duplicates: bool = True,
        sort: str = "name",
        limit: int = 500,
    ) -> List[ProgramRecord]:
        """Shared listing. Pass user_id to see only that caller's records."""
        query = self.db.query(ProgramRecord)

        if user_id is not None:
            query = query.filter(ProgramRecord.user_id == user_id)
        if hide_duplicates:
            query = query.filter(ProgramRecord.is_duplicate == False)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(
                ProgramRecord.program_name.ilike(pattern),
                ProgramRecord.publisher.ilike(pattern),
            ))
        if category:
            query = query.filter(ProgramRecord.category == category)
        if risk_level:
            query = query.filter(ProgramRecord.risk_level == risk_level)

        if sort == "size":
            query = query.order_by(ProgramRecord.size_kb.desc())
        elif sort == "date":
            query = query.order_by(ProgramRecord.install_date.desc())
        elif sort == "risk":
            rank = case(RISK_ORDER, value=ProgramRecord.risk_level, else_=-1)
            query = query.order_by(rank.desc(), ProgramRecord.program_name)
        else:
            query = query.order_by(ProgramRecord.program_name)

        return query.limit(limit).all()

    async def get_scan(self, scan_session_id: str) -> List[ProgramRecord]:
        return (
            self.db.query(ProgramRecord)
            .filter(ProgramRecord.scan_session_id == scan_session_id)
            .order_by(ProgramRecord.program_name)
            .all()
        )

    async def risk_statistics(self) -> Dict:
        rows = (
            self.db.query(ProgramRecord.risk_level, ProgramRecord.recommendation)
            .order_by(ProgramRecord.created_at.desc())
            .limit(1000)
            .all()
        )
        return {
            "risk_levels": dict(Counter(risk for risk, _ in rows)),
            "recommendations": dict(Counter(rec for _, rec in rows)),
        }

    async def get_program(self, program_id: str) -> Optional[ProgramRecord]:
        return self.db.query(ProgramRecord).filter(ProgramRecord.id == program_id).first()

    async def update_program(self, program: ProgramRecord, changes: Dict) -> ProgramRecord:
        """Apply changes to a record. Ownership is checked by the caller."""
        for field, value in changes.items():
            if field not in UPDATABLE_FIELDS:
                continue
            if value is None and field not in CLEARABLE_FIELDS:
                continue
            setattr(program, field, value)
        self.db.commit()
        self.db.refresh(program)
        return program
