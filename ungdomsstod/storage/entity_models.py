"""
Entity models for the casework tree.

Staff own clients; a client owns its legacy care plan, its goal follow-up
(GFP) plans, weekly documentation, monthly reports and Visma time weeks.
Every record maps to and from the camelCase JSON shape used by the dashboard.
Optional fields that are unset are omitted from the JSON form.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union


class DocStatus(Enum):
    """Review status of a documentation record."""
    APPROVED = "approved"
    PENDING = "pending"
    REJECTED = "rejected"


class RecordType(Enum):
    """Kinds of records that carry a soft-delete flag."""
    CLIENT = "client"
    PLAN = "plan"
    WEEKLY_DOC = "weeklyDoc"
    MONTHLY_REPORT = "monthlyReport"
    VISMA_WEEK = "vismaWeek"


CHILD_TYPES = (
    RecordType.PLAN,
    RecordType.WEEKLY_DOC,
    RecordType.MONTHLY_REPORT,
    RecordType.VISMA_WEEK,
)

WEEK_DAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
WORK_DAYS = WEEK_DAYS[:5]


def _put_optional(target: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        target[key] = value


def _days(raw: Optional[Dict[str, Any]], names: Tuple[str, ...]) -> Dict[str, bool]:
    raw = raw or {}
    return {name: bool(raw.get(name, False)) for name in names}


@dataclass
class Plan:
    """Legacy single care plan, kept for migration."""
    has_gfp: bool = False
    staff_notified: bool = False
    notes: str = ""
    care_plan_date: Optional[str] = None
    last_updated: Optional[str] = None
    deleted_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'hasGFP': self.has_gfp,
            'staffNotified': self.staff_notified,
            'notes': self.notes,
        }
        _put_optional(data, 'carePlanDate', self.care_plan_date)
        _put_optional(data, 'lastUpdated', self.last_updated)
        _put_optional(data, 'deletedAt', self.deleted_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Plan":
        return cls(
            has_gfp=bool(data.get('hasGFP', False)),
            staff_notified=bool(data.get('staffNotified', False)),
            notes=data.get('notes', ""),
            care_plan_date=data.get('carePlanDate'),
            last_updated=data.get('lastUpdated'),
            deleted_at=data.get('deletedAt'),
        )


@dataclass
class GFPPlan:
    """Goal follow-up plan. Keyed by ``id``."""
    id: str
    title: str
    date: str
    due_date: str
    note: str = ""
    staff_informed: bool = False
    done: bool = False
    status: DocStatus = DocStatus.PENDING
    deleted_at: Optional[str] = None

    @property
    def key(self) -> str:
        return self.id

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'id': self.id,
            'title': self.title,
            'date': self.date,
            'dueDate': self.due_date,
            'note': self.note,
            'staffInformed': self.staff_informed,
            'done': self.done,
            'status': self.status.value,
        }
        _put_optional(data, 'deletedAt', self.deleted_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GFPPlan":
        return cls(
            id=str(data['id']),
            title=data.get('title', ""),
            date=data.get('date', ""),
            due_date=data.get('dueDate', ""),
            note=data.get('note', ""),
            staff_informed=bool(data.get('staffInformed', False)),
            done=bool(data.get('done', False)),
            status=DocStatus(data.get('status', DocStatus.PENDING.value)),
            deleted_at=data.get('deletedAt'),
        )


@dataclass
class WeeklyDoc:
    """Weekly documentation. Keyed by ``week_id``."""
    week_id: str
    days: Dict[str, bool] = field(default_factory=lambda: _days(None, WEEK_DAYS))
    status: DocStatus = DocStatus.PENDING
    note: Optional[str] = None
    last_updated: Optional[str] = None
    deleted_at: Optional[str] = None

    @property
    def key(self) -> str:
        return self.week_id

    def days_count(self) -> int:
        return sum(1 for ticked in self.days.values() if ticked)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'weekId': self.week_id,
            'days': dict(self.days),
            'status': self.status.value,
        }
        _put_optional(data, 'note', self.note)
        _put_optional(data, 'lastUpdated', self.last_updated)
        _put_optional(data, 'deletedAt', self.deleted_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeeklyDoc":
        return cls(
            week_id=str(data['weekId']),
            days=_days(data.get('days'), WEEK_DAYS),
            status=DocStatus(data.get('status', DocStatus.PENDING.value)),
            note=data.get('note'),
            last_updated=data.get('lastUpdated'),
            deleted_at=data.get('deletedAt'),
        )


@dataclass
class MonthlyReport:
    """Monthly report. Keyed by ``month_id``."""
    month_id: str
    sent: bool = False
    status: DocStatus = DocStatus.PENDING
    note: Optional[str] = None
    last_updated: Optional[str] = None
    deleted_at: Optional[str] = None

    @property
    def key(self) -> str:
        return self.month_id

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'monthId': self.month_id,
            'sent': self.sent,
            'status': self.status.value,
        }
        _put_optional(data, 'note', self.note)
        _put_optional(data, 'lastUpdated', self.last_updated)
        _put_optional(data, 'deletedAt', self.deleted_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MonthlyReport":
        return cls(
            month_id=str(data['monthId']),
            sent=bool(data.get('sent', False)),
            status=DocStatus(data.get('status', DocStatus.PENDING.value)),
            note=data.get('note'),
            last_updated=data.get('lastUpdated'),
            deleted_at=data.get('deletedAt'),
        )


@dataclass
class VismaWeek:
    """Mirror of a Visma time-tracking week. Keyed by ``week_id``."""
    week_id: str
    days: Dict[str, bool] = field(default_factory=lambda: _days(None, WORK_DAYS))
    status: DocStatus = DocStatus.PENDING
    last_updated: Optional[str] = None
    deleted_at: Optional[str] = None

    @property
    def key(self) -> str:
        return self.week_id

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'weekId': self.week_id,
            'days': dict(self.days),
            'status': self.status.value,
        }
        _put_optional(data, 'lastUpdated', self.last_updated)
        _put_optional(data, 'deletedAt', self.deleted_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VismaWeek":
        return cls(
            week_id=str(data['weekId']),
            days=_days(data.get('days'), WORK_DAYS),
            status=DocStatus(data.get('status', DocStatus.PENDING.value)),
            last_updated=data.get('lastUpdated'),
            deleted_at=data.get('deletedAt'),
        )


ChildRecord = Union[GFPPlan, WeeklyDoc, MonthlyReport, VismaWeek]

CHILD_RECORD_CLASSES = {
    RecordType.PLAN: GFPPlan,
    RecordType.WEEKLY_DOC: WeeklyDoc,
    RecordType.MONTHLY_REPORT: MonthlyReport,
    RecordType.VISMA_WEEK: VismaWeek,
}


@dataclass
class Client:
    """Root aggregate under a staff member."""
    id: str
    name: str
    created_at: str
    plan: Plan = field(default_factory=Plan)
    plans: List[GFPPlan] = field(default_factory=list)
    weekly_docs: Dict[str, WeeklyDoc] = field(default_factory=dict)
    monthly_reports: Dict[str, MonthlyReport] = field(default_factory=dict)
    visma: Dict[str, VismaWeek] = field(default_factory=dict)
    archived_at: Optional[str] = None
    deleted_at: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.archived_at is None and self.deleted_at is None

    def iter_children(self, kind: RecordType) -> Iterator[ChildRecord]:
        """Yield the child records of one kind in stored order."""
        if kind == RecordType.PLAN:
            yield from self.plans
        elif kind == RecordType.WEEKLY_DOC:
            yield from self.weekly_docs.values()
        elif kind == RecordType.MONTHLY_REPORT:
            yield from self.monthly_reports.values()
        elif kind == RecordType.VISMA_WEEK:
            yield from self.visma.values()
        else:
            raise ValueError(f"Not a child record type: {kind}")

    def get_child(self, kind: RecordType, key: str) -> Optional[ChildRecord]:
        if kind == RecordType.PLAN:
            return next((plan for plan in self.plans if plan.id == key), None)
        if kind == RecordType.WEEKLY_DOC:
            return self.weekly_docs.get(key)
        if kind == RecordType.MONTHLY_REPORT:
            return self.monthly_reports.get(key)
        if kind == RecordType.VISMA_WEEK:
            return self.visma.get(key)
        raise ValueError(f"Not a child record type: {kind}")

    def remove_child(self, kind: RecordType, key: str) -> bool:
        """Structurally remove a child record. Returns False if it is absent."""
        if kind == RecordType.PLAN:
            remaining = [plan for plan in self.plans if plan.id != key]
            removed = len(remaining) != len(self.plans)
            self.plans = remaining
            return removed
        if kind == RecordType.WEEKLY_DOC:
            return self.weekly_docs.pop(key, None) is not None
        if kind == RecordType.MONTHLY_REPORT:
            return self.monthly_reports.pop(key, None) is not None
        if kind == RecordType.VISMA_WEEK:
            return self.visma.pop(key, None) is not None
        raise ValueError(f"Not a child record type: {kind}")

    def without_deleted_children(self) -> "Client":
        """Copy of the client with soft-deleted children stripped."""
        active = copy.deepcopy(self)
        active.plans = [plan for plan in active.plans if plan.deleted_at is None]
        active.weekly_docs = {k: v for k, v in active.weekly_docs.items() if v.deleted_at is None}
        active.monthly_reports = {k: v for k, v in active.monthly_reports.items() if v.deleted_at is None}
        active.visma = {k: v for k, v in active.visma.items() if v.deleted_at is None}
        return active

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'id': self.id,
            'name': self.name,
            'plan': self.plan.to_dict(),
            'plans': [plan.to_dict() for plan in self.plans],
            'weeklyDocs': {k: v.to_dict() for k, v in self.weekly_docs.items()},
            'monthlyReports': {k: v.to_dict() for k, v in self.monthly_reports.items()},
            'visma': {k: v.to_dict() for k, v in self.visma.items()},
            'createdAt': self.created_at,
        }
        _put_optional(data, 'archivedAt', self.archived_at)
        _put_optional(data, 'deletedAt', self.deleted_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Client":
        return cls(
            id=str(data['id']),
            name=data.get('name', ""),
            created_at=data.get('createdAt', ""),
            plan=Plan.from_dict(data.get('plan') or {}),
            plans=[GFPPlan.from_dict(p) for p in data.get('plans') or []],
            weekly_docs={k: WeeklyDoc.from_dict(v) for k, v in (data.get('weeklyDocs') or {}).items()},
            monthly_reports={k: MonthlyReport.from_dict(v) for k, v in (data.get('monthlyReports') or {}).items()},
            visma={k: VismaWeek.from_dict(v) for k, v in (data.get('visma') or {}).items()},
            archived_at=data.get('archivedAt'),
            deleted_at=data.get('deletedAt'),
        )


@dataclass
class Staff:
    """Staff member owning a list of clients."""
    id: str
    name: str
    clients: List[Client] = field(default_factory=list)
    email: Optional[str] = None

    def find_client(self, client_id: str) -> Optional[Client]:
        return next((client for client in self.clients if client.id == client_id), None)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'id': self.id,
            'name': self.name,
            'clients': [client.to_dict() for client in self.clients],
        }
        _put_optional(data, 'email', self.email)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Staff":
        return cls(
            id=str(data['id']),
            name=data.get('name', ""),
            clients=[Client.from_dict(c) for c in data.get('clients') or []],
            email=data.get('email'),
        )


def record_from_dict(record_type: RecordType, data: Dict[str, Any]) -> Union[Client, ChildRecord]:
    """Rebuild a record of the given type from its JSON form."""
    if record_type == RecordType.CLIENT:
        return Client.from_dict(data)
    return CHILD_RECORD_CLASSES[record_type].from_dict(data)
