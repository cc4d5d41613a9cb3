"""
Data models for the retention system.

This module contains the data classes, enums and errors shared by the
sweep, export, cleanup and history components.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Union

from .entity_models import (
    Client, ChildRecord, DocStatus, RecordType, record_from_dict,
)


class RetentionError(Exception):
    """Base error for the retention system."""


class InvalidCutoffError(RetentionError, ValueError):
    """Raised when a retention cutoff is not a non-negative whole number of days."""


class ExportError(RetentionError):
    """Raised when a removal plan cannot be serialized. Blocks the purge."""


class ConfirmationRequiredError(RetentionError):
    """Raised when destructive execution is requested without a confirmation step."""


class StorageError(RetentionError):
    """Raised when a storage backend cannot read or write state."""


class PeriodType(Enum):
    """Granularity of a history period."""
    WEEK = "week"
    MONTH = "month"


class Metric(Enum):
    """Metrics tracked in the history ledger."""
    WEEK_DOC = "weekDoc"
    MONTH_REPORT = "monthReport"
    GFP = "gfp"


@dataclass
class HistoryEntryDraft:
    """A history entry before the ledger assigns ``id`` and ``ts``."""
    period_type: PeriodType
    period_id: str
    staff_id: str
    client_id: str
    metric: Metric
    status: DocStatus
    value: Optional[float] = None

    @property
    def key(self) -> tuple:
        return (self.period_type.value, self.period_id, self.staff_id, self.client_id, self.metric.value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntryDraft":
        return cls(
            period_type=PeriodType(data['periodType']),
            period_id=str(data['periodId']),
            staff_id=str(data['staffId']),
            client_id=str(data['clientId']),
            metric=Metric(data['metric']),
            status=DocStatus(data['status']),
            value=data.get('value'),
        )


@dataclass
class HistoryEntry:
    """Permanent period-keyed snapshot of a documentation status."""
    id: str
    period_type: PeriodType
    period_id: str
    staff_id: str
    client_id: str
    metric: Metric
    status: DocStatus
    ts: str
    value: Optional[float] = None

    @property
    def key(self) -> tuple:
        return (self.period_type.value, self.period_id, self.staff_id, self.client_id, self.metric.value)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'id': self.id,
            'periodType': self.period_type.value,
            'periodId': self.period_id,
            'staffId': self.staff_id,
            'clientId': self.client_id,
            'metric': self.metric.value,
            'status': self.status.value,
            'ts': self.ts,
        }
        if self.value is not None:
            data['value'] = self.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        return cls(
            id=str(data['id']),
            period_type=PeriodType(data['periodType']),
            period_id=str(data['periodId']),
            staff_id=str(data['staffId']),
            client_id=str(data['clientId']),
            metric=Metric(data['metric']),
            status=DocStatus(data['status']),
            ts=data['ts'],
            value=data.get('value'),
        )


@dataclass
class RemovalItem:
    """
    One record slated for permanent removal.

    ``data`` is a deep snapshot whose concrete class matches ``type``:
    ``Client`` for ``client``, ``GFPPlan`` for ``plan`` and so on.
    """
    type: RecordType
    id: str
    staff_id: str
    client_id: str
    data: Union[Client, ChildRecord]
    deleted_at: str

    @classmethod
    def snapshot(cls, record_type: RecordType, record_id: str, staff_id: str,
                 client_id: str, record: Union[Client, ChildRecord], deleted_at: str) -> "RemovalItem":
        return cls(
            type=record_type,
            id=record_id,
            staff_id=staff_id,
            client_id=client_id,
            data=copy.deepcopy(record),
            deleted_at=deleted_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'id': self.id,
            'staffId': self.staff_id,
            'clientId': self.client_id,
            'deletedAt': self.deleted_at,
            'data': self.data.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemovalItem":
        record_type = RecordType(data['type'])
        return cls(
            type=record_type,
            id=str(data['id']),
            staff_id=str(data['staffId']),
            client_id=str(data['clientId']),
            data=record_from_dict(record_type, data['data']),
            deleted_at=data['deletedAt'],
        )


@dataclass
class SweepResult:
    """Removal plan produced by the sweep engine."""
    to_remove: List[RemovalItem]
    cutoff_timestamp: str
    cutoff_days: int

    def counts(self) -> Dict[str, int]:
        """Number of planned removals per record type, every type included."""
        counts = {record_type.value: 0 for record_type in RecordType}
        for item in self.to_remove:
            counts[item.type.value] += 1
        return counts

    def ids(self) -> List[tuple]:
        return [(item.type.value, item.client_id, item.id) for item in self.to_remove]

    @property
    def is_empty(self) -> bool:
        return not self.to_remove


@dataclass
class CleanupFailure:
    """An item the executor could not remove."""
    item_type: str
    item_id: str
    error_message: str


@dataclass
class CleanupReport:
    """Outcome of applying a removal plan to the entity store."""
    operation_id: str
    timestamp: datetime
    records_processed: int
    removed: Dict[str, int]
    skipped: int
    failures: List[CleanupFailure] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def records_removed(self) -> int:
        return sum(self.removed.values())

    @property
    def status(self) -> str:
        if not self.failures:
            return 'success'
        if self.records_removed > 0:
            return 'partial'
        return 'failed'

    def describe(self) -> str:
        """Human-readable summary, e.g. ``removed 3 clients, 5 plans, ...``."""
        parts = [
            f"{self.removed.get(record_type.value, 0)} {_PLURALS[record_type]}"
            for record_type in RecordType
        ]
        text = "removed " + ", ".join(parts)
        if self.skipped:
            text += f" ({self.skipped} already gone)"
        if self.failures:
            text += f" ({len(self.failures)} failed)"
        return text


_PLURALS = {
    RecordType.CLIENT: "clients",
    RecordType.PLAN: "plans",
    RecordType.WEEKLY_DOC: "weekly docs",
    RecordType.MONTHLY_REPORT: "monthly reports",
    RecordType.VISMA_WEEK: "Visma weeks",
}


def describe_counts(counts: Dict[str, int], verb: str = "removes") -> str:
    """Impact summary for a set of per-type counts."""
    parts = [f"{counts.get(record_type.value, 0)} {_PLURALS[record_type]}" for record_type in RecordType]
    return f"{verb} " + ", ".join(parts)


@dataclass
class OperationResult:
    """Result of a lifecycle flag mutation on the entity store."""
    success: bool
    message: str
    action: str
    resource_id: str
    timestamp: Optional[str] = None


@dataclass
class CleanupOutcome:
    """
    Result of a ``run_cleanup`` request.

    ``status`` is one of ``disabled``, ``nothing_to_remove``, ``aborted`` or
    ``executed``; ``report`` is only set when the plan was executed.
    """
    status: str
    sweep: Optional[SweepResult] = None
    report: Optional[CleanupReport] = None
    export_paths: List[str] = field(default_factory=list)

    @property
    def executed(self) -> bool:
        return self.status == 'executed'
