"""
History ledger for historical KPIs.

The ledger keeps one snapshot per (period type, period id, staff, client,
metric). Entries are inserted or updated, never deleted, and reference staff
and clients by value so they remain queryable after those records are swept.
"""

import logging
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..timeutils import current_week_id, is_valid_month_id, is_valid_week_id, now_iso
from .entity_models import DocStatus, GFPPlan, MonthlyReport, WeeklyDoc
from .retention_models import HistoryEntry, HistoryEntryDraft, Metric, PeriodType
from .storage_backends import StorageBackend

logger = logging.getLogger(__name__)


def _value(item: Any) -> Any:
    return item.value if isinstance(item, Enum) else item


class HistoryLedger:
    """Upsert-only store of period-keyed metric snapshots."""

    def __init__(self, backend: StorageBackend, metrics=None):
        self.backend = backend
        self.metrics = metrics

    def upsert_history(self, entry: Union[HistoryEntryDraft, Dict[str, Any]]) -> HistoryEntry:
        """
        Insert or update the snapshot for the entry's key.

        An existing entry keeps its ``id``; ``status`` and ``value`` are
        overwritten and ``ts`` is refreshed. Any ``id``/``ts`` on the input
        is ignored.

        Raises:
            ValueError: If the period id does not match the period type or
                ``value`` is not a number.
        """
        draft = entry if isinstance(entry, HistoryEntryDraft) else HistoryEntryDraft.from_dict(entry)
        self._validate_period(draft)
        self._validate_value(draft)

        existing = self._find(draft.key)
        stored = HistoryEntry(
            id=existing.id if existing else str(uuid.uuid4()),
            period_type=draft.period_type,
            period_id=draft.period_id,
            staff_id=draft.staff_id,
            client_id=draft.client_id,
            metric=draft.metric,
            status=draft.status,
            value=draft.value,
            ts=now_iso(),
        )
        self.backend.save_history_entry(stored)

        if self.metrics is not None:
            self.metrics.record_history_upsert(draft.metric.value, created=existing is None)

        logger.debug(f"History {'updated' if existing else 'created'}: {':'.join(draft.key)}")
        return stored

    def query_history(self, period_type: Optional[Union[PeriodType, str]] = None,
                      period_from: Optional[str] = None, period_to: Optional[str] = None,
                      staff_id: Optional[str] = None, client_id: Optional[str] = None,
                      metric: Optional[Union[Metric, str]] = None,
                      status: Optional[Union[DocStatus, str]] = None) -> List[HistoryEntry]:
        """
        Filter entries by any combination of fields.

        ``period_from``/``period_to`` bound the period id inclusively; ids are
        zero-padded so they order lexicographically.
        """
        period_type = _value(period_type)
        metric = _value(metric)
        status = _value(status)

        results = []
        for entry in self.backend.load_history():
            if period_type is not None and entry.period_type.value != period_type:
                continue
            if period_from is not None and entry.period_id < period_from:
                continue
            if period_to is not None and entry.period_id > period_to:
                continue
            if staff_id is not None and entry.staff_id != staff_id:
                continue
            if client_id is not None and entry.client_id != client_id:
                continue
            if metric is not None and entry.metric.value != metric:
                continue
            if status is not None and entry.status.value != status:
                continue
            results.append(entry)
        return results

    def count_by_period(self, period_type: Union[PeriodType, str], metric: Union[Metric, str],
                        status: Optional[Union[DocStatus, str]] = None,
                        period_from: Optional[str] = None, period_to: Optional[str] = None,
                        staff_id: Optional[str] = None) -> Dict[str, int]:
        """Number of entries per period id, ordered by period."""
        counts: Dict[str, int] = {}
        for entry in self.query_history(period_type=period_type, period_from=period_from,
                                        period_to=period_to, staff_id=staff_id,
                                        metric=metric, status=status):
            counts[entry.period_id] = counts.get(entry.period_id, 0) + 1
        return dict(sorted(counts.items()))

    def size(self) -> int:
        return len(self.backend.load_history())

    def record_weekly_doc(self, staff_id: str, client_id: str, doc: WeeklyDoc) -> HistoryEntry:
        return self.upsert_history(HistoryEntryDraft(
            period_type=PeriodType.WEEK,
            period_id=doc.week_id,
            staff_id=staff_id,
            client_id=client_id,
            metric=Metric.WEEK_DOC,
            status=doc.status,
            value=doc.days_count(),
        ))

    def record_monthly_report(self, staff_id: str, client_id: str, report: MonthlyReport) -> HistoryEntry:
        return self.upsert_history(HistoryEntryDraft(
            period_type=PeriodType.MONTH,
            period_id=report.month_id,
            staff_id=staff_id,
            client_id=client_id,
            metric=Metric.MONTH_REPORT,
            status=report.status,
            value=1 if report.sent else 0,
        ))

    def record_gfp_plan(self, staff_id: str, client_id: str, plan: GFPPlan,
                        week_id: Optional[str] = None) -> HistoryEntry:
        """GFP plans are tracked against the current week."""
        return self.upsert_history(HistoryEntryDraft(
            period_type=PeriodType.WEEK,
            period_id=week_id or current_week_id(),
            staff_id=staff_id,
            client_id=client_id,
            metric=Metric.GFP,
            status=plan.status,
            value=1 if plan.done else 0,
        ))

    def _find(self, key: tuple) -> Optional[HistoryEntry]:
        return next((entry for entry in self.backend.load_history() if entry.key == key), None)

    def _validate_period(self, draft: HistoryEntryDraft):
        if draft.period_type == PeriodType.WEEK and not is_valid_week_id(draft.period_id):
            raise ValueError(f"Invalid week id: {draft.period_id}")
        if draft.period_type == PeriodType.MONTH and not is_valid_month_id(draft.period_id):
            raise ValueError(f"Invalid month id: {draft.period_id}")

    def _validate_value(self, draft: HistoryEntryDraft):
        if draft.value is None:
            return
        if isinstance(draft.value, bool) or not isinstance(draft.value, (int, float)):
            raise ValueError(f"History value must be a number, got {draft.value!r}")
