"""
Unit tests for the cleanup executor.

Tests structural removal, skipping of vanished records, collection of
per-item failures and that the history ledger is never touched.
"""

import unittest
from datetime import datetime, timedelta, timezone

from ungdomsstod.timeutils import to_iso
from ungdomsstod.storage.entity_models import (
    Client, GFPPlan, MonthlyReport, RecordType, Staff, VismaWeek, WeeklyDoc,
)
from ungdomsstod.storage.entity_store import EntityStore
from ungdomsstod.storage.history_ledger import HistoryLedger
from ungdomsstod.storage.retention_cleanup import RetentionCleanup, execute_sweep
from ungdomsstod.storage.retention_export import to_json
from ungdomsstod.storage.retention_models import RemovalItem
from ungdomsstod.storage.retention_sweep import compute_sweep
from ungdomsstod.storage.storage_backends import MemoryBackend

NOW = datetime(2024, 7, 1, 12, 0, tzinfo=timezone.utc)
OLD = to_iso(NOW - timedelta(days=200))
RECENT = to_iso(NOW - timedelta(days=20))


def build_store():
    backend = MemoryBackend()
    backend.save_staff([
        Staff(id="s1", name="Kim", clients=[
            Client(id="c1", name="Archived", created_at="2023-01-01", archived_at=OLD),
            Client(
                id="c2", name="Active", created_at="2023-01-01",
                plans=[
                    GFPPlan(id="p1", title="Old", date="2023-01-01", due_date="2023-01-22", deleted_at=OLD),
                    GFPPlan(id="p2", title="Kept", date="2024-01-01", due_date="2024-01-22"),
                ],
                weekly_docs={
                    "2023-W40": WeeklyDoc(week_id="2023-W40", deleted_at=OLD),
                    "2024-W20": WeeklyDoc(week_id="2024-W20", deleted_at=RECENT),
                },
                monthly_reports={"2023-10": MonthlyReport(month_id="2023-10", deleted_at=OLD)},
                visma={"2023-W40": VismaWeek(week_id="2023-W40", deleted_at=OLD)},
            ),
        ]),
        Staff(id="s2", name="Noa", clients=[
            Client(id="c3", name="Deleted", created_at="2023-01-01", deleted_at=OLD),
            Client(id="c4", name="Recently deleted", created_at="2023-01-01", deleted_at=RECENT),
        ]),
    ])
    ledger = HistoryLedger(backend)
    store = EntityStore(backend, ledger=ledger)
    return store, ledger


class TestExecuteSweep(unittest.TestCase):
    """Test applying a removal plan."""

    def setUp(self):
        self.store, self.ledger = build_store()
        self.sweep = compute_sweep(180, self.store, now=NOW)

    def test_removes_every_planned_item(self):
        report = execute_sweep(self.sweep.to_remove, self.store)

        self.assertEqual(report.status, 'success')
        self.assertEqual(report.removed, {
            'client': 2, 'plan': 1, 'weeklyDoc': 1, 'monthlyReport': 1, 'vismaWeek': 1,
        })
        self.assertEqual(report.records_removed, 6)
        self.assertEqual(report.records_processed, 6)
        self.assertEqual(self.store.all_client_ids(), {"c2", "c4"})

        active = self.store.find_client("c2")
        self.assertEqual([plan.id for plan in active.plans], ["p2"])
        self.assertEqual(list(active.weekly_docs), ["2024-W20"])
        self.assertEqual(active.monthly_reports, {})
        self.assertEqual(active.visma, {})

    def test_ids_removed_match_export(self):
        exported = {(row['type'], row['id']) for row in to_json(self.sweep.to_remove)}
        before = self._inventory()

        execute_sweep(self.sweep.to_remove, self.store)

        self.assertEqual(before - self._inventory(), exported)

    def test_missing_items_are_skipped(self):
        self.store.purge_client("s1", "c1")
        self.store.purge_child("s1", "c2", RecordType.PLAN, "p1")

        report = execute_sweep(self.sweep.to_remove, self.store)

        self.assertEqual(report.status, 'success')
        self.assertEqual(report.skipped, 2)
        self.assertEqual(report.records_removed, 4)
        self.assertIn("(2 already gone)", report.describe())

    def test_second_execution_removes_nothing(self):
        execute_sweep(self.sweep.to_remove, self.store)
        report = execute_sweep(self.sweep.to_remove, self.store)

        self.assertEqual(report.records_removed, 0)
        self.assertEqual(report.skipped, 6)
        self.assertEqual(report.status, 'success')

    def test_malformed_items_are_collected(self):
        items = list(self.sweep.to_remove)
        items.insert(1, RemovalItem(RecordType.WEEKLY_DOC, None, "s1", "c2", WeeklyDoc(week_id="x"), OLD))
        items.append(RemovalItem("invoice", "i1", "s1", "c2", None, OLD))

        report = execute_sweep(items, self.store)

        self.assertEqual(report.status, 'partial')
        self.assertEqual(report.records_removed, 6)
        self.assertEqual([f.item_type for f in report.failures], ['weeklyDoc', 'invoice'])
        self.assertEqual(report.failures[1].item_id, 'i1')
        self.assertIn("(2 failed)", report.describe())

    def test_only_failures_is_failed(self):
        report = execute_sweep([RemovalItem(RecordType.CLIENT, "", "s1", "", None, OLD)], self.store)

        self.assertEqual(report.status, 'failed')
        self.assertEqual(len(report.failures), 1)

    def test_empty_plan(self):
        report = RetentionCleanup(self.store).execute_sweep([])

        self.assertEqual(report.status, 'success')
        self.assertEqual(report.records_processed, 0)
        self.assertEqual(report.describe(),
                         "removed 0 clients, 0 plans, 0 weekly docs, 0 monthly reports, 0 Visma weeks")

    def test_history_is_untouched(self):
        self.ledger.upsert_history({
            'periodType': 'week', 'periodId': '2023-W40', 'staffId': 's1', 'clientId': 'c1',
            'metric': 'weekDoc', 'status': 'approved', 'value': 4,
        })
        self.ledger.upsert_history({
            'periodType': 'month', 'periodId': '2023-10', 'staffId': 's1', 'clientId': 'c2',
            'metric': 'monthReport', 'status': 'pending', 'value': 0,
        })
        before = [entry.to_dict() for entry in self.ledger.query_history()]

        execute_sweep(self.sweep.to_remove, self.store)

        self.assertEqual([entry.to_dict() for entry in self.ledger.query_history()], before)
        self.assertEqual(len(self.ledger.query_history(client_id="c1")), 1)

    def _inventory(self):
        found = set()
        for member in self.store.get_staff():
            for client in member.clients:
                found.add(('client', client.id))
                if client.id in ("c1", "c3"):
                    continue
                for kind in (RecordType.PLAN, RecordType.WEEKLY_DOC,
                             RecordType.MONTHLY_REPORT, RecordType.VISMA_WEEK):
                    for record in client.iter_children(kind):
                        found.add((kind.value, record.key))
        return found


if __name__ == '__main__':
    unittest.main()
