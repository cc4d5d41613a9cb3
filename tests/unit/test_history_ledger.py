"""
Unit tests for the history ledger.
"""

import shutil
import tempfile
import unittest
from pathlib import Path

from prometheus_client import CollectorRegistry

from ungdomsstod.storage.entity_models import DocStatus, GFPPlan
from ungdomsstod.storage.history_ledger import HistoryLedger
from ungdomsstod.storage.retention_metrics import RetentionMetrics
from ungdomsstod.storage.retention_models import HistoryEntryDraft, Metric, PeriodType
from ungdomsstod.storage.storage_backends import MemoryBackend, SqliteBackend


def week_entry(**overrides):
    entry = {
        'periodType': 'week',
        'periodId': '2024-W01',
        'staffId': 's1',
        'clientId': 'c1',
        'metric': 'weekDoc',
        'status': 'approved',
        'value': 3,
    }
    entry.update(overrides)
    return entry


class TestHistoryUpsert(unittest.TestCase):
    """Test upsert semantics."""

    def setUp(self):
        self.registry = CollectorRegistry()
        self.ledger = HistoryLedger(MemoryBackend(), RetentionMetrics(self.registry))

    def test_upsert_same_key_keeps_one_entry(self):
        first = self.ledger.upsert_history(week_entry())
        second = self.ledger.upsert_history(week_entry(status='rejected'))

        entries = self.ledger.query_history()
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].status, DocStatus.REJECTED)
        self.assertEqual(first.id, second.id)
        self.assertEqual(entries[0].id, first.id)

    def test_last_write_wins_for_status_and_value(self):
        for status, value in (('pending', 1), ('approved', 5), ('rejected', 2)):
            self.ledger.upsert_history(week_entry(status=status, value=value))

        entry = self.ledger.query_history()[0]
        self.assertEqual(entry.status, DocStatus.REJECTED)
        self.assertEqual(entry.value, 2)

    def test_input_id_and_ts_are_ignored(self):
        stored = self.ledger.upsert_history(week_entry(id='mine', ts='1999-01-01T00:00:00.000Z'))

        self.assertNotEqual(stored.id, 'mine')
        self.assertNotEqual(stored.ts, '1999-01-01T00:00:00.000Z')

    def test_distinct_keys_are_separate_entries(self):
        self.ledger.upsert_history(week_entry())
        self.ledger.upsert_history(week_entry(clientId='c2'))
        self.ledger.upsert_history(week_entry(metric='gfp'))
        self.ledger.upsert_history(week_entry(periodId='2024-W02'))

        self.assertEqual(self.ledger.size(), 4)

    def test_accepts_draft(self):
        draft = HistoryEntryDraft(
            period_type=PeriodType.MONTH, period_id='2024-01', staff_id='s1', client_id='c1',
            metric=Metric.MONTH_REPORT, status=DocStatus.PENDING, value=1,
        )
        stored = self.ledger.upsert_history(draft)
        self.assertEqual(stored.key, ('month', '2024-01', 's1', 'c1', 'monthReport'))

    def test_invalid_period_id_rejected(self):
        with self.assertRaises(ValueError):
            self.ledger.upsert_history(week_entry(periodId='2024-01'))
        with self.assertRaises(ValueError):
            self.ledger.upsert_history(week_entry(periodType='month', periodId='2024-W01'))

    def test_non_numeric_value_rejected(self):
        for value in ("3", "many", True, [3]):
            with self.assertRaises(ValueError):
                self.ledger.upsert_history(week_entry(value=value))
        self.assertEqual(self.ledger.query_history(), [])

    def test_numeric_or_missing_value_accepted(self):
        self.assertEqual(self.ledger.upsert_history(week_entry(value=2.5)).value, 2.5)
        self.assertIsNone(self.ledger.upsert_history(week_entry(value=None)).value)

    def test_invalid_enum_rejected(self):
        with self.assertRaises(ValueError):
            self.ledger.upsert_history(week_entry(metric='hours'))

    def test_upsert_metrics(self):
        self.ledger.upsert_history(week_entry())
        self.ledger.upsert_history(week_entry(status='pending'))

        inserted = self.registry.get_sample_value(
            'history_upserts_total', {'metric': 'weekDoc', 'operation': 'insert'})
        updated = self.registry.get_sample_value(
            'history_upserts_total', {'metric': 'weekDoc', 'operation': 'update'})
        self.assertEqual(inserted, 1.0)
        self.assertEqual(updated, 1.0)


class TestHistoryQueries(unittest.TestCase):
    """Test filtering and aggregation."""

    def setUp(self):
        self.ledger = HistoryLedger(MemoryBackend())
        for week in ('2023-W52', '2024-W01', '2024-W02', '2024-W10'):
            self.ledger.upsert_history(week_entry(periodId=week))
        self.ledger.upsert_history(week_entry(periodId='2024-W01', clientId='c2', status='pending'))
        self.ledger.upsert_history(week_entry(periodType='month', periodId='2024-01',
                                              metric='monthReport', staffId='s2'))

    def test_period_range_is_inclusive(self):
        entries = self.ledger.query_history(period_type='week', period_from='2024-W01', period_to='2024-W02')
        self.assertEqual(sorted(e.period_id for e in entries), ['2024-W01', '2024-W01', '2024-W02'])

    def test_filter_by_fields(self):
        self.assertEqual(len(self.ledger.query_history(client_id='c2')), 1)
        self.assertEqual(len(self.ledger.query_history(staff_id='s2')), 1)
        self.assertEqual(len(self.ledger.query_history(status=DocStatus.PENDING)), 1)
        self.assertEqual(len(self.ledger.query_history(period_type=PeriodType.MONTH)), 1)
        self.assertEqual(len(self.ledger.query_history(metric=Metric.WEEK_DOC)), 5)

    def test_count_by_period_is_ordered(self):
        counts = self.ledger.count_by_period('week', 'weekDoc')
        self.assertEqual(list(counts.items()),
                         [('2023-W52', 1), ('2024-W01', 2), ('2024-W02', 1), ('2024-W10', 1)])

    def test_count_by_period_with_status(self):
        counts = self.ledger.count_by_period(PeriodType.WEEK, Metric.WEEK_DOC, status='approved',
                                             period_from='2024-W01')
        self.assertEqual(counts, {'2024-W01': 1, '2024-W02': 1, '2024-W10': 1})

    def test_gfp_recorded_against_given_week(self):
        plan = GFPPlan(id='p1', title='School', date='2024-01-01', due_date='2024-01-22', done=True)
        entry = self.ledger.record_gfp_plan('s1', 'c1', plan, week_id='2024-W03')

        self.assertEqual(entry.metric, Metric.GFP)
        self.assertEqual(entry.period_id, '2024-W03')
        self.assertEqual(entry.value, 1)


class TestSqliteLedger(unittest.TestCase):
    """Test the ledger on durable storage."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = str(Path(self.temp_dir) / "ledger.db")

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_upsert_keeps_id_across_instances(self):
        first = HistoryLedger(SqliteBackend(self.db_path)).upsert_history(week_entry())
        second = HistoryLedger(SqliteBackend(self.db_path)).upsert_history(week_entry(status='rejected'))

        entries = HistoryLedger(SqliteBackend(self.db_path)).query_history()
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].id, first.id)
        self.assertEqual(second.id, first.id)
        self.assertEqual(entries[0].status, DocStatus.REJECTED)


if __name__ == '__main__':
    unittest.main()
