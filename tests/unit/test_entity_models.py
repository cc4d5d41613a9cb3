"""
Unit tests for the casework entity models.
"""

import unittest

from ungdomsstod.storage.entity_models import (
    Client, DocStatus, GFPPlan, MonthlyReport, Plan, RecordType, Staff, VismaWeek, WeeklyDoc,
    record_from_dict,
)


def make_client():
    return Client(
        id="c1",
        name="Alex",
        created_at="2024-01-01T08:00:00.000Z",
        plan=Plan(has_gfp=True, notes="legacy", care_plan_date="2024-01-02"),
        plans=[
            GFPPlan(id="p1", title="School", date="2024-01-01", due_date="2024-01-22"),
            GFPPlan(id="p2", title="Housing", date="2024-02-01", due_date="2024-02-22",
                    deleted_at="2024-02-05T00:00:00.000Z"),
        ],
        weekly_docs={
            "2024-W01": WeeklyDoc(week_id="2024-W01", days={"mon": True, "tue": True, "wed": False,
                                                              "thu": False, "fri": True, "sat": False,
                                                              "sun": False}),
        },
        monthly_reports={"2024-01": MonthlyReport(month_id="2024-01", sent=True, status=DocStatus.APPROVED)},
        visma={"2024-W01": VismaWeek(week_id="2024-W01", deleted_at="2024-01-10T00:00:00.000Z")},
    )


class TestRecordMapping(unittest.TestCase):
    """Test the camelCase JSON mapping."""

    def test_client_to_dict_uses_camel_case(self):
        data = make_client().to_dict()

        self.assertEqual(data['createdAt'], "2024-01-01T08:00:00.000Z")
        self.assertIn('weeklyDocs', data)
        self.assertIn('monthlyReports', data)
        self.assertEqual(data['plans'][0]['dueDate'], "2024-01-22")
        self.assertTrue(data['plan']['hasGFP'])

    def test_unset_optional_fields_are_omitted(self):
        data = make_client().to_dict()

        self.assertNotIn('archivedAt', data)
        self.assertNotIn('deletedAt', data)
        self.assertNotIn('deletedAt', data['plans'][0])
        self.assertEqual(data['plans'][1]['deletedAt'], "2024-02-05T00:00:00.000Z")

    def test_client_survives_json_mapping(self):
        client = make_client()
        self.assertEqual(Client.from_dict(client.to_dict()), client)

    def test_unknown_keys_ignored_and_missing_optionals_none(self):
        client = Client.from_dict({'id': 'c9', 'name': 'Sam', 'createdAt': '2024-01-01', 'color': 'blue'})

        self.assertIsNone(client.archived_at)
        self.assertIsNone(client.deleted_at)
        self.assertEqual(client.plans, [])
        self.assertEqual(client.plan, Plan())

    def test_weekly_doc_days_default_to_false(self):
        doc = WeeklyDoc.from_dict({'weekId': '2024-W02', 'days': {'mon': True}})

        self.assertEqual(len(doc.days), 7)
        self.assertEqual(doc.days_count(), 1)
        self.assertEqual(doc.status, DocStatus.PENDING)

    def test_visma_week_has_work_days_only(self):
        week = VismaWeek.from_dict({'weekId': '2024-W02', 'days': {'mon': True, 'sat': True}})
        self.assertEqual(sorted(week.days), ['fri', 'mon', 'thu', 'tue', 'wed'])

    def test_record_from_dict_dispatches_on_type(self):
        self.assertIsInstance(record_from_dict(RecordType.MONTHLY_REPORT, {'monthId': '2024-01'}), MonthlyReport)
        self.assertIsInstance(record_from_dict(RecordType.CLIENT, {'id': 'c1'}), Client)

    def test_staff_email_optional(self):
        staff = Staff(id="s1", name="Kim")
        self.assertNotIn('email', staff.to_dict())
        self.assertEqual(Staff.from_dict({'id': 's1', 'email': 'kim@example.com'}).email, 'kim@example.com')


class TestClientChildren(unittest.TestCase):
    """Test child record access on a client."""

    def setUp(self):
        self.client = make_client()

    def test_iter_children_in_stored_order(self):
        keys = [plan.key for plan in self.client.iter_children(RecordType.PLAN)]
        self.assertEqual(keys, ["p1", "p2"])

    def test_get_child_by_key(self):
        self.assertEqual(self.client.get_child(RecordType.WEEKLY_DOC, "2024-W01").week_id, "2024-W01")
        self.assertIsNone(self.client.get_child(RecordType.MONTHLY_REPORT, "2023-12"))

    def test_remove_child(self):
        self.assertTrue(self.client.remove_child(RecordType.PLAN, "p1"))
        self.assertFalse(self.client.remove_child(RecordType.PLAN, "p1"))
        self.assertEqual([plan.id for plan in self.client.plans], ["p2"])

    def test_client_is_not_a_child_kind(self):
        with self.assertRaises(ValueError):
            self.client.get_child(RecordType.CLIENT, "c1")

    def test_without_deleted_children_returns_copy(self):
        active = self.client.without_deleted_children()

        self.assertEqual([plan.id for plan in active.plans], ["p1"])
        self.assertEqual(active.visma, {})
        self.assertEqual(len(self.client.plans), 2)
        self.assertEqual(len(self.client.visma), 1)

        active.name = "Changed"
        self.assertEqual(self.client.name, "Alex")

    def test_is_active(self):
        self.assertTrue(self.client.is_active)
        self.client.archived_at = "2024-01-01T00:00:00.000Z"
        self.assertFalse(self.client.is_active)


if __name__ == '__main__':
    unittest.main()
