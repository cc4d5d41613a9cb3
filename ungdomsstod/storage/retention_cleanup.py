"""
Cleanup executor for the retention system.

Applies a previously computed removal plan to the entity store. Each item is
looked up again before removal; items that are already gone are skipped, and
items that cannot be processed are logged and collected while the remaining
items are still removed. The result is reported, never rolled back. The
history ledger is not part of this flow.
"""

import logging
from datetime import datetime
from typing import List, Tuple

from .entity_models import RecordType
from .retention_models import CleanupFailure, CleanupReport, RemovalItem

logger = logging.getLogger(__name__)


class RetentionCleanup:
    """Removes the records of a removal plan from an entity store."""

    def __init__(self, store):
        self.store = store

    def execute_sweep(self, items: List[RemovalItem]) -> CleanupReport:
        """
        Permanently remove every item of the plan that still exists.

        Returns:
            CleanupReport whose counts only include successful removals.
        """
        operation_id = f"sweep_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}"
        start_time = datetime.now()

        removed = {record_type.value: 0 for record_type in RecordType}
        skipped = 0
        failures: List[CleanupFailure] = []

        logger.info(f"Executing retention sweep {operation_id}: {len(items)} items")

        for item in items:
            try:
                record_type, found = self._remove_item(item)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                item_type = getattr(getattr(item, 'type', None), 'value', str(getattr(item, 'type', '?')))
                item_id = str(getattr(item, 'id', '?'))
                logger.error(f"Failed to remove {item_type} {item_id}: {e}")
                failures.append(CleanupFailure(item_type=item_type, item_id=item_id, error_message=str(e)))
                continue

            if not found:
                skipped += 1
                logger.info(f"Skipping {record_type.value} {item.id}: no longer present")
            else:
                removed[record_type.value] += 1

        report = CleanupReport(
            operation_id=operation_id,
            timestamp=start_time,
            records_processed=len(items),
            removed=removed,
            skipped=skipped,
            failures=failures,
            duration_seconds=(datetime.now() - start_time).total_seconds(),
        )

        logger.info(f"Retention sweep {operation_id} {report.status}: {report.describe()}")
        return report

    def _remove_item(self, item: RemovalItem) -> Tuple[RecordType, bool]:
        """Remove one item. Returns its type and whether it still existed."""
        record_type = RecordType(item.type)
        if not isinstance(item.id, str) or not item.id:
            raise ValueError(f"Malformed id: {item.id!r}")
        if not isinstance(item.staff_id, str) or not item.staff_id:
            raise ValueError(f"Malformed staff id: {item.staff_id!r}")

        if record_type == RecordType.CLIENT:
            found = self.store.purge_client(item.staff_id, item.id)
        else:
            if not isinstance(item.client_id, str) or not item.client_id:
                raise ValueError(f"Malformed client id: {item.client_id!r}")
            found = self.store.purge_child(item.staff_id, item.client_id, record_type, item.id)

        return record_type, found


def execute_sweep(items: List[RemovalItem], store) -> CleanupReport:
    """Apply ``items`` to ``store``. See ``RetentionCleanup.execute_sweep``."""
    return RetentionCleanup(store).execute_sweep(items)
