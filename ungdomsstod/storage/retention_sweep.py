"""
Retention sweep engine.

Computes which archived or soft-deleted records are older than the retention
window. The sweep only reads the entity store: it performs no I/O and never
mutates anything, so running it twice over an unchanged store yields the
same plan and aborting after it needs no cleanup.

Eligibility rules, per client in stored order:

1. ``archivedAt`` set and older than the cutoff: the whole client is planned
   and its children are not inspected.
2. Otherwise, ``archivedAt`` unset and ``deletedAt`` older than the cutoff:
   the whole client is planned, children not inspected.
3. Otherwise each plan, weekly doc, monthly report and Visma week whose
   ``deletedAt`` is older than the cutoff is planned individually.

When both client flags are set, ``archivedAt`` alone decides eligibility.
Comparisons are strict: a flag equal to the cutoff does not qualify.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..timeutils import parse_iso, subtract_days, to_iso, utc_now
from .entity_models import CHILD_TYPES, Client, RecordType, Staff
from .retention_models import InvalidCutoffError, RemovalItem, SweepResult, describe_counts

logger = logging.getLogger(__name__)


def validate_cutoff_days(value: Any) -> int:
    """
    Validate a retention window received at an API or CLI boundary.

    Accepts non-negative integers, integral floats and decimal strings.

    Raises:
        InvalidCutoffError: For negative, fractional, boolean or non-numeric input.
    """
    if isinstance(value, bool):
        raise InvalidCutoffError(f"Cutoff days must be an integer, got {value!r}")

    if isinstance(value, str):
        text = value.strip()
        if not text.lstrip('-').isdigit():
            raise InvalidCutoffError(f"Cutoff days must be an integer, got {value!r}")
        value = int(text)
    elif isinstance(value, float):
        if not value.is_integer():
            raise InvalidCutoffError(f"Cutoff days must be a whole number of days, got {value!r}")
        value = int(value)
    elif not isinstance(value, int):
        raise InvalidCutoffError(f"Cutoff days must be an integer, got {type(value).__name__}")

    if value < 0:
        raise InvalidCutoffError(f"Cutoff days must not be negative, got {value}")
    return value


def compute_cutoff(cutoff_days: int, now: Optional[datetime] = None) -> datetime:
    """``now - cutoff_days`` whole days, clamped to the earliest instant."""
    return subtract_days(now or utc_now(), int(cutoff_days))


def _older_than(timestamp: Optional[str], cutoff: datetime) -> bool:
    if timestamp is None:
        return False
    try:
        return parse_iso(timestamp) < cutoff
    except ValueError:
        logger.warning(f"Ignoring unparseable flag timestamp {timestamp!r}")
        return False


def _client_trigger(client: Client, cutoff: datetime) -> Optional[str]:
    """The flag timestamp that makes the whole client eligible, if any."""
    if client.archived_at is not None:
        return client.archived_at if _older_than(client.archived_at, cutoff) else None
    if _older_than(client.deleted_at, cutoff):
        return client.deleted_at
    return None


def _sweep_client(member: Staff, client: Client, cutoff: datetime) -> List[RemovalItem]:
    trigger = _client_trigger(client, cutoff)
    if trigger is not None:
        return [RemovalItem.snapshot(RecordType.CLIENT, client.id, member.id, client.id, client, trigger)]

    items = []
    for kind in CHILD_TYPES:
        for record in client.iter_children(kind):
            if _older_than(record.deleted_at, cutoff):
                items.append(RemovalItem.snapshot(kind, record.key, member.id, client.id,
                                                  record, record.deleted_at))
    return items


def compute_sweep(cutoff_days: int, store, now: Optional[datetime] = None) -> SweepResult:
    """
    Plan the permanent removal of records flagged longer than ``cutoff_days`` ago.

    Args:
        cutoff_days: Validated non-negative retention window; truncated to whole days.
        store: Entity store (anything exposing ``get_staff()``).
        now: Reference instant. Defaults to the current UTC time.

    Returns:
        SweepResult with the removal items and the cutoff used.
    """
    days = int(cutoff_days)
    cutoff = compute_cutoff(days, now)

    to_remove: List[RemovalItem] = []
    for member in store.get_staff():
        for client in member.clients:
            to_remove.extend(_sweep_client(member, client, cutoff))

    result = SweepResult(to_remove=to_remove, cutoff_timestamp=to_iso(cutoff), cutoff_days=days)
    logger.info(f"Retention sweep (cutoff {result.cutoff_timestamp}): "
                f"{describe_counts(result.counts(), verb='eligible:')}")
    return result


def summarize(items: List[RemovalItem]) -> Tuple[Dict[str, int], str]:
    """Per-type counts of a removal plan and its impact summary line."""
    counts = {record_type.value: 0 for record_type in RecordType}
    for item in items:
        counts[item.type.value] += 1
    return counts, describe_counts(counts)
