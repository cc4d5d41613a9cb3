"""
Entity store for the staff → client tree.

The store holds the canonical current state loaded from a storage backend and
owns the soft-delete and archive flags. Apart from flag mutation it only
removes records on behalf of the cleanup executor (``purge_client`` and
``purge_child``).
"""

import copy
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set, Tuple, Union

from ..timeutils import to_iso, utc_now
from .entity_models import (
    CHILD_TYPES, Client, GFPPlan, MonthlyReport, RecordType, Staff, VismaWeek, WeeklyDoc,
)
from .retention_logging import AuditAction, RetentionLogger
from .retention_models import OperationResult
from .storage_backends import StorageBackend

logger = logging.getLogger(__name__)

NOT_FOUND = "record not found"


def _child_kind(kind: Union[RecordType, str]) -> RecordType:
    record_type = kind if isinstance(kind, RecordType) else RecordType(kind)
    if record_type not in CHILD_TYPES:
        raise ValueError(f"Not a child record kind: {record_type.value}")
    return record_type


class EntityStore:
    """In-memory tree backed by a ``StorageBackend``."""

    def __init__(self, backend: StorageBackend, audit_logger: Optional[RetentionLogger] = None,
                 ledger=None, autosave: bool = False, actor: str = "system",
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            backend: Storage backend providing the persisted tree.
            audit_logger: Receives an event for every lifecycle mutation.
            ledger: History ledger written to when documentation is saved.
            autosave: Persist after every mutation.
            actor: Default actor reported to the audit logger.
            clock: Source of "now", for deterministic tests.
        """
        self.backend = backend
        self.audit_logger = audit_logger
        self.ledger = ledger
        self.autosave = autosave
        self.actor = actor
        self.clock = clock or utc_now
        self.staff: List[Staff] = backend.load_staff()

        logger.info(f"Entity store loaded {len(self.staff)} staff from {backend.storage_type} storage")

    # Persistence

    def reload(self):
        self.staff = self.backend.load_staff()

    def save(self):
        self.backend.save_staff(self.staff)

    def _changed(self):
        if self.autosave:
            self.save()

    # Lookup

    def get_staff(self) -> List[Staff]:
        return self.staff

    def find_staff(self, staff_id: str) -> Optional[Staff]:
        return next((member for member in self.staff if member.id == staff_id), None)

    def locate_client(self, client_id: str) -> Optional[Tuple[Staff, Client]]:
        for member in self.staff:
            client = member.find_client(client_id)
            if client is not None:
                return member, client
        return None

    def find_client(self, client_id: str) -> Optional[Client]:
        located = self.locate_client(client_id)
        return located[1] if located else None

    def all_client_ids(self) -> Set[str]:
        """Ids of every stored client, archived and deleted ones included."""
        return {client.id for member in self.staff for client in member.clients}

    def get_active_clients(self, staff_id: Optional[str] = None) -> List[Client]:
        """
        Copies of clients that are neither archived nor deleted, with their
        soft-deleted children stripped.
        """
        active = []
        for member in self.staff:
            if staff_id is not None and member.id != staff_id:
                continue
            for client in member.clients:
                if client.is_active:
                    active.append(client.without_deleted_children())
        return active

    def get_archived_clients(self) -> List[Tuple[str, Client]]:
        """(staff id, client copy) for every archived or deleted client."""
        return [
            (member.id, copy.deepcopy(client))
            for member in self.staff
            for client in member.clients
            if not client.is_active
        ]

    def counts(self) -> Dict[str, int]:
        clients = [client for member in self.staff for client in member.clients]
        return {
            'staff': len(self.staff),
            'clients': len(clients),
            'active': sum(1 for c in clients if c.is_active),
            'archived': sum(1 for c in clients if c.archived_at is not None),
            'deleted': sum(1 for c in clients if c.deleted_at is not None),
        }

    # Creation and documentation

    def add_staff(self, staff: Staff) -> Staff:
        if self.find_staff(staff.id) is not None:
            raise ValueError(f"Staff {staff.id} already exists")
        self.staff.append(staff)
        self._changed()
        return staff

    def add_client(self, staff_id: str, client: Client) -> Client:
        member = self.find_staff(staff_id)
        if member is None:
            raise ValueError(f"Staff {staff_id} not found")
        if self.find_client(client.id) is not None:
            raise ValueError(f"Client {client.id} already exists")
        member.clients.append(client)
        self._changed()
        return client

    def save_weekly_doc(self, client_id: str, doc: WeeklyDoc) -> OperationResult:
        return self._save_child(client_id, RecordType.WEEKLY_DOC, doc)

    def save_monthly_report(self, client_id: str, report: MonthlyReport) -> OperationResult:
        return self._save_child(client_id, RecordType.MONTHLY_REPORT, report)

    def save_visma_week(self, client_id: str, week: VismaWeek) -> OperationResult:
        return self._save_child(client_id, RecordType.VISMA_WEEK, week)

    def save_gfp_plan(self, client_id: str, plan: GFPPlan) -> OperationResult:
        return self._save_child(client_id, RecordType.PLAN, plan)

    def _save_child(self, client_id: str, kind: RecordType, record) -> OperationResult:
        located = self.locate_client(client_id)
        if located is None:
            return OperationResult(False, NOT_FOUND, f"save_{kind.value}", client_id)
        member, client = located

        if kind == RecordType.PLAN:
            index = next((i for i, plan in enumerate(client.plans) if plan.id == record.id), None)
            if index is None:
                client.plans.append(record)
            else:
                client.plans[index] = record
        elif kind == RecordType.WEEKLY_DOC:
            client.weekly_docs[record.week_id] = record
        elif kind == RecordType.MONTHLY_REPORT:
            client.monthly_reports[record.month_id] = record
        else:
            client.visma[record.week_id] = record

        if self.ledger is not None:
            if kind == RecordType.WEEKLY_DOC:
                self.ledger.record_weekly_doc(member.id, client.id, record)
            elif kind == RecordType.MONTHLY_REPORT:
                self.ledger.record_monthly_report(member.id, client.id, record)
            elif kind == RecordType.PLAN:
                self.ledger.record_gfp_plan(member.id, client.id, record)

        self._changed()
        return OperationResult(True, "saved", f"save_{kind.value}", f"{client_id}/{record.key}")

    # Lifecycle flags

    def archive_client(self, client_id: str, actor: Optional[str] = None) -> OperationResult:
        """Set ``archivedAt`` to now. Re-archiving refreshes the timestamp."""
        return self._set_client_flag(client_id, 'archived_at', True, AuditAction.CLIENT_ARCHIVED, actor)

    def unarchive_client(self, client_id: str, actor: Optional[str] = None) -> OperationResult:
        return self._set_client_flag(client_id, 'archived_at', False, AuditAction.CLIENT_UNARCHIVED, actor)

    def soft_delete_client(self, client_id: str, actor: Optional[str] = None) -> OperationResult:
        return self._set_client_flag(client_id, 'deleted_at', True, AuditAction.CLIENT_DELETED, actor)

    def restore_client(self, client_id: str, actor: Optional[str] = None) -> OperationResult:
        return self._set_client_flag(client_id, 'deleted_at', False, AuditAction.CLIENT_RESTORED, actor)

    def soft_delete_child(self, client_id: str, kind: Union[RecordType, str], key: str,
                          actor: Optional[str] = None) -> OperationResult:
        """Set ``deletedAt`` on a plan, weekly doc, monthly report or Visma week."""
        return self._set_child_flag(client_id, _child_kind(kind), key, True, actor)

    def restore_child(self, client_id: str, kind: Union[RecordType, str], key: str,
                      actor: Optional[str] = None) -> OperationResult:
        return self._set_child_flag(client_id, _child_kind(kind), key, False, actor)

    def _set_client_flag(self, client_id: str, attribute: str, set_flag: bool,
                         action: AuditAction, actor: Optional[str]) -> OperationResult:
        client = self.find_client(client_id)
        if client is None:
            logger.warning(f"{action.value}: client {client_id} not found")
            self._audit(action, actor, "client", client_id, count=0, success=False, error=NOT_FOUND)
            return OperationResult(False, NOT_FOUND, action.value, client_id)

        timestamp = to_iso(self.clock()) if set_flag else None
        setattr(client, attribute, timestamp)
        self._changed()

        self._audit(action, actor, "client", client_id, count=1)
        return OperationResult(True, action.value.lower(), action.value, client_id, timestamp)

    def _set_child_flag(self, client_id: str, kind: RecordType, key: str, set_flag: bool,
                        actor: Optional[str]) -> OperationResult:
        action = AuditAction.CHILD_DELETED if set_flag else AuditAction.CHILD_RESTORED
        resource_id = f"{client_id}/{key}"

        client = self.find_client(client_id)
        record = client.get_child(kind, key) if client is not None else None
        if record is None:
            logger.warning(f"{action.value}: {kind.value} {resource_id} not found")
            self._audit(action, actor, kind.value, resource_id, count=0, success=False, error=NOT_FOUND)
            return OperationResult(False, NOT_FOUND, action.value, resource_id)

        timestamp = to_iso(self.clock()) if set_flag else None
        record.deleted_at = timestamp
        self._changed()

        self._audit(action, actor, kind.value, resource_id, count=1)
        return OperationResult(True, action.value.lower(), action.value, resource_id, timestamp)

    def _audit(self, action: AuditAction, actor: Optional[str], resource: str, resource_id: str,
               count: int, success: bool = True, error: Optional[str] = None):
        if self.audit_logger is None:
            return
        self.audit_logger.log_event(action, actor=actor or self.actor, resource=resource,
                                    resource_id=resource_id, count=count, success=success,
                                    error_message=error)

    # Structural removal, used by the cleanup executor only

    def purge_client(self, staff_id: str, client_id: str) -> bool:
        member = self.find_staff(staff_id)
        if member is None:
            return False
        remaining = [client for client in member.clients if client.id != client_id]
        removed = len(remaining) != len(member.clients)
        member.clients = remaining
        return removed

    def purge_child(self, staff_id: str, client_id: str, kind: RecordType, key: str) -> bool:
        member = self.find_staff(staff_id)
        client = member.find_client(client_id) if member is not None else None
        if client is None:
            return False
        return client.remove_child(kind, key)
