"""
Audit logging and reporting for the retention system.

Every archive, soft-delete, restore, export and sweep execution is described
as an audit event. Events are emitted through structlog and, when a logs
directory is configured, appended to a JSONL file for the external audit sink.
"""

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from ..timeutils import now_iso
from .retention_models import CleanupReport, SweepResult

logger = logging.getLogger(__name__)
audit_log = structlog.get_logger("ungdomsstod.audit")

SENSITIVE_FIELDS = ('password', 'password_hash', 'token', 'secret')


class AuditAction(Enum):
    """Lifecycle actions reported to the audit sink."""
    CLIENT_ARCHIVED = "CLIENT_ARCHIVED"
    CLIENT_UNARCHIVED = "CLIENT_UNARCHIVED"
    CLIENT_DELETED = "CLIENT_DELETED"
    CLIENT_RESTORED = "CLIENT_RESTORED"
    CHILD_DELETED = "CHILD_DELETED"
    CHILD_RESTORED = "CHILD_RESTORED"
    DATA_EXPORT = "DATA_EXPORT"
    RETENTION_SWEEP_EXECUTED = "RETENTION_SWEEP_EXECUTED"


@dataclass
class AuditEvent:
    """Description of one audited lifecycle operation."""
    id: str
    timestamp: str
    action: str
    actor: str
    resource: str
    count: int
    success: bool
    resource_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None


class RetentionLogger:
    """Emits audit events and cleanup reports for retention operations."""

    def __init__(self, logs_dir: Optional[str] = "logs/retention", enabled: bool = True):
        self.enabled = enabled
        self.logs_dir = Path(logs_dir) if logs_dir else None
        self.events: List[AuditEvent] = []

        if self.enabled and self.logs_dir is not None:
            self.logs_dir.mkdir(parents=True, exist_ok=True)

    def log_event(self, action: AuditAction, actor: str, resource: str,
                  resource_id: Optional[str] = None, count: int = 1, success: bool = True,
                  details: Optional[Dict[str, Any]] = None,
                  error_message: Optional[str] = None) -> Optional[AuditEvent]:
        """Describe one operation to the audit sink. Returns the event, or None when disabled."""
        if not self.enabled:
            return None

        event = AuditEvent(
            id=str(uuid.uuid4()),
            timestamp=now_iso(),
            action=action.value,
            actor=actor,
            resource=resource,
            resource_id=resource_id,
            count=count,
            success=success,
            details=self._sanitize_details(details or {}),
            error_message=error_message,
        )
        self.events.append(event)

        if success:
            audit_log.info("Audit event", action=event.action, actor=actor, resource=resource,
                           resource_id=resource_id, count=count)
        else:
            audit_log.warning("Audit event failed", action=event.action, actor=actor, resource=resource,
                              resource_id=resource_id, error=error_message)

        self._store_event(event)
        return event

    def log_cleanup_report(self, report: CleanupReport, sweep: SweepResult, actor: str) -> Optional[AuditEvent]:
        """Audit a sweep execution with its per-type counts."""
        if report.status == 'success':
            logger.info(f"Retention sweep completed: {report.describe()} "
                        f"in {self._format_duration(report.duration_seconds)}")
        elif report.status == 'partial':
            logger.warning(f"Retention sweep partially completed: {report.describe()}")
        else:
            logger.error(f"Retention sweep failed: {report.describe()}")

        return self.log_event(
            AuditAction.RETENTION_SWEEP_EXECUTED,
            actor=actor,
            resource="retention",
            resource_id=report.operation_id,
            count=report.records_removed,
            success=report.status != 'failed',
            details={
                'cutoff_days': sweep.cutoff_days,
                'cutoff_timestamp': sweep.cutoff_timestamp,
                'planned': sweep.counts(),
                'removed': dict(report.removed),
                'skipped': report.skipped,
                'failures': [asdict(failure) for failure in report.failures],
                'status': report.status,
            },
            error_message=f"{len(report.failures)} items failed" if report.failures else None,
        )

    def create_cleanup_summary_report(self, report: CleanupReport, sweep: SweepResult) -> Dict[str, Any]:
        """Create and save a summary report for a sweep execution."""
        summary = {
            "report_metadata": {
                "generated_at": datetime.now().isoformat(),
                "report_type": "retention_sweep_summary",
                "operation_id": report.operation_id,
            },
            "sweep": {
                "cutoff_days": sweep.cutoff_days,
                "cutoff_timestamp": sweep.cutoff_timestamp,
                "planned": sweep.counts(),
            },
            "outcome": {
                "status": report.status,
                "records_processed": report.records_processed,
                "records_removed": report.records_removed,
                "removed": dict(report.removed),
                "skipped": report.skipped,
                "duration": self._format_duration(report.duration_seconds),
                "description": report.describe(),
            },
            "failures": [asdict(failure) for failure in report.failures],
        }

        if self.enabled and self.logs_dir is not None:
            self._save_summary_report(summary, report.operation_id)

        return summary

    def _sanitize_details(self, details: Dict[str, Any]) -> Dict[str, Any]:
        sanitized = dict(details)
        for key in SENSITIVE_FIELDS:
            if sanitized.get(key):
                sanitized[key] = '[REDACTED]'
        return sanitized

    def _format_duration(self, duration_seconds: float) -> str:
        """Format duration in a human-readable format."""
        if duration_seconds < 60:
            return f"{duration_seconds:.2f}s"
        elif duration_seconds < 3600:
            return f"{duration_seconds / 60:.1f}m"
        return f"{duration_seconds / 3600:.1f}h"

    def _store_event(self, event: AuditEvent):
        """Append the event to the dated JSONL audit file."""
        if self.logs_dir is None:
            return
        try:
            log_date = datetime.now().strftime("%Y-%m-%d")
            log_file = self.logs_dir / f"audit_events_{log_date}.jsonl"
            with open(log_file, 'a') as f:
                f.write(json.dumps(asdict(event)) + '\n')
        except OSError as e:
            logger.error(f"Failed to store audit event: {e}")

    def _save_summary_report(self, summary: Dict[str, Any], operation_id: str):
        try:
            reports_dir = self.logs_dir / "reports"
            reports_dir.mkdir(parents=True, exist_ok=True)
            report_file = reports_dir / f"sweep_summary_{operation_id}.json"
            with open(report_file, 'w') as f:
                json.dump(summary, f, indent=2)
            logger.info(f"Sweep summary report saved: {report_file}")
        except OSError as e:
            logger.error(f"Failed to save summary report: {e}")
