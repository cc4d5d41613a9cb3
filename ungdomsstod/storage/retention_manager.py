"""
Main retention manager - orchestrates the retention system.

This is the main entry point that coordinates the retention flow:
compute the removal plan, export it, ask for confirmation and execute it.
Aborting between any two phases leaves the store untouched.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from prometheus_client import CollectorRegistry

from .entity_store import EntityStore
from .history_ledger import HistoryLedger
from .retention_cleanup import execute_sweep
from .retention_config import RetentionConfigManager
from .retention_export import write_export_files
from .retention_logging import AuditAction, RetentionLogger
from .retention_metrics import RetentionMetrics
from .retention_models import (
    CleanupOutcome, ConfirmationRequiredError, ExportError, SweepResult,
)
from .retention_sweep import compute_sweep, validate_cutoff_days
from .storage_backends import create_backend

logger = logging.getLogger(__name__)


class RetentionManager:
    """
    Main retention manager that orchestrates all retention operations.

    This class wires configuration, storage, the entity store, the history
    ledger, audit logging and metrics together.
    """

    def __init__(self, config_path: str, db_path: Optional[str] = None,
                 registry: Optional[CollectorRegistry] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.config_path = config_path

        self.config_manager = RetentionConfigManager(config_path)
        self.config = self.config_manager.config

        storage = self.config.storage
        self.db_path = db_path or storage.db_path
        self.backend = create_backend(storage.backend, self.db_path, storage.memory_fallback)

        self.audit_logger = RetentionLogger(
            logs_dir=self.config.audit.logs_dir,
            enabled=self.config.audit.enabled,
        )
        self.metrics = RetentionMetrics(registry)
        self.ledger = HistoryLedger(self.backend, self.metrics)
        self.store = EntityStore(
            self.backend,
            audit_logger=self.audit_logger,
            ledger=self.ledger,
            autosave=storage.autosave,
            actor=self.config.audit.actor,
            clock=clock,
        )

        logger.info(f"Retention Manager initialized with config from {config_path}")

    def preview(self, cutoff_days: Any = None, now: Optional[datetime] = None) -> SweepResult:
        """
        Compute the removal plan without changing anything.

        Args:
            cutoff_days: Retention window in days. Defaults to the configured window.
            now: Reference instant for the cutoff.

        Raises:
            InvalidCutoffError: If ``cutoff_days`` is not a non-negative integer.
        """
        if cutoff_days is None:
            cutoff_days = self.config_manager.get_retention_days()
        days = validate_cutoff_days(cutoff_days)

        sweep = compute_sweep(days, self.store, now)
        self.metrics.record_sweep_preview(sweep)
        return sweep

    def export(self, sweep: SweepResult, actor: Optional[str] = None,
               export_dir: Optional[str] = None) -> List[Path]:
        """
        Persist the JSON/CSV export of a removal plan.

        Raises:
            ExportError: If the plan cannot be serialized or written.
        """
        actor = actor or self.config.audit.actor
        directory = export_dir or self.config.export.directory

        try:
            paths = write_export_files(sweep.to_remove, directory,
                                       formats=tuple(self.config.export.formats))
        except ExportError as e:
            self.audit_logger.log_event(AuditAction.DATA_EXPORT, actor=actor, resource="retention",
                                        count=0, success=False, error_message=str(e))
            raise

        self.audit_logger.log_event(
            AuditAction.DATA_EXPORT,
            actor=actor,
            resource="retention",
            count=len(sweep.to_remove),
            details={
                'cutoff_days': sweep.cutoff_days,
                'cutoff_timestamp': sweep.cutoff_timestamp,
                'files': [str(path) for path in paths],
            },
        )
        return paths

    def run_cleanup(self, cutoff_days: Any = None, actor: Optional[str] = None,
                    confirm: Optional[Callable[[SweepResult], bool]] = None,
                    export_before_cleanup: Optional[bool] = None,
                    now: Optional[datetime] = None) -> CleanupOutcome:
        """
        Compute, export, confirm and execute a retention sweep.

        Args:
            cutoff_days: Retention window in days. Defaults to the configured window.
            actor: Who requested the sweep, for the audit trail.
            confirm: Called with the removal plan; a falsy answer aborts.
            export_before_cleanup: Overrides the configured export setting.
            now: Reference instant for the cutoff.

        Raises:
            InvalidCutoffError: For an invalid retention window.
            ConfirmationRequiredError: If no confirmation callback is given.
            ExportError: If the export fails. Nothing is removed in that case.
        """
        actor = actor or self.config.audit.actor

        if not self.config_manager.is_enabled():
            logger.info("Data retention cleanup is disabled")
            return CleanupOutcome(status='disabled')

        if cutoff_days is None:
            cutoff_days = self.config_manager.get_retention_days()
        days = validate_cutoff_days(cutoff_days)

        if confirm is None:
            raise ConfirmationRequiredError("Permanent removal requires a confirmation step")

        sweep = self.preview(days, now)
        if sweep.is_empty:
            logger.info(f"Nothing to remove for cutoff {sweep.cutoff_timestamp}")
            return CleanupOutcome(status='nothing_to_remove', sweep=sweep)

        if export_before_cleanup is None:
            export_before_cleanup = self.config.export.export_before_cleanup

        export_paths = []
        if export_before_cleanup:
            export_paths = [str(path) for path in self.export(sweep, actor)]

        if not confirm(sweep):
            logger.info(f"Retention sweep aborted by {actor}")
            return CleanupOutcome(status='aborted', sweep=sweep, export_paths=export_paths)

        report = execute_sweep(sweep.to_remove, self.store)
        self.store.save()

        self.audit_logger.log_cleanup_report(report, sweep, actor)
        self.audit_logger.create_cleanup_summary_report(report, sweep)
        self.metrics.record_cleanup(report)

        return CleanupOutcome(status='executed', sweep=sweep, report=report, export_paths=export_paths)

    def get_retention_status(self) -> Dict[str, Any]:
        """Get current retention system status."""
        return {
            'enabled': self.config_manager.is_enabled(),
            'storage_type': self.backend.storage_type,
            'retention_days': self.config_manager.get_retention_days(),
            'clients': self.store.counts(),
            'history_entries': self.ledger.size(),
            'config': {
                'export_before_cleanup': self.config.export.export_before_cleanup,
                'export_directory': self.config.export.directory,
                'export_formats': list(self.config.export.formats),
                'audit_enabled': self.config.audit.enabled,
            },
        }

    def status(self) -> Dict[str, Any]:
        return self.get_retention_status()


def create_retention_manager(config_path: str, db_path: Optional[str] = None) -> RetentionManager:
    """Create a new RetentionManager instance."""
    return RetentionManager(config_path, db_path)
