"""
Storage and retention module for the Ungdomsstöd dashboard.

This module provides:
- The staff → client entity tree with archive and soft-delete flags
- SQLite and in-memory storage backends
- An upsert-only history ledger for historical KPIs
- The retention sweep, export before purge and cleanup executor
- Audit events and Prometheus metrics for retention operations
"""

from .entity_models import (
    Client, DocStatus, GFPPlan, MonthlyReport, Plan, RecordType, Staff, VismaWeek, WeeklyDoc,
)
from .entity_store import EntityStore
from .history_ledger import HistoryLedger
from .retention_cleanup import RetentionCleanup, execute_sweep
from .retention_config import RetentionConfig, RetentionConfigManager
from .retention_export import items_from_json, to_csv, to_json, write_export_files
from .retention_logging import AuditAction, RetentionLogger
from .retention_manager import RetentionManager, create_retention_manager
from .retention_metrics import RetentionMetrics
from .retention_models import (
    CleanupOutcome, CleanupReport, ConfirmationRequiredError, ExportError, HistoryEntry,
    HistoryEntryDraft, InvalidCutoffError, Metric, OperationResult, PeriodType, RemovalItem,
    RetentionError, StorageError, SweepResult,
)
from .retention_sweep import compute_sweep, summarize, validate_cutoff_days
from .storage_backends import MemoryBackend, SqliteBackend, StorageBackend, create_backend

__all__ = [
    'Client',
    'DocStatus',
    'GFPPlan',
    'MonthlyReport',
    'Plan',
    'RecordType',
    'Staff',
    'VismaWeek',
    'WeeklyDoc',
    'EntityStore',
    'HistoryLedger',
    'RetentionCleanup',
    'execute_sweep',
    'RetentionConfig',
    'RetentionConfigManager',
    'items_from_json',
    'to_csv',
    'to_json',
    'write_export_files',
    'AuditAction',
    'RetentionLogger',
    'RetentionManager',
    'create_retention_manager',
    'RetentionMetrics',
    'CleanupOutcome',
    'CleanupReport',
    'ConfirmationRequiredError',
    'ExportError',
    'HistoryEntry',
    'HistoryEntryDraft',
    'InvalidCutoffError',
    'Metric',
    'OperationResult',
    'PeriodType',
    'RemovalItem',
    'RetentionError',
    'StorageError',
    'SweepResult',
    'compute_sweep',
    'summarize',
    'validate_cutoff_days',
    'MemoryBackend',
    'SqliteBackend',
    'StorageBackend',
    'create_backend',
]
