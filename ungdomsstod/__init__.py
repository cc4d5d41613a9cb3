"""
Ungdomsstöd - casework retention and history core.

This package contains the data lifecycle components of the youth-support
dashboard: soft-delete and archive handling, the retention sweep, export
before purge and the historical KPI ledger.
"""

__version__ = "0.1.0"
__author__ = "Ungdomsstöd Admin"
__email__ = "admin@example.com"
