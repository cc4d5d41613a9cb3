"""
Export of removal plans before they are executed.

``to_json`` and ``to_csv`` are pure: they turn a list of removal items into
structures or text. ``write_export_files`` persists both renderings for the
retention manager and the CLI. A failure to serialize is fatal for the export
and must block the purge that follows it.
"""

import csv
import io
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .retention_models import ExportError, RemovalItem

logger = logging.getLogger(__name__)

EXPORT_FIELDS = ('type', 'id', 'staffId', 'clientId', 'deletedAt', 'data')
EXPORT_PREFIX = "ungdomsstod-retention-export"


def to_json(items: List[RemovalItem]) -> List[Dict[str, Any]]:
    """
    Render items as ``{type, id, staffId, clientId, deletedAt, data}`` dicts.

    ``data`` is the full record snapshot and is enough to rebuild the record
    with ``items_from_json``.

    Raises:
        ExportError: If a snapshot is not JSON serializable.
    """
    rendered = []
    for item in items:
        try:
            row = item.to_dict()
            # Fail here rather than when the caller writes the file
            json.dumps(row, allow_nan=False)
        except (TypeError, ValueError, AttributeError, RecursionError) as e:
            raise ExportError(f"Cannot serialize {item.type.value} {item.id}: {e}") from e
        rendered.append(row)
    return rendered


def to_json_string(items: List[RemovalItem]) -> str:
    return json.dumps(to_json(items), indent=2, ensure_ascii=False)


def to_csv(items: List[RemovalItem]) -> str:
    """
    Render items as CSV with a header row.

    Every field is quote-wrapped and internal quotes are doubled; ``data`` is
    the JSON-stringified snapshot.

    Raises:
        ExportError: If a snapshot is not JSON serializable.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator='\n')
    writer.writerow(EXPORT_FIELDS)
    for row in to_json(items):
        writer.writerow([
            row['type'],
            row['id'],
            row['staffId'],
            row['clientId'],
            row['deletedAt'],
            json.dumps(row['data'], ensure_ascii=False),
        ])
    return buffer.getvalue()


def items_from_json(payload: Union[str, List[Dict[str, Any]]]) -> List[RemovalItem]:
    """Rebuild removal items, records included, from a JSON export."""
    try:
        rows = json.loads(payload) if isinstance(payload, str) else payload
        return [RemovalItem.from_dict(row) for row in rows]
    except (KeyError, TypeError, ValueError) as e:
        raise ExportError(f"Malformed retention export: {e}") from e


def write_export_files(items: List[RemovalItem], export_dir: Union[str, Path],
                       timestamp: Optional[str] = None,
                       formats: Tuple[str, ...] = ('json', 'csv')) -> List[Path]:
    """
    Write the JSON and/or CSV export of ``items`` to ``export_dir``.

    Both renderings are produced before anything is written, so a serialization
    failure leaves no partial files.

    Returns:
        Paths of the written files.

    Raises:
        ExportError: On serialization or file system failure.
    """
    timestamp = timestamp or datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
    renderers = {'json': to_json_string, 'csv': to_csv}

    unknown = [fmt for fmt in formats if fmt not in renderers]
    if unknown:
        raise ExportError(f"Unknown export format(s): {', '.join(unknown)}")

    contents = {fmt: renderers[fmt](items) for fmt in formats}

    written = []
    try:
        directory = Path(export_dir)
        directory.mkdir(parents=True, exist_ok=True)
        for fmt, content in contents.items():
            path = directory / f"{EXPORT_PREFIX}-{timestamp}.{fmt}"
            with open(path, 'w', encoding='utf-8', newline='') as f:
                f.write(content)
            written.append(path)
    except OSError as e:
        raise ExportError(f"Failed to write retention export to {export_dir}: {e}") from e

    logger.info(f"Exported {len(items)} removal items to {', '.join(str(p) for p in written)}")
    return written
