"""
JSONL audit trail for kcollection.

Every entry is one JSON object per line:

    {"ts": "...", "session_id": "...", "category": "collection",
     "action": "merge", "collection": "<euid>", "details": {...}}

``collection`` is present when the entry concerns a single collection.
Entries older than the retention period are dropped when a logger opens
the file.
"""

import json
import traceback
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional


class AuditLogger:
    """Append-only audit trail of collection operations.

    Usage:
        audit = AuditLogger(Path("audit.jsonl"))
        store = Store(audit=audit)
        ...
        audit.get_entries(category="fetch", action="fail")
    """

    CATEGORIES = {
        "collection": ["add", "remove", "merge", "filter", "destroy"],
        "fetch": ["start", "success", "fail"],
        "error": ["exception", "listener"],
    }

    def __init__(
        self,
        log_path: Path,
        retention_days: int = 30,
        session_id: Optional[str] = None,
    ):
        """
        Initialize audit logger.

        Args:
            log_path: Path to audit log file
            retention_days: Days to retain entries (0 = forever)
            session_id: Current session ID (auto-generated if None)
        """
        self.log_path = Path(log_path)
        self.retention_days = retention_days
        self.session_id = session_id or datetime.now().strftime("%Y%m%d-%H%M%S")

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        if retention_days > 0:
            self.prune()

    def log(
        self,
        category: str,
        action: str,
        details: Optional[Dict[str, Any]] = None,
        collection: Optional[str] = None,
        duration_ms: Optional[int] = None,
    ) -> None:
        """
        Append an entry.

        Args:
            category: One of CATEGORIES (collection, fetch, error)
            action: Action within category
            details: Extra JSON-serializable data
            collection: euid of the collection concerned
            duration_ms: Optional duration in milliseconds
        """
        entry = self._entry(category, action, collection)
        if details:
            entry["details"] = details
        if duration_ms is not None:
            entry["duration_ms"] = duration_ms
        self._append(entry)

    def log_error(
        self,
        error: BaseException,
        collection: Optional[str] = None,
        **context: Any,
    ) -> None:
        """Append an ``error/exception`` entry with the exception's traceback."""
        entry = self._entry("error", "exception", collection)
        entry["details"] = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            "traceback": "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
            **context,
        }
        self._append(entry)

    def get_entries(
        self,
        category: Optional[str] = None,
        action: Optional[str] = None,
        collection: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 1000,
    ) -> List[Dict[str, Any]]:
        """
        Read matching entries, newest first.

        Args:
            category: Only this category
            action: Only this action
            collection: Only entries of the collection with this euid
            since: Only entries at or after this time
            limit: Maximum entries to return
        """
        since_str = since.isoformat() if since else None
        matched = [
            entry
            for entry in self._read()
            if (not category or entry.get("category") == category)
            and (not action or entry.get("action") == action)
            and (not collection or entry.get("collection") == collection)
            and (not since_str or entry.get("ts", "") >= since_str)
        ]
        return list(reversed(matched[-limit:]))

    def get_session_stats(self) -> Dict[str, Any]:
        """Counts of this session's entries per category and per ``category.action``."""
        by_category: Dict[str, int] = {}
        by_action: Dict[str, int] = {}
        total = 0
        for entry in self._read():
            if entry.get("session_id") != self.session_id:
                continue
            total += 1
            category = entry.get("category", "unknown")
            key = f"{category}.{entry.get('action', 'unknown')}"
            by_category[category] = by_category.get(category, 0) + 1
            by_action[key] = by_action.get(key, 0) + 1

        return {
            "session_id": self.session_id,
            "total_entries": total,
            "by_category": by_category,
            "by_action": by_action,
            "errors": by_category.get("error", 0),
        }

    def prune(self) -> int:
        """
        Drop entries older than the retention period.

        Lines that are not valid JSON are kept as they are.

        Returns:
            Number of entries removed
        """
        if self.retention_days <= 0 or not self.log_path.exists():
            return 0

        cutoff = (datetime.now() - timedelta(days=self.retention_days)).isoformat()
        kept: List[str] = []
        removed = 0
        with open(self.log_path) as f:
            for line in f:
                try:
                    expired = json.loads(line).get("ts", "") < cutoff
                except json.JSONDecodeError:
                    expired = False
                if expired:
                    removed += 1
                else:
                    kept.append(line)

        if removed:
            with open(self.log_path, "w") as f:
                f.writelines(kept)
        return removed

    def _entry(self, category: str, action: str, collection: Optional[str]) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "ts": datetime.now().isoformat(),
            "session_id": self.session_id,
            "category": category,
            "action": action,
        }
        if collection:
            entry["collection"] = collection
        return entry

    def _append(self, entry: Dict[str, Any]) -> None:
        with open(self.log_path, "a") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    def _read(self) -> Iterator[Dict[str, Any]]:
        if not self.log_path.exists():
            return
        with open(self.log_path) as f:
            for line in f:
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:
                    continue


def init_audit_logger(
    log_dir: Path,
    retention_days: int = 30,
    session_id: Optional[str] = None,
) -> AuditLogger:
    """
    Create an audit logger writing to ``log_dir/audit_YYYYMMDD.jsonl``.

    Args:
        log_dir: Directory for audit logs
        retention_days: Days to retain entries
        session_id: Current session ID
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    return AuditLogger(log_dir / f"audit_{datetime.now().strftime('%Y%m%d')}.jsonl", retention_days, session_id)
