"""Bounded, persisted history of assembled reports.

History is stored as a single JSON document under a fixed namespace key::

    {"relationScopeHistory": [<newest report>, ..., <oldest report>]}

The store is loaded once at construction and rewritten atomically after each
mutation. A failed write raises ``HistoryWriteError`` and leaves the
in-memory list as it was. Missing or unreadable history never blocks
startup: a corrupt file is logged and treated as empty.

Example:
    >>> store = HistoryStore(Path("~/.relationscope/history.json"))
    >>> store.append(report)
    >>> [r.meta.id for r in store.list()]
    ['rs-1718000000000']
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterator

from pydantic import TypeAdapter, ValidationError

from relationscope.core.errors import HistoryWriteError
from relationscope.core.models import AnalysisReport

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10
DEFAULT_NAMESPACE = "relationScopeHistory"

_REPORT_LIST = TypeAdapter(list[AnalysisReport])


class HistoryStore:
    """Newest-first list of at most ``capacity`` reports, backed by a JSON file.

    Mutation is single-threaded; there is no cross-process locking.

    Attributes:
        path: Location of the backing JSON file.
        capacity: Maximum number of retained reports.
        namespace: Top-level key holding the report array.
    """

    def __init__(
        self,
        path: Path | str,
        capacity: int = DEFAULT_CAPACITY,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"History capacity must be at least 1, got {capacity}")

        self.path = Path(path).expanduser()
        self.capacity = capacity
        self.namespace = namespace
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._entries: list[AnalysisReport] = self._load()

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load(self) -> list[AnalysisReport]:
        if not self.path.exists():
            self._logger.debug(f"No history file at {self.path}, starting empty")
            return []

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            self._logger.warning(f"History file unreadable, starting empty: {type(e).__name__}")
            return []

        if not isinstance(data, dict):
            self._logger.warning("History file has unexpected structure, starting empty")
            return []

        raw_entries = data.get(self.namespace)
        if raw_entries is None:
            return []

        try:
            entries = _REPORT_LIST.validate_python(raw_entries)
        except ValidationError as e:
            self._logger.warning(
                f"History entries failed validation ({e.error_count()} error(s)), starting empty"
            )
            return []

        if len(entries) > self.capacity:
            self._logger.info(f"Trimming loaded history from {len(entries)} to {self.capacity}")
            entries = entries[: self.capacity]

        self._logger.debug(f"Loaded {len(entries)} report(s) from history")
        return entries

    def _save(self, entries: list[AnalysisReport]) -> None:
        """Write ``entries`` atomically (temp file + rename).

        Raises:
            HistoryWriteError: If the file cannot be written. The previous
                file, if any, is left untouched.
        """
        document = {self.namespace: [entry.to_json_dict() for entry in entries]}

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=self.path.parent,
                suffix=".tmp",
                prefix=".history_",
            )
        except OSError as e:
            raise HistoryWriteError(self.path, original_error=e) from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            Path(temp_path).replace(self.path)
        except OSError as e:
            Path(temp_path).unlink(missing_ok=True)
            raise HistoryWriteError(self.path, original_error=e) from e
        except BaseException:
            Path(temp_path).unlink(missing_ok=True)
            raise

    # =========================================================================
    # Public API
    # =========================================================================

    def append(self, report: AnalysisReport) -> None:
        """Prepend ``report`` and evict anything beyond capacity.

        The in-memory list only changes once the new history is on disk.
        """
        evicted = self._entries[self.capacity - 1 :]
        entries = [report, *self._entries[: self.capacity - 1]]
        self._save(entries)
        self._entries = entries

        if evicted:
            self._logger.debug(
                f"Evicted {len(evicted)} old report(s): {', '.join(r.meta.id for r in evicted)}"
            )
        self._logger.info(f"Saved report {report.meta.id} to history ({len(self)}/{self.capacity})")

    def list(self) -> list[AnalysisReport]:
        """Return reports newest first. The returned list is a copy."""
        return list(self._entries)

    def get(self, report_id: str) -> AnalysisReport | None:
        for entry in self._entries:
            if entry.meta.id == report_id:
                return entry
        return None

    def clear(self) -> None:
        self._save([])
        self._entries = []
        self._logger.info("History cleared")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, report_id: object) -> bool:
        return isinstance(report_id, str) and self.get(report_id) is not None

    def __iter__(self) -> Iterator[AnalysisReport]:
        return iter(list(self._entries))
