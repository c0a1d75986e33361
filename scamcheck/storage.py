"""Thread-safe JSON-file history store.

Keeps the most recent scans (newest first, capped at MAX_HISTORY_ITEMS)
plus running counters for total scans and scams detected. Every public
method re-reads the file under the lock.

Failures never propagate: reads degrade to empty defaults and writes
report False/None, with the error logged.
"""

import os
import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from scamcheck.models import HistoryEntry, HistoryExport, Statistics

load_dotenv()

logger = logging.getLogger(__name__)

HISTORY_FILE: str = os.getenv("HISTORY_FILE", "scan_history.json")
MAX_HISTORY_ITEMS: int = 50
EXPORT_VERSION: str = "1.0.0"

SCAN_HISTORY = "scan_history"
TOTAL_SCANS = "total_scans"
SCAMS_DETECTED = "scams_detected"


class HistoryStore:
    """Bounded scan history with statistics, persisted as one JSON document."""

    def __init__(self, path: str = HISTORY_FILE, max_items: int = MAX_HISTORY_ITEMS) -> None:
        self.path = path
        self.max_items = max_items
        self._lock = threading.Lock()

    # ==================== History ====================

    def save_to_history(self, message: str, result: dict) -> Optional[HistoryEntry]:
        """Prepend a scan, trim to max_items and bump the counters."""
        entry = HistoryEntry(
            id=uuid.uuid4().hex,
            timestamp=datetime.now(timezone.utc).isoformat(),
            message=message,
            result=result,
        )
        with self._lock:
            data = self._load()
            history = [entry.model_dump()] + data.get(SCAN_HISTORY, [])
            data[SCAN_HISTORY] = history[:self.max_items]
            data[TOTAL_SCANS] = int(data.get(TOTAL_SCANS, 0)) + 1
            if result.get("verdict") == "scam":
                data[SCAMS_DETECTED] = int(data.get(SCAMS_DETECTED, 0)) + 1
            if not self._save(data):
                return None

        logger.info(f"[{entry.id[:8]}] Saved scan verdict={result.get('verdict')}")
        return entry

    def get_scan_history(self) -> List[HistoryEntry]:
        with self._lock:
            raw = self._load().get(SCAN_HISTORY, [])
        return self._parse_entries(raw)

    def delete_history_item(self, item_id: str) -> bool:
        """Remove one entry by id. Missing ids are not an error."""
        with self._lock:
            data = self._load()
            data[SCAN_HISTORY] = [
                item for item in data.get(SCAN_HISTORY, [])
                if not (isinstance(item, dict) and item.get("id") == item_id)
            ]
            return self._save(data)

    def clear_history(self) -> bool:
        """Drop all entries. Counters are kept."""
        with self._lock:
            data = self._load()
            data.pop(SCAN_HISTORY, None)
            return self._save(data)

    # ==================== Statistics ====================

    def get_statistics(self) -> Statistics:
        with self._lock:
            data = self._load()
        history = self._parse_entries(data.get(SCAN_HISTORY, []))
        verdicts = [entry.result.get("verdict") for entry in history]
        return Statistics(
            totalScans=int(data.get(TOTAL_SCANS, 0)),
            scamsDetected=int(data.get(SCAMS_DETECTED, 0)),
            suspiciousCount=verdicts.count("suspicious"),
            safeCount=verdicts.count("likely_legitimate"),
            historyCount=len(history),
        )

    # ==================== Backup ====================

    def export_history(self) -> Optional[str]:
        """Serialize history and statistics as a pretty-printed backup."""
        try:
            document = HistoryExport(
                exportDate=datetime.now(timezone.utc).isoformat(),
                version=EXPORT_VERSION,
                statistics=self.get_statistics(),
                history=self.get_scan_history(),
            )
            return json.dumps(document.model_dump(), indent=2)
        except (TypeError, ValueError) as exc:
            logger.error(f"Failed to export history: {exc}")
            return None

    def import_history(self, json_string: str) -> Optional[int]:
        """Merge a backup into the current history.

        Imported entries win over existing ones with the same id. The
        merged list is sorted newest first and trimmed. Returns the number
        of retained entries, or None if the document is invalid.
        """
        try:
            document = HistoryExport.model_validate_json(json_string)
        except ValidationError as exc:
            logger.error(f"Invalid import data format: {exc.errors()}")
            return None

        with self._lock:
            data = self._load()
            existing = self._parse_entries(data.get(SCAN_HISTORY, []))

            seen = set()
            merged: List[HistoryEntry] = []
            for entry in document.history + existing:
                if entry.id in seen:
                    continue
                seen.add(entry.id)
                merged.append(entry)

            merged.sort(key=lambda e: _parse_timestamp(e.timestamp), reverse=True)
            merged = merged[:self.max_items]

            data[SCAN_HISTORY] = [e.model_dump() for e in merged]
            if not self._save(data):
                return None

        logger.info(f"Imported history, {len(merged)} entries retained")
        return len(merged)

    # ==================== File I/O ====================

    def _load(self) -> dict:
        """Read the store document. Called under lock."""
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError, ValueError) as exc:
            logger.error(f"Failed to read history store {self.path}: {exc}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"History store {self.path} is not a JSON object")
            return {}
        return data

    def _save(self, data: dict) -> bool:
        """Write the store document. Called under lock."""
        try:
            with open(self.path, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, default=str)
            return True
        except (OSError, TypeError, ValueError) as exc:
            logger.error(f"Failed to write history store {self.path}: {exc}")
            return False

    @staticmethod
    def _parse_entries(raw: list) -> List[HistoryEntry]:
        entries = []
        for item in raw:
            try:
                entries.append(HistoryEntry.model_validate(item))
            except ValidationError:
                logger.warning("Skipping malformed history entry")
        return entries


def _parse_timestamp(value: str) -> datetime:
    """ISO timestamp to aware datetime; unparsable values sort last."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# Module-level singleton
history_store = HistoryStore()
