"""
JsonEnrollmentStore: enrolled speaker profiles in one JSON file.

File format is the array the clusterer imports and exports:
    [{"id": str, "name": str, "centroid": [float, ...], "colorIndex": int}, ...]
The whole file is rewritten on every change (small, single-writer).
"""
from __future__ import annotations

import json
import logging
import os
import uuid
from typing import Any, Sequence

from speakerstream.config import get_settings

logger = logging.getLogger(__name__)


class EnrollmentLimitError(Exception):
    """ENROLLMENT_MAX_SPEAKERS reached."""


class JsonEnrollmentStore:
    def __init__(self, path: str | None = None, max_speakers: int | None = None) -> None:
        settings = get_settings()
        self._path = path or settings.ENROLLMENT_STORE_PATH
        self._max_speakers = max_speakers or settings.ENROLLMENT_MAX_SPEAKERS

    @property
    def path(self) -> str:
        return self._path

    def list(self) -> list[dict[str, Any]]:
        """All enrollments; an unreadable or missing file gives an empty list."""
        if not os.path.exists(self._path):
            return []
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not load enrollments file %s: %s", self._path, e)
            return []
        if not isinstance(data, list):
            logger.warning("Enrollments file %s is not a list, ignoring", self._path)
            return []
        return [e for e in data if isinstance(e, dict)]

    def add(self, name: str, centroid: Sequence[float]) -> dict[str, Any]:
        """Store a new enrollment with a fresh id and the next free color index."""
        entries = self.list()
        if len(entries) >= self._max_speakers:
            raise EnrollmentLimitError(f"at most {self._max_speakers} enrolled speakers")
        used_colors = {e.get("colorIndex") for e in entries}
        color_index = next(i for i in range(len(entries) + 1) if i not in used_colors)
        entry = {
            "id": uuid.uuid4().hex,
            "name": name,
            "centroid": [float(v) for v in centroid],
            "colorIndex": color_index,
        }
        entries.append(entry)
        self._save(entries)
        logger.info("Enrollment saved: %s (%s)", name, entry["id"])
        return entry

    def remove(self, enrollment_id: str) -> bool:
        entries = self.list()
        kept = [e for e in entries if e.get("id") != enrollment_id]
        if len(kept) == len(entries):
            return False
        self._save(kept)
        return True

    def clear(self) -> None:
        self._save([])

    def _save(self, entries: list[dict[str, Any]]) -> None:
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(entries, f, ensure_ascii=False, indent=2)
