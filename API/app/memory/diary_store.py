from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock

from app.core.logging import DOMAIN_DIARY, get_domain_logger
from app.core.settings import settings
from app.schemas.diary import DiaryEntry

DIARY_KEY = "homework_diary"
logger = get_domain_logger(__name__, DOMAIN_DIARY)


class DiaryRepository(ABC):
    @abstractmethod
    def append(self, entry: DiaryEntry) -> None:
        raise NotImplementedError

    @abstractmethod
    def list(self) -> list[DiaryEntry]:
        """Entries in the order they were saved."""
        raise NotImplementedError


class InMemoryDiaryRepository(DiaryRepository):
    def __init__(self):
        self._entries: list[dict] = []

    def append(self, entry: DiaryEntry) -> None:
        self._entries.append(entry.model_dump(mode="json"))

    def list(self) -> list[DiaryEntry]:
        return [DiaryEntry.model_validate(item) for item in self._entries]


class JsonFileDiaryRepository(DiaryRepository):
    """Client-local key/value file; the diary lives under ``DIARY_KEY`` as a JSON list."""

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path or settings.diary_file)
        self._lock = Lock()

    def _read_store(self) -> dict:
        if not self.path.exists():
            return {}
        raw = self.path.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        data = json.loads(raw)
        return data if isinstance(data, dict) else {}

    def _write_store(self, store: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(store, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    def append(self, entry: DiaryEntry) -> None:
        with self._lock:
            store = self._read_store()
            entries = store.get(DIARY_KEY) or []
            entries.append(entry.model_dump(mode="json"))
            store[DIARY_KEY] = entries
            self._write_store(store)
        logger.info("Diary entry saved | subject=%s total=%d", entry.subject.value, len(entries))

    def list(self) -> list[DiaryEntry]:
        with self._lock:
            entries = self._read_store().get(DIARY_KEY) or []
        return [DiaryEntry.model_validate(item) for item in entries]
