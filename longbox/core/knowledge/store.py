"""Knowledge base persistence and staged editing."""

from __future__ import annotations

import json
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

import structlog
from pydantic import ValidationError

from longbox.core.utils import normalize_series_name

from .models import ComicKnowledge
from .snapshot import KnowledgeBaseSnapshot

logger = structlog.get_logger("longbox.knowledge.store")

# Bundled defaults shipped with the package
BUNDLED_KNOWLEDGE_BASE = Path(__file__).parent.parent.parent / "data" / "knowledge_base.json"


class KnowledgeBaseStore(Protocol):
    """Collaborator that persists knowledge base entries."""

    def list(self) -> list[ComicKnowledge]: ...

    def upsert(self, entry: ComicKnowledge) -> None: ...

    def remove(self, series: str) -> bool: ...


def _parse_entries(raw: Iterable[Any], source: Path) -> list[ComicKnowledge]:
    entries: list[ComicKnowledge] = []
    for item in raw:
        try:
            entries.append(ComicKnowledge.model_validate(item))
        except ValidationError as e:
            logger.warning(
                "Skipping invalid knowledge base entry",
                path=str(source),
                entry=item,
                error=str(e),
            )
    return entries


def load_bundled_entries(path: Path = BUNDLED_KNOWLEDGE_BASE) -> list[ComicKnowledge]:
    """Read the bundled default knowledge base."""
    if not path.exists():
        logger.warning("Bundled knowledge base not found", path=str(path))
        return []
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    raw = data.get("entries", []) if isinstance(data, dict) else data
    return _parse_entries(raw, path)


class InMemoryKnowledgeBaseStore:
    """Knowledge base store kept in memory (tests, ephemeral sessions)."""

    def __init__(self, entries: Iterable[ComicKnowledge] = ()) -> None:
        self._entries: dict[str, ComicKnowledge] = {}
        for entry in entries:
            self.upsert(entry)

    def list(self) -> list[ComicKnowledge]:
        return sorted(self._entries.values(), key=lambda entry: entry.series.casefold())

    def upsert(self, entry: ComicKnowledge) -> None:
        self._entries[normalize_series_name(entry.series)] = entry

    def remove(self, series: str) -> bool:
        return self._entries.pop(normalize_series_name(series), None) is not None


class JsonKnowledgeBaseStore:
    """Knowledge base stored as JSON, layered over the bundled defaults.

    The user file holds added/edited entries plus the names of removed
    defaults::

        {"entries": [...], "removed": ["batman"]}

    Writes go to a temporary file that replaces the original, so a crash
    never leaves a truncated knowledge base behind.
    """

    def __init__(
        self,
        path: Path,
        defaults_path: Path | None = BUNDLED_KNOWLEDGE_BASE,
    ) -> None:
        self.path = path
        self.defaults_path = defaults_path
        self._defaults = load_bundled_entries(defaults_path) if defaults_path else []
        self._entries: dict[str, ComicKnowledge] = {}
        self._removed: set[str] = set()
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to read knowledge base", path=str(self.path), error=str(e))
            raise

        if isinstance(data, list):
            data = {"entries": data}
        for entry in _parse_entries(data.get("entries", []), self.path):
            self._entries[normalize_series_name(entry.series)] = entry
        self._removed = {normalize_series_name(name) for name in data.get("removed", [])}
        logger.debug(
            "Knowledge base loaded",
            path=str(self.path),
            entries=len(self._entries),
            removed=len(self._removed),
        )

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "entries": [
                entry.model_dump(mode="json", exclude_none=True)
                for entry in sorted(self._entries.values(), key=lambda e: e.series.casefold())
            ],
            "removed": sorted(self._removed),
        }
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.path)

    def list(self) -> list[ComicKnowledge]:
        merged: dict[str, ComicKnowledge] = {}
        for entry in self._defaults:
            key = normalize_series_name(entry.series)
            if key not in self._removed:
                merged[key] = entry
        merged.update(self._entries)
        return sorted(merged.values(), key=lambda entry: entry.series.casefold())

    def upsert(self, entry: ComicKnowledge) -> None:
        key = normalize_series_name(entry.series)
        self._entries[key] = entry
        self._removed.discard(key)
        self._save()
        logger.info("Knowledge base entry saved", series=entry.series)

    def remove(self, series: str) -> bool:
        key = normalize_series_name(series)
        existed = key in self._entries or any(
            normalize_series_name(entry.series) == key for entry in self._defaults
        )
        if not existed or key in self._removed:
            return False
        self._entries.pop(key, None)
        if any(normalize_series_name(entry.series) == key for entry in self._defaults):
            self._removed.add(key)
        self._save()
        logger.info("Knowledge base entry removed", series=series)
        return True


class KnowledgeBase:
    """Staged editor over a store that hands out immutable snapshots.

    Edits are staged and only become visible to matching when ``commit()``
    applies them all at once and builds the next snapshot. The engine commits
    between processing runs, so a file is never matched against a knowledge
    base that is half way through a change.
    """

    def __init__(self, store: KnowledgeBaseStore) -> None:
        self.store = store
        self._snapshot = KnowledgeBaseSnapshot.build(store.list(), version=0)
        self._staged: list[tuple[str, ComicKnowledge | str]] = []

    @property
    def snapshot(self) -> KnowledgeBaseSnapshot:
        return self._snapshot

    @property
    def pending_changes(self) -> int:
        return len(self._staged)

    def stage_upsert(self, entry: ComicKnowledge) -> None:
        self._staged.append(("upsert", entry))

    def stage_remove(self, series: str) -> None:
        self._staged.append(("remove", series))

    def discard(self) -> None:
        self._staged.clear()

    def commit(self) -> KnowledgeBaseSnapshot:
        """Apply staged edits to the store and rebuild the snapshot.

        Edits are applied in order. If the store fails, the failed edit and
        the ones after it stay staged, the error propagates, and the snapshot
        still reflects everything the store now holds.

        Returns:
            The new snapshot (the current one when nothing was staged)
        """
        if not self._staged:
            return self._snapshot

        applied = 0
        try:
            while self._staged:
                action, payload = self._staged[0]
                if action == "upsert":
                    self.store.upsert(payload)  # type: ignore[arg-type]
                else:
                    self.store.remove(payload)  # type: ignore[arg-type]
                self._staged.pop(0)
                applied += 1
        finally:
            self._snapshot = KnowledgeBaseSnapshot.build(
                self.store.list(), version=self._snapshot.version + 1
            )
            logger.info(
                "Knowledge base committed",
                changes=applied,
                still_staged=len(self._staged),
                entries=len(self._snapshot),
                version=self._snapshot.version,
            )
        return self._snapshot
