"""Tests for knowledge base persistence and staged commits."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from longbox.core.knowledge import (
    ComicKnowledge,
    InMemoryKnowledgeBaseStore,
    JsonKnowledgeBaseStore,
    KnowledgeBase,
    KnowledgeVolume,
)
from longbox.core.knowledge.store import BUNDLED_KNOWLEDGE_BASE, load_bundled_entries


@pytest.fixture
def defaults_file(tmp_path: Path) -> Path:
    path = tmp_path / "defaults.json"
    path.write_text(
        json.dumps(
            {
                "entries": [
                    {"series": "Saga", "publisher": "Image Comics", "volumes": [{"volume": 1}]},
                    {"series": "Batman", "publisher": "DC Comics"},
                    {"series": "   "},
                ]
            }
        ),
        encoding="utf-8",
    )
    return path


def test_bundled_knowledge_base_loads() -> None:
    entries = load_bundled_entries(BUNDLED_KNOWLEDGE_BASE)

    assert entries
    assert any(entry.series == "Saga" for entry in entries)


def test_invalid_entries_are_skipped(defaults_file: Path, tmp_path: Path) -> None:
    store = JsonKnowledgeBaseStore(tmp_path / "kb.json", defaults_path=defaults_file)

    assert [entry.series for entry in store.list()] == ["Batman", "Saga"]
    saga = store.list()[1]
    # Numeric volumes are coerced to strings
    assert saga.volumes == (KnowledgeVolume(volume="1"),)


def test_json_store_persists_upserts(defaults_file: Path, tmp_path: Path) -> None:
    path = tmp_path / "kb.json"
    store = JsonKnowledgeBaseStore(path, defaults_path=defaults_file)

    store.upsert(ComicKnowledge(series="Monstress", publisher="Image Comics"))

    assert path.exists()
    reloaded = JsonKnowledgeBaseStore(path, defaults_path=defaults_file)
    assert [entry.series for entry in reloaded.list()] == ["Batman", "Monstress", "Saga"]


def test_json_store_overrides_default(defaults_file: Path, tmp_path: Path) -> None:
    store = JsonKnowledgeBaseStore(tmp_path / "kb.json", defaults_path=defaults_file)

    store.upsert(ComicKnowledge(series="batman", publisher="DC", aliases=("The Batman",)))

    batman = [entry for entry in store.list() if entry.series.casefold() == "batman"]
    assert len(batman) == 1
    assert batman[0].aliases == ("The Batman",)


def test_json_store_removes_default(defaults_file: Path, tmp_path: Path) -> None:
    path = tmp_path / "kb.json"
    store = JsonKnowledgeBaseStore(path, defaults_path=defaults_file)

    assert store.remove("Batman") is True
    assert store.remove("Batman") is False
    assert store.remove("Unknown Series") is False

    reloaded = JsonKnowledgeBaseStore(path, defaults_path=defaults_file)
    assert [entry.series for entry in reloaded.list()] == ["Saga"]
    assert json.loads(path.read_text(encoding="utf-8"))["removed"] == ["batman"]


def test_json_store_readd_removed_default(defaults_file: Path, tmp_path: Path) -> None:
    store = JsonKnowledgeBaseStore(tmp_path / "kb.json", defaults_path=defaults_file)
    store.remove("Batman")

    store.upsert(ComicKnowledge(series="Batman", publisher="DC Comics"))

    assert "Batman" in [entry.series for entry in store.list()]


def test_json_store_rejects_corrupt_file(defaults_file: Path, tmp_path: Path) -> None:
    path = tmp_path / "kb.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(json.JSONDecodeError):
        JsonKnowledgeBaseStore(path, defaults_path=defaults_file)


def test_staged_edits_are_invisible_until_commit(knowledge: KnowledgeBase) -> None:
    before = knowledge.snapshot
    knowledge.stage_upsert(ComicKnowledge(series="Monstress", publisher="Image Comics"))
    knowledge.stage_remove("Saga")

    assert knowledge.pending_changes == 2
    assert knowledge.snapshot is before
    assert knowledge.snapshot.get("Monstress") is None

    after = knowledge.commit()

    assert knowledge.pending_changes == 0
    assert after.version == before.version + 1
    assert after.get("Monstress") is not None
    assert after.get("Saga") is None
    # The old snapshot is untouched
    assert before.get("Saga") is not None


def test_commit_without_changes_keeps_snapshot(knowledge: KnowledgeBase) -> None:
    before = knowledge.snapshot

    assert knowledge.commit() is before
    assert before.version == 0


def test_discard_drops_staged_edits(knowledge: KnowledgeBase) -> None:
    knowledge.stage_remove("Saga")
    knowledge.discard()

    assert knowledge.pending_changes == 0
    assert knowledge.commit().get("Saga") is not None


class FlakyStore(InMemoryKnowledgeBaseStore):
    """Fails to save one series until told otherwise."""

    def __init__(self) -> None:
        super().__init__()
        self.failing = "Broken"

    def upsert(self, entry: ComicKnowledge) -> None:
        if entry.series == self.failing:
            raise OSError("No space left on device")
        super().upsert(entry)


def test_failed_commit_keeps_unapplied_edits() -> None:
    store = FlakyStore()
    knowledge = KnowledgeBase(store)
    knowledge.stage_upsert(ComicKnowledge(series="Monstress"))
    knowledge.stage_upsert(ComicKnowledge(series="Broken"))
    knowledge.stage_upsert(ComicKnowledge(series="Paper Girls"))

    with pytest.raises(OSError):
        knowledge.commit()

    assert knowledge.snapshot.version == 1
    assert knowledge.snapshot.get("Monstress") is not None
    assert knowledge.snapshot.get("Paper Girls") is None
    assert knowledge.pending_changes == 2

    store.failing = ""
    snapshot = knowledge.commit()

    assert knowledge.pending_changes == 0
    assert snapshot.get("Broken") is not None
    assert snapshot.get("Paper Girls") is not None


def test_snapshot_lookup_prefers_canonical_names() -> None:
    store = InMemoryKnowledgeBaseStore(
        [
            ComicKnowledge(series="X-Men", aliases=("Uncanny X-Men",)),
            ComicKnowledge(series="Uncanny X-Men"),
        ]
    )
    snapshot = KnowledgeBase(store).snapshot

    entry, via_alias = snapshot.lookup("uncanny x men")  # type: ignore[misc]
    assert entry.series == "Uncanny X-Men"
    assert via_alias is False
    assert snapshot.get("Uncanny X-Men") is not None
