"""Shared fixtures for unit and integration tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from longbox.core.activity import ActionLog
from longbox.core.engine import IdentificationEngine
from longbox.core.enrichment import ReferenceEnrichment
from longbox.core.knowledge import (
    ComicKnowledge,
    InMemoryKnowledgeBaseStore,
    KnowledgeBase,
    KnowledgeVolume,
)
from longbox.core.processing import NamingSettings, Organizer
from longbox.core.queue import FileQueue

SAGA = ComicKnowledge(
    series="Saga",
    publisher="Image Comics",
    start_year=2012,
    volumes=(KnowledgeVolume(volume="1", year=2012),),
)
BATMAN = ComicKnowledge(
    series="Batman",
    publisher="DC Comics",
    aliases=("The Batman",),
    start_year=1940,
    volumes=(
        KnowledgeVolume(volume="1", year=1940),
        KnowledgeVolume(volume="2", year=2011),
        KnowledgeVolume(volume="3", year=2016),
    ),
)
SPIDER_MAN = ComicKnowledge(
    series="The Amazing Spider-Man",
    publisher="Marvel Comics",
    aliases=("Amazing Spider-Man", "ASM"),
    start_year=1963,
    volumes=(
        KnowledgeVolume(volume="1", year=1963),
        KnowledgeVolume(volume="2", year=1999),
    ),
)


@pytest.fixture
def knowledge_entries() -> list[ComicKnowledge]:
    return [SAGA, BATMAN, SPIDER_MAN]


@pytest.fixture
def knowledge(knowledge_entries: list[ComicKnowledge]) -> KnowledgeBase:
    return KnowledgeBase(InMemoryKnowledgeBaseStore(knowledge_entries))


@pytest.fixture
def library_root(tmp_path: Path) -> Path:
    root = tmp_path / "library"
    root.mkdir()
    return root


@pytest.fixture
def incoming(tmp_path: Path) -> Path:
    folder = tmp_path / "incoming"
    folder.mkdir()
    return folder


@pytest.fixture
def make_comic_file(incoming: Path) -> Callable[[str], Path]:
    """Create a small fake comic archive in the incoming folder."""

    def _make(name: str, content: bytes = b"PK\x03\x04fake-archive") -> Path:
        path = incoming / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    return _make


@pytest.fixture
def make_engine(
    knowledge: KnowledgeBase,
    library_root: Path,
) -> Callable[..., IdentificationEngine]:
    """Build an engine over the test knowledge base; collaborators can be swapped."""

    def _make(
        enrichment: ReferenceEnrichment | None = None,
        organizer: Organizer | None = None,
        concurrency_limit: int = 3,
        keep_original_files: bool = True,
    ) -> IdentificationEngine:
        return IdentificationEngine(
            knowledge=knowledge,
            enrichment=enrichment or ReferenceEnrichment(),
            organizer=organizer or Organizer(library_root),
            action_log=ActionLog(),
            naming=NamingSettings(keep_original_files=keep_original_files),
            concurrency_limit=concurrency_limit,
            queue=FileQueue(),
        )

    return _make

