"""Tests for the local GCD reference database service."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest
from sqlmodel import Session, SQLModel, create_engine

from longbox.core.engine import IdentificationEngine
from longbox.core.enrichment import GcdDatabaseService, ReferenceEnrichment
from longbox.core.enrichment.gcd import GcdIssue, GcdPublisher, GcdSeries, GcdStory, split_credits
from longbox.core.knowledge import KnowledgeMatch, MatchKind
from longbox.core.models import ConfidenceLevel, Creator, FileStatus
from longbox.core.parser import parse_filename


@pytest.fixture
def gcd_path(tmp_path: Path) -> Path:
    path = tmp_path / "gcd.sqlite"
    engine = create_engine(f"sqlite:///{path}")
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        session.add(GcdPublisher(id=1, name="Image"))
        session.add(GcdSeries(id=10, name="Saga", year_began=2012, publisher_id=1))
        session.add(GcdSeries(id=11, name="Saga of the Swamp Thing", year_began=1982))
        session.add(GcdSeries(id=12, name="Monstress", year_began=2015, publisher_id=1))
        session.add(GcdSeries(id=13, name="100% Heart", year_began=2003))
        session.add(
            GcdIssue(id=100, series_id=10, number="1", publication_date="March 2012")
        )
        session.add(GcdIssue(id=120, series_id=12, number="5", key_date="2016-04-00"))
        session.add(
            GcdStory(
                id=1000,
                issue_id=100,
                sequence_number=0,
                title="Chapter One",
                synopsis="Alana and Marko flee with their newborn daughter.",
                script="Brian K. Vaughan",
                pencils="Fiona Staples [signed]",
                inks="Fiona Staples",
            )
        )
        session.add(
            GcdStory(
                id=1001,
                issue_id=100,
                sequence_number=1,
                script="Brian K. Vaughan",
                letters="Fonografiks; ?",
            )
        )
        session.commit()
    engine.dispose()
    return path


@pytest.fixture
async def gcd(gcd_path: Path) -> AsyncIterator[GcdDatabaseService]:
    service = GcdDatabaseService()
    assert await service.connect(gcd_path) is True
    yield service
    await service.disconnect()


def test_split_credits() -> None:
    assert split_credits("Brian K. Vaughan; Fiona Staples [signed]") == [
        "Brian K. Vaughan",
        "Fiona Staples",
    ]
    assert split_credits("?; none; Jack Kirby (painted)") == ["Jack Kirby"]
    assert split_credits(None) == []


async def test_connect_missing_file(tmp_path: Path) -> None:
    service = GcdDatabaseService()

    assert await service.connect(tmp_path / "missing.sqlite") is False
    assert service.is_connected is False


async def test_connect_rejects_unrelated_database(tmp_path: Path) -> None:
    path = tmp_path / "other.sqlite"
    path.touch()
    service = GcdDatabaseService()

    assert await service.connect(path) is False
    assert service.is_connected is False


async def test_disconnected_queries_return_nothing() -> None:
    service = GcdDatabaseService()

    assert await service.search_series("Saga") == []
    assert await service.get_issue_details(10, "1") is None
    assert await service.get_issue_creators(100) == []


async def test_search_series_exact_first(gcd: GcdDatabaseService) -> None:
    results = await gcd.search_series("saga")

    assert [result.name for result in results] == ["Saga", "Saga of the Swamp Thing"]
    assert results[0].publisher == "Image"
    assert results[0].year_began == 2012
    assert results[1].publisher is None


async def test_search_series_treats_wildcards_literally(gcd: GcdDatabaseService) -> None:
    assert [result.name for result in await gcd.search_series("%")] == ["100% Heart"]
    assert await gcd.search_series("_aga") == []


async def test_get_issue_details_matches_padded_number(gcd: GcdDatabaseService) -> None:
    details = await gcd.get_issue_details(10, "001")

    assert details is not None
    assert details.id == 100
    assert details.title == "Chapter One"
    assert details.publication_date == "March 2012"
    assert details.synopsis == "Alana and Marko flee with their newborn daughter."
    assert await gcd.get_issue_details(10, "2") is None


async def test_get_issue_creators(gcd: GcdDatabaseService) -> None:
    creators = await gcd.get_issue_creators(100)

    assert creators == [
        Creator(name="Brian K. Vaughan", role="writer"),
        Creator(name="Fiona Staples", role="penciller"),
        Creator(name="Fiona Staples", role="inker"),
        Creator(name="Fonografiks", role="letterer"),
    ]


async def test_enrichment_from_reference_database(gcd: GcdDatabaseService) -> None:
    enrichment = ReferenceEnrichment(local=gcd)

    record = await enrichment.enrich(
        parse_filename("Saga #1.cbz"), KnowledgeMatch(MatchKind.UNRESOLVED)
    )

    assert enrichment.available_sources == ["gcd"]
    assert record.consulted == ["gcd"]
    assert record.series == "Saga"
    assert record.series_source == "gcd"
    assert record.publisher == "Image"
    assert record.year == 2012
    assert record.volume == "2012"
    assert record.title == "Chapter One"
    assert len(record.creators) == 4
    assert set(record.supplied_fields) >= {"series", "publisher", "year", "volume"}


async def test_engine_reports_reference_source(
    gcd: GcdDatabaseService,
    make_engine: Callable[..., IdentificationEngine],
    make_comic_file: Callable[..., Path],
) -> None:
    engine = make_engine(enrichment=ReferenceEnrichment(local=gcd))
    file = engine.queue.add_path(make_comic_file("Monstress #5 (2016).cbz"))

    await engine.identify(file)

    assert file.series == "Monstress"
    assert file.source == "reference"
    assert file.publisher == "Image"
    assert file.volume == "2015"
    assert file.confidence is ConfidenceLevel.LOW
    assert file.status is FileStatus.WARNING
