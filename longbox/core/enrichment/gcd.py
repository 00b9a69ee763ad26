"""Local reference database: read-only access to a Grand Comics Database SQLite dump.

Only the tables and columns used for enrichment are mapped. Credits are read
from the per-story text columns (script, pencils, ...) that GCD dumps carry.
"""

from __future__ import annotations

import re
from pathlib import Path

import structlog
from pydantic import BaseModel
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import Field, SQLModel, col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from longbox.core.errors import LookupFailure
from longbox.core.models import Creator
from longbox.core.utils import issue_numbers_match

logger = structlog.get_logger("longbox.enrichment.gcd")

SOURCE = "gcd"

# Story credit column -> creator role
CREDIT_ROLES: dict[str, str] = {
    "script": "writer",
    "pencils": "penciller",
    "inks": "inker",
    "colors": "colorist",
    "letters": "letterer",
    "editing": "editor",
}

# Credits GCD uses for unknown or absent creators
IGNORED_CREDITS = {"", "?", "none", "various", "uncredited", "unknown"}


class GcdPublisher(SQLModel, table=True):
    __tablename__ = "gcd_publisher"  # type: ignore[assignment]

    id: int = Field(primary_key=True)
    name: str


class GcdSeries(SQLModel, table=True):
    __tablename__ = "gcd_series"  # type: ignore[assignment]

    id: int = Field(primary_key=True)
    name: str = Field(index=True)
    year_began: int | None = None
    publisher_id: int | None = Field(default=None, foreign_key="gcd_publisher.id")


class GcdIssue(SQLModel, table=True):
    __tablename__ = "gcd_issue"  # type: ignore[assignment]

    id: int = Field(primary_key=True)
    series_id: int = Field(foreign_key="gcd_series.id", index=True)
    number: str
    title: str | None = None
    publication_date: str | None = None
    key_date: str | None = None


class GcdStory(SQLModel, table=True):
    __tablename__ = "gcd_story"  # type: ignore[assignment]

    id: int = Field(primary_key=True)
    issue_id: int = Field(foreign_key="gcd_issue.id", index=True)
    sequence_number: int = 0
    title: str | None = None
    synopsis: str | None = None
    genre: str | None = None
    characters: str | None = None
    script: str | None = None
    pencils: str | None = None
    inks: str | None = None
    colors: str | None = None
    letters: str | None = None
    editing: str | None = None


class GcdSeriesResult(BaseModel):
    """A series found in the reference database."""

    id: int
    name: str
    publisher: str | None = None
    year_began: int | None = None


class GcdIssueDetails(BaseModel):
    """Details of one issue, assembled from the issue row and its stories."""

    id: int
    number: str
    title: str | None = None
    publication_date: str | None = None
    synopsis: str | None = None
    genre: str | None = None
    characters: str | None = None


def split_credits(value: str | None) -> list[str]:
    """Split a GCD credit field ("Brian K. Vaughan; Fiona Staples [signed]") into names."""
    if not value:
        return []
    names: list[str] = []
    for part in value.split(";"):
        # Drop GCD annotations such as "[signed]" or "(painted)"
        name = part.split("[")[0].split("(")[0].strip().rstrip("?").strip()
        if name.lower() not in IGNORED_CREDITS and name not in names:
            names.append(name)
    return names


class GcdDatabaseService:
    """Async, read-only client for a GCD SQLite dump.

    Queries return empty results while disconnected; database errors are
    raised as LookupFailure so callers can degrade to "no enrichment".
    """

    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None
        self.database_path: Path | None = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    async def connect(self, path: Path | str) -> bool:
        """Open the database at ``path``.

        Returns:
            True when the file exists and holds the expected tables
        """
        await self.disconnect()
        database_path = Path(path)
        if not database_path.is_file():
            logger.warning("GCD database not found", path=str(database_path))
            return False

        engine = create_async_engine(f"sqlite+aiosqlite:///{database_path}")
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1 FROM gcd_series LIMIT 1"))
        except SQLAlchemyError as e:
            logger.error("Failed to connect to GCD database", path=str(database_path), error=str(e))
            await engine.dispose()
            return False

        self._engine = engine
        self.database_path = database_path
        logger.info("Connected to GCD database", path=str(database_path))
        return True

    async def disconnect(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        logger.info("Disconnected from GCD database", path=str(self.database_path))
        self._engine = None
        self.database_path = None

    def _session(self) -> AsyncSession:
        return AsyncSession(self._engine, expire_on_commit=False)

    async def search_series(self, name: str, limit: int = 20) -> list[GcdSeriesResult]:
        """Series whose name contains ``name``, exact name matches first.

        Args:
            name: Series name to search for
            limit: Maximum number of results

        Returns:
            List of GcdSeriesResult
        """
        if self._engine is None or not name.strip():
            return []

        needle = name.strip().lower()
        pattern = "%" + re.sub(r"([\\%_])", r"\\\1", needle) + "%"
        statement = (
            select(GcdSeries, GcdPublisher.name)
            .join(GcdPublisher, isouter=True)
            .where(func.lower(GcdSeries.name).like(pattern, escape="\\"))
            .order_by(
                (func.lower(GcdSeries.name) == needle).desc(),
                func.length(GcdSeries.name),
                col(GcdSeries.year_began),
            )
            .limit(limit)
        )
        try:
            async with self._session() as session:
                rows = (await session.exec(statement)).all()
        except SQLAlchemyError as e:
            raise LookupFailure(SOURCE, str(e)) from e

        results = [
            GcdSeriesResult(
                id=series.id,
                name=series.name,
                publisher=publisher_name,
                year_began=series.year_began,
            )
            for series, publisher_name in rows
        ]
        logger.debug("GCD series search", query=name, results=len(results))
        return results

    async def get_issue_details(self, series_id: int, issue_number: str) -> GcdIssueDetails | None:
        """Details of the issue numbered ``issue_number`` ("001" matches "1") in a series."""
        if self._engine is None:
            return None

        try:
            async with self._session() as session:
                issues = (
                    await session.exec(
                        select(GcdIssue)
                        .where(GcdIssue.series_id == series_id)
                        .order_by(col(GcdIssue.id))
                    )
                ).all()
                issue = next(
                    (item for item in issues if issue_numbers_match(item.number, issue_number)),
                    None,
                )
                if issue is None:
                    return None
                stories = (
                    await session.exec(
                        select(GcdStory)
                        .where(GcdStory.issue_id == issue.id)
                        .order_by(col(GcdStory.sequence_number))
                    )
                ).all()
        except SQLAlchemyError as e:
            raise LookupFailure(SOURCE, str(e)) from e

        def first(attribute: str) -> str | None:
            for story in stories:
                value = getattr(story, attribute)
                if value and value.strip():
                    return value.strip()
            return None

        return GcdIssueDetails(
            id=issue.id,
            number=issue.number,
            title=issue.title or first("title"),
            publication_date=issue.publication_date or issue.key_date,
            synopsis=first("synopsis"),
            genre=first("genre"),
            characters=first("characters"),
        )

    async def get_issue_creators(self, issue_id: int) -> list[Creator]:
        """Creators credited on any story of the issue, deduplicated by (name, role)."""
        if self._engine is None:
            return []

        try:
            async with self._session() as session:
                stories = (
                    await session.exec(
                        select(GcdStory)
                        .where(GcdStory.issue_id == issue_id)
                        .order_by(col(GcdStory.sequence_number))
                    )
                ).all()
        except SQLAlchemyError as e:
            raise LookupFailure(SOURCE, str(e)) from e

        creators: list[Creator] = []
        seen: set[tuple[str, str]] = set()
        for story in stories:
            for column, role in CREDIT_ROLES.items():
                for name in split_credits(getattr(story, column)):
                    if (name, role) not in seen:
                        seen.add((name, role))
                        creators.append(Creator(name=name, role=role))
        return creators
