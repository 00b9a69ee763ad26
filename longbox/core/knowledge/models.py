"""Knowledge base records."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class KnowledgeVolume(BaseModel):
    """A known volume (numbered run) of a series and the year it started."""

    model_config = ConfigDict(frozen=True)

    volume: str
    year: int | None = None

    @field_validator("volume", mode="before")
    @classmethod
    def _coerce_volume(cls, value: object) -> object:
        # JSON files frequently store volumes as numbers
        if isinstance(value, int | float):
            return str(int(value))
        return value


class ComicKnowledge(BaseModel):
    """One knowledge base record: a series, its publisher, aliases and volumes.

    Immutable; edits produce new records that are committed between runs.
    """

    model_config = ConfigDict(frozen=True)

    series: str = Field(min_length=1)
    publisher: str | None = None
    aliases: tuple[str, ...] = ()
    start_year: int | None = None
    volumes: tuple[KnowledgeVolume, ...] = ()

    @field_validator("series")
    @classmethod
    def _strip_series(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("series must not be blank")
        return value

    @field_validator("aliases")
    @classmethod
    def _clean_aliases(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        cleaned: list[str] = []
        for alias in value:
            alias = alias.strip()
            if alias and alias not in cleaned:
                cleaned.append(alias)
        return tuple(cleaned)

    def closest_volume(self, year: int | None) -> KnowledgeVolume | None:
        """Volume whose start year is closest to (and preferably not after) the given year.

        Without a year a volume is only returned when the series has exactly one.
        """
        if not self.volumes:
            return None
        if year is None:
            return self.volumes[0] if len(self.volumes) == 1 else None

        dated = [volume for volume in self.volumes if volume.year is not None]
        if not dated:
            return self.volumes[0] if len(self.volumes) == 1 else None

        # A run that started after the issue's year cannot contain it
        started = [volume for volume in dated if volume.year <= year]  # type: ignore[operator]
        pool = started or dated
        return min(pool, key=lambda volume: abs(volume.year - year))  # type: ignore[operator]

    def find_volume(self, volume: str | None) -> KnowledgeVolume | None:
        """Known volume with the given number, if any."""
        if not volume:
            return None
        wanted = volume.strip().lstrip("0") or "0"
        for known in self.volumes:
            if (known.volume.strip().lstrip("0") or "0") == wanted:
                return known
        return None
