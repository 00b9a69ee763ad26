"""Identification engine: runs the parse, match, enrich and score pipeline over queued files.

Files are processed as independent asyncio tasks throttled by a semaphore.
Results are delivered in completion order and matched back to files by id.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from longbox.core.activity import ActionKind, ActionLog, RecentAction, UndoKind, UndoPayload
from longbox.core.enrichment import EnrichmentResult, ReferenceEnrichment
from longbox.core.enrichment.service import (
    SOURCE_COMICVINE,
    SOURCE_FILENAME,
    SOURCE_GCD,
    SOURCE_KNOWLEDGE,
    SOURCE_USER,
)
from longbox.core.errors import NotOrganizableError, UndoError
from longbox.core.knowledge import (
    ComicKnowledge,
    KnowledgeBase,
    KnowledgeBaseMatcher,
    KnowledgeBaseSnapshot,
    KnowledgeVolume,
    MatchKind,
)
from longbox.core.matching import DEFAULT_CONFIG, MatchingConfig
from longbox.core.metrics import files_identified_total, identification_duration_seconds
from longbox.core.models import Comic, ConfidenceLevel, Creator, FileStatus, QueuedFile
from longbox.core.parser import ParsedFilename, parse_filename
from longbox.core.processing import NamingSettings, Organizer, OrganizeResult, PathFormatter
from longbox.core.processing.naming import RenderedPath
from longbox.core.queue import FileQueue
from longbox.core.scoring import IdentificationEvidence, ScoreOutcome, score_identification
from longbox.core.tracing import file_context
from longbox.core.utils import normalize_series_name

logger = structlog.get_logger("longbox.engine")

DEFAULT_CONCURRENCY_LIMIT = 3

# Where the final series came from, as reported on the queued file
SERIES_SOURCE_LABELS = {
    SOURCE_KNOWLEDGE: "knowledge",
    SOURCE_GCD: "reference",
    SOURCE_COMICVINE: "remote",
    SOURCE_USER: "user",
    SOURCE_FILENAME: "filename",
}

ORGANIZABLE_STATUSES = (FileStatus.SUCCESS, FileStatus.WARNING)


@dataclass
class IdentificationResult:
    """Outcome of identifying one file.

    A cancelled result carries no metadata and is never applied to its file.
    """

    file_id: str
    name: str
    status: FileStatus
    confidence: ConfidenceLevel | None = None
    match_kind: MatchKind = MatchKind.UNRESOLVED
    series: str | None = None
    issue: str | None = None
    year: int | None = None
    publisher: str | None = None
    volume: str | None = None
    summary: str | None = None
    title: str | None = None
    publication_date: str | None = None
    cover_url: str | None = None
    creators: list[Creator] = field(default_factory=list)
    source: str | None = None
    reasons: tuple[str, ...] = ()
    failures: tuple[str, ...] = ()
    error: str | None = None
    cancelled: bool = False
    duration_seconds: float = 0.0

    @classmethod
    def for_cancelled(cls, file: QueuedFile) -> IdentificationResult:
        return cls(file_id=file.id, name=file.name, status=FileStatus.PENDING, cancelled=True)

    @classmethod
    def for_error(cls, file: QueuedFile, error: str, duration: float = 0.0) -> IdentificationResult:
        return cls(
            file_id=file.id,
            name=file.name,
            status=FileStatus.ERROR,
            error=error,
            reasons=(error,),
            duration_seconds=duration,
        )


@dataclass(frozen=True)
class OrganizeOutcome:
    result: OrganizeResult
    comic: Comic | None = None
    action: RecentAction | None = None


@dataclass(frozen=True)
class ProcessingStats:
    total: int = 0
    successful: int = 0
    failed: int = 0
    cancelled: int = 0
    high_confidence: int = 0
    medium_confidence: int = 0
    low_confidence: int = 0


class ProcessingRun:
    """One batch of files being identified concurrently.

    Iterate with ``async for`` to receive results in completion order, or
    ``await run.wait()`` for all of them. ``cancel()`` marks every unfinished
    file cancelled: files still waiting for a slot are never started, and
    results that finish after the cancel are discarded. A cancelled file keeps
    whatever it held before the run.
    """

    def __init__(
        self,
        engine: IdentificationEngine,
        files: Sequence[QueuedFile],
        concurrency_limit: int,
        snapshot: KnowledgeBaseSnapshot,
    ) -> None:
        self.engine = engine
        self.files = list(files)
        self.snapshot = snapshot
        self.concurrency_limit = concurrency_limit
        self.cancelled = False
        self._semaphore = asyncio.Semaphore(concurrency_limit)
        self._completed: asyncio.Queue[IdentificationResult] = asyncio.Queue()
        self._delivered = 0
        self._tasks = [asyncio.create_task(self._run_one(file)) for file in self.files]

    @property
    def done(self) -> bool:
        return all(task.done() for task in self._tasks)

    async def _run_one(self, file: QueuedFile) -> IdentificationResult:
        async with self._semaphore:
            if file.cancelled:
                result = IdentificationResult.for_cancelled(file)
            else:
                result = await self.engine._identify(file, self.snapshot)
                if file.cancelled:
                    logger.debug("Discarding result for cancelled file", file_id=file.id)
                    result = IdentificationResult.for_cancelled(file)
                else:
                    self.engine._apply(file, result)
        self._completed.put_nowait(result)
        return result

    def cancel(self) -> int:
        """Mark every unfinished file cancelled.

        Returns:
            Number of files marked
        """
        self.cancelled = True
        marked = 0
        for file, task in zip(self.files, self._tasks, strict=True):
            if not task.done() and not file.cancelled:
                file.cancelled = True
                marked += 1
        logger.info("Processing run cancelled", files_marked=marked, total=len(self.files))
        return marked

    async def wait(self) -> list[IdentificationResult]:
        """Wait for every file and return the results in submission order."""
        return list(await asyncio.gather(*self._tasks))

    def __aiter__(self) -> ProcessingRun:
        return self

    async def __anext__(self) -> IdentificationResult:
        if self._delivered >= len(self._tasks):
            raise StopAsyncIteration
        result = await self._completed.get()
        self._delivered += 1
        return result


class IdentificationEngine:
    """Identifies queued files and organizes them into the library.

    All collaborators are passed in; the engine holds no global state.
    """

    def __init__(
        self,
        knowledge: KnowledgeBase,
        enrichment: ReferenceEnrichment,
        organizer: Organizer,
        action_log: ActionLog,
        naming: NamingSettings,
        matching_config: MatchingConfig = DEFAULT_CONFIG,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        queue: FileQueue | None = None,
    ) -> None:
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        self.knowledge = knowledge
        self.enrichment = enrichment
        self.organizer = organizer
        self.action_log = action_log
        self.naming = naming
        self.matching_config = matching_config
        self.concurrency_limit = concurrency_limit
        self.queue = queue if queue is not None else FileQueue()
        self.formatter = PathFormatter()
        self._runs: list[ProcessingRun] = []
        self._results: dict[str, IdentificationResult] = {}

    # Knowledge base

    @property
    def is_processing(self) -> bool:
        self._runs = [run for run in self._runs if not run.done]
        return bool(self._runs)

    def commit_knowledge(self) -> bool:
        """Apply staged knowledge base edits unless a run is in progress.

        Returns:
            True when the edits are now visible to matching
        """
        if self.is_processing:
            logger.info(
                "Knowledge base edits deferred until processing finishes",
                pending=self.knowledge.pending_changes,
            )
            return False
        self.knowledge.commit()
        return True

    # Identification

    async def identify(
        self,
        file: QueuedFile,
        forced_series: str | None = None,
        forced_publisher: str | None = None,
    ) -> IdentificationResult:
        """Identify one file and apply the outcome to it.

        Args:
            file: Queued file to identify
            forced_series: User-supplied series (learning mode)
            forced_publisher: User-supplied publisher (learning mode)

        Returns:
            IdentificationResult (also applied to ``file``)
        """
        file.cancelled = False
        result = await self._identify(
            file,
            self.knowledge.snapshot,
            forced_series=forced_series,
            forced_publisher=forced_publisher,
        )
        self._apply(file, result)
        return result

    async def learn(
        self,
        file: QueuedFile,
        series: str,
        publisher: str | None = None,
    ) -> IdentificationResult:
        """Resolve a file by hand and remember the mapping in the knowledge base.

        The parsed series name becomes an alias of the chosen series (a new
        entry is staged when the series is unknown), then the file is
        identified again with the forced values.
        """
        parsed = parse_filename(file.path or file.name)
        entry = self._learned_entry(parsed, series, publisher)
        if entry is not None:
            self.knowledge.stage_upsert(entry)
            self.commit_knowledge()
            logger.info("Learned series mapping", series=entry.series, aliases=list(entry.aliases))
        return await self.identify(file, forced_series=series, forced_publisher=publisher)

    def _learned_entry(
        self,
        parsed: ParsedFilename,
        series: str,
        publisher: str | None,
    ) -> ComicKnowledge | None:
        series = series.strip()
        if not series:
            return None
        alias = parsed.series
        if alias and normalize_series_name(alias) == normalize_series_name(series):
            alias = None

        matcher = KnowledgeBaseMatcher(self.knowledge.snapshot, self.matching_config)
        match = matcher.match_series(series, publisher_hint=publisher)
        if match.is_exact and match.entry is not None:
            existing = match.entry
            if alias is None or normalize_series_name(alias) in {
                normalize_series_name(name) for name in existing.aliases
            }:
                return None
            return existing.model_copy(update={"aliases": (*existing.aliases, alias)})

        volumes: tuple[KnowledgeVolume, ...] = ()
        if parsed.volume:
            volumes = (KnowledgeVolume(volume=parsed.volume, year=parsed.year),)
        return ComicKnowledge(
            series=series,
            publisher=publisher or parsed.publisher,
            aliases=(alias,) if alias else (),
            start_year=parsed.year,
            volumes=volumes,
        )

    async def _identify(
        self,
        file: QueuedFile,
        snapshot: KnowledgeBaseSnapshot,
        forced_series: str | None = None,
        forced_publisher: str | None = None,
    ) -> IdentificationResult:
        """Run the pipeline for one file without touching it. Never raises."""
        start = time.perf_counter()
        with file_context(file.id, file.name):
            try:
                result = await self._run_pipeline(file, snapshot, forced_series, forced_publisher)
            except Exception as e:
                logger.error("Identification failed", error=str(e), exc_info=True)
                result = IdentificationResult.for_error(file, f"Identification failed: {e}")

            result.duration_seconds = time.perf_counter() - start
            identification_duration_seconds.observe(result.duration_seconds)
            files_identified_total.labels(status=result.status.value).inc()
            logger.info(
                "File identified",
                status=result.status.value,
                confidence=result.confidence.value if result.confidence else None,
                match_kind=result.match_kind.value,
                series=result.series,
                issue=result.issue,
                duration_seconds=round(result.duration_seconds, 3),
            )
        return result

    async def _run_pipeline(
        self,
        file: QueuedFile,
        snapshot: KnowledgeBaseSnapshot,
        forced_series: str | None,
        forced_publisher: str | None,
    ) -> IdentificationResult:
        parsed = parse_filename(file.path or file.name)
        logger.debug(
            "Parsed file name",
            series=parsed.series,
            issue=parsed.issue,
            year=parsed.year,
            volume=parsed.volume,
            publisher=parsed.publisher,
        )

        matcher = KnowledgeBaseMatcher(snapshot, self.matching_config)
        if forced_series:
            match = matcher.match_series(
                forced_series,
                publisher_hint=forced_publisher or parsed.publisher,
                year=parsed.year,
                volume=parsed.volume,
            )
        else:
            match = matcher.match(parsed)
        logger.debug("Knowledge base match", kind=match.kind.value, similarity=match.similarity)

        record = await self.enrichment.enrich(
            parsed,
            match,
            publisher_override=forced_publisher,
            series_override=forced_series,
        )
        if forced_series and not match.resolved:
            record.series = forced_series.strip()
            record.field_sources["series"] = SOURCE_USER
        record.fill("series", parsed.series, SOURCE_FILENAME)

        outcome = score_identification(
            IdentificationEvidence(
                series=record.series,
                match_kind=match.kind,
                explicit_issue=parsed.explicit_issue,
                issue=record.issue,
                year=record.year,
                publisher=record.publisher,
                enrichment_disagreed=bool(record.disagreements),
            )
        )
        return self._build_result(file, record, match.kind, outcome)

    def _build_result(
        self,
        file: QueuedFile,
        record: EnrichmentResult,
        kind: MatchKind,
        outcome: ScoreOutcome,
    ) -> IdentificationResult:
        if outcome.status is FileStatus.ERROR:
            error = "; ".join(outcome.reasons)
        elif record.failures:
            error = "; ".join(record.failures)
        else:
            error = None
        return IdentificationResult(
            file_id=file.id,
            name=file.name,
            status=outcome.status,
            confidence=outcome.confidence,
            match_kind=kind,
            series=record.series,
            issue=record.issue,
            year=record.year,
            publisher=record.publisher,
            volume=record.volume,
            summary=record.summary,
            title=record.title,
            publication_date=record.publication_date,
            cover_url=record.cover_url,
            creators=list(record.creators),
            source=SERIES_SOURCE_LABELS.get(record.series_source or ""),
            reasons=outcome.reasons,
            failures=tuple(record.failures),
            error=error,
        )

    def _apply(self, file: QueuedFile, result: IdentificationResult) -> None:
        if result.cancelled:
            return
        file.series = result.series
        file.issue = result.issue
        file.year = result.year
        file.publisher = result.publisher
        file.volume = result.volume
        file.summary = result.summary
        file.source = result.source
        file.confidence = result.confidence
        file.status = result.status
        file.error = result.error
        self._results[file.id] = result

    def process(
        self,
        files: Iterable[QueuedFile],
        concurrency_limit: int | None = None,
    ) -> ProcessingRun:
        """Start identifying a batch of files.

        Must be called from a running event loop. Staged knowledge base edits
        are committed first when no other run is active; the run then matches
        against that snapshot until it finishes.

        Args:
            files: Files to identify
            concurrency_limit: Files processed at once (engine default when None)

        Returns:
            ProcessingRun to iterate, wait on, or cancel
        """
        limit = concurrency_limit or self.concurrency_limit
        if limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        if self.knowledge.pending_changes and not self.is_processing:
            self.knowledge.commit()

        batch = list(files)
        for file in batch:
            file.cancelled = False
        run = ProcessingRun(self, batch, limit, self.knowledge.snapshot)
        self._runs.append(run)
        logger.info("Processing started", files=len(batch), concurrency_limit=limit)
        return run

    def cancel(self) -> int:
        """Cancel every active run; returns the number of files marked cancelled."""
        return sum(run.cancel() for run in list(self._runs) if not run.done)

    @staticmethod
    def processing_stats(results: Iterable[IdentificationResult]) -> ProcessingStats:
        """Totals by outcome and confidence."""
        total = successful = failed = cancelled = high = medium = low = 0
        for result in results:
            total += 1
            if result.cancelled:
                cancelled += 1
                continue
            if result.status not in ORGANIZABLE_STATUSES:
                failed += 1
                continue
            successful += 1
            if result.confidence is ConfidenceLevel.HIGH:
                high += 1
            elif result.confidence is ConfidenceLevel.MEDIUM:
                medium += 1
            elif result.confidence is ConfidenceLevel.LOW:
                low += 1
        return ProcessingStats(total, successful, failed, cancelled, high, medium, low)

    # Organization

    def _require_organizable(self, file: QueuedFile) -> None:
        if file.status not in ORGANIZABLE_STATUSES or not file.series:
            raise NotOrganizableError(
                f"{file.name} cannot be organized while its status is {file.status.value}"
            )

    def plan(self, file: QueuedFile) -> RenderedPath:
        """Destination the file would be organized to, relative to the library root.

        Raises:
            NotOrganizableError: The file is not Success or Warning
        """
        self._require_organizable(file)
        return self.formatter.render_destination(
            self.naming.folder_name_format,
            self.naming.file_name_format,
            file,
            Path(file.path).suffix,
        )

    def _build_comic(self, file: QueuedFile, final_path: str) -> Comic:
        result = self._results.get(file.id)
        return Comic(
            series=file.series or "",
            issue=file.issue,
            year=file.year,
            publisher=file.publisher,
            volume=file.volume,
            summary=file.summary,
            title=result.title if result else None,
            publication_date=result.publication_date if result else None,
            cover_url=result.cover_url if result else None,
            creators=list(result.creators) if result else [],
            file_path=final_path,
        )

    async def organize(
        self, file: QueuedFile, keep_original: bool | None = None
    ) -> OrganizeOutcome:
        """Copy or move an identified file into the library.

        On success the file leaves the queue and an undoable action is
        recorded. On failure an error action is recorded and the file is left
        untouched.

        Raises:
            NotOrganizableError: The file is not Success or Warning
        """
        rendered = self.plan(file)
        keep = self.naming.keep_original_files if keep_original is None else keep_original

        with file_context(file.id, file.name):
            if rendered.has_gaps:
                logger.warning(
                    "Organizing with unresolved placeholders",
                    gaps=list(rendered.template_gaps),
                )
            snapshot = file.model_dump(mode="json")
            result = await self.organizer.organize(file.path, rendered.relative_path, keep)

            if not result.success:
                action = await self.action_log.record(
                    ActionKind.ERROR, f"Failed to organize {file.name}: {result.error}"
                )
                return OrganizeOutcome(result, None, action)

            comic = self._build_comic(file, result.final_path or rendered.relative_path)
            undo = UndoPayload(
                kind=UndoKind.ORGANIZE,
                file_id=file.id,
                queued_file=snapshot,
                source_path=file.path,
                final_path=result.final_path,
                mode=result.mode,
            )
            action = await self.action_log.record(
                ActionKind.SUCCESS,
                f"Organized {file.name} to {result.final_path}",
                undo=undo,
            )
            self.remove(file.id)
            return OrganizeOutcome(result, comic, action)

    def remove(self, file_id: str) -> QueuedFile | None:
        """Take a file out of the queue and forget its last identification."""
        self._results.pop(file_id, None)
        return self.queue.remove(file_id)

    async def skip(self, file: QueuedFile) -> RecentAction:
        """Drop a file from the queue, recording an undoable action."""
        snapshot = file.model_dump(mode="json")
        self.remove(file.id)
        return await self.action_log.record(
            ActionKind.INFO,
            f"Skipped {file.name}",
            undo=UndoPayload(kind=UndoKind.SKIP, file_id=file.id, queued_file=snapshot),
        )

    async def undo(self, action_id: str) -> QueuedFile:
        """Reverse an organize or skip and put the file back in the queue.

        Raises:
            UndoError: Unknown action, nothing to undo, or the revert failed
        """
        action = self.action_log.get(action_id)
        if action is None:
            raise UndoError(f"Unknown action: {action_id}")
        payload = action.undo
        if payload is None:
            raise UndoError(f"Action cannot be undone: {action.message}")

        if payload.kind is UndoKind.ORGANIZE:
            reverted = await self.organizer.revert(payload)
            if not reverted.success:
                raise UndoError(reverted.error or "Revert failed")

        restored = self.queue.restore(payload.queued_file)
        await self.action_log.mark_undone(action_id)
        await self.action_log.record(ActionKind.INFO, f"Undid: {action.message}")
        logger.info("Action undone", action_id=action_id, kind=payload.kind.value)
        return restored
