"""Session wiring: builds every collaborator of the engine from Settings."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from longbox.core.activity import ActionLog
from longbox.core.comicvine.client import ComicVineClient
from longbox.core.config import Settings, load_settings_file
from longbox.core.engine import IdentificationEngine
from longbox.core.enrichment import ComicVineLookup, GcdDatabaseService, ReferenceEnrichment
from longbox.core.knowledge import JsonKnowledgeBaseStore, KnowledgeBase
from longbox.core.matching import MatchingConfig, load_matching_config
from longbox.core.processing import NamingSettings, Organizer
from longbox.core.queue import FileQueue

logger = structlog.get_logger("longbox.session")


@dataclass
class LongboxSession:
    """Session-scoped state: queue, action log, knowledge base and engine.

    Nothing here outlives the process except the knowledge base file.
    """

    settings: Settings
    knowledge: KnowledgeBase
    gcd: GcdDatabaseService
    comicvine: ComicVineLookup
    organizer: Organizer
    action_log: ActionLog
    queue: FileQueue
    engine: IdentificationEngine
    matching_config: MatchingConfig

    @classmethod
    def from_settings(cls, settings: Settings) -> LongboxSession:
        matching_config = load_matching_config(
            load_settings_file(settings.config_dir / "settings.json")
        )
        knowledge = KnowledgeBase(JsonKnowledgeBaseStore(settings.knowledge_base_file))

        gcd = GcdDatabaseService()
        client = ComicVineClient(
            api_key=settings.comicvine_api_key,
            base_url=settings.comicvine_base_url,
            rate_limit=settings.comicvine_rate_limit,
            rate_limit_period=settings.comicvine_rate_limit_period,
            cache_dir=settings.cache_dir / "comicvine",
            cache_enabled=settings.comicvine_cache_enabled,
        )
        comicvine = ComicVineLookup(client, matching_config)
        enrichment = ReferenceEnrichment(
            local=gcd,
            remote=comicvine,
            timeout_seconds=settings.lookup_timeout_seconds,
            config=matching_config,
        )

        organizer = Organizer(settings.resolved_library_root)
        action_log = ActionLog()
        queue = FileQueue()
        engine = IdentificationEngine(
            knowledge=knowledge,
            enrichment=enrichment,
            organizer=organizer,
            action_log=action_log,
            naming=NamingSettings.from_settings(settings),
            matching_config=matching_config,
            concurrency_limit=settings.concurrency_limit,
            queue=queue,
        )
        return cls(
            settings=settings,
            knowledge=knowledge,
            gcd=gcd,
            comicvine=comicvine,
            organizer=organizer,
            action_log=action_log,
            queue=queue,
            engine=engine,
            matching_config=matching_config,
        )

    async def startup(self) -> None:
        """Connect the reference database when one is configured."""
        path = self.settings.gcd_database_path
        if path is not None:
            connected = await self.gcd.connect(path)
            if not connected:
                logger.warning("Reference database unavailable", path=str(path))
        logger.info(
            "Session started",
            library_root=str(self.settings.resolved_library_root),
            knowledge_entries=len(self.knowledge.snapshot),
            sources=self.engine.enrichment.available_sources,
        )

    async def shutdown(self) -> None:
        cancelled = self.engine.cancel()
        if cancelled:
            logger.info("Cancelled unfinished files on shutdown", files=cancelled)
        await self.gcd.disconnect()
        logger.info("Session closed")
