"""Sync and load orchestration between sources and the search service."""

from typing import Any, Dict, List, Optional

from ..config.logging import get_logger
from ..config.settings import Settings, SourceConfig
from ..descriptors.extraction import extract_descriptors
from ..descriptors.models import ResourceDescriptor
from ..search.search_service import SearchService
from ..server.exceptions import ResourceNotFoundError, SourceFetchError
from .coordinator import ALL_SOURCES_KEY, SyncCoordinator
from .sources import SourceStore

logger = get_logger(__name__)


class OperationsService:
    """Runs guarded syncs and (re)populates the search index."""

    def __init__(
        self,
        settings: Settings,
        search_service: SearchService,
        store: Optional[SourceStore] = None,
        coordinator: Optional[SyncCoordinator] = None,
    ):
        self.settings = settings
        self.search_service = search_service
        self.store = store or SourceStore(
            settings.get_specs_dir(), settings.server.request_timeout
        )
        self.coordinator = coordinator or SyncCoordinator(
            settings.sync.timeout_seconds
        )

    def get_sources(self) -> List[SourceConfig]:
        return self.settings.load_sources()

    async def sync(self, source_id: Optional[str] = None) -> Dict[str, Any]:
        """Sync one source, or all when ``source_id`` is None.

        Returns:
            Dict[str, Any]: Outcome with synced and failed source ids

        Raises:
            ResourceNotFoundError: If ``source_id`` is not configured
            SyncInProgressError: If the same key is already syncing
            SyncTimeoutError: If the run exceeds the sync timeout
        """
        sources = self.get_sources()
        if source_id is not None:
            targets = [s for s in sources if s.id == source_id]
            if not targets:
                raise ResourceNotFoundError("source", source_id)
        else:
            targets = sources

        key = source_id or ALL_SOURCES_KEY
        return await self.coordinator.run(key, lambda: self._do_sync(key, targets))

    async def _do_sync(self, key: str, targets: List[SourceConfig]) -> Dict[str, Any]:
        synced, failed = [], {}
        for source in targets:
            try:
                await self.store.sync_source(source)
                synced.append(source.id)
            except SourceFetchError as e:
                if key != ALL_SOURCES_KEY:
                    raise
                logger.error("Failed to sync source", source=source.id, error=e.message)
                failed[source.id] = e.message

        descriptors = await self.load_descriptors()
        self.search_service.clear_all()
        self.search_service.add_descriptors(descriptors)
        await self._reindex_usage()

        return {
            "status": "done",
            "key": key,
            "synced": synced,
            "failed": failed,
            "descriptors": len(descriptors),
        }

    async def load_descriptors(self) -> List[ResourceDescriptor]:
        """Extract descriptors from every saved source document."""
        descriptors: List[ResourceDescriptor] = []
        for source in self.get_sources():
            document = await self.store.read(source.id)
            if document is None:
                logger.warning("No saved spec for source", source=source.id)
                continue
            try:
                descriptors.extend(extract_descriptors(source.id, document))
            except (KeyError, TypeError, ValueError) as e:
                logger.error(
                    "Failed to extract descriptors", source=source.id, error=str(e)
                )
        return descriptors

    async def load_all(self) -> int:
        """Populate the search service from saved specs at daemon start."""
        descriptors = await self.load_descriptors()
        self.search_service.add_descriptors(descriptors)
        await self._reindex_usage()
        logger.info("Descriptors loaded", count=len(descriptors))
        return len(descriptors)

    async def _reindex_usage(self) -> None:
        if self.settings.usage.enabled:
            await self.search_service.reindex_usage()

    def status(self) -> Dict[str, Any]:
        return self.coordinator.status()
