"""Descriptor search service: table, index maintenance and ranking.

The service owns the descriptor table, one FullTextIndex and one
ExactMatchCache, and keeps the three in lock-step on every mutation. All
operations are synchronous; only the usage rescan leaves the event loop.
"""

import dataclasses
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..config.exceptions import ConfigurationError
from ..config.logging import get_logger, log_performance
from ..config.settings import SearchConfig
from ..descriptors.models import DescriptorType, ResourceDescriptor
from .index_manager import DocumentFilter, FullTextIndex
from .index_schema import ALL_SENTINEL, IndexDocument, build_index_document
from .intent import DetectedIntent, ExactMatchCache, QueryIntent, detect_intent
from .relevance import normalize_scores, rank
from .usage_analyzer import UsageAnalyzer

logger = get_logger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SearchOptions:
    """Filters and pagination for a search.

    ``data_types`` matches when any referenced schema is listed; ``names``
    requires exact membership of the descriptor name.
    """

    fuzzy: Optional[float] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    type: Optional[str] = None
    pkg: Optional[str] = None
    source: Optional[str] = None
    data_types: Optional[List[str]] = None
    names: Optional[List[str]] = None


@dataclass
class SourceStats:
    """Counts across the whole descriptor table."""

    total: int
    counts_by_type: Dict[str, int]
    unique_sources: List[str]
    controller_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "countsByType": dict(self.counts_by_type),
            "uniqueSources": list(self.unique_sources),
            "uniqueSourcesCount": len(self.unique_sources),
            "controllerCount": self.controller_count,
        }


@dataclass
class DataStats:
    """Catalog counts for one source or all, with usage counts."""

    source_count: int = 0
    endpoint_count: int = 0
    data_type_count: int = 0
    controller_count: int = 0
    used_endpoint_count: int = 0
    used_data_type_count: int = 0
    used_source_count: int = 0
    used_controller_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceCount": self.source_count,
            "endpointCount": self.endpoint_count,
            "dataTypeCount": self.data_type_count,
            "controllerCount": self.controller_count,
            "usedEndpointCount": self.used_endpoint_count,
            "usedDataTypeCount": self.used_data_type_count,
            "usedSourceCount": self.used_source_count,
            "usedControllerCount": self.used_controller_count,
        }


class SearchService:
    """Ranked, filterable search over resource descriptors."""

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        usage_analyzer: Optional[UsageAnalyzer] = None,
        clock: Optional[Callable[[], int]] = None,
        index: Optional[FullTextIndex] = None,
    ):
        """Initialize the search service.

        Args:
            config: Search configuration (alpha, half life, fuzzy defaults)
            usage_analyzer: Optional analyzer fed with the descriptor set
            clock: Callable returning the current epoch milliseconds
            index: Index adapter to own; a fresh one is created by default

        Raises:
            ConfigurationError: If the ranking parameters are out of range
        """
        self.config = config or SearchConfig()
        self._validate_config()

        self.usage_analyzer = usage_analyzer
        self._clock = clock or now_ms
        self._index = index or FullTextIndex(self.config)
        self._cache = ExactMatchCache()
        self._descriptors: Dict[str, ResourceDescriptor] = {}
        self._usage_stale = True

    def _validate_config(self) -> None:
        config = self.config
        if not 0.0 <= config.alpha <= 1.0:
            raise ConfigurationError("alpha must be within [0, 1]", {"alpha": config.alpha})
        if config.half_life_hours <= 0:
            raise ConfigurationError(
                "half_life_hours must be positive",
                {"half_life_hours": config.half_life_hours},
            )
        if not 0.0 <= config.fuzzy <= 1.0:
            raise ConfigurationError("fuzzy must be within [0, 1]", {"fuzzy": config.fuzzy})

    def __len__(self) -> int:
        return len(self._descriptors)

    # Mutation

    def add_descriptor(self, descriptor: ResourceDescriptor) -> None:
        """Insert or replace a descriptor and its index document.

        Raises:
            ValueError: If the id already exists with a different type
        """
        self._check_type(descriptor)
        self._descriptors[descriptor.id] = descriptor
        self._index.index(build_index_document(descriptor))
        self._cache.add(descriptor)
        self._usage_stale = True

    def add_descriptors(self, descriptors: Iterable[ResourceDescriptor]) -> int:
        """Insert or replace many descriptors with one index batch.

        Returns:
            int: Number of descriptors added
        """
        descriptors = list(descriptors)
        for descriptor in descriptors:
            self._check_type(descriptor)

        for descriptor in descriptors:
            self._descriptors[descriptor.id] = descriptor
        self._index.index_many(build_index_document(d) for d in descriptors)
        self._cache.add_many(descriptors)
        self._usage_stale = True

        logger.debug("Descriptors added", count=len(descriptors), total=len(self))
        return len(descriptors)

    def _check_type(self, descriptor: ResourceDescriptor) -> None:
        existing = self._descriptors.get(descriptor.id)
        if existing is not None and existing.type != descriptor.type:
            raise ValueError(
                f"Descriptor {descriptor.id} is '{existing.type.value}' and "
                f"cannot become '{descriptor.type.value}'"
            )

    def remove_descriptor(self, descriptor_id: str) -> Optional[ResourceDescriptor]:
        """Remove a descriptor from the table, index and cache.

        The index entry is removed even when the table no longer knows the
        id, so a stale document can always be purged.

        Returns:
            Optional[ResourceDescriptor]: The removed descriptor, if known
        """
        removed = self._descriptors.pop(descriptor_id, None)
        self._index.remove(descriptor_id)
        self._cache.remove(descriptor_id)
        if removed is not None:
            self._usage_stale = True
        return removed

    def clear_all(self) -> None:
        """Empty the table, the index and the cache."""
        self._descriptors.clear()
        self._index.remove_all()
        self._cache.clear()
        self._usage_stale = True

    def touch_descriptor(self, descriptor_id: str) -> Optional[ResourceDescriptor]:
        """Record an access; the descriptor is replaced, not mutated.

        Returns:
            Optional[ResourceDescriptor]: The updated descriptor, or None
        """
        descriptor = self._descriptors.get(descriptor_id)
        if descriptor is None:
            return None

        touched = dataclasses.replace(descriptor, last_accessed=self._clock())
        self._descriptors[descriptor_id] = touched
        self._index.index(build_index_document(touched))
        self._cache.add(touched)
        return touched

    # Lookup

    def get_by_id(self, descriptor_id: str) -> Optional[ResourceDescriptor]:
        return self._descriptors.get(descriptor_id)

    def all_descriptors(self) -> List[ResourceDescriptor]:
        return list(self._descriptors.values())

    def search(
        self, query: str, options: Optional[SearchOptions] = None
    ) -> List[ResourceDescriptor]:
        """Ranked search blending text relevance with recency.

        Args:
            query: Free text, a path template, ``METHOD text`` or an identifier
            options: Filters and pagination

        Returns:
            List[ResourceDescriptor]: One page of descriptors, best first
        """
        options = options or SearchOptions()
        start_time = time.time()

        ids = self._matching_ids(query, options, ordered=True)
        offset = options.offset or 0
        limit = options.limit if options.limit is not None else self.config.default_limit
        page = [self._descriptors[i] for i in ids[offset:offset + limit]]

        log_performance(
            logger,
            "search",
            (time.time() - start_time) * 1000,
            query=(query or "")[:80],
            matches=len(ids),
            returned=len(page),
        )
        return page

    def get_total_count(
        self, query: str, options: Optional[SearchOptions] = None
    ) -> int:
        """Number of matches ``search`` would rank, ignoring pagination."""
        return len(self._matching_ids(query, options or SearchOptions(), ordered=False))

    def _matching_ids(
        self, query: str, options: SearchOptions, ordered: bool
    ) -> List[str]:
        intent = detect_intent(query, self.config)

        if intent.text != ALL_SENTINEL:
            cached = self._cache.lookup(intent.text, intent.intent)
            if cached:
                return self._from_cache(cached, options, intent)

        fuzzy = options.fuzzy if options.fuzzy is not None else self.config.fuzzy
        hits = self._index.query(
            intent.text,
            prefix=True,
            fuzzy=fuzzy,
            filter=self._build_filter(options, intent.method),
        )
        if (
            not hits
            and intent.intent is QueryIntent.HTTP_METHOD
            and self.config.method_intent_fallback
        ):
            logger.debug("No match for method, falling back", method=intent.method)
            hits = self._index.query(
                intent.text,
                prefix=True,
                fuzzy=fuzzy,
                filter=self._build_filter(options, None),
            )

        live = []
        for hit in hits:
            if hit.id in self._descriptors:
                live.append(hit)
            else:
                logger.debug("Dropping hit without descriptor", id=hit.id)

        if not ordered:
            return [hit.id for hit in live]

        ranked = rank(
            ids=[hit.id for hit in live],
            relevances=normalize_scores([hit.score for hit in live]),
            last_accessed=[self._descriptors[h.id].last_accessed for h in live],
            now=self._clock(),
            alpha=intent.alpha,
            half_life_hours=self.config.half_life_hours,
        )
        return [hit.id for hit in ranked]

    def _from_cache(
        self, cached: Iterable[str], options: SearchOptions, intent: DetectedIntent
    ) -> List[str]:
        predicate = self._build_filter(options, intent.method)
        matches = []
        for descriptor_id in sorted(cached):
            descriptor = self._descriptors.get(descriptor_id)
            if descriptor is None:
                continue
            if predicate is None or predicate(build_index_document(descriptor)):
                matches.append(descriptor)

        matches.sort(
            key=lambda d: d.last_accessed if d.last_accessed is not None else -1,
            reverse=True,
        )
        return [d.id for d in matches]

    @staticmethod
    def _build_filter(
        options: SearchOptions, method: Optional[str]
    ) -> Optional[DocumentFilter]:
        if not any(
            [
                options.type,
                options.pkg,
                options.source,
                options.data_types is not None,
                options.names is not None,
                method,
            ]
        ):
            return None

        data_types = set(options.data_types or ())
        names = set(options.names or ())

        def matches(doc: IndexDocument) -> bool:
            if options.type and doc.type != options.type:
                return False
            if options.pkg and doc.package != options.pkg:
                return False
            if options.source and doc.source != options.source:
                return False
            if options.data_types is not None and not data_types.intersection(
                doc.data_types
            ):
                return False
            if options.names is not None and doc.name not in names:
                return False
            if method and doc.method.upper() != method:
                return False
            return True

        return matches

    def get_recent(self, limit: int = 20) -> List[ResourceDescriptor]:
        """Most recently accessed descriptors, ignoring never-accessed ones."""
        accessed = [d for d in self._descriptors.values() if d.last_accessed is not None]
        accessed.sort(key=lambda d: d.last_accessed, reverse=True)
        return accessed[:limit]

    # Statistics

    def get_stats_by_source(self) -> SourceStats:
        """Counts by type, unique REST sources and REST grouping paths."""
        counts_by_type: Dict[str, int] = {}
        sources: List[str] = []
        paths = set()

        for descriptor in self._descriptors.values():
            type_name = descriptor.type.value
            counts_by_type[type_name] = counts_by_type.get(type_name, 0) + 1
            if descriptor.is_rest():
                if descriptor.source not in sources:
                    sources.append(descriptor.source)
                if descriptor.path:
                    paths.add(descriptor.path)

        return SourceStats(
            total=len(self._descriptors),
            counts_by_type=counts_by_type,
            unique_sources=sources,
            controller_count=len(paths),
        )

    def get_data_stats(self, source: Optional[str] = None) -> DataStats:
        """Catalog and usage counts, optionally restricted to one source."""
        selected = [
            d for d in self._descriptors.values() if not source or d.source == source
        ]
        controllers = set()
        for descriptor in selected:
            if descriptor.is_rest():
                controllers.update(descriptor.rest.paths)

        stats = DataStats(
            source_count=len({d.source for d in selected if d.source}),
            endpoint_count=sum(1 for d in selected if d.type is DescriptorType.REST),
            data_type_count=sum(1 for d in selected if d.type is DescriptorType.SCHEMA),
            controller_count=len(controllers),
        )

        analyzer = self._fresh_usage_analyzer()
        if analyzer is not None:
            stats.used_endpoint_count = analyzer.get_usage_counts(source, "endpoint")
            stats.used_data_type_count = analyzer.get_usage_counts(source, "datatype")
            stats.used_source_count = analyzer.get_usage_counts(source, "source")
            stats.used_controller_count = analyzer.get_usage_counts(source, "controller")
        return stats

    def get_usage_stats(self) -> Dict[str, List[str]]:
        analyzer = self._fresh_usage_analyzer()
        if analyzer is None:
            return {
                "usedEndpoints": [],
                "unusedEndpoints": [],
                "usedDataTypes": [],
                "unusedDataTypes": [],
            }
        return analyzer.get_usage_stats()

    def get_file_list(self, source: str, kind: str, descriptor_id: str) -> List[str]:
        """Files using an endpoint or data type; empty without an analyzer."""
        analyzer = self._fresh_usage_analyzer()
        if analyzer is None:
            return []
        return analyzer.get_file_list(source, kind, descriptor_id)

    async def reindex_usage(self) -> int:
        """Rescan the project for usage with the current descriptor set."""
        analyzer = self._fresh_usage_analyzer()
        if analyzer is None:
            return 0
        return await analyzer.reindex_async()

    def _fresh_usage_analyzer(self) -> Optional[UsageAnalyzer]:
        if self.usage_analyzer is None:
            return None
        if self._usage_stale:
            self.usage_analyzer.set_resource_descriptors(self.all_descriptors())
            self._usage_stale = False
        return self.usage_analyzer
