"""Pagination and cross-linking facade used by the HTTP daemon."""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..config.logging import get_logger
from ..descriptors.models import DescriptorType, ResourceDescriptor
from .search_service import DataStats, SearchOptions, SearchService, SourceStats

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 20


@dataclass
class Page:
    """One page of descriptors with its navigation metadata."""

    data: List[ResourceDescriptor]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": [d.to_dict() for d in self.data],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrevious": self.has_previous,
        }


class DataSearchService:
    """Translates 1-based pages into search offsets and links resources."""

    def __init__(self, search_service: SearchService):
        self.search_service = search_service

    def search(
        self,
        query: Optional[str] = None,
        page: int = 1,
        size: int = DEFAULT_PAGE_SIZE,
        type: Optional[str] = None,
        source: Optional[str] = None,
        pkg: Optional[str] = None,
    ) -> Page:
        """Search and wrap one page of results.

        Args:
            query: Free text; missing or empty lists everything
            page: 1-based page number
            size: Page size, always passed to the core explicitly
            type: Descriptor type filter (``rest`` or ``schema``)
            source: Source id filter
            pkg: Tag path filter

        Returns:
            Page: Descriptors of the page plus totals

        Raises:
            ValueError: If page or size is below 1
        """
        if page < 1:
            raise ValueError("page must be >= 1")
        if size < 1:
            raise ValueError("size must be >= 1")

        query = query or ""
        filters = SearchOptions(type=type, source=source, pkg=pkg)
        options = SearchOptions(
            type=type,
            source=source,
            pkg=pkg,
            offset=(page - 1) * size,
            limit=size,
        )

        data = self.search_service.search(query, options)
        total = self.search_service.get_total_count(query, filters)
        return Page(data=data, total=total, page=page, limit=size)

    def get_by_id(self, descriptor_id: str) -> Optional[ResourceDescriptor]:
        return self.search_service.get_by_id(descriptor_id)

    def touch(self, descriptor_id: str) -> Optional[ResourceDescriptor]:
        return self.search_service.touch_descriptor(descriptor_id)

    def get_related_schemas(self, endpoint_id: str) -> List[ResourceDescriptor]:
        """Schemas referenced by an endpoint; touches the endpoint."""
        endpoint = self.search_service.touch_descriptor(endpoint_id)
        if endpoint is None or not endpoint.is_rest():
            return []

        names = endpoint.rest.referenced_types()
        if not names:
            return []
        return self.search_service.search(
            "",
            SearchOptions(
                type=DescriptorType.SCHEMA.value,
                source=endpoint.source,
                names=names,
                limit=len(names),
            ),
        )

    def get_related_endpoints(self, schema_id: str) -> List[ResourceDescriptor]:
        """Endpoints that consume or produce a schema; touches the schema."""
        schema = self.search_service.touch_descriptor(schema_id)
        if schema is None or not schema.is_schema():
            return []

        options = SearchOptions(
            type=DescriptorType.REST.value,
            source=schema.source,
            data_types=[schema.name],
        )
        options.limit = self.search_service.get_total_count("", options)
        return self.search_service.search("", options)

    def get_related(self, descriptor_id: str) -> Optional[Dict[str, Any]]:
        """Related resources for either descriptor type, or None if unknown."""
        descriptor = self.search_service.get_by_id(descriptor_id)
        if descriptor is None:
            return None
        if descriptor.is_rest():
            return {"schemas": self.get_related_schemas(descriptor_id), "endpoints": []}
        if descriptor.is_schema():
            return {"schemas": [], "endpoints": self.get_related_endpoints(descriptor_id)}
        raise ValueError(f"Unknown descriptor type: {descriptor.type}")

    def get_recent(self, limit: int = DEFAULT_PAGE_SIZE) -> List[ResourceDescriptor]:
        return self.search_service.get_recent(limit)

    def get_stats(self) -> SourceStats:
        return self.search_service.get_stats_by_source()

    def get_data_stats(self, source: Optional[str] = None) -> DataStats:
        return self.search_service.get_data_stats(source)

    def get_file_list(self, descriptor_id: str) -> Optional[List[str]]:
        """Files importing the descriptor's generated code, None if unknown."""
        descriptor = self.search_service.get_by_id(descriptor_id)
        if descriptor is None:
            return None
        kind = "endpoint" if descriptor.is_rest() else "datatype"
        return self.search_service.get_file_list(descriptor.source, kind, descriptor_id)
