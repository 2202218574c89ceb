"""Search index schema definitions for the code-generation daemon.

This module defines the Whoosh schema used to index resource descriptors and
the flattened document projection each descriptor is indexed as.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from whoosh.analysis import (
    IntraWordFilter,
    LowercaseFilter,
    RegexTokenizer,
    StemmingAnalyzer,
)
from whoosh.fields import ID, STORED, TEXT, Schema

from ..descriptors.models import ResourceDescriptor

# Sentinel stored in every document so an empty query can list everything
ALL_SENTINEL = "__all__"
CATCH_ALL_FIELD = "catch_all"

# Prose analyzer for summaries and descriptions
TECHNICAL_ANALYZER = StemmingAnalyzer(stoplist=None, minsize=2)

# getUser -> get, user, getuser; user_id -> user, id, userid
IDENTIFIER_ANALYZER = (
    RegexTokenizer(r"\w+")
    | IntraWordFilter(mergewords=True, mergenums=True)
    | LowercaseFilter()
)

# Fields matched by free text, in boost order
SEARCH_FIELDS = (
    "operation_id",
    "name",
    "path",
    "url",
    "method",
    "summary",
    "description",
    "package",
    "data_types",
)


class IndexSchema:
    """Index schema configuration and field definitions."""

    @classmethod
    def get_schema(cls) -> Schema:
        """Create and return the descriptor index schema.

        Field boosts are applied per query clause rather than in the schema,
        so the weights stay configurable at runtime.

        Returns:
            Schema: Whoosh schema configured for descriptor search
        """
        return Schema(
            # Primary identifier
            id=ID(stored=True, unique=True),
            type=ID(stored=True),
            source=ID(stored=True),
            # Identifier-like fields
            name=TEXT(stored=True, analyzer=IDENTIFIER_ANALYZER),
            operation_id=TEXT(stored=True, analyzer=IDENTIFIER_ANALYZER),
            path=TEXT(stored=True, analyzer=IDENTIFIER_ANALYZER),
            url=TEXT(stored=True, analyzer=IDENTIFIER_ANALYZER),
            method=TEXT(stored=True, analyzer=IDENTIFIER_ANALYZER),
            package=TEXT(stored=True, analyzer=IDENTIFIER_ANALYZER),
            data_types=TEXT(stored=True, analyzer=IDENTIFIER_ANALYZER),
            # Prose
            summary=TEXT(stored=True, analyzer=TECHNICAL_ANALYZER),
            description=TEXT(stored=True, analyzer=TECHNICAL_ANALYZER),
            # Match-all sentinel
            catch_all=ID(stored=False),
            last_accessed=STORED(),
        )


def create_search_schema() -> Schema:
    """Factory function to create the descriptor index schema."""
    return IndexSchema.get_schema()


@dataclass
class IndexDocument:
    """Flattened, denormalized projection of a descriptor.

    Filters run against this projection so they never need the descriptor
    table.
    """

    id: str
    name: str
    type: str
    source: str
    path: str
    url: str = ""
    method: str = ""
    package: str = ""
    operation_id: str = ""
    summary: str = ""
    description: str = ""
    data_types: List[str] = field(default_factory=list)
    last_accessed: Optional[int] = None

    def to_fields(self) -> Dict[str, Any]:
        """Convert to the keyword arguments of ``IndexWriter.update_document``."""
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "name": self.name,
            "operation_id": self.operation_id,
            "path": self.path,
            "url": self.url,
            "method": self.method,
            "package": self.package,
            "data_types": ",".join(self.data_types),
            "summary": self.summary,
            "description": self.description,
            CATCH_ALL_FIELD: ALL_SENTINEL,
            "last_accessed": self.last_accessed,
        }

    @classmethod
    def from_fields(cls, fields: Dict[str, Any]) -> "IndexDocument":
        """Rebuild the projection from a hit's stored fields."""
        data_types = fields.get("data_types") or ""
        return cls(
            id=fields["id"],
            name=fields.get("name", ""),
            type=fields.get("type", ""),
            source=fields.get("source", ""),
            path=fields.get("path", ""),
            url=fields.get("url", ""),
            method=fields.get("method", ""),
            package=fields.get("package", ""),
            operation_id=fields.get("operation_id", ""),
            summary=fields.get("summary", ""),
            description=fields.get("description", ""),
            data_types=[t for t in data_types.split(",") if t],
            last_accessed=fields.get("last_accessed"),
        )


def build_index_document(descriptor: ResourceDescriptor) -> IndexDocument:
    """Project a descriptor into its indexed document.

    Args:
        descriptor: Descriptor to project

    Returns:
        IndexDocument: Flattened fields for indexing and filtering
    """
    document = IndexDocument(
        id=descriptor.id,
        name=descriptor.name,
        type=descriptor.type.value,
        source=descriptor.source,
        path=descriptor.path,
        last_accessed=descriptor.last_accessed,
    )

    if descriptor.is_rest():
        rest = descriptor.rest
        document.url = rest.request_url
        document.method = rest.method.upper()
        document.package = "/".join(rest.paths)
        document.operation_id = rest.operation_id
        document.summary = rest.summary or ""
        document.description = rest.description or ""
        document.data_types = rest.referenced_types()
    elif descriptor.is_schema():
        document.package = "components/schemas"
        document.description = descriptor.schema.schema.get("description") or ""
    else:
        raise ValueError(f"Unknown descriptor type: {descriptor.type}")

    return document
