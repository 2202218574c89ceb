"""Query-shape detection and the exact-match lookup cache."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..config.settings import SearchConfig
from ..descriptors.models import ResourceDescriptor
from .index_schema import ALL_SENTINEL

HTTP_METHOD_PATTERN = re.compile(r"^(GET|POST|PUT|PATCH|DELETE)\b", re.IGNORECASE)
HTTP_METHOD_PREFIX = re.compile(r"^(GET|POST|PUT|PATCH|DELETE)\s*", re.IGNORECASE)
PATH_PATTERN = re.compile(r"/[a-zA-Z0-9{}_-]+")
CAMELCASE_PATTERN = re.compile(r"[a-z][A-Z]")
HOOK_PREFIX = re.compile(r"^use([A-Z])")


class QueryIntent(str, Enum):
    """Recognized query shapes, highest precedence first."""

    PATH = "path"
    HTTP_METHOD = "http_method"
    CAMELCASE = "camelcase"
    GENERIC = "generic"


@dataclass
class DetectedIntent:
    """Outcome of classifying a query.

    ``text`` is the query handed to the index after intent rewriting,
    ``method`` the upper-cased HTTP method of a method-qualified query.
    """

    intent: QueryIntent
    text: str
    alpha: float
    method: Optional[str] = None


def detect_intent(query: str, config: SearchConfig) -> DetectedIntent:
    """Classify a query as path, HTTP method, camelCase or generic.

    Path wins over method when both match, so ``GET /api/users`` is a
    path query.

    Args:
        query: Raw user query
        config: Search configuration with the per-intent alphas

    Returns:
        DetectedIntent: Intent, rewritten query text and relevance weight
    """
    text = (query or "").strip()
    if not text:
        return DetectedIntent(QueryIntent.GENERIC, ALL_SENTINEL, config.alpha)

    if text.startswith("/") or PATH_PATTERN.search(text):
        return DetectedIntent(QueryIntent.PATH, text, config.intent_alpha.path)

    method_match = HTTP_METHOD_PATTERN.match(text)
    if method_match:
        remainder = HTTP_METHOD_PREFIX.sub("", text, count=1).strip()
        return DetectedIntent(
            QueryIntent.HTTP_METHOD,
            remainder or ALL_SENTINEL,
            config.intent_alpha.http_method,
            method=method_match.group(1).upper(),
        )

    if CAMELCASE_PATTERN.search(text):
        stripped = HOOK_PREFIX.sub(lambda m: m.group(1), text, count=1)
        return DetectedIntent(
            QueryIntent.CAMELCASE, stripped, config.intent_alpha.camelcase
        )

    return DetectedIntent(QueryIntent.GENERIC, text, config.alpha)


def normalize_key(value: str) -> str:
    """Normalize an operationId or path template for exact lookup.

    ``/API/Users/:id/`` and ``api/users/<id>`` both become ``api/users/{id}``.
    """
    key = (value or "").strip().lower()
    key = re.sub(r":([A-Za-z0-9_]+)", r"{\1}", key)
    key = re.sub(r"<([A-Za-z0-9_]+)>", r"{\1}", key)
    return key.strip("/")


class ExactMatchCache:
    """Maps normalized operationIds and path templates to descriptor ids.

    OperationIds and path templates live in separate maps, so a bare word
    such as ``pets`` never collides with the ``/pets`` template. Maintained
    incrementally alongside the descriptor table; only REST descriptors
    contribute keys.
    """

    OPERATION_ID = "operation_id"
    PATH = "path"

    def __init__(self):
        self._maps: Dict[str, Dict[str, Set[str]]] = {
            self.OPERATION_ID: {},
            self.PATH: {},
        }
        self._keys_by_id: Dict[str, List[Tuple[str, str]]] = {}

    def __len__(self) -> int:
        return sum(len(keys) for keys in self._maps.values())

    @classmethod
    def keys_for(cls, descriptor: ResourceDescriptor) -> List[Tuple[str, str]]:
        """(map, key) pairs the descriptor is reachable under."""
        if not descriptor.is_rest():
            return []
        rest = descriptor.rest
        candidates = [
            (cls.OPERATION_ID, rest.operation_id),
            (cls.PATH, rest.request_url),
        ]
        if descriptor.path.startswith("/"):
            candidates.append((cls.PATH, descriptor.path))
        keys = []
        for kind, candidate in candidates:
            key = normalize_key(candidate)
            if key and (kind, key) not in keys:
                keys.append((kind, key))
        return keys

    def add(self, descriptor: ResourceDescriptor) -> None:
        self.remove(descriptor.id)
        keys = self.keys_for(descriptor)
        if not keys:
            return
        self._keys_by_id[descriptor.id] = keys
        for kind, key in keys:
            self._maps[kind].setdefault(key, set()).add(descriptor.id)

    def add_many(self, descriptors: Iterable[ResourceDescriptor]) -> None:
        for descriptor in descriptors:
            self.add(descriptor)

    def remove(self, descriptor_id: str) -> None:
        for kind, key in self._keys_by_id.pop(descriptor_id, []):
            ids = self._maps[kind].get(key)
            if ids is None:
                continue
            ids.discard(descriptor_id)
            if not ids:
                del self._maps[kind][key]

    def clear(self) -> None:
        for keys in self._maps.values():
            keys.clear()
        self._keys_by_id.clear()

    def lookup(
        self, query: str, intent: QueryIntent = QueryIntent.GENERIC
    ) -> Set[str]:
        """Return the ids keyed by ``query``.

        Path queries consult path templates; every other intent consults
        operationIds.
        """
        kind = self.PATH if intent is QueryIntent.PATH else self.OPERATION_ID
        return set(self._maps[kind].get(normalize_key(query), ()))
