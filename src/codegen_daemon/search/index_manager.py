"""Full-text index adapter over descriptor documents.

This module provides the FullTextIndex class which handles:
- Owning an in-memory Whoosh index per instance
- Replace-on-write indexing and removal by descriptor id
- Weighted exact, prefix and fuzzy matching scored with BM25F
- Post-filtering hits against stored document fields
"""

import itertools
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from whoosh import scoring
from whoosh.filedb.filestore import RamStorage
from whoosh.index import Index
from whoosh.query import FuzzyTerm, Or, Prefix, Query, Term
from whoosh.writing import CLEAR

from ..config.logging import get_logger, log_performance
from ..config.settings import SearchConfig
from .index_schema import (
    ALL_SENTINEL,
    CATCH_ALL_FIELD,
    SEARCH_FIELDS,
    IndexDocument,
    create_search_schema,
)

logger = get_logger(__name__)

DocumentFilter = Callable[[IndexDocument], bool]


@dataclass
class IndexHit:
    """A matched document id and its raw text relevance."""

    id: str
    score: float


class FullTextIndex:
    """In-memory inverted index over descriptor documents."""

    def __init__(self, config: Optional[SearchConfig] = None):
        """Initialize an empty index.

        Args:
            config: Search configuration with field weights and fuzzy limits
        """
        self.config = config or SearchConfig()
        self.schema = create_search_schema()
        self._index: Index = RamStorage().create_index(self.schema)
        # First-indexed order, used to break score ties
        self._sequence: Dict[str, int] = {}
        self._counter = itertools.count()

    def __len__(self) -> int:
        return len(self._sequence)

    def __contains__(self, doc_id: str) -> bool:
        return doc_id in self._sequence

    def index(self, document: IndexDocument) -> None:
        """Insert a document, replacing any existing one with the same id."""
        self.index_many([document])

    def index_many(self, documents: Iterable[IndexDocument]) -> int:
        """Insert or replace several documents in one writer batch.

        Returns:
            int: Number of documents written
        """
        # Last write wins for repeated ids within one batch
        documents = list({d.id: d for d in documents}.values())
        if not documents:
            return 0

        writer = self._index.writer()
        try:
            for document in documents:
                writer.update_document(**document.to_fields())
        except Exception:
            writer.cancel()
            raise
        writer.commit()

        for document in documents:
            if document.id not in self._sequence:
                self._sequence[document.id] = next(self._counter)
        return len(documents)

    def remove(self, doc_id: str) -> bool:
        """Delete a document by id; absent ids are a no-op.

        Returns:
            bool: True if a document was removed
        """
        if doc_id not in self._sequence:
            return False

        writer = self._index.writer()
        writer.delete_by_term("id", doc_id)
        writer.commit()
        del self._sequence[doc_id]
        return True

    def remove_all(self) -> None:
        """Delete every document."""
        writer = self._index.writer()
        writer.commit(mergetype=CLEAR)
        self._sequence.clear()

    def query(
        self,
        text: str,
        prefix: bool = True,
        fuzzy: Optional[float] = None,
        filter: Optional[DocumentFilter] = None,
    ) -> List[IndexHit]:
        """Run a ranked free-text query.

        Args:
            text: Free text; empty or whitespace matches every document
            prefix: Whether each token also matches terms it prefixes
            fuzzy: Edit-distance tolerance in [0, 1] relative to token length
            filter: Predicate over the stored document projection

        Returns:
            List[IndexHit]: Hits ordered by score, then by first-indexed order
        """
        start_time = time.time()
        fuzzy = self.config.fuzzy if fuzzy is None else fuzzy
        whoosh_query = self.build_query(text, prefix=prefix, fuzzy=fuzzy)
        if whoosh_query is None:
            return []

        hits = []
        with self._index.searcher(weighting=scoring.BM25F()) as searcher:
            results = searcher.search(whoosh_query, limit=None)
            for hit in results:
                fields = hit.fields()
                if filter is not None and not filter(
                    IndexDocument.from_fields(fields)
                ):
                    continue
                hits.append(IndexHit(id=fields["id"], score=hit.score))

        hits.sort(key=lambda h: (-h.score, self._sequence.get(h.id, 0)))

        log_performance(
            logger,
            "index_query",
            (time.time() - start_time) * 1000,
            hits=len(hits),
        )
        return hits

    def build_query(
        self, text: str, prefix: bool = True, fuzzy: float = 0.0
    ) -> Optional[Query]:
        """Build the weighted Whoosh query for free text.

        Returns:
            Optional[Query]: None when the text has no searchable tokens
        """
        text = (text or "").strip()
        weights = self.config.field_weights

        if not text or text == ALL_SENTINEL:
            return Term(CATCH_ALL_FIELD, ALL_SENTINEL, boost=weights.catch_all)

        clauses: List[Query] = []
        for fieldname in SEARCH_FIELDS:
            boost = getattr(weights, fieldname)
            tokens = dict.fromkeys(
                self.schema[fieldname].process_text(text, mode="query")
            )
            for token in tokens:
                clauses.append(Term(fieldname, token, boost=boost))
                if prefix:
                    clauses.append(
                        Prefix(
                            fieldname,
                            token,
                            boost=boost * self.config.prefix_weight,
                            constantscore=False,
                        )
                    )
                distance = self._fuzzy_distance(token, fuzzy)
                if distance > 0:
                    clauses.append(
                        FuzzyTerm(
                            fieldname,
                            token,
                            boost=boost * self.config.fuzzy_weight,
                            maxdist=distance,
                            prefixlength=0,
                            constantscore=False,
                        )
                    )

        if not clauses:
            logger.debug("Query has no searchable tokens", query=text[:80])
            return None
        return Or(clauses)

    def _fuzzy_distance(self, token: str, fuzzy: float) -> int:
        # Edit-distance automata get expensive on long tokens
        if fuzzy <= 0 or len(token) > self.config.max_fuzzy_term_length:
            return 0
        return min(round(fuzzy * len(token)), self.config.max_fuzzy_distance)
