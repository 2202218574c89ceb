"""Static scan of the consuming project for generated-client imports.

Import specifiers of the form
``<scope>/<package>/<source>/<tag|components>/<name>/...`` are bucketed per
source into controller, endpoint and data-type usage. Every bucket holds the
set of distinct files, so counts mean "files using this", not statements.
"""

import asyncio
import os
import time
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set

from tree_sitter_language_pack import get_parser

from ..config.logging import get_logger, log_performance
from ..config.settings import UsageConfig
from ..descriptors.models import ResourceDescriptor

logger = get_logger(__name__)

LANGUAGE_BY_SUFFIX = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}

IMPORT_NODE_TYPES = ("import_statement", "export_statement")

USAGE_KINDS = ("source", "controller", "endpoint", "datatype")

UsageMap = Dict[str, Dict[str, Set[str]]]


class UsageAnalyzer:
    """Tabulates which generated endpoints and schemas the project imports."""

    def __init__(self, config: Optional[UsageConfig] = None):
        """Initialize the analyzer.

        Args:
            config: Usage scan configuration (root, globs, package scope)
        """
        self.config = config or UsageConfig()
        self._parsers: Dict[str, object] = {}
        self._descriptors: List[ResourceDescriptor] = []

        self._source_usage: Dict[str, Set[str]] = {}
        self._controller_usage: UsageMap = {}
        self._endpoint_usage: UsageMap = {}
        self._datatype_usage: UsageMap = {}

    @property
    def root_dir(self) -> Path:
        return self.config.get_root_dir()

    def set_resource_descriptors(
        self, descriptors: List[ResourceDescriptor]
    ) -> None:
        """Replace the descriptor list used to resolve ids and names."""
        logger.debug("Setting descriptors for usage analysis", count=len(descriptors))
        self._descriptors = list(descriptors)

    def get_resource_descriptors(self) -> List[ResourceDescriptor]:
        return list(self._descriptors)

    def reindex(self, source_globs: Optional[List[str]] = None) -> int:
        """Rescan the whole project, replacing all usage maps.

        Args:
            source_globs: Glob patterns relative to the root; defaults to config

        Returns:
            int: Number of files scanned
        """
        start_time = time.time()
        globs = source_globs or self.config.source_globs

        source_usage: Dict[str, Set[str]] = {}
        controller_usage: UsageMap = {}
        endpoint_usage: UsageMap = {}
        datatype_usage: UsageMap = {}

        scanned = 0
        for file_path in self._iter_files(globs):
            specifiers = self._read_specifiers(file_path)
            if specifiers is None:
                continue
            scanned += 1
            relative = Path(os.path.relpath(file_path, self.root_dir)).as_posix()

            for specifier in specifiers:
                segments = specifier.split("/")
                if len(segments) <= 4 or segments[0] != self.config.package_scope:
                    continue
                source = segments[2]
                source_usage.setdefault(source, set()).add(relative)

                if segments[3] == "components":
                    _add(datatype_usage, source, segments[-1], relative)
                else:
                    _add(controller_usage, source, segments[3], relative)
                    _add(endpoint_usage, source, segments[4], relative)

        # Swap in one step so readers never see a half-built scan
        (
            self._source_usage,
            self._controller_usage,
            self._endpoint_usage,
            self._datatype_usage,
        ) = (source_usage, controller_usage, endpoint_usage, datatype_usage)

        log_performance(
            logger,
            "usage_reindex",
            (time.time() - start_time) * 1000,
            files=scanned,
            sources=len(source_usage),
        )
        return scanned

    async def reindex_async(self, source_globs: Optional[List[str]] = None) -> int:
        """Run ``reindex`` off the event loop."""
        return await asyncio.to_thread(self.reindex, source_globs)

    def _iter_files(self, globs: List[str]) -> Iterator[Path]:
        root = self.root_dir
        excluded = set(self.config.exclude_dirs)
        seen: Set[Path] = set()

        for pattern in globs:
            for path in sorted(root.glob(pattern)):
                if path in seen or not path.is_file():
                    continue
                if path.suffix not in LANGUAGE_BY_SUFFIX:
                    continue
                if excluded.intersection(path.relative_to(root).parts[:-1]):
                    continue
                seen.add(path)
                yield path

    def _parser_for(self, path: Path):
        language = LANGUAGE_BY_SUFFIX[path.suffix]
        if language not in self._parsers:
            self._parsers[language] = get_parser(language)
        return self._parsers[language]

    def _read_specifiers(self, path: Path) -> Optional[List[str]]:
        """Module specifiers of the file's import and re-export statements."""
        try:
            source = path.read_bytes()
        except OSError as e:
            logger.warning("Skipping unreadable file", file=str(path), error=str(e))
            return None

        tree = self._parser_for(path).parse(source)
        if tree.root_node.has_error:
            logger.debug("File parsed with syntax errors", file=str(path))

        specifiers = []
        for node in tree.root_node.children:
            if node.type not in IMPORT_NODE_TYPES:
                continue
            source_node = node.child_by_field_name("source")
            if source_node is None:
                continue
            text = source_node.text.decode("utf-8", errors="replace")
            specifiers.append(text.strip("'\"`"))
        return specifiers

    def is_endpoint_used(self, name: str, source: Optional[str] = None) -> bool:
        return _is_used(self._endpoint_usage, name, source)

    def is_data_type_used(self, name: str, source: Optional[str] = None) -> bool:
        return _is_used(self._datatype_usage, name, source)

    def get_usage_stats(self) -> Dict[str, List[str]]:
        """Split the current descriptors into used and unused names."""
        stats: Dict[str, List[str]] = {
            "usedEndpoints": [],
            "unusedEndpoints": [],
            "usedDataTypes": [],
            "unusedDataTypes": [],
        }
        for descriptor in self._descriptors:
            if descriptor.is_rest():
                used = self.is_endpoint_used(descriptor.name, descriptor.source)
                key = "usedEndpoints" if used else "unusedEndpoints"
            elif descriptor.is_schema():
                used = self.is_data_type_used(descriptor.name, descriptor.source)
                key = "usedDataTypes" if used else "unusedDataTypes"
            else:
                raise ValueError(f"Unknown descriptor type: {descriptor.type}")
            stats[key].append(descriptor.name)
        return stats

    def get_usage_counts(self, source: Optional[str] = None, kind: str = "") -> int:
        """Count used entries of one kind, for one source or all of them.

        ``source`` counts files importing the source; the other kinds count
        distinct controllers, endpoints or data types in use. Unknown kinds
        count as 0.
        """
        if kind == "source":
            if source:
                return len(self._source_usage.get(source, ()))
            return len(self._source_usage)

        usage = {
            "controller": self._controller_usage,
            "endpoint": self._endpoint_usage,
            "datatype": self._datatype_usage,
        }.get(kind)
        if usage is None:
            return 0
        if source:
            return len(usage.get(source, {}))
        return sum(len(names) for names in usage.values())

    def get_file_list(self, source: str, kind: str, descriptor_id: str) -> List[str]:
        """Files that import the endpoint or data type with the given id.

        Args:
            source: Source identifier
            kind: ``endpoint`` or ``datatype``
            descriptor_id: Id of the descriptor to resolve to a name

        Returns:
            List[str]: Sorted relative file paths; empty if unknown
        """
        name = next(
            (d.name for d in self._descriptors if d.id == descriptor_id), ""
        )
        if kind == "endpoint":
            usage = self._endpoint_usage
        elif kind == "datatype":
            usage = self._datatype_usage
        else:
            return []
        return sorted(usage.get(source, {}).get(name, ()))


def _add(usage: UsageMap, source: str, name: str, file_path: str) -> None:
    usage.setdefault(source, {}).setdefault(name, set()).add(file_path)


def _is_used(usage: UsageMap, name: str, source: Optional[str]) -> bool:
    if source is not None:
        return name in usage.get(source, {})
    return any(name in names for names in usage.values())
