"""Fetching, decoding and persisting OpenAPI documents per source."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import aiofiles
import aiohttp
import yaml
from openapi_spec_validator import validate
from openapi_spec_validator.validation.exceptions import (
    OpenAPIValidationError,
    ValidatorDetectError,
)

from ..config.logging import get_logger, sanitize_log_data
from ..config.settings import SourceConfig
from ..server.exceptions import SourceFetchError

logger = get_logger(__name__)


class SourceStore:
    """Stores the latest document of every source as JSON on disk."""

    def __init__(self, specs_dir: Path, request_timeout: float = 30.0):
        """Initialize the store.

        Args:
            specs_dir: Directory holding one ``<source>-latest.json`` per source
            request_timeout: Total timeout for fetching a remote spec
        """
        self.specs_dir = Path(specs_dir)
        self.request_timeout = request_timeout

    def spec_path(self, source_id: str) -> Path:
        return self.specs_dir / f"{source_id}-latest.json"

    async def sync_source(self, source: SourceConfig) -> Dict[str, Any]:
        """Fetch, decode, validate and save one source's document.

        Raises:
            SourceFetchError: If the document cannot be fetched or decoded
        """
        raw = await self.fetch(source)
        document = self.decode(source.id, raw)
        for warning in self.validate(source.id, document):
            logger.warning("Spec validation warning", source=source.id, warning=warning)
        await self.save(source.id, document)
        return document

    async def fetch(self, source: SourceConfig) -> str:
        """Read the raw spec text from an http(s) URL or a local path."""
        parsed = urlparse(source.spec_url)
        logger.debug(
            "Fetching spec",
            **sanitize_log_data({"source": source.id, "url": source.spec_url}),
        )

        if parsed.scheme in ("http", "https"):
            timeout = aiohttp.ClientTimeout(total=self.request_timeout)
            try:
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    async with session.get(source.spec_url) as response:
                        if response.status != 200:
                            raise SourceFetchError(
                                source.id, f"HTTP {response.status}"
                            )
                        return await response.text()
            except aiohttp.ClientError as e:
                raise SourceFetchError(source.id, str(e)) from e

        local_path = Path(parsed.path if parsed.scheme == "file" else source.spec_url)
        try:
            async with aiofiles.open(local_path, "r", encoding="utf-8") as f:
                return await f.read()
        except OSError as e:
            raise SourceFetchError(source.id, str(e)) from e

    @staticmethod
    def decode(source_id: str, raw: str) -> Dict[str, Any]:
        """Parse JSON, falling back to YAML."""
        try:
            document = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Spec is not JSON, trying YAML", source=source_id)
            try:
                document = yaml.safe_load(raw)
            except yaml.YAMLError as e:
                raise SourceFetchError(source_id, f"undecodable document: {e}") from e

        if not isinstance(document, dict):
            raise SourceFetchError(source_id, "document is not a mapping")
        return document

    @staticmethod
    def validate(source_id: str, document: Dict[str, Any]) -> List[str]:
        """Validate against the OpenAPI schema; problems are reported, not raised."""
        try:
            validate(document)
        except (OpenAPIValidationError, ValidatorDetectError) as e:
            return [getattr(e, "message", None) or str(e)]
        return []

    async def save(self, source_id: str, document: Dict[str, Any]) -> Path:
        path = self.spec_path(source_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(document, indent=2))
        logger.info("Spec saved", source=source_id, path=str(path))
        return path

    async def read(self, source_id: str) -> Optional[Dict[str, Any]]:
        """Load the saved document, or None if the source was never synced."""
        path = self.spec_path(source_id)
        if not path.exists():
            return None
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return json.loads(await f.read())
