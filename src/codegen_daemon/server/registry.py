"""Discovery file telling clients where the running daemon listens."""

import json
import os
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import psutil

from ..config.logging import get_logger

logger = get_logger(__name__)

REGISTRY_FILENAME = "daemon.json"


@dataclass
class DaemonInstance:
    """Represents the running daemon process."""

    name: str
    host: str
    port: int
    pid: int
    start_time: float
    working_directory: Optional[str] = None

    @property
    def url(self) -> str:
        """Get daemon base URL."""
        return f"http://{self.host}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data["url"] = self.url
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DaemonInstance":
        """Create instance from dictionary, ignoring derived keys."""
        return cls(
            name=data.get("name", "codegen-daemon"),
            host=data["host"],
            port=int(data["port"]),
            pid=int(data["pid"]),
            start_time=float(data.get("start_time", 0.0)),
            working_directory=data.get("working_directory"),
        )


class DaemonRegistry:
    """Reads and writes ``daemon.json`` in the data directory."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.registry_file = self.data_dir / REGISTRY_FILENAME

    def register(self, name: str, host: str, port: int) -> DaemonInstance:
        """Record the current process as the running daemon."""
        instance = DaemonInstance(
            name=name,
            host=host,
            port=port,
            pid=os.getpid(),
            start_time=time.time(),
            working_directory=os.getcwd(),
        )
        self.data_dir.mkdir(parents=True, exist_ok=True)
        with open(self.registry_file, "w", encoding="utf-8") as f:
            json.dump(instance.to_dict(), f, indent=2)
        logger.info("Daemon registered", url=instance.url, pid=instance.pid)
        return instance

    def unregister(self, pid: Optional[int] = None) -> bool:
        """Remove the discovery file if it belongs to ``pid`` (default: us)."""
        current = self._load()
        if current is None:
            return False
        if current.pid != (pid or os.getpid()):
            return False
        self.registry_file.unlink(missing_ok=True)
        logger.info("Daemon unregistered", pid=current.pid)
        return True

    def discover(self) -> Optional[DaemonInstance]:
        """Return the registered daemon if its process is still alive."""
        instance = self._load()
        if instance is None:
            return None
        if not self._is_process_alive(instance.pid):
            logger.debug("Discarding stale daemon entry", pid=instance.pid)
            return None
        return instance

    def _load(self) -> Optional[DaemonInstance]:
        if not self.registry_file.exists():
            return None
        try:
            with open(self.registry_file, "r", encoding="utf-8") as f:
                return DaemonInstance.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.warning("Failed to read daemon registry", error=str(e))
            return None

    @staticmethod
    def _is_process_alive(pid: int) -> bool:
        try:
            return psutil.Process(pid).is_running()
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            # Exists, but owned by another user
            return True
