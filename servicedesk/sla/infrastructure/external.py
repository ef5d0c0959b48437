"""
SLA External Service Integrations
=================================

SLA policy file loading with hot reload:
- YAML policy file parsed into `SLAPolicy`
- watchdog observer reloading it on change

A policy edit only affects tickets created after the reload; existing
deadlines are never recomputed.
"""

import threading
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from servicedesk.core import ConfigurationException
from servicedesk.shared.infrastructure.logging import get_logger
from servicedesk.sla.domain import SLAPolicy
from servicedesk.tickets.application.services import ISLAPolicyProvider

logger = get_logger(__name__)


class PolicyFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA policy file changes."""

    def __init__(self, manager: "SLAPolicyManager", policy_path: Path):
        self.manager = manager
        self.policy_path = policy_path
        super().__init__()

    def _is_policy_file(self, event) -> bool:
        if event.is_directory:
            return False
        paths = [event.src_path, getattr(event, "dest_path", None)]
        return any(p and Path(p).resolve() == self.policy_path.resolve() for p in paths)

    def on_modified(self, event):
        if self._is_policy_file(event):
            logger.info("SLA policy file changed", extra={"path": event.src_path})
            self.manager.reload()

    # Editors that save via rename emit moved/created instead of modified
    on_created = on_modified
    on_moved = on_modified


class SLAPolicyManager(ISLAPolicyProvider):
    """
    Thread-safe SLA policy holder with hot-reload support.

    Uses watchdog to monitor the YAML file and swap the policy without
    restarting the service. A broken edit is logged and the previous policy
    stays active.
    """

    def __init__(self):
        self._policy: Optional[SLAPolicy] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> SLAPolicy:
        """
        Initial policy load.

        Raises:
            ConfigurationException: file exists but cannot be parsed
        """
        self._path = Path(path)
        try:
            policy = self._load_from_file(self._path)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigurationException(
                f"Invalid SLA policy file {self._path}: {e}",
                {"path": str(self._path)}
            ) from e
        with self._lock:
            self._policy = policy
        logger.info(
            "SLA policy loaded",
            extra={"path": str(self._path), "resolution_hours": policy.resolution_hours}
        )
        return policy

    def _load_from_file(self, path: Path) -> SLAPolicy:
        """Load and parse YAML policy file."""
        if not path.exists():
            logger.warning("SLA policy file not found, using defaults", extra={"path": str(path)})
            return SLAPolicy()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return SLAPolicy(**data)

    def reload(self) -> bool:
        """Reload policy from file. Returns False and keeps the old policy on error."""
        if self._path is None:
            return False

        try:
            new_policy = self._load_from_file(self._path)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
            logger.error(
                "Failed to reload SLA policy, keeping previous",
                extra={"path": str(self._path), "error": str(e)}
            )
            return False

        with self._lock:
            self._policy = new_policy
        logger.info("SLA policy reloaded", extra={"resolution_hours": new_policy.resolution_hours})
        return True

    def start_watching(self) -> None:
        """
        Start watching the policy file for changes.

        Skips watching if the file doesn't exist or the platform has no
        usable file notification backend.
        """
        if self._path is None:
            raise RuntimeError("SLA policy not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                "SLA policy file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            handler = PolicyFileHandler(self, self._path)
            self._observer.schedule(handler, str(self._path.parent.resolve()), recursive=False)
            self._observer.start()
            logger.info("Started watching SLA policy file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static policy", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    def get_policy(self) -> SLAPolicy:
        with self._lock:
            if self._policy is None:
                raise RuntimeError("SLA policy not loaded")
            return self._policy
