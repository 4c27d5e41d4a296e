"""Persistent list of hosts the user has added, with their pinned certificates."""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

from config import CONFIG_DIR, DEFAULT_HTTP_PORT
from gamestream.models import HostRecord

logger = logging.getLogger(__name__)


class KnownHost(BaseModel):
    """The part of a HostRecord that survives a restart."""
    host_id: str
    address: str
    http_port: int = DEFAULT_HTTP_PORT
    hostname: str = ""
    mac: str = ""
    server_cert: Optional[str] = None

    @classmethod
    def from_record(cls, host_id: str, record: HostRecord) -> "KnownHost":
        return cls(
            host_id=host_id,
            address=record.address,
            http_port=record.http_port,
            hostname=record.hostname,
            mac=record.mac,
            server_cert=record.server_cert,
        )

    def to_record(self) -> HostRecord:
        return HostRecord(
            address=self.address,
            http_port=self.http_port,
            hostname=self.hostname,
            mac=self.mac,
            server_cert=self.server_cert,
        )


class HostStore:
    """Persists known hosts as JSON in the config directory."""

    def __init__(self, config_dir: Path = CONFIG_DIR):
        self._store_path = Path(config_dir) / "hosts.json"
        self._hosts: dict[str, KnownHost] = {}
        self._load()

    def _load(self) -> None:
        if not self._store_path.exists():
            return

        try:
            data = json.loads(self._store_path.read_text())
            for host_id, host_data in data.items():
                self._hosts[host_id] = KnownHost(**host_data)
            logger.info(f"Loaded {len(self._hosts)} known hosts.")
        except (OSError, ValueError, TypeError, ValidationError) as e:
            logger.error(f"Failed to load known hosts: {e}")
            self._hosts.clear()

    def save(self) -> None:
        try:
            data = {
                host_id: host.model_dump()
                for host_id, host in self._hosts.items()
            }
            self._store_path.write_text(json.dumps(data, indent=2))
        except OSError as e:
            logger.error(f"Failed to save known hosts: {e}")

    def hosts(self) -> list[KnownHost]:
        return list(self._hosts.values())

    def put(self, host_id: str, record: HostRecord) -> None:
        """Add or update a host and write the store."""
        self._hosts[host_id] = KnownHost.from_record(host_id, record)
        self.save()

    def remove(self, host_id: str) -> None:
        if self._hosts.pop(host_id, None) is not None:
            logger.info(f"Removed known host {host_id}")
            self.save()
