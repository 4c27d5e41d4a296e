"""
Host Manager — registry of known hosts.

Owns the HostRecord of every host the user added and serializes all
operations on one host behind a per-host lock, since records are mutated in
place by the GameStream client.
"""

import logging
import threading
import uuid
from contextlib import contextmanager

from gamestream.client import GameStreamClient, parse_address
from gamestream.models import App, HostRecord, StreamLaunchRequest, StreamSession
from hosts.store import HostStore

logger = logging.getLogger(__name__)


class UnknownHostError(KeyError):
    pass


class HostManager:
    """Manages all known hosts and the operations run against them."""

    def __init__(self, client: GameStreamClient, store: HostStore) -> None:
        self._client = client
        self._store = store
        self._hosts: dict[str, HostRecord] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

        for known in store.hosts():
            self._hosts[known.host_id] = known.to_record()
            self._locks[known.host_id] = threading.Lock()

    @property
    def client(self) -> GameStreamClient:
        return self._client

    def get_hosts(self) -> dict[str, HostRecord]:
        """Return all known hosts by id."""
        with self._lock:
            return dict(self._hosts)

    def _find(self, address: str, http_port: int) -> str | None:
        for host_id, record in self._hosts.items():
            if record.address == address and record.http_port == http_port:
                return host_id
        return None

    def add_host(self, address: str) -> tuple[str, HostRecord]:
        """Discover the host at ``address`` and remember it.

        A host that is already known keeps its id and record; the record is
        refreshed in place under the host's lock.
        """
        with self._lock:
            host_id = self._find(*parse_address(address))
        if host_id is not None:
            record = self.refresh(host_id)
            self._store.put(host_id, record)
            return host_id, record

        record = self._client.connect(address)
        with self._lock:
            host_id = self._find(record.address, record.http_port)
            if host_id is not None:
                # added concurrently while we were probing
                return host_id, self._hosts[host_id]
            host_id = str(uuid.uuid4())
            self._locks[host_id] = threading.Lock()
            self._hosts[host_id] = record
        logger.info(f"Added host: {record.hostname} ({record.address})")
        self._store.put(host_id, record)
        return host_id, record

    def remove_host(self, host_id: str) -> None:
        with self._lock:
            if self._hosts.pop(host_id, None) is None:
                raise UnknownHostError(host_id)
            self._locks.pop(host_id, None)
        self._store.remove(host_id)

    @contextmanager
    def _locked(self, host_id: str, need_status: bool = True):
        with self._lock:
            record = self._hosts.get(host_id)
            host_lock = self._locks.get(host_id)
        if record is None or host_lock is None:
            raise UnknownHostError(host_id)
        with host_lock:
            # records loaded from the store have not been probed yet
            if need_status and not record.https_port:
                self._client.refresh(record)
            yield record

    def refresh(self, host_id: str) -> HostRecord:
        with self._locked(host_id, need_status=False) as record:
            return self._client.refresh(record)

    def pair(self, host_id: str, pin: str) -> HostRecord:
        with self._locked(host_id) as record:
            self._client.pair(record, pin)
            self._store.put(host_id, record)
            return record

    def unpair(self, host_id: str) -> HostRecord:
        with self._locked(host_id, need_status=False) as record:
            self._client.unpair(record)
            record.server_cert = None
            self._store.put(host_id, record)
            return record

    def list_apps(self, host_id: str) -> list[App]:
        with self._locked(host_id) as record:
            return self._client.list_apps(record)

    def fetch_box_art(self, host_id: str, app_id: int) -> bytes:
        with self._locked(host_id) as record:
            return self._client.fetch_box_art(record, app_id)

    def start_app(self, host_id: str, request: StreamLaunchRequest, app_id: int) -> StreamSession:
        with self._locked(host_id) as record:
            return self._client.start_app(record, request, app_id)

    def quit_app(self, host_id: str) -> HostRecord:
        with self._locked(host_id) as record:
            return self._client.quit_app(record)
