"""
ocmshare - Trusted servers and local recipient lookup.
"""

import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterable, Optional

logger = logging.getLogger("ocmshare.trust")


class TrustPolicy(str, Enum):
    OPEN = "open"
    ALLOWLIST = "allowlist"
    TRUSTLESS = "trustless"


def normalize_server_url(url: str) -> str:
    """Reduce a server identifier to ``host[:port][/path]`` for comparison."""
    url = url.strip().lower()
    for scheme in ("https://", "http://"):
        if url.startswith(scheme):
            url = url[len(scheme):]
            break
    return url.rstrip("/")


class TrustedServers:
    """Decides whether a remote server is trusted."""

    def __init__(
        self,
        policy: TrustPolicy = TrustPolicy.ALLOWLIST,
        servers: Optional[Iterable[str]] = None,
    ):
        self.policy = policy
        self._servers = {normalize_server_url(s) for s in servers or []}
        self._lock = threading.Lock()

    def is_trusted(self, server: str) -> bool:
        if self.policy == TrustPolicy.OPEN:
            return True
        if self.policy == TrustPolicy.TRUSTLESS or not server:
            return False
        with self._lock:
            return normalize_server_url(server) in self._servers

    def add_server(self, server: str) -> None:
        with self._lock:
            self._servers.add(normalize_server_url(server))
        logger.info(f"Trusted server added: {server}")

    def remove_server(self, server: str) -> None:
        with self._lock:
            self._servers.discard(normalize_server_url(server))

    @property
    def servers(self) -> list[str]:
        with self._lock:
            return sorted(self._servers)


class UserDirectory(ABC):
    """Local users and groups that may receive shares."""

    @abstractmethod
    def user_exists(self, uid: str) -> bool: ...

    @abstractmethod
    def group_exists(self, gid: str) -> bool: ...

    @abstractmethod
    def display_name(self, uid: str) -> str: ...


class StaticUserDirectory(UserDirectory):
    def __init__(
        self,
        users: Optional[dict[str, str]] = None,
        groups: Optional[Iterable[str]] = None,
    ):
        self.users = dict(users or {})
        self.groups = set(groups or [])

    def user_exists(self, uid: str) -> bool:
        return uid in self.users

    def group_exists(self, gid: str) -> bool:
        return gid in self.groups

    def display_name(self, uid: str) -> str:
        return self.users.get(uid) or ""
