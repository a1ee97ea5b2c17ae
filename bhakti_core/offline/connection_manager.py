# =============================================================================
# bhakti_core/offline/connection_manager.py
# Connection Status Detection
# =============================================================================
"""
ConnectionManager - detects internet and remote content source reachability.

Used before background syncs so an offline device skips the attempt instead
of recording a failed sync.
"""

from __future__ import annotations
import socket
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence, Tuple
from urllib.parse import urlparse
import logging

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"           # Internet and remote source reachable
    OFFLINE = "offline"         # No connectivity
    DEGRADED = "degraded"       # Internet OK but remote source unavailable
    UNKNOWN = "unknown"         # Not checked yet


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    internet_available: bool = False
    remote_available: bool = False
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None


class ConnectionManager:
    """
    Connection status detection.

    Usage:
        manager = ConnectionManager(config.supabase_url)
        if manager.check_connection().status is ConnectionStatus.ONLINE:
            engine.sync_new_content()
    """

    CONNECTION_TIMEOUT = 5  # Seconds per connection attempt

    PROBE_HOSTS: Sequence[Tuple[str, int]] = (
        ("8.8.8.8", 53),         # Google DNS
        ("1.1.1.1", 53),         # Cloudflare DNS
        ("208.67.222.222", 53),  # OpenDNS
    )

    def __init__(self, remote_url: Optional[str] = None, timeout: Optional[float] = None):
        self.remote_url = remote_url
        self.timeout = timeout or self.CONNECTION_TIMEOUT
        self._state = ConnectionState()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def is_online(self) -> bool:
        """Full connectivity as of the last check."""
        return self._state.status == ConnectionStatus.ONLINE

    def _can_connect(self, host: str, port: int) -> bool:
        try:
            with socket.create_connection((host, port), timeout=self.timeout):
                return True
        except OSError:
            return False

    def _check_internet(self) -> bool:
        """Check internet connectivity by reaching well-known hosts."""
        return any(self._can_connect(host, port) for host, port in self.PROBE_HOSTS)

    def _check_remote(self) -> bool:
        """Check that the remote content host accepts connections."""
        if not self.remote_url:
            self._state.error_message = "Remote content source is not configured"
            return False

        parsed = urlparse(self.remote_url)
        if not parsed.hostname:
            self._state.error_message = f"Invalid remote URL: {self.remote_url}"
            return False

        port = parsed.port or (443 if parsed.scheme != "http" else 80)
        return self._can_connect(parsed.hostname, port)

    def check_connection(self) -> ConnectionState:
        """Perform a connection check and update state."""
        old_status = self._state.status
        self._state.last_check = datetime.now()

        internet_ok = self._check_internet()
        remote_ok = self._check_remote() if internet_ok else False
        self._state.internet_available = internet_ok
        self._state.remote_available = remote_ok

        if internet_ok and remote_ok:
            self._state.status = ConnectionStatus.ONLINE
            self._state.last_online = datetime.now()
            self._state.consecutive_failures = 0
            self._state.error_message = None
        elif internet_ok:
            self._state.status = ConnectionStatus.DEGRADED
            self._state.consecutive_failures += 1
        else:
            self._state.status = ConnectionStatus.OFFLINE
            self._state.consecutive_failures += 1

        if old_status != self._state.status:
            logger.info(f"Connection status changed: {old_status.value} -> {self._state.status.value}")

        return self._state

    def force_offline(self) -> None:
        """Force offline mode (for testing or user preference)."""
        self._state.status = ConnectionStatus.OFFLINE
        self._state.internet_available = False
        self._state.remote_available = False
        logger.info("Forced offline mode")

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "internet": self._state.internet_available,
            "remote": self._state.remote_available,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
        }
