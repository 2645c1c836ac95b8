"""SSRF-hardened HTTP transport shared by the page fetcher and the link prober.

Address checks run on the *resolved* IP inside the urllib3 connection, right
before the socket connects, so a hostname that later re-resolves to an
internal address (DNS rebinding) is still refused.
"""
from __future__ import annotations

import ipaddress
import logging
import socket
import threading
from typing import Iterator, Optional
from urllib.parse import urljoin, urlsplit

import requests
from requests.adapters import HTTPAdapter
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool
from urllib3.exceptions import ConnectTimeoutError, NameResolutionError, NewConnectionError
from urllib3.util import connection as urllib3_connection

from pageinsight.domain.deadline import Deadline
from pageinsight.exceptions import BlockedAddressError, BlockedRedirectError

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")
MAX_REDIRECTS = 5
MAX_RESPONSE_BYTES = 10 * 1024 * 1024
CHUNK_SIZE = 64 * 1024

# Ranges the global-unicast/private checks below do not already cover.
RESERVED_NETWORKS = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        "100.64.0.0/10",  # carrier-grade NAT (RFC 6598)
        "192.0.0.0/24",  # IETF protocol assignments (RFC 6890)
        "192.0.2.0/24",  # TEST-NET-1 (RFC 5737)
        "198.18.0.0/15",  # benchmarking (RFC 2544)
        "198.51.100.0/24",  # TEST-NET-2 (RFC 5737)
        "203.0.113.0/24",  # TEST-NET-3 (RFC 5737)
    )
)

_LIMITED_BROADCAST = ipaddress.IPv4Address("255.255.255.255")


def _is_global_unicast(ip) -> bool:
    return not (
        ip.is_unspecified
        or ip.is_loopback
        or ip.is_multicast
        or ip.is_link_local
        or ip == _LIMITED_BROADCAST
    )


def is_blocked_ip(address) -> bool:
    """Return True when `address` must not be dialed.

    Accepts a string or an `ipaddress` address. Unparsable input is blocked.
    """
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return True

    # ::ffff:127.0.0.1 must be judged as 127.0.0.1
    if ip.version == 6 and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped

    if not _is_global_unicast(ip) or ip.is_private:
        return True
    return any(net.version == ip.version and ip in net for net in RESERVED_NETWORKS)


def create_guarded_connection(address, timeout, source_address=None, socket_options=None) -> socket.socket:
    """Resolve `address` and connect to the first public IP it yields.

    Blocked addresses are skipped; if nothing connectable remains the last
    connection error is raised, or BlockedAddressError when every resolved
    address was refused.
    """
    host, port = address
    if host.startswith("["):
        host = host.strip("[]")

    blocked: Optional[BlockedAddressError] = None
    last_error: Optional[OSError] = None
    family = urllib3_connection.allowed_gai_family()
    for _family, _type, _proto, _canon, sockaddr in socket.getaddrinfo(host, port, family, socket.SOCK_STREAM):
        ip = sockaddr[0]
        if is_blocked_ip(ip):
            logger.warning("Refusing to dial %s (resolved from %s)", ip, host)
            blocked = BlockedAddressError(ip)
            continue
        try:
            return urllib3_connection.create_connection(
                (ip, port),
                timeout,
                source_address=source_address,
                socket_options=socket_options,
            )
        except OSError as e:
            last_error = e

    if last_error is not None:
        raise last_error
    if blocked is not None:
        raise blocked
    raise OSError(f"getaddrinfo returned no addresses for {host}")


class _GuardedConnectionMixin:
    def _new_conn(self) -> socket.socket:
        try:
            return create_guarded_connection(
                (self._dns_host, self.port),
                self.timeout,
                source_address=self.source_address,
                socket_options=self.socket_options,
            )
        except socket.gaierror as e:
            raise NameResolutionError(self.host, self, e) from e
        except socket.timeout as e:
            raise ConnectTimeoutError(
                self,
                f"Connection to {self.host} timed out. (connect timeout={self.timeout})",
            ) from e
        except OSError as e:
            raise NewConnectionError(self, f"Failed to establish a new connection: {e}") from e


class GuardedHTTPConnection(_GuardedConnectionMixin, HTTPConnection):
    pass


class GuardedHTTPSConnection(_GuardedConnectionMixin, HTTPSConnection):
    pass


class GuardedHTTPConnectionPool(HTTPConnectionPool):
    ConnectionCls = GuardedHTTPConnection


class GuardedHTTPSConnectionPool(HTTPSConnectionPool):
    ConnectionCls = GuardedHTTPSConnection


class SafeHTTPAdapter(HTTPAdapter):
    """requests adapter whose pools only open connections to public addresses."""

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            "http": GuardedHTTPConnectionPool,
            "https": GuardedHTTPSConnectionPool,
        }


def redirect_target(resp) -> Optional[str]:
    """Absolute Location of a redirect response, or None when `resp` is not one.

    Raises BlockedRedirectError for targets outside http(s). The response
    body is never read.
    """
    if not resp.is_redirect:
        return None
    target = urljoin(resp.url, resp.headers["location"])
    scheme = urlsplit(target).scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise BlockedRedirectError(target, scheme)
    return target


def build_session(*, pool_size: int, user_agent: str) -> requests.Session:
    """Return a session mounted with the guarded adapter.

    The session itself never follows redirects; callers that want them walk
    the hops with `redirect_target` so each 3xx body stays unread.
    """
    session = requests.Session()
    # A proxy from the environment would be dialed instead of the target.
    session.trust_env = False
    session.headers["User-Agent"] = user_agent
    adapter = SafeHTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size, max_retries=0)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _shutdown_socket(response) -> None:
    conn = getattr(getattr(response, "raw", None), "_connection", None)
    sock = getattr(conn, "sock", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass


class LimitedBody:
    """Iterator of body chunks from a streamed response, capped at `limit` bytes.

    Bytes past the cap are never read. `budget`, when given, bounds the wall
    time spent reading: a watchdog thread shuts the socket down once the
    budget is done, so a read blocked on a slow peer fails instead of
    waiting out the per-read timeout. Exceeding the budget raises
    `requests.exceptions.ReadTimeout`.
    """

    WATCH_INTERVAL = 0.05

    def __init__(
        self,
        response,
        limit: int = MAX_RESPONSE_BYTES,
        chunk_size: int = CHUNK_SIZE,
        budget: Optional[Deadline] = None,
    ):
        self._response = response
        self._limit = limit
        self._chunk_size = chunk_size
        self._budget = budget
        self._closed = threading.Event()
        self.aborted = False
        self.bytes_read = 0
        self.truncated = False
        if budget is not None:
            threading.Thread(target=self._watch, name="body-watchdog", daemon=True).start()

    def _watch(self) -> None:
        while not self._closed.wait(self.WATCH_INTERVAL):
            if self._budget.done():
                self.aborted = True
                logger.info("Aborting read of %s: time budget exhausted", self._response.url)
                _shutdown_socket(self._response)
                return

    def __iter__(self) -> Iterator[bytes]:
        try:
            yield from self._read()
        except requests.exceptions.ReadTimeout:
            raise
        except Exception as e:
            if self.aborted or (self._budget is not None and self._budget.done()):
                raise requests.exceptions.ReadTimeout("page fetch exceeded its time budget") from e
            raise
        if self.aborted:
            raise requests.exceptions.ReadTimeout("page fetch exceeded its time budget")

    def _read(self) -> Iterator[bytes]:
        for chunk in self._response.iter_content(chunk_size=self._chunk_size):
            if self._budget is not None and self._budget.done():
                raise requests.exceptions.ReadTimeout("page fetch exceeded its time budget")
            if not chunk:
                continue
            remaining = self._limit - self.bytes_read
            if len(chunk) > remaining:
                self.bytes_read += remaining
                self.truncated = True
                logger.info("Response body from %s truncated at %d bytes", self._response.url, self._limit)
                if remaining:
                    yield chunk[:remaining]
                return
            self.bytes_read += len(chunk)
            yield chunk

    def close(self) -> None:
        self._closed.set()
        self._response.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
