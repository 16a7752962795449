from __future__ import annotations

import asyncio
import socket
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator

import httpx


DEFAULT_PROBE_TIMEOUT_SECONDS = 10.0

ERROR_HTTP = "http_error"
ERROR_TIMEOUT = "timeout"
ERROR_DNS = "dns_error"
ERROR_CONNECTION_REFUSED = "connection_refused"
ERROR_NETWORK = "network_error"

# Resolver messages differ per libc / platform.
_DNS_HINTS = (
    "name or service not known",
    "nodename nor servname provided",
    "temporary failure in name resolution",
    "no address associated with hostname",
    "getaddrinfo failed",
    "name resolution",
    "[errno -2]",
    "[errno -3]",
    "[errno 8]",
    "[errno 11001]",
)
_REFUSED_HINTS = (
    "connection refused",
    "[errno 111]",
    "[errno 61]",
    "[winerror 10061]",
)


@dataclass(frozen=True)
class ProbeOutcome:
    url: str
    checked_at: datetime
    success: bool
    response_time_ms: float | None
    status_code: int | None = None
    content_size: int | None = None
    error_type: str | None = None
    error_message: str | None = None

    @property
    def is_transport_failure(self) -> bool:
        return not self.success and self.status_code is None


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    cur: BaseException | None = exc
    while cur is not None and id(cur) not in seen:
        seen.add(id(cur))
        yield cur
        cur = cur.__cause__ or cur.__context__


def classify_request_error(exc: BaseException) -> str:
    """Map a transport exception onto one of the recorded failure kinds."""
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return ERROR_TIMEOUT

    chain = list(_exception_chain(exc))
    for e in chain:
        if isinstance(e, socket.gaierror):
            return ERROR_DNS
        if isinstance(e, ConnectionRefusedError):
            return ERROR_CONNECTION_REFUSED
        if isinstance(e, (socket.timeout, TimeoutError)):
            return ERROR_TIMEOUT

    msg = " ".join(str(e) for e in chain).lower()
    if any(hint in msg for hint in _DNS_HINTS):
        return ERROR_DNS
    if any(hint in msg for hint in _REFUSED_HINTS):
        return ERROR_CONNECTION_REFUSED
    return ERROR_NETWORK


def is_success_status(status_code: int) -> bool:
    return 200 <= int(status_code) < 300


async def probe_url(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
) -> ProbeOutcome:
    """GET `url` once and classify the result. Never raises for HTTP or transport failures.

    `timeout` bounds the whole exchange, body included, not just each httpx phase.
    """
    checked_at = datetime.now(timezone.utc)
    started = time.perf_counter()
    try:
        resp = await asyncio.wait_for(client.get(url, follow_redirects=True, timeout=timeout), timeout)
    except asyncio.TimeoutError:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        return ProbeOutcome(
            url=url,
            checked_at=checked_at,
            success=False,
            response_time_ms=round(elapsed_ms, 3),
            error_type=ERROR_TIMEOUT,
            error_message=f"Request exceeded {timeout:g}s",
        )
    except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        return ProbeOutcome(
            url=url,
            checked_at=checked_at,
            success=False,
            response_time_ms=round(elapsed_ms, 3),
            error_type=classify_request_error(e),
            error_message=f"{type(e).__name__}: {e}"[:500],
        )

    elapsed_ms = (time.perf_counter() - started) * 1000.0
    healthy = is_success_status(resp.status_code)
    return ProbeOutcome(
        url=url,
        checked_at=checked_at,
        success=healthy,
        response_time_ms=round(elapsed_ms, 3),
        status_code=resp.status_code,
        content_size=len(resp.content) if resp.content else None,
        error_type=None if healthy else ERROR_HTTP,
        error_message=None if healthy else f"HTTP {resp.status_code}",
    )
