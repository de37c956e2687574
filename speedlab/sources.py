"""
Sample sources -- where raw readings come from.

The measurement controller only needs ``await source.sample(phase)`` to return
one float (ms for ``ping``, Mbps for ``download`` / ``upload``).  How the value
is obtained is up to the source:

* :class:`SimulatedSource`       -- uniform random readings, no network
* :class:`WebSocketLatencySource` -- Ookla-style ``PING``/``PONG`` round-trips
* :class:`HttpThroughputSource`  -- streaming HTTPS GET / POST throughput
* :class:`PhaseRouter`           -- delegates each phase to its own source
"""
from __future__ import annotations

import asyncio
import logging
import os
import random
import time
from typing import Dict, Iterable, Optional, Tuple

import aiohttp
import websockets
import websockets.exceptions

from .constants import (
    CHUNK_SIZE,
    COMMON_HEADERS,
    DNS_PROBE_DOMAINS,
    DOWNLOAD_FILE_SIZE,
    MAX_REASONABLE_SPEED,
    SAMPLE_INTERVAL,
    UPLOAD_BUFFER_SIZE,
)

LOGGER = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class SampleSource:
    """Base class.  Subclasses implement :meth:`sample`."""

    async def open(self) -> None:
        """Acquire resources before the first phase."""

    async def close(self) -> None:
        """Release resources after the run (completed or not)."""

    async def end_phase(self, phase: str) -> None:
        """Called once when *phase* finishes."""

    async def sample(self, phase: str) -> float:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Simulated
# ---------------------------------------------------------------------------

SIMULATED_RANGES: Dict[str, Tuple[float, float]] = {
    "ping": (5.0, 30.0),
    "download": (60.0, 260.0),
    "upload": (20.0, 130.0),
}


class SimulatedSource(SampleSource):
    """Uniformly distributed readings within fixed per-phase ranges."""

    def __init__(
        self,
        ranges: Optional[Dict[str, Tuple[float, float]]] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.ranges = dict(SIMULATED_RANGES if ranges is None else ranges)
        self._rng = random.Random(seed)

    async def sample(self, phase: str) -> float:
        lo, hi = self.ranges[phase]
        return lo + self._rng.random() * (hi - lo)


# ---------------------------------------------------------------------------
# WebSocket latency
# ---------------------------------------------------------------------------

_WS_CONNECT_TIMEOUT = 5.0   # seconds to establish the WS connection
_HANDSHAKE_TIMEOUT = 2.0    # max wait for HELLO/YOURIP/CAPABILITIES
_MSG_TIMEOUT = 0.5          # per-message timeout during handshake
_PING_TIMEOUT = 5.0         # per-ping round-trip timeout


class WebSocketLatencySource(SampleSource):
    """
    Latency readings over a speedtest WebSocket.

    Protocol flow::

        1. Connect to  wss://{hostname}:{port}/ws
        2. Receive  HELLO / YOURIP / CAPABILITIES
        3. Send     PING {timestamp_ms}
        4. Receive  PONG {server_timestamp}
    """

    def __init__(self, url: str, timeout: float = _PING_TIMEOUT) -> None:
        self.url = url
        self.timeout = timeout
        self.server_version = ""
        self.external_ip = ""
        self._ws = None

    async def open(self) -> None:
        if self._ws is not None:
            return
        self._ws = await websockets.connect(
            self.url,
            additional_headers=COMMON_HEADERS,
            ping_interval=None,
            close_timeout=2,
            open_timeout=_WS_CONNECT_TIMEOUT,
        )
        await self._read_handshake()
        LOGGER.debug("Connected to %s (server %s)", self.url, self.server_version or "?")

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None

    async def sample(self, phase: str) -> float:
        if self._ws is None:
            await self.open()

        send_time = time.perf_counter() * 1000  # ms
        await self._ws.send(f"PING {int(send_time)}")
        msg = await asyncio.wait_for(self._ws.recv(), timeout=self.timeout)
        recv_time = time.perf_counter() * 1000

        if not msg.startswith("PONG"):
            raise ConnectionError(f"Unexpected response: {msg[:50]}")
        return recv_time - send_time

    async def _read_handshake(self) -> None:
        """Consume HELLO / YOURIP / CAPABILITIES messages."""
        start = time.perf_counter()
        received = 0

        while time.perf_counter() - start < _HANDSHAKE_TIMEOUT:
            try:
                msg = await asyncio.wait_for(self._ws.recv(), timeout=_MSG_TIMEOUT)
            except asyncio.TimeoutError:
                break
            except (websockets.exceptions.WebSocketException, ConnectionError, OSError):
                break

            if msg.startswith("HELLO"):
                parts = msg.split()
                if len(parts) >= 2:
                    self.server_version = parts[1]
            elif msg.startswith("YOURIP"):
                self.external_ip = msg.split()[1].strip()

            received += 1
            if received >= 3:
                break


# ---------------------------------------------------------------------------
# HTTP throughput
# ---------------------------------------------------------------------------

class HttpThroughputSource(SampleSource):
    """
    Throughput readings from one long-running HTTPS transfer.

    A background worker streams data (GET for ``download``, POST for
    ``upload``); each :meth:`sample` returns the Mbps achieved since the
    previous sample.  The transfer starts on the first sample of a phase and
    stops in :meth:`end_phase`.
    """

    def __init__(self, download_url: str = "", upload_url: str = "") -> None:
        self.download_url = download_url
        self.upload_url = upload_url
        self._session: Optional[aiohttp.ClientSession] = None
        self._worker: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()
        self._bytes = 0
        self._prev_bytes = 0
        self._prev_time = 0.0
        self._buffer = os.urandom(UPLOAD_BUFFER_SIZE)

    async def open(self) -> None:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=None, connect=5, sock_read=5)
            headers = {**COMMON_HEADERS, "Accept-Encoding": "identity"}
            self._session = aiohttp.ClientSession(headers=headers, timeout=timeout)

    async def close(self) -> None:
        error = await self._stop_worker()
        if error is not None:
            LOGGER.debug("Transfer worker ended with %r", error)
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def end_phase(self, phase: str) -> None:
        error = await self._stop_worker()
        if error is not None:
            raise error

    async def sample(self, phase: str) -> float:
        if self._worker is None:
            await self.open()
            self._start_worker(phase)
            await asyncio.sleep(SAMPLE_INTERVAL)
        elif self._worker.done():
            # Surface worker failures instead of reporting zero throughput.
            self._worker.result()

        now = time.perf_counter()
        cur = self._bytes
        dt = now - self._prev_time
        mbps = ((cur - self._prev_bytes) * 8) / dt / 1_000_000 if dt > 0 else 0.0
        self._prev_bytes = cur
        self._prev_time = now
        return min(mbps, MAX_REASONABLE_SPEED)

    # -- Internals ----------------------------------------------------------

    def _start_worker(self, phase: str) -> None:
        if phase == "download":
            coro = self._download()
        elif phase == "upload":
            coro = self._upload()
        else:
            raise ValueError(f"HttpThroughputSource cannot measure {phase!r}")
        self._stop.clear()
        self._bytes = self._prev_bytes = 0
        self._prev_time = time.perf_counter()
        self._worker = asyncio.create_task(coro)

    async def _stop_worker(self) -> Optional[Exception]:
        """Stop the transfer and return its failure, if it had one."""
        if self._worker is None:
            return None
        worker, self._worker = self._worker, None
        self._stop.set()
        worker.cancel()
        outcome, = await asyncio.gather(worker, return_exceptions=True)
        return outcome if isinstance(outcome, Exception) else None

    async def _download(self) -> None:
        url = f"{self.download_url}?size={DOWNLOAD_FILE_SIZE}"
        while not self._stop.is_set():
            async with self._session.get(url) as resp:
                resp.raise_for_status()
                while not self._stop.is_set():
                    chunk = await resp.content.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    self._bytes += len(chunk)

    async def _upload(self) -> None:
        async def _stream():
            pos = 0
            size = len(self._buffer)
            while not self._stop.is_set():
                chunk = self._buffer[pos:pos + CHUNK_SIZE]
                pos = (pos + CHUNK_SIZE) % size
                self._bytes += len(chunk)
                yield chunk

        headers = {"Content-Type": "application/octet-stream"}
        while not self._stop.is_set():
            async with self._session.post(self.upload_url, data=_stream(), headers=headers) as resp:
                resp.raise_for_status()


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

class PhaseRouter(SampleSource):
    """Send each phase to its own source; unmapped phases use *fallback*."""

    def __init__(
        self,
        routes: Dict[str, SampleSource],
        fallback: Optional[SampleSource] = None,
    ) -> None:
        self.routes = dict(routes)
        self.fallback = fallback

    def _unique(self) -> Iterable[SampleSource]:
        seen = []
        for src in list(self.routes.values()) + [self.fallback]:
            if src is not None and all(src is not s for s in seen):
                seen.append(src)
        return seen

    def _route(self, phase: str) -> SampleSource:
        src = self.routes.get(phase, self.fallback)
        if src is None:
            raise KeyError(f"No sample source configured for phase {phase!r}")
        return src

    async def open(self) -> None:
        for src in self._unique():
            await src.open()

    async def close(self) -> None:
        for src in self._unique():
            await src.close()

    async def end_phase(self, phase: str) -> None:
        await self._route(phase).end_phase(phase)

    async def sample(self, phase: str) -> float:
        return await self._route(phase).sample(phase)


# ---------------------------------------------------------------------------
# DNS timing
# ---------------------------------------------------------------------------

async def measure_dns_lookup(
    domains: Iterable[str] = DNS_PROBE_DOMAINS,
    timeout: float = 5.0,
) -> Optional[float]:
    """
    Approximate name-resolution time as the fastest cold fetch of a tiny
    resource from each of *domains*, in whole milliseconds.

    Fetch failures still count: only the elapsed time matters.
    """
    times = []
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    async with aiohttp.ClientSession(headers=COMMON_HEADERS, timeout=client_timeout) as session:
        for domain in domains:
            start = time.perf_counter()
            try:
                async with session.get(f"https://{domain}/favicon.ico") as resp:
                    await resp.read()
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
                LOGGER.debug("DNS probe to %s failed: %s", domain, exc)
            times.append((time.perf_counter() - start) * 1000)

    if not times:
        return None
    return float(round(min(times)))
