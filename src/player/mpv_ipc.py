from __future__ import annotations

import json
import logging
import os
import socket
import threading
import time
from typing import Any, Optional

from core.models import PlayerState, RawSnapshot
from .media_service import (
    CommandError,
    MediaCommand,
    MediaQueryService,
    PlayPause,
    QueryError,
    SeekTo,
    TargetNotRunning,
)

logger = logging.getLogger(__name__)

PIPE_POLL_INTERVAL_S = 0.01


# -----------------------------
# Utilities
# -----------------------------

def _is_windows() -> bool:
    return os.name == "nt"


def _peek_pipe(fh) -> int:
    """Bytes waiting in a Windows named pipe, without blocking."""
    import ctypes
    import msvcrt
    from ctypes import wintypes

    handle = msvcrt.get_osfhandle(fh.fileno())
    available = wintypes.DWORD(0)
    ok = ctypes.windll.kernel32.PeekNamedPipe(
        wintypes.HANDLE(handle), None, 0, None, ctypes.byref(available), None
    )
    if not ok:
        # ERROR_BROKEN_PIPE once mpv has gone away
        raise ctypes.WinError()
    return available.value


def default_ipc_endpoint(name: str = "mpvsocket") -> str:
    r"""
    Where a user-started mpv usually listens (mpv --input-ipc-server=...).
    Windows: named pipe path \\.\pipe\<name>
    Unix:    /tmp/<name>
    """
    if _is_windows():
        return rf"\\.\pipe\{name}"
    return f"/tmp/{name}"


# -----------------------------
# IPC transport
# -----------------------------

class _MpvJsonIpcTransport:
    """
    Blocking request/response over mpv's JSON IPC.

    Unix: AF_UNIX socket. Windows: the named pipe opened as a binary file.
    Every request carries a request_id; unrelated lines (events) are skipped.
    One lock serialises requests, since the poll worker and the GUI thread share the connection.
    """

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        self._lock = threading.Lock()
        self._sock: Optional[socket.socket] = None
        self._pipe_fh = None
        self._buf = b""
        self._req_id = 0

    def connect(self) -> None:
        try:
            if _is_windows():
                self._pipe_fh = open(self.endpoint, "r+b", buffering=0)
            else:
                s = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
                try:
                    s.connect(self.endpoint)
                except OSError:
                    s.close()
                    raise
                self._sock = s
        except (FileNotFoundError, ConnectionRefusedError) as e:
            raise TargetNotRunning(f"mpv is not listening on {self.endpoint}") from e
        except OSError as e:
            raise QueryError(f"Failed to connect to mpv at {self.endpoint}: {e!r}") from e

    def close(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                pass
            self._sock = None
        if self._pipe_fh is not None:
            try:
                self._pipe_fh.close()
            except OSError:
                pass
            self._pipe_fh = None
        self._buf = b""

    def request(self, *args: Any, timeout_s: float = 1.0) -> dict[str, Any]:
        with self._lock:
            self._req_id += 1
            rid = self._req_id
            line = (json.dumps({"command": list(args), "request_id": rid}) + "\n").encode("utf-8")
            self._write(line)

            deadline = time.monotonic() + timeout_s
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(f"mpv command timed out: {args!r}")
                msg = self._read_message(remaining)
                if msg.get("request_id") == rid:
                    return msg

    def _write(self, data: bytes) -> None:
        if self._sock is not None:
            self._sock.sendall(data)
        elif self._pipe_fh is not None:
            self._pipe_fh.write(data)
            self._pipe_fh.flush()
        else:
            raise ConnectionError("mpv IPC not connected")

    def _read_message(self, timeout_s: float) -> dict[str, Any]:
        while True:
            while b"\n" in self._buf:
                line, self._buf = self._buf.split(b"\n", 1)
                line = line.strip()
                if not line:
                    continue
                try:
                    msg = json.loads(line.decode("utf-8", errors="replace"))
                except ValueError:
                    # Ignore malformed line
                    continue
                if isinstance(msg, dict):
                    return msg

            if self._sock is not None:
                self._sock.settimeout(timeout_s)
                try:
                    chunk = self._sock.recv(4096)
                except socket.timeout as e:
                    raise TimeoutError("mpv did not answer in time") from e
            elif self._pipe_fh is not None:
                chunk = self._read_pipe(timeout_s)
            else:
                raise ConnectionError("mpv IPC not connected")

            if not chunk:
                raise ConnectionError("mpv closed the IPC connection")
            self._buf += chunk

    def _read_pipe(self, timeout_s: float) -> bytes:
        # A plain read on the pipe blocks forever, so poll for data until the deadline.
        deadline = time.monotonic() + timeout_s
        while True:
            available = _peek_pipe(self._pipe_fh)
            if available:
                return self._pipe_fh.read(min(available, 4096))
            if time.monotonic() >= deadline:
                raise TimeoutError("mpv did not answer in time")
            time.sleep(PIPE_POLL_INTERVAL_S)


# -----------------------------
# MediaQueryService backed by mpv
# -----------------------------

class MpvIpcService(MediaQueryService):
    """
    Attaches to an mpv the user started with --input-ipc-server and mirrors it.
    The connection is opened lazily and re-opened after any failure.
    """

    transport_factory = _MpvJsonIpcTransport

    def __init__(self, endpoint: Optional[str] = None, timeout_s: float = 1.0):
        self.endpoint = endpoint or default_ipc_endpoint()
        self.timeout_s = timeout_s
        self._transport: Optional[_MpvJsonIpcTransport] = None
        self._connect_lock = threading.Lock()

    def _connection(self) -> _MpvJsonIpcTransport:
        with self._connect_lock:
            if self._transport is None:
                transport = self.transport_factory(self.endpoint)
                transport.connect()
                logger.debug("Connected to mpv at %s", self.endpoint)
                self._transport = transport
            return self._transport

    def _drop_connection(self) -> None:
        with self._connect_lock:
            if self._transport is not None:
                self._transport.close()
                self._transport = None

    def _request(self, *args: Any) -> dict[str, Any]:
        transport = self._connection()
        try:
            return transport.request(*args, timeout_s=self.timeout_s)
        except (OSError, TimeoutError) as e:
            self._drop_connection()
            raise QueryError(f"mpv request {args[0]!r} failed: {e}") from e

    def _get(self, name: str) -> Any:
        resp = self._request("get_property", name)
        if resp.get("error") == "success":
            return resp.get("data")
        # "property unavailable" is normal (nothing loaded, no metadata tag, ...)
        return None

    def query(self) -> RawSnapshot:
        if self._get("idle-active"):
            return RawSnapshot(state=PlayerState.STOPPED)

        paused = bool(self._get("pause"))
        position = self._get("time-pos")
        duration = self._get("duration")

        return RawSnapshot(
            title=str(self._get("media-title") or ""),
            artist=str(self._get("metadata/by-key/artist") or ""),
            album=str(self._get("metadata/by-key/album") or ""),
            artwork_ref=None,
            state=PlayerState.PAUSED if paused else PlayerState.PLAYING,
            position=None if position is None else str(position),
            duration=None if duration is None else str(duration),
        )

    def send_command(self, command: MediaCommand) -> None:
        if isinstance(command, PlayPause):
            args: tuple[Any, ...] = ("cycle", "pause")
        elif isinstance(command, SeekTo):
            args = ("seek", float(command.seconds), "absolute")
        else:
            raise CommandError(f"Unsupported command: {command!r}")

        try:
            resp = self._request(*args)
        except QueryError as e:
            raise CommandError(str(e)) from e
        if resp.get("error") != "success":
            raise CommandError(f"mpv rejected {args!r}: {resp.get('error')}")

    def close(self) -> None:
        self._drop_connection()
