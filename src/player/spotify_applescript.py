# src/player/spotify_applescript.py
from __future__ import annotations

import logging
import re
import subprocess
from typing import Optional

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

FIELD_SEP = "\x1f"  # ASCII unit separator; titles may contain "|"
FIELD_COUNT = 7

# -1751: object doesn't exist (app gone mid-call), -600: application isn't running
NOT_RUNNING_CODES = {-1751, -600}
_ERROR_CODE_RE = re.compile(r"\((-?\d+)\)\s*$")

QUERY_SCRIPT = """
set sep to character id 31
tell application "System Events"
    if not (exists process "Spotify") then return "" & sep & "" & sep & "" & sep & "" & sep & "not_running" & sep & "" & sep & ""
end tell
tell application "Spotify"
    set pstate to player state as string
    if pstate is not "playing" and pstate is not "paused" then
        return "" & sep & "" & sep & "" & sep & "" & sep & "stopped" & sep & "" & sep & ""
    end if
    set t to current track
    set pos to (player position as string)
    set dur to ((duration of t) / 1000 as string)
    return (name of t) & sep & (artist of t) & sep & (album of t) & sep & (artwork url of t) & sep & pstate & sep & pos & sep & dur
end tell
""".strip()


def _error_code(stderr: str) -> Optional[int]:
    # osascript prints e.g. "...: execution error: Spotify got an error: ... (-1751)"
    m = _ERROR_CODE_RE.search((stderr or "").strip())
    return int(m.group(1)) if m else None


def parse_query_output(output: str) -> RawSnapshot:
    parts = (output or "").rstrip("\r\n").split(FIELD_SEP)
    if len(parts) < FIELD_COUNT:
        raise QueryError(f"Unexpected AppleScript output ({len(parts)} fields)")

    title, artist, album, artwork, state, position, duration = parts[:FIELD_COUNT]
    player_state = PlayerState.parse(state)
    if player_state is PlayerState.NOT_RUNNING:
        raise TargetNotRunning("Spotify is not running")

    return RawSnapshot(
        title=title,
        artist=artist,
        album=album,
        artwork_ref=artwork or None,
        state=player_state,
        position=position,
        duration=duration,
    )


class SpotifyAppleScriptService(MediaQueryService):
    """Talks to the Spotify desktop app on macOS through osascript."""

    def __init__(self, osascript: str = "osascript", timeout_s: float = 2.0):
        self.osascript = osascript
        self.timeout_s = timeout_s

    def _run(self, script: str) -> subprocess.CompletedProcess:
        return subprocess.run(
            [self.osascript, "-e", script],
            capture_output=True,
            text=True,
            timeout=self.timeout_s,
            check=False,
        )

    def query(self) -> RawSnapshot:
        try:
            proc = self._run(QUERY_SCRIPT)
        except FileNotFoundError as e:
            raise TargetNotRunning(f"{self.osascript} not found") from e
        except subprocess.TimeoutExpired as e:
            raise QueryError(f"AppleScript query timed out after {self.timeout_s}s") from e

        if proc.returncode != 0:
            code = _error_code(proc.stderr)
            logger.debug("osascript exited %s: %s", proc.returncode, (proc.stderr or "").strip())
            if code in NOT_RUNNING_CODES:
                raise TargetNotRunning(f"Spotify is not running (AppleScript error {code})")
            raise QueryError(f"AppleScript error {code}: {(proc.stderr or '').strip()}")

        return parse_query_output(proc.stdout)

    def send_command(self, command: MediaCommand) -> None:
        if isinstance(command, PlayPause):
            script = 'tell application "Spotify" to playpause'
        elif isinstance(command, SeekTo):
            script = f'tell application "Spotify" to set player position to {max(0.0, float(command.seconds)):.3f}'
        else:
            raise CommandError(f"Unsupported command: {command!r}")

        try:
            proc = self._run(script)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise CommandError(f"osascript failed: {e}") from e
        if proc.returncode != 0:
            raise CommandError(f"Spotify rejected command: {(proc.stderr or '').strip()}")
