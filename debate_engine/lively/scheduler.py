"""Tracks who holds the floor in a lively debate and where they can safely be cut off."""

import logging
import re
from dataclasses import dataclass

from config.settings import LivelySettings
from ..clock import monotonic_ms
from ..errors import AlreadySpeakingError
from ..types import Speaker, SpeakerStatus, TimeSource

logger = logging.getLogger(__name__)

SENTENCE_BOUNDARY = re.compile(r"[.!?]+(?=\s)|\n\n")
CLAUSE_BOUNDARY = re.compile(r"[,;:](?=\s)")


@dataclass
class PreemptResult:
    """What remains of a turn that was cut off."""

    speaker: Speaker
    interrupter: Speaker
    spoken: str
    discarded: str
    elapsed_ms: int


class LivelyScheduler:
    """Owns the single "currently speaking" slot for one debate.

    Content is appended as it streams so the scheduler always knows the last
    position where the speaker could be stopped without cutting a sentence
    (or, with clause boundaries enabled, a clause) in half. Boundaries that
    arrive sooner than min_boundary_gap_ms after the previous one are merged
    into it.
    """

    def __init__(self, settings: LivelySettings, time_source: TimeSource = monotonic_ms):
        self._settings = settings
        self._now = time_source
        self._active: Speaker | None = None
        self._turn_started_at: float | None = None
        self._content = ""
        self._scan_from = 0
        self._last_boundary = 0
        self._last_boundary_at: float | None = None
        self._statuses: dict[Speaker, SpeakerStatus] = {
            Speaker.PRO: SpeakerStatus.READY,
            Speaker.CON: SpeakerStatus.READY,
            Speaker.MODERATOR: SpeakerStatus.READY,
        }

    @property
    def active_speaker(self) -> Speaker | None:
        return self._active

    @property
    def content(self) -> str:
        return self._content

    @property
    def last_safe_boundary(self) -> int:
        return self._last_boundary

    def update_settings(self, settings: LivelySettings) -> None:
        self._settings = settings

    def speaker_status(self, speaker: Speaker) -> SpeakerStatus:
        return self._statuses.get(speaker, SpeakerStatus.READY)

    def start_turn(self, speaker: Speaker) -> None:
        if self._active is not None:
            raise AlreadySpeakingError(self._active, speaker)
        self._active = speaker
        self._turn_started_at = self._now()
        self._content = ""
        self._scan_from = 0
        self._last_boundary = 0
        self._last_boundary_at = self._turn_started_at
        self._statuses[speaker] = SpeakerStatus.SPEAKING

    def elapsed_speaking_ms(self) -> int:
        if self._turn_started_at is None:
            return 0
        return int(self._now() - self._turn_started_at)

    def append_content(self, chunk: str) -> int | None:
        """Add streamed text; returns the new safe boundary if one was recorded."""
        if self._active is None:
            raise RuntimeError("No active speaker to append content for")
        self._content += chunk

        candidates = [m for m in SENTENCE_BOUNDARY.finditer(self._content, self._scan_from)]
        if self._settings.pacing.allow_clause_boundaries:
            candidates += [m for m in CLAUSE_BOUNDARY.finditer(self._content, self._scan_from)]
        positions = [
            m.start() if m.group() == "\n\n" else m.end()
            for m in candidates
        ]
        positions = [p for p in positions if p > self._last_boundary]
        # Trailing punctuation may still be waiting for its whitespace
        self._scan_from = max(self._scan_from, len(self._content) - 4, 0)
        if not positions:
            return None

        now = self._now()
        if (
            self._last_boundary_at is not None
            and now - self._last_boundary_at < self._settings.pacing.min_boundary_gap_ms
            and self._last_boundary > 0
        ):
            return None

        self._last_boundary = max(positions)
        self._last_boundary_at = now
        return self._last_boundary

    def can_interrupt(self) -> bool:
        return self._active is not None and self._last_boundary > 0

    def end_turn(self) -> int:
        """Release the floor; returns how long the speaker held it."""
        if self._active is None:
            return 0
        elapsed = self.elapsed_speaking_ms()
        if self._statuses.get(self._active) is SpeakerStatus.SPEAKING:
            self._statuses[self._active] = SpeakerStatus.READY
        self._active = None
        self._turn_started_at = None
        return elapsed

    def force_preempt(self, interrupter: Speaker) -> PreemptResult:
        """Cut the active speaker off at the last safe boundary."""
        if self._active is None:
            raise RuntimeError("No active speaker to preempt")

        cut = self._last_boundary
        if cut == 0:
            # No boundary yet: fall back to the last complete word
            cut = self._content.rfind(" ")
            cut = len(self._content) if cut <= 0 else cut

        speaker = self._active
        result = PreemptResult(
            speaker=speaker,
            interrupter=interrupter,
            spoken=self._content[:cut].rstrip(),
            discarded=self._content[cut:].strip(),
            elapsed_ms=self.elapsed_speaking_ms(),
        )
        self.end_turn()
        self._statuses[speaker] = SpeakerStatus.INTERRUPTED
        if interrupter in self._statuses:
            self._statuses[interrupter] = SpeakerStatus.COOLDOWN

        logger.info(
            "%s preempted %s after %sms (%s chars kept, %s discarded)",
            interrupter.value, speaker.value, result.elapsed_ms, len(result.spoken), len(result.discarded),
        )
        return result
