"""Process-wide map of running debates."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

from .orchestrator import DebateOrchestrator
from .lively.orchestrator import LivelyDebateOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class DebateSession:
    """One live debate: its orchestrator, optional lively wrapper and run task."""

    orchestrator: DebateOrchestrator
    lively: LivelyDebateOrchestrator | None = None
    task: asyncio.Task | None = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def debate_id(self) -> str:
        return self.orchestrator.debate_id

    @property
    def is_active(self) -> bool:
        return self.task is not None and not self.task.done()


class OrchestratorRegistry:
    """Routes calls to the single in-memory orchestrator of each debate.

    Inserts and removals go through one lock; lookups do not need it.
    """

    def __init__(self):
        self._sessions: dict[str, DebateSession] = {}
        self._lock = asyncio.Lock()

    async def register(self, session: DebateSession) -> None:
        async with self._lock:
            if session.debate_id in self._sessions:
                raise ValueError(f"Debate {session.debate_id} is already registered")
            self._sessions[session.debate_id] = session
        logger.info("Registered debate %s (%s active)", session.debate_id, len(self._sessions))

    async def unregister(self, debate_id: str) -> DebateSession | None:
        async with self._lock:
            session = self._sessions.pop(debate_id, None)
        if session is not None:
            logger.info("Unregistered debate %s (%s active)", debate_id, len(self._sessions))
        return session

    def get(self, debate_id: str) -> DebateSession | None:
        return self._sessions.get(debate_id)

    def __contains__(self, debate_id: str) -> bool:
        return debate_id in self._sessions

    def running_ids(self) -> list[str]:
        return [debate_id for debate_id, session in self._sessions.items() if session.is_active]

    def count(self) -> int:
        return len(self._sessions)

    async def shutdown(self, reason: str = "server shutdown") -> None:
        """Stop every active debate and wait for its run task to end."""
        async with self._lock:
            sessions = list(self._sessions.values())
        for session in sessions:
            if not session.is_active:
                continue
            try:
                await session.orchestrator.stop(reason)
            except Exception as e:
                logger.warning(f"Failed to stop debate {session.debate_id} on shutdown: {e}")
            if session.task is not None:
                await asyncio.gather(session.task, return_exceptions=True)
