"""Timed transitions on top of the pure ExamSession machine.

The delays only decide when the next question becomes visible; while one
is pending the session rejects navigation and hints on its own.
"""
import asyncio

from interview_tutor.session import ExamSession


class PacedSession:
    def __init__(self, session: ExamSession, exit_delay: float = 0.3, enter_delay: float = 0.2) -> None:
        self.session = session
        self.exit_delay = exit_delay
        self.enter_delay = enter_delay

    async def _run_transition(self) -> None:
        await asyncio.sleep(self.exit_delay)
        self.session.step()
        await asyncio.sleep(self.enter_delay)
        self.session.step()

    async def next(self) -> bool:
        if not self.session.next():
            return False
        if not self.session.is_completed:
            await self._run_transition()
        return True

    async def prev(self) -> bool:
        if not self.session.prev():
            return False
        await self._run_transition()
        return True

    def show_hint(self):
        return self.session.show_hint()
