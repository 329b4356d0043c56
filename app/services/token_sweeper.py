"""Background cleanup of expired refresh tokens."""

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from app.services.refresh_token_service import RefreshTokenService

logger = get_logger(__name__)


class RefreshTokenSweeper:
    """Background task that periodically deletes expired refresh tokens."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        service: RefreshTokenService,
        interval_seconds: int = 3600,
        enabled: bool = True,
    ):
        self.session_factory = session_factory
        self.service = service
        self.interval_seconds = max(interval_seconds, 1)
        self.enabled = enabled
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if not self.enabled:
            logger.info("refresh_token_sweep_disabled")
            return
        if self.running:
            return
        logger.info("refresh_token_sweep_started", interval_seconds=self.interval_seconds)
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("refresh_token_sweep_stopped")

    async def run_once(self) -> int:
        """Delete expired refresh tokens once and return how many were removed."""
        async with self.session_factory() as session:
            deleted = await self.service.sweep_expired(session)
        if deleted > 0:
            logger.info("refresh_tokens_swept", count=deleted)
        return deleted

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception:
                logger.exception("refresh_token_sweep_failed")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue
