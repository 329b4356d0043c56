"""Delete expired refresh tokens once (for cron-style scheduling)."""

import asyncio

from app.database import AsyncSessionLocal, engine
from app.dependencies import get_auth_service
from app.services.token_sweeper import RefreshTokenSweeper


async def sweep() -> int:
    """Run a single expired refresh token sweep."""
    sweeper = RefreshTokenSweeper(AsyncSessionLocal, get_auth_service().refresh_tokens)
    try:
        return await sweeper.run_once()
    finally:
        await engine.dispose()


if __name__ == "__main__":
    deleted = asyncio.run(sweep())
    print(f"✓ Removed {deleted} expired refresh tokens")
