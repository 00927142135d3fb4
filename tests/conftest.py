"""Test configuration and fixtures."""

import asyncio
import time
from collections.abc import Callable
from datetime import datetime, timezone

from enroll.domain.model import InvitationRequestSnapshot
from enroll.domain.value import RequestStatus


async def eventually(
    predicate: Callable[[], bool],
    timeout: float = 2.0,
    interval: float = 0.005,
) -> None:
    """Wait until a predicate holds, letting background timers run.

    Args:
        predicate: Condition to wait for
        timeout: Seconds before giving up
        interval: Seconds between checks

    Raises:
        AssertionError: If the predicate never held
    """
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(interval)


def make_snapshot(
    status: RequestStatus = RequestStatus.ACCEPTED,
    fetched_at: float = 1.0,
    oauth_code: str | None = None,
    oauth_link: str | None = None,
    oauth_expires_at: datetime | None = None,
    group_name: str | None = "Family",
    email: str | None = "alice@example.com",
    username: str | None = "alice",
) -> InvitationRequestSnapshot:
    """Helper to build status snapshots for tests.

    A code without an explicit link gets the link Stremio would issue for it.
    """
    if oauth_code and oauth_link is None:
        oauth_link = f"https://link.stremio.com/?code={oauth_code}"
    return InvitationRequestSnapshot(
        status=status,
        oauth_link=oauth_link,
        oauth_code=oauth_code,
        oauth_expires_at=oauth_expires_at,
        group_name=group_name,
        email=email,
        username=username,
        fetched_at=fetched_at,
        retrieved_at=datetime.now(timezone.utc),
    )
