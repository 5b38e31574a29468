import asyncio
import base64
import struct
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import aiofiles.os

import config
from app.services.errors import BadRequest, Internal, NotFound
from app.services.path_guard import guard_path, join_under
from app.services.request_config import RequestConfig
from logger_config import setup_logger

logger = setup_logger()


def encode_share_id(timestamp: float) -> str:
    """Encode unix seconds as 4 big-endian bytes in unpadded URL-safe base64."""
    packed = struct.pack(">I", int(timestamp) & 0xFFFFFFFF)
    return base64.urlsafe_b64encode(packed).rstrip(b"=").decode("ascii")


class AllocationState(Enum):
    ATTEMPT = "attempt"
    WAIT_FOR_NEXT_TICK = "wait_for_next_tick"
    SUCCESS = "success"
    CANCELLED = "cancelled"


class LinkAllocator:
    def __init__(
        self,
        retry_interval: float = config.SHARE_RETRY_INTERVAL,
        timeout: Optional[float] = config.SHARE_ALLOCATION_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            retry_interval: Seconds between retries after an ID collision
            timeout: Give up after this many seconds of retrying. None or 0 retries forever
            clock: Source of the unix time encoded into share IDs
        """
        if retry_interval <= 0:
            raise ValueError("Retry interval must be positive")

        self.retry_interval = retry_interval
        self.timeout = timeout or None
        self.clock = clock

    async def allocate(
        self,
        request_config: RequestConfig,
        source: str,
        cancelled: Optional[asyncio.Event] = None,
    ) -> str:
        """Create a share link to ``source`` (relative to root) and return its ID.

        The exclusive symlink creation is the only synchronization: whoever
        creates the link for a given second owns that ID, everybody else
        retries on the next tick. Setting ``cancelled`` stops the retries.
        """
        if not source:
            raise BadRequest("missing ?path=")

        if request_config.share_dir is None:
            raise Internal("no share directory configured")

        src = join_under(request_config.root, guard_path(source))

        try:
            await aiofiles.os.stat(src)
        except OSError:
            raise NotFound()

        if cancelled is None:
            cancelled = asyncio.Event()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout if self.timeout else None
        next_tick = None
        cause = None
        now = self.clock()

        state = AllocationState.ATTEMPT
        while state not in (AllocationState.SUCCESS, AllocationState.CANCELLED):
            if state is AllocationState.ATTEMPT:
                share_id = encode_share_id(now)
                if await self._link(src, request_config.share_dir / share_id):
                    state = AllocationState.SUCCESS
                else:
                    logger.debug(f"Share ID {share_id} taken, retrying on next tick")
                    state = AllocationState.WAIT_FOR_NEXT_TICK

            elif state is AllocationState.WAIT_FOR_NEXT_TICK:
                # The ticker starts at the first collision
                if next_tick is None:
                    next_tick = loop.time()
                next_tick += self.retry_interval

                cause = await self._wait_for_tick(cancelled, next_tick, deadline)
                if cause:
                    state = AllocationState.CANCELLED
                else:
                    now = self.clock()
                    state = AllocationState.ATTEMPT

        if state is AllocationState.CANCELLED:
            logger.warning(f"Share allocation for {src} cancelled: {cause}")
            raise Internal(f"share allocation cancelled: {cause}")

        logger.info(f"Created share {share_id} -> {src}")
        return share_id

    async def _link(self, src: str, link_path: Path) -> bool:
        """Try to claim ``link_path``. False means the name is already taken."""
        try:
            await aiofiles.os.symlink(src, str(link_path))
        except FileExistsError:
            return False
        except OSError as e:
            raise Internal(f"failed to create share link: {e}") from e
        return True

    async def _wait_for_tick(
        self,
        cancelled: asyncio.Event,
        next_tick: float,
        deadline: Optional[float],
    ) -> Optional[str]:
        """Sleep until ``next_tick``. Returns the cancellation cause, or None to retry."""
        loop = asyncio.get_running_loop()
        wake_at = next_tick if deadline is None else min(next_tick, deadline)

        try:
            await asyncio.wait_for(cancelled.wait(), timeout=max(0.0, wake_at - loop.time()))
            return "client disconnected"
        except asyncio.TimeoutError:
            pass

        if deadline is not None and loop.time() >= deadline:
            return "deadline exceeded"
        return None
