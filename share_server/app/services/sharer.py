import asyncio
import posixpath
from pathlib import Path
from typing import Awaitable, Callable, Optional

from fastapi import Request
from fastapi.responses import RedirectResponse, Response

import config
from app.services.errors import MethodNotAllowed
from app.services.link_allocator import LinkAllocator
from app.services.link_resolver import LinkResolver
from app.services.methods import RequestMethod
from app.services.path_guard import guard_path
from app.services.request_config import RequestConfig, resolve_request_config
from logger_config import setup_logger

logger = setup_logger()

# Downstream handler that serves a root-relative path
NextHandler = Callable[[RequestConfig, str], Awaitable[Response]]


def provision_share_dir(path) -> Path:
    """Make the share-storage directory absolute and create it if missing."""
    share_dir = Path(path).absolute()

    if share_dir.exists() and not share_dir.is_dir():
        raise NotADirectoryError(f"Share directory {share_dir} is not a directory")

    share_dir.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Share directory created/verified: {share_dir}")
    return share_dir


async def watch_disconnect(request: Request, cancelled: asyncio.Event, interval: float) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(interval)
    cancelled.set()


class Sharer:
    def __init__(
        self,
        share_dir: Path,
        root: Optional[str] = None,
        allocator: Optional[LinkAllocator] = None,
        resolver: Optional[LinkResolver] = None,
    ):
        self.share_dir = share_dir
        self.root = root
        self.allocator = allocator or LinkAllocator()
        self.resolver = resolver or LinkResolver()

    def request_config(self, request: Request) -> RequestConfig:
        return resolve_request_config(request, self.root or config.ROOT_DIR, self.share_dir)

    async def handle(self, request: Request, path: str, next_handler: NextHandler) -> Response:
        path = guard_path(path)
        method = RequestMethod.parse(request.method)

        if method is RequestMethod.GET:
            return await self.get(request, path, next_handler)
        elif method is RequestMethod.POST:
            return await self.post(request)
        raise MethodNotAllowed()

    async def get(self, request: Request, path: str, next_handler: NextHandler) -> Response:
        request_config = self.request_config(request)
        rewritten = await self.resolver.resolve(request_config, path)
        return await next_handler(request_config, rewritten)

    async def post(self, request: Request) -> Response:
        request_config = self.request_config(request)

        source = request.query_params.get("path")
        if not source:
            form = await request.form()
            source = form.get("path")
            if not isinstance(source, str):
                source = ""

        cancelled = asyncio.Event()
        watcher = asyncio.create_task(
            watch_disconnect(request, cancelled, config.DISCONNECT_POLL_INTERVAL)
        )
        try:
            share_id = await self.allocator.allocate(request_config, source, cancelled)
        finally:
            watcher.cancel()

        return RedirectResponse(posixpath.join(request.url.path, share_id), status_code=303)
