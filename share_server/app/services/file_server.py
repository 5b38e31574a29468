import mimetypes
import posixpath

import aiofiles
import aiofiles.os
from fastapi.responses import JSONResponse, Response, StreamingResponse

import config
from app.services.errors import NotFound
from app.services.path_guard import guard_path, join_under
from app.services.request_config import RequestConfig
from logger_config import setup_logger

logger = setup_logger()


class FileServer:
    """Serves files and directory listings from the root of a request."""

    def __init__(self, chunk_size: int = config.CHUNK_SIZE):
        self.chunk_size = chunk_size

    async def serve(self, request_config: RequestConfig, path: str) -> Response:
        path = guard_path(path)
        full_path = join_under(request_config.root, path)

        if await aiofiles.os.path.isdir(full_path):
            return await self.list_directory(full_path, path)
        if await aiofiles.os.path.isfile(full_path):
            return await self.send_file(full_path)

        raise NotFound()

    async def list_directory(self, full_path: str, path: str) -> Response:
        items = []
        for name in sorted(await aiofiles.os.listdir(full_path)):
            entry = posixpath.join(full_path, name)
            if await aiofiles.os.path.isdir(entry):
                items.append({"name": name, "type": "folder", "size": None})
                continue

            try:
                size = await aiofiles.os.path.getsize(entry)
            except OSError:
                # Dangling symlink
                size = None
            items.append({"name": name, "type": "file", "size": size})

        return JSONResponse({"path": path, "items": items})

    async def send_file(self, full_path: str) -> Response:
        stat = await aiofiles.os.stat(full_path)
        content_type, _ = mimetypes.guess_type(full_path)

        async def file_iterator():
            async with aiofiles.open(full_path, 'rb') as file:
                while chunk := await file.read(self.chunk_size):
                    yield chunk

        logger.debug(f"Serving {full_path} ({stat.st_size} bytes)")
        return StreamingResponse(
            file_iterator(),
            media_type=content_type or "application/octet-stream",
            headers={"content-length": str(stat.st_size)},
        )
