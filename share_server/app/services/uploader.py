import asyncio
import os
import posixpath
import shutil
from typing import List, Optional, Sequence
from urllib.parse import urlencode

import aiofiles
import aiofiles.os
from fastapi import Request
from fastapi.responses import RedirectResponse, Response
from starlette.datastructures import UploadFile

import config
from app.services.errors import BadRequest, Internal, MethodNotAllowed
from app.services.methods import RequestMethod
from app.services.path_guard import guard_path, join_under
from app.services.request_config import RequestConfig, resolve_request_config
from logger_config import setup_logger

logger = setup_logger()


def remove_all(path: str) -> None:
    """Remove a file, symlink or directory tree. A missing path is not an error."""
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
        return

    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


class UploadGateway:
    def __init__(self, chunk_size: int = config.CHUNK_SIZE):
        self.chunk_size = chunk_size

    async def make_directory(self, request_config: RequestConfig, current_path: str, directory: str) -> str:
        """Create root/current_path/directory with all parents. Existing directories are fine."""
        directory = guard_path(directory)
        full_path = join_under(request_config.root, current_path, directory)

        try:
            await aiofiles.os.makedirs(full_path, exist_ok=True)
        except OSError as e:
            raise Internal(f"failed to create directory {directory}: {e.strerror or e}") from e

        logger.info(f"Created directory {full_path}")
        return full_path

    async def upload_files(
        self,
        request_config: RequestConfig,
        current_path: str,
        files: Sequence[UploadFile],
    ) -> List[str]:
        """Write every part under root/current_path, never overwriting.

        Stops at the first failure. Files written before it stay on disk.
        """
        if not files:
            raise BadRequest("missing ?files=")

        uploaded = []
        for upload in files:
            name = guard_path(upload.filename or "")
            if name == "/":
                raise BadRequest("missing file name")

            target = join_under(request_config.root, current_path, name)

            try:
                await aiofiles.os.makedirs(posixpath.dirname(target), exist_ok=True)
            except OSError as e:
                raise Internal(f"failed to upload {upload.filename}: {e.strerror or e}") from e

            await self._copy(upload, target)
            uploaded.append(target)

        logger.info(f"Uploaded {len(uploaded)} file(s): {', '.join(uploaded)}")
        return uploaded

    async def _copy(self, upload: UploadFile, target: str) -> None:
        try:
            # "x" fails if the file already exists
            async with aiofiles.open(target, "xb") as out:
                while chunk := await upload.read(self.chunk_size):
                    await out.write(chunk)
        except OSError as e:
            raise Internal(f"failed to upload {upload.filename}: {e.strerror or e}") from e


class DeleteGateway:
    async def delete(self, request_config: RequestConfig, current_path: str, names: Sequence[str]) -> List[str]:
        if not names:
            raise BadRequest("missing ?files=")

        deleted = []
        for name in names:
            target = join_under(request_config.root, current_path, guard_path(name))
            if target == posixpath.normpath(request_config.root):
                raise BadRequest("refusing to delete the root directory")

            try:
                await asyncio.to_thread(remove_all, target)
            except OSError as e:
                raise Internal(f"failed to delete {name}: {e.strerror or e}") from e

            deleted.append(target)

        logger.info(f"Deleted {len(deleted)} path(s): {', '.join(deleted)}")
        return deleted


class Uploader:
    def __init__(
        self,
        root: Optional[str] = None,
        upload_gateway: Optional[UploadGateway] = None,
        delete_gateway: Optional[DeleteGateway] = None,
    ):
        self.root = root
        self.upload_gateway = upload_gateway or UploadGateway()
        self.delete_gateway = delete_gateway or DeleteGateway()

    def request_config(self, request: Request) -> RequestConfig:
        return resolve_request_config(request, self.root or config.ROOT_DIR)

    async def handle(self, request: Request, path: str) -> Response:
        path = guard_path(path)
        method = RequestMethod.parse(request.method)

        if method is RequestMethod.POST:
            return await self.post(request, path)
        elif method is RequestMethod.DELETE:
            return await self.delete(request, path)
        raise MethodNotAllowed()

    async def post(self, request: Request, path: str) -> Response:
        request_config = self.request_config(request)

        async with request.form() as form:
            directory = form.get("dir")
            if isinstance(directory, str) and directory:
                directory = guard_path(directory)
                await self.upload_gateway.make_directory(request_config, path, directory)
                new_path = posixpath.normpath(posixpath.join(request.url.path, directory.lstrip("/")))
                new_path = new_path.rstrip("/") + "/"
                return self._redirect(new_path, "directory", [new_path])

            files = [part for part in form.getlist("files") if isinstance(part, UploadFile)]
            targets = await self.upload_gateway.upload_files(request_config, path, files)

        current_dir = join_under(request_config.root, path)
        uploaded = [
            posixpath.join(request.url.path, posixpath.relpath(target, current_dir))
            for target in targets
        ]
        return self._redirect(request.url.path, "file", uploaded)

    def _redirect(self, location: str, upload_type: str, upload_paths: List[str]) -> Response:
        """303 back to a listing, tagged with what changed."""
        query = urlencode({"upload-type": upload_type, "upload-path": upload_paths}, doseq=True)
        return RedirectResponse(f"{location}?{query}", status_code=303)

    async def delete(self, request: Request, path: str) -> Response:
        request_config = self.request_config(request)

        names = request.query_params.getlist("files")
        async with request.form() as form:
            names += [value for value in form.getlist("files") if isinstance(value, str)]

        await self.delete_gateway.delete(request_config, path, names)
        return Response(status_code=200)
