import posixpath
from typing import Tuple

import aiofiles.os

from app.services.errors import Internal, NotFound
from app.services.request_config import RequestConfig
from logger_config import setup_logger

logger = setup_logger()


def split_id_from_path(path: str) -> Tuple[str, str]:
    """Split ``/<id>[/<tail>]`` into the share ID and the tail after it."""
    share_id, _, tail = path.lstrip("/").partition("/")
    return share_id, tail


class LinkResolver:
    async def resolve(self, request_config: RequestConfig, path: str) -> str:
        """Map a share path to the root-relative path of its target.

        Missing IDs and entries that are not symlinks both give the same
        NotFound so callers cannot probe for valid IDs.
        """
        if request_config.share_dir is None:
            raise Internal("no share directory configured")

        share_id, tail = split_id_from_path(path)
        if not share_id:
            raise NotFound()

        try:
            target = await aiofiles.os.readlink(str(request_config.share_dir / share_id))
        except (OSError, ValueError):
            raise NotFound()

        if target.startswith(request_config.root):
            target = target[len(request_config.root):]

        rewritten = posixpath.normpath("/" + target.lstrip("/"))
        if tail:
            rewritten = rewritten.rstrip("/") + "/" + tail

        logger.debug(f"Share {share_id} rewritten to {rewritten}")
        return rewritten
