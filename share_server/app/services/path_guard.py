import posixpath

from app.services.errors import BadRequest, Traversal


def guard_path(path: str) -> str:
    """Normalize ``path`` to start with ``/`` and reject parent-directory segments.

    Raises Traversal for anything containing ``/..``. The check runs on the
    normalized form, so ``../x`` and ``a/../b`` are both caught. NUL bytes
    can never name a file and are rejected as BadRequest.
    """
    if "\x00" in path:
        raise BadRequest("path contains a NUL byte")

    if not path.startswith("/"):
        path = "/" + path

    if "/.." in path:
        raise Traversal()

    return path


def join_under(root: str, *parts: str) -> str:
    """Join request-supplied segments onto root. Leading slashes in parts never re-root."""
    relative = [part.lstrip("/") for part in parts if part]
    return posixpath.normpath(posixpath.join(root, *relative))
