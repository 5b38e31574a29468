import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from fastapi import Request

from app.services.errors import NoRootConfigured

_PLACEHOLDER = re.compile(r"\{([a-zA-Z0-9_.]+)\}")


@dataclass(frozen=True)
class RequestConfig:
    """Configuration a handler needs for one request."""
    root: str
    share_dir: Optional[Path] = None


def expand_template(template: str, variables: Dict[str, str]) -> str:
    """Replace ``{name}`` placeholders; unknown names become ``.``."""
    return _PLACEHOLDER.sub(lambda m: variables.get(m.group(1), "."), template)


def request_variables(request: Request) -> Dict[str, str]:
    host = request.headers.get("host", "")
    return {
        "host": host.split(":", 1)[0],
    }


def resolve_request_config(
    request: Request,
    root_template: str,
    share_dir: Optional[Path] = None,
) -> RequestConfig:
    root = expand_template(root_template, request_variables(request)) if root_template else ""

    if not root or not root.startswith("/"):
        raise NoRootConfigured()

    return RequestConfig(root=root.rstrip("/") or "/", share_dir=share_dir)
