"""Per-client `FieldWorkspace` registry for the HTTP layer.

A workspace carries the selected polygon, its date window and the
history/imagery caches, so it must outlive a single request. Clients
identify their workspace with the `X-Workspace-Id` header; requests for
the same workspace are serialized by a thread lock because each request
drives the workspace on its own event loop via `async_to_sync`.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Final, TypeVar
from zoneinfo import ZoneInfo

from asgiref.sync import async_to_sync
from django.conf import settings
from rest_framework.exceptions import ValidationError
from rest_framework.request import Request

from ndvi.engines.registry import get_provider
from ndvi.timeutils import get_zone

from .workspace import FieldWorkspace

logger = logging.getLogger(__name__)

T = TypeVar("T")

WORKSPACE_HEADER: Final[str] = "X-Workspace-Id"
TIMEZONE_HEADER: Final[str] = "X-Timezone"
DEFAULT_WORKSPACE: Final[str] = "default"
DEFAULT_TZ: Final[str] = str(getattr(settings, "FIELDS_DEFAULT_TZ", "UTC"))
MAX_WORKSPACES: Final[int] = int(
    getattr(settings, "FIELDS_MAX_WORKSPACES", 256)
)

_KEY_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_.:-]{1,64}$")


@dataclass
class WorkspaceHandle:
    workspace: FieldWorkspace
    lock: threading.Lock = field(default_factory=threading.Lock)


_registry: dict[str, WorkspaceHandle] = {}
_registry_lock = threading.Lock()


def workspace_key(request: Request) -> str:
    raw = request.headers.get(WORKSPACE_HEADER) or DEFAULT_WORKSPACE
    key = raw.strip()
    if not _KEY_RE.match(key):
        raise ValidationError({WORKSPACE_HEADER: "Invalid workspace id."})
    return key


def workspace_zone(request: Request) -> ZoneInfo:
    name = (request.headers.get(TIMEZONE_HEADER) or DEFAULT_TZ).strip()
    try:
        return get_zone(name)
    except ValueError as exc:
        raise ValidationError({TIMEZONE_HEADER: "Unknown timezone."}) from exc


def get_workspace(request: Request) -> WorkspaceHandle:
    """Return the caller's workspace, creating it on first use.

    The viewer timezone is fixed when the workspace is created.
    """

    key = workspace_key(request)
    with _registry_lock:
        handle = _registry.get(key)
        if handle is None:
            if len(_registry) >= MAX_WORKSPACES:
                oldest = next(iter(_registry))
                _registry.pop(oldest)
                logger.info("fields.workspace_evicted key=%s", oldest)
            handle = WorkspaceHandle(
                FieldWorkspace(get_provider(), tz=workspace_zone(request))
            )
            _registry[key] = handle
            logger.info("fields.workspace_created key=%s", key)
        return handle


def run_in_workspace(
    request: Request,
    operation: Callable[[FieldWorkspace], Awaitable[T]],
) -> T:
    handle = get_workspace(request)
    with handle.lock:
        return async_to_sync(operation)(handle.workspace)


def reset_workspaces() -> None:
    with _registry_lock:
        _registry.clear()
