"""
Typed action contract used by the pane window to talk to the DualFM app.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ActionType(str, Enum):
    """Supported action kinds exchanged with the app dispatcher."""

    REFRESH = "refresh"
    STATUS = "status"
    ERROR = "error"
    QUIT = "quit"
    REQUEST_COPY = "request_copy"
    REQUEST_MOVE = "request_move"
    REQUEST_DELETE = "request_delete"
    REQUEST_RENAME = "request_rename"
    REQUEST_MKDIR = "request_mkdir"
    REQUEST_SPLIT = "request_split"
    REQUEST_JOIN = "request_join"
    REQUEST_COMPARE = "request_compare"
    REQUEST_PACK = "request_pack"
    REQUEST_UNPACK = "request_unpack"
    REQUEST_MASK = "request_mask"
    REQUEST_MARK_MASK = "request_mark_mask"
    REQUEST_DIR_SIZE = "request_dir_size"


@dataclass(frozen=True)
class ActionResult:
    """Action message emitted by window/app handlers."""

    type: ActionType
    payload: Any = None
