"""
JSON-RPC 2.0 message helpers and the error-code mapping.

Every failure that reaches the dispatch boundary is turned into one of the
codes below. Nothing else leaves the server as an error.
"""

from typing import Any, Optional

from agile_planner.backlog.materializer import MaterializationError
from agile_planner.generation.agent import GenerationError
from agile_planner.lib.prompts import PromptError
from agile_planner.lib.validate import ValidationError

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_ERROR = -32000                          # Generation (agent) failures


class ProtocolError(Exception):
    """Base for failures that map directly to a JSON-RPC error code."""
    code = INTERNAL_ERROR

    def __init__(self, message: str, data: Any = None):
        self.data = data
        super().__init__(message)


class FramingError(ProtocolError):
    """A line on the wire was not valid JSON."""
    code = PARSE_ERROR


class InvalidRequestError(ProtocolError):
    """Valid JSON, but not a JSON-RPC request."""
    code = INVALID_REQUEST


class RoutingError(ProtocolError):
    """Unknown method or tool name."""
    code = METHOD_NOT_FOUND


class InvalidParamsError(ProtocolError):
    """Parameters or tool arguments failed validation."""
    code = INVALID_PARAMS


# Exception type -> code, checked in order
_ERROR_CODES: list[tuple[type, int]] = [
    (ValidationError, INVALID_PARAMS),
    (MaterializationError, INTERNAL_ERROR),
    (OSError, INTERNAL_ERROR),
    (GenerationError, SERVER_ERROR),
    (PromptError, INTERNAL_ERROR),
]


def error_code_for(exc: BaseException) -> int:
    """Map an exception raised while handling a request to a JSON-RPC code."""
    if isinstance(exc, ProtocolError):
        return exc.code
    for exc_type, code in _ERROR_CODES:
        if isinstance(exc, exc_type):
            return code
    return INTERNAL_ERROR


def success_response(request_id: Any, result: Any) -> dict:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def error_response(request_id: Any, code: int, message: str, data: Optional[Any] = None) -> dict:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def recover_id(message: Any) -> tuple[bool, Any]:
    """Return (found, id) for a decoded message.

    found is False when the message carries no usable id, in which case no
    id may be invented for a response.
    """
    if isinstance(message, dict) and "id" in message:
        request_id = message["id"]
        if request_id is None or (isinstance(request_id, (str, int, float)) and not isinstance(request_id, bool)):
            return True, request_id
    return False, None
