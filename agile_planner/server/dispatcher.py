"""
Request routing for the JSON-RPC server.

Methods and tools are looked up in explicit tables; anything else is a
routing error. Every exception raised while handling a request is turned
into an error response here, so nothing raw ever reaches the transport.
"""

import json
import logging
import re
from typing import Any, Callable, Optional

from agile_planner import __version__
from agile_planner.lib.validate import schema_errors
from agile_planner.server import protocol
from agile_planner.server.lifecycle import RequestFSM
from agile_planner.server.tools import TOOLS, Tool, ToolContext

logger = logging.getLogger(__name__)

SERVER_NAME = "agile-planner"
DEFAULT_PROTOCOL_VERSION = "2024-11-05"

_STRING = re.compile(r'"(?:[^"\\]|\\.)*"')
_ID_VALUE = re.compile(r'\s*:\s*(-?\d+|"(?:[^"\\]|\\.)*")')


def _scan_id(text: str) -> tuple[bool, Any]:
    """Best-effort recovery of the top-level id from a line that isn't valid JSON.

    Only an "id" key of the outermost object counts; ids nested in params
    (epic or story ids) are never taken for the request id.
    """
    depth = 0
    pos = 0
    while pos < len(text):
        char = text[pos]
        if char == '"':
            string = _STRING.match(text, pos)
            if string is None:
                return False, None
            if depth == 1 and string.group(0) == '"id"':
                value = _ID_VALUE.match(text, string.end())
                if value is None:
                    return False, None
                try:
                    return True, json.loads(value.group(1))
                except json.JSONDecodeError:
                    return False, None
            pos = string.end()
            continue
        if char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
        pos += 1
    return False, None


class RequestDispatcher:
    """Routes decoded messages to method handlers and builds responses."""

    def __init__(self, context: ToolContext, tools: Optional[dict[str, Tool]] = None):
        self.context = context
        self.tools = TOOLS if tools is None else tools
        self.initialized = False
        self.methods: dict[str, Callable[[dict], Any]] = {
            "initialize": self._initialize,
            "tools/list": self._list_tools,
            "tools/call": self._call_tool,
        }
        self.notifications: dict[str, Callable[[dict], None]] = {
            "notifications/initialized": self._on_initialized,
        }

    def handle_line(self, text: str) -> Optional[dict]:
        """Decode one line from the transport and handle it.

        Returns the response to send, or None when nothing may be sent.
        """
        try:
            message = json.loads(text)
        except json.JSONDecodeError as e:
            found, request_id = _scan_id(text)
            logger.error(f"Parse error ({e.msg} at char {e.pos}) in message: {text[:200]!r}")
            if not found:
                return None
            exc = protocol.FramingError(f"Parse error: {e.msg}")
            return protocol.error_response(request_id, exc.code, str(exc))
        return self.handle(message)

    def handle(self, message: Any) -> Optional[dict]:
        """Handle one decoded message. Returns None for notifications."""
        found, request_id = protocol.recover_id(message)

        if (
            not isinstance(message, dict)
            or message.get("jsonrpc") != protocol.JSONRPC_VERSION
            or not isinstance(message.get("method"), str)
        ):
            logger.warning(f"Invalid request: {str(message)[:200]}")
            if not found:
                return None
            exc = protocol.InvalidRequestError("Invalid Request")
            return protocol.error_response(request_id, exc.code, str(exc))

        method = message["method"]
        params = message.get("params")
        if params is None:
            params = {}

        if not found:
            self._notify(method, params)
            return None

        fsm = RequestFSM(method, request_id)
        handler = self.methods.get(method)
        if handler is None:
            fsm.fail()
            logger.warning(f"Method not found: {method}")
            return protocol.error_response(request_id, protocol.METHOD_NOT_FOUND, f"Method not found: {method}")

        fsm.route()
        try:
            if not isinstance(params, dict):
                raise protocol.InvalidParamsError("params must be an object")
            result = handler(params)
        except Exception as e:
            fsm.fail()
            return self._error_for(request_id, method, e)

        fsm.complete()
        return protocol.success_response(request_id, result)

    def _error_for(self, request_id: Any, method: str, exc: Exception) -> dict:
        code = protocol.error_code_for(exc)
        if code == protocol.INTERNAL_ERROR:
            logger.error(f"{method} failed", exc_info=exc)
        else:
            logger.warning(f"{method} failed ({code}): {exc}")
        data = exc.data if isinstance(exc, protocol.ProtocolError) else None
        return protocol.error_response(request_id, code, str(exc) or type(exc).__name__, data)

    def _notify(self, method: str, params: Any) -> None:
        handler = self.notifications.get(method)
        if handler is None:
            logger.debug(f"Ignoring notification: {method}")
            return
        handler(params)

    def _on_initialized(self, params: Any) -> None:
        self.initialized = True
        logger.info("Client initialized")

    def _initialize(self, params: dict) -> dict:
        version = params.get("protocolVersion") or DEFAULT_PROTOCOL_VERSION
        client = params.get("clientInfo") or {}
        logger.info(f"Initialize from {client.get('name', 'unknown client')} (protocol {version})")
        return {
            "protocolVersion": version,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        }

    def _list_tools(self, params: dict) -> dict:
        return {"tools": [tool.describe() for tool in self.tools.values()]}

    def _call_tool(self, params: dict) -> Any:
        name = params.get("name")
        if not isinstance(name, str):
            raise protocol.InvalidParamsError("tools/call requires a string 'name'")

        tool = self.tools.get(name)
        if tool is None:
            raise protocol.RoutingError(f"Tool not found: {name}")

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        errors = schema_errors(arguments, tool.input_schema)
        if errors:
            raise protocol.InvalidParamsError(f"Invalid arguments for {name}: {'; '.join(errors)}", data=errors)

        logger.info(f"Calling tool {name}")
        return tool.handler(arguments, self.context)
