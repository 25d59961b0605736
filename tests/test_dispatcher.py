"""Tests for agile_planner.server.dispatcher and server.protocol modules."""

import json
from unittest.mock import MagicMock

import pytest

from agile_planner import __version__
from agile_planner.backlog.materializer import MaterializationError
from agile_planner.generation.agent import GenerationError
from agile_planner.lib.config import PlannerConfig
from agile_planner.lib.validate import ValidationError
from agile_planner.server import protocol
from agile_planner.server.dispatcher import RequestDispatcher
from agile_planner.server.tools import Tool, ToolContext


def _request(method, request_id=1, params=None):
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


@pytest.fixture
def echo_tool():
    handler = MagicMock(return_value={"content": [{"type": "text", "text": "ok"}]})
    return Tool(
        name="echo",
        description="Echo",
        input_schema={"type": "object", "properties": {"n": {"type": "integer"}}, "required": ["n"]},
        handler=handler,
    )


@pytest.fixture
def dispatcher(tmp_path, echo_tool):
    context = ToolContext(config=PlannerConfig(output_root=str(tmp_path)))
    return RequestDispatcher(context, tools={"echo": echo_tool})


class TestRouting:

    def test_initialize_echoes_protocol_version(self, dispatcher):
        response = dispatcher.handle(_request("initialize", 0, {"protocolVersion": "2025-01"}))
        assert response["id"] == 0
        result = response["result"]
        assert result["protocolVersion"] == "2025-01"
        assert result["capabilities"] == {"tools": {}}
        assert result["serverInfo"] == {"name": "agile-planner", "version": __version__}

    def test_initialize_default_version(self, dispatcher):
        result = dispatcher.handle(_request("initialize"))["result"]
        assert result["protocolVersion"] == "2024-11-05"

    def test_tools_list(self, dispatcher):
        result = dispatcher.handle(_request("tools/list"))["result"]
        assert result == {"tools": [{
            "name": "echo",
            "description": "Echo",
            "inputSchema": {"type": "object", "properties": {"n": {"type": "integer"}}, "required": ["n"]},
        }]}

    def test_default_catalog(self, tmp_path):
        default = RequestDispatcher(ToolContext(config=PlannerConfig()))
        names = [t["name"] for t in default.handle(_request("tools/list"))["result"]["tools"]]
        assert names == ["generateBacklog", "generateFeature"]

    def test_unknown_method(self, dispatcher):
        response = dispatcher.handle(_request("resources/list", "abc"))
        assert response == {
            "jsonrpc": "2.0",
            "id": "abc",
            "error": {"code": -32601, "message": "Method not found: resources/list"},
        }

    def test_unknown_tool_keeps_id(self, dispatcher):
        response = dispatcher.handle(_request("tools/call", 7, {"name": "doesNotExist", "arguments": {}}))
        assert response["id"] == 7
        assert "result" not in response
        assert isinstance(response["error"]["code"], int)
        assert response["error"]["code"] == protocol.METHOD_NOT_FOUND
        assert isinstance(response["error"]["message"], str)

    def test_tool_call_passes_arguments_and_context(self, dispatcher, echo_tool):
        response = dispatcher.handle(_request("tools/call", 3, {"name": "echo", "arguments": {"n": 1}}))
        assert response["result"] == {"content": [{"type": "text", "text": "ok"}]}
        args, _ = echo_tool.handler.call_args
        assert args[0] == {"n": 1}
        assert args[1] is dispatcher.context

    def test_invalid_arguments(self, dispatcher, echo_tool):
        response = dispatcher.handle(_request("tools/call", 4, {"name": "echo", "arguments": {"n": "x"}}))
        assert response["error"]["code"] == protocol.INVALID_PARAMS
        assert "n: 'x' is not of type 'integer'" in response["error"]["data"]
        echo_tool.handler.assert_not_called()

    def test_missing_tool_name(self, dispatcher):
        response = dispatcher.handle(_request("tools/call", 5, {}))
        assert response["error"]["code"] == protocol.INVALID_PARAMS

    def test_params_must_be_object(self, dispatcher):
        response = dispatcher.handle(_request("tools/list", 6, [1, 2]))
        assert response["error"]["code"] == protocol.INVALID_PARAMS


class TestToolFailures:

    @pytest.mark.parametrize("exc,code", [
        (ValidationError("backlog", "epics: required"), -32602),
        (MaterializationError("disk full"), -32603),
        (OSError("read-only"), -32603),
        (GenerationError("agent timed out"), -32000),
        (RuntimeError("unexpected"), -32603),
    ])
    def test_exception_mapping(self, dispatcher, echo_tool, exc, code):
        echo_tool.handler.side_effect = exc
        response = dispatcher.handle(_request("tools/call", 9, {"name": "echo", "arguments": {"n": 1}}))
        assert response["id"] == 9
        assert response["error"]["code"] == code
        assert response["error"]["message"]


class TestNotificationsAndFraming:

    def test_notification_gets_no_response(self, dispatcher):
        message = {"jsonrpc": "2.0", "method": "notifications/initialized"}
        assert dispatcher.handle(message) is None
        assert dispatcher.initialized is True

    def test_unknown_notification_ignored(self, dispatcher):
        assert dispatcher.handle({"jsonrpc": "2.0", "method": "tools/call"}) is None

    def test_parse_error_with_recoverable_id(self, dispatcher):
        response = dispatcher.handle_line('{"jsonrpc": "2.0", "id": 12, "method": ')
        assert response["id"] == 12
        assert response["error"]["code"] == protocol.PARSE_ERROR

    def test_parse_error_ignores_nested_ids(self, dispatcher):
        line = (
            '{"jsonrpc":"2.0","method":"tools/call","params":{"name":"generateBacklog",'
            '"arguments":{"backlog":{"epics":[{"id":"ep1"'
        )
        assert dispatcher.handle_line(line) is None

    def test_parse_error_finds_id_after_params(self, dispatcher):
        line = r'{"jsonrpc":"2.0","params":{"id":"ep1","title":"a \"id\": 3"},"id":"req-9","method":'
        response = dispatcher.handle_line(line)
        assert response["id"] == "req-9"
        assert response["error"]["code"] == protocol.PARSE_ERROR

    def test_parse_error_without_id_is_silent(self, dispatcher, caplog):
        assert dispatcher.handle_line("not json at all") is None
        assert "Parse error" in caplog.text

    def test_invalid_request(self, dispatcher):
        response = dispatcher.handle({"id": 2, "method": "tools/list"})
        assert response["error"]["code"] == protocol.INVALID_REQUEST
        assert response["id"] == 2

    def test_invalid_request_without_id(self, dispatcher):
        assert dispatcher.handle([1, 2, 3]) is None

    def test_handle_line_roundtrip(self, dispatcher):
        response = dispatcher.handle_line(json.dumps(_request("tools/list", "x")))
        assert response["id"] == "x"
        assert "result" in response


class TestProtocolHelpers:

    def test_recover_id(self):
        assert protocol.recover_id({"id": 0}) == (True, 0)
        assert protocol.recover_id({"id": None}) == (True, None)
        assert protocol.recover_id({"id": True}) == (False, None)
        assert protocol.recover_id({"method": "x"}) == (False, None)

    def test_error_response_with_data(self):
        response = protocol.error_response(1, -32602, "bad", data=["x"])
        assert response["error"] == {"code": -32602, "message": "bad", "data": ["x"]}
