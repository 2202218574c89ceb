"""Tests for the command-line interface."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from click.testing import CliRunner

from codegen_daemon.main import CLIError, _call_daemon, cli
from codegen_daemon.server.registry import DaemonInstance, DaemonRegistry

PAGE = {
    "data": [
        {
            "id": "abc123",
            "name": "getUser",
            "type": "rest",
            "source": "petstore",
            "path": "petstore/users/getUser",
            "data": {"method": "get", "requestUrl": "/users/{id}", "operationId": "getUser"},
        }
    ],
    "total": 1,
    "page": 1,
    "limit": 20,
    "totalPages": 1,
    "hasNext": False,
    "hasPrevious": False,
}


class TestCLI:
    """Test CLI commands against a mocked daemon."""

    def setup_method(self):
        self.runner = CliRunner()

    def _invoke(self, data_dir, *args):
        return self.runner.invoke(cli, ["--data-dir", str(data_dir), *args])

    def _register(self, data_dir):
        DaemonRegistry(data_dir).register("daemon", "127.0.0.1", 5050)

    def test_help(self):
        result = self.runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("serve", "search", "sync", "stats"):
            assert command in result.output

    def test_search_without_daemon(self, tmp_path):
        result = self._invoke(tmp_path, "search", "user")

        assert result.exit_code == 1
        assert "Error: No metadata found." in result.output

    def test_search_prints_results(self, tmp_path):
        self._register(tmp_path)

        with patch(
            "codegen_daemon.main._call_daemon", AsyncMock(return_value=PAGE)
        ) as call:
            result = self._invoke(tmp_path, "search", "user", "--type", "rest")

        assert result.exit_code == 0
        assert "GET" in result.output
        assert "/users/{id}" in result.output
        assert "Page 1/1 (1 results)" in result.output
        method, path, params = call.await_args.args[1:4]
        assert (method, path) == ("GET", "/api/data/search")
        assert params["query"] == "user"
        assert params["type"] == "rest"

    def test_search_json(self, tmp_path):
        self._register(tmp_path)

        with patch("codegen_daemon.main._call_daemon", AsyncMock(return_value=PAGE)):
            result = self._invoke(tmp_path, "search", "--json")

        assert result.exit_code == 0
        assert json.loads(result.output)["total"] == 1

    def test_search_no_results(self, tmp_path):
        self._register(tmp_path)
        empty = dict(PAGE, data=[], total=0, totalPages=0)

        with patch("codegen_daemon.main._call_daemon", AsyncMock(return_value=empty)):
            result = self._invoke(tmp_path, "search", "zzz")

        assert result.exit_code == 0
        assert "No results." in result.output

    def test_sync(self, tmp_path):
        self._register(tmp_path)
        outcome = {
            "status": "done",
            "key": "petstore",
            "synced": ["petstore"],
            "failed": {},
            "descriptors": 8,
        }

        with patch(
            "codegen_daemon.main._call_daemon", AsyncMock(return_value=outcome)
        ) as call:
            result = self._invoke(tmp_path, "sync", "--source", "petstore")

        assert result.exit_code == 0
        assert "Sync petstore done: 1 synced, 8 descriptors" in result.output
        assert call.await_args.args[1:4] == (
            "POST",
            "/api/operations/sync",
            {"id": "petstore"},
        )

    def test_sync_conflict(self, tmp_path):
        self._register(tmp_path)
        conflict = CLIError("Sync already in progress for: all")

        with patch("codegen_daemon.main._call_daemon", AsyncMock(side_effect=conflict)):
            result = self._invoke(tmp_path, "sync")

        assert result.exit_code == 1
        assert "Error: Sync already in progress for: all" in result.output

    def test_stats(self, tmp_path):
        self._register(tmp_path)
        stats = {
            "sourceCount": 1,
            "endpointCount": 3,
            "dataTypeCount": 5,
            "controllerCount": 1,
            "usedSourceCount": 1,
            "usedEndpointCount": 2,
            "usedDataTypeCount": 1,
            "usedControllerCount": 1,
        }

        with patch("codegen_daemon.main._call_daemon", AsyncMock(return_value=stats)):
            result = self._invoke(tmp_path, "stats")

        assert result.exit_code == 0
        assert "Endpoints" in result.output
        assert "Data types" in result.output


class TestCallDaemon:
    """Test the HTTP client against a live local server."""

    @staticmethod
    def _app():
        async def ok(request):
            return web.json_response({"query": request.query.get("query")})

        async def conflict(request):
            return web.json_response(
                {"error": {"code": "sync_in_progress", "message": "busy"}}, status=409
            )

        app = web.Application()
        app.router.add_get("/ok", ok)
        app.router.add_post("/conflict", conflict)
        return app

    @pytest.mark.asyncio
    async def test_success_and_error_body(self):
        async with TestServer(self._app()) as server:
            instance = DaemonInstance("daemon", server.host, server.port, 1, 0.0)

            body = await _call_daemon(instance, "GET", "/ok", {"query": "user", "page": None})
            with pytest.raises(CLIError) as exc_info:
                await _call_daemon(instance, "POST", "/conflict")

        assert body == {"query": "user"}
        assert exc_info.value.message == "busy"

    @pytest.mark.asyncio
    async def test_unreachable_daemon(self):
        server = TestServer(self._app())
        await server.start_server()
        host, port = server.host, server.port
        await server.close()

        instance = DaemonInstance("daemon", host, port, 1, 0.0)
        with pytest.raises(CLIError) as exc_info:
            await _call_daemon(instance, "GET", "/ok", timeout=2.0)

        assert "Cannot connect" in exc_info.value.message
