"""Tests for the CLI entry point."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from docker_mcp.__main__ import main
from docker_mcp.runtime import get_runtime


class TestMain:
    def test_missing_container_exits_1(self, settings):
        exists = AsyncMock(return_value=False)
        serve = AsyncMock()
        with (
            patch("docker_mcp.runtime.ContainerRuntime.container_exists", exists),
            patch("docker_mcp.server.run_server", serve),
            pytest.raises(SystemExit) as exc_info,
        ):
            main(["--container-name", "ghost"])
        assert exc_info.value.code == 1
        exists.assert_awaited_once_with("ghost")
        serve.assert_not_awaited()

    def test_serves_when_container_exists(self, settings):
        exists = AsyncMock(return_value=True)
        serve = AsyncMock()
        with (
            patch("docker_mcp.runtime.ContainerRuntime.container_exists", exists),
            patch("docker_mcp.server.run_server", serve),
        ):
            main(["-c", "box", "--log-level", "info"])
        assert settings.container.name == "box"
        serve.assert_awaited_once()

    def test_default_container_name(self, settings):
        exists = AsyncMock(return_value=True)
        with (
            patch("docker_mcp.runtime.ContainerRuntime.container_exists", exists),
            patch("docker_mcp.server.run_server", AsyncMock()),
        ):
            main([])
        exists.assert_awaited_once_with("mcp-container")

    def test_runtime_rebuilt_from_settings(self, settings):
        settings.container.runtime = "podman"
        with (
            patch(
                "docker_mcp.runtime.ContainerRuntime.container_exists",
                AsyncMock(return_value=True),
            ),
            patch("docker_mcp.server.run_server", AsyncMock()),
        ):
            main([])
        assert get_runtime().cli == "podman"
