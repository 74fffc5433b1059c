"""Tests for FramedShellSession against a fake container process."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest
from conftest import settle

from docker_mcp.errors import SpawnError, StdinUnavailable
from docker_mcp.shell.framing import frame_command
from docker_mcp.shell.session import FramedShellSession

MARKER = "__MCP_END_1718000000000_9f2c41d07a3e__"


class _Recorder:
    def __init__(self) -> None:
        self.chunks: list[tuple[str, str]] = []
        self.exits: list[int | None] = []

    def on_output(self, stream: str, text: str) -> None:
        self.chunks.append((stream, text))

    def on_exit(self, returncode: int | None) -> None:
        self.exits.append(returncode)

    def text(self, stream: str) -> str:
        return "".join(t for s, t in self.chunks if s == stream)


async def _open(recorder: _Recorder | None = None) -> FramedShellSession:
    session = FramedShellSession("mcp-container", "bash", label="test")
    await session.open()
    if recorder is not None:
        session.set_listeners(recorder.on_output, recorder.on_exit)
    return session


class TestOpen:
    async def test_spawns_exec_into_container(self, fake_shell):
        await _open()
        assert fake_shell.argv == [("docker", "exec", "-i", "mcp-container", "bash")]

    async def test_runtime_cli_comes_from_settings(self, fake_shell, settings):
        settings.container.runtime = "podman"
        await _open()
        assert fake_shell.argv[0][0] == "podman"

    async def test_spawn_oserror_becomes_spawn_error(self, fake_shell):
        fake_shell.spawn_error = FileNotFoundError("docker: not found")
        with pytest.raises(SpawnError, match="docker: not found"):
            await _open()

    async def test_missing_stream_kills_and_raises(self, fake_shell):
        original = fake_shell.spawn

        async def spawn_without_stderr(*argv, **kwargs):
            proc = await original(*argv, **kwargs)
            proc.stderr = None
            return proc

        with patch(
            "docker_mcp.shell.session.asyncio.create_subprocess_exec", spawn_without_stderr
        ):
            with pytest.raises(SpawnError, match="streams"):
                await _open()
        assert fake_shell.last.killed

    async def test_alive_after_open(self, fake_shell):
        session = await _open()
        assert session.is_alive
        assert session.stdin_open


class TestOutput:
    async def test_chunks_delivered_per_stream_in_order(self, fake_shell):
        rec = _Recorder()
        await _open(rec)
        proc = fake_shell.last
        proc.emit_stdout(b"one\n")
        await settle()
        proc.emit_stderr(b"warn\n")
        await settle()
        proc.emit_stdout(b"two\n")
        await settle()
        assert rec.text("stdout") == "one\ntwo\n"
        assert rec.text("stderr") == "warn\n"

    async def test_multibyte_character_split_across_reads(self, fake_shell):
        rec = _Recorder()
        await _open(rec)
        proc = fake_shell.last
        data = "héllo ✓\n".encode()
        proc.emit_stdout(data[:2])
        await settle()
        proc.emit_stdout(data[2:])
        await settle()
        assert rec.text("stdout") == "héllo ✓\n"
        assert "�" not in rec.text("stdout")

    async def test_exit_fires_once_after_streams_drain(self, fake_shell):
        rec = _Recorder()
        session = await _open(rec)
        proc = fake_shell.last
        proc.emit_stdout(b"last words\n")
        proc.close(3)
        await asyncio.wait_for(session.exited.wait(), 1)
        await settle()
        assert rec.text("stdout") == "last words\n"
        assert rec.exits == [3]
        assert not session.is_alive
        assert not session.stdin_open

    async def test_detach_stops_delivery(self, fake_shell):
        rec = _Recorder()
        session = await _open(rec)
        session.detach()
        proc = fake_shell.last
        proc.emit_stdout(b"ignored\n")
        proc.close(0)
        await asyncio.wait_for(session.exited.wait(), 1)
        await settle()
        assert rec.chunks == []
        assert rec.exits == []

    async def test_listener_errors_are_contained(self, fake_shell):
        seen: list[str] = []

        def flaky(stream: str, text: str) -> None:
            seen.append(text)
            if len(seen) == 1:
                raise RuntimeError("listener bug")

        session = await _open()
        session.set_listeners(flaky, None)
        proc = fake_shell.last
        proc.emit_stdout(b"first")
        await settle()
        proc.emit_stdout(b"second")
        await settle()
        assert seen == ["first", "second"]
        proc.close(0)
        await asyncio.wait_for(session.exited.wait(), 1)


class TestInput:
    async def test_submit_writes_framed_command(self, fake_shell):
        session = await _open()
        await session.submit("ls", MARKER)
        assert fake_shell.last.stdin.text == frame_command("ls", MARKER)

    async def test_send_input_newline_handling(self, fake_shell):
        session = await _open()
        await session.send_input("yes")
        await session.send_input("no", append_newline=False)
        assert fake_shell.last.stdin.writes == ["yes\n", "no"]

    async def test_write_after_close_input(self, fake_shell):
        session = await _open()
        session.close_input()
        assert fake_shell.last.stdin.closed
        assert not session.stdin_open
        with pytest.raises(StdinUnavailable, match="Process stdin not available"):
            await session.write("x")

    async def test_write_after_exit(self, fake_shell):
        session = await _open()
        fake_shell.last.close(0)
        await asyncio.wait_for(session.exited.wait(), 1)
        with pytest.raises(StdinUnavailable):
            await session.write("x")

    async def test_broken_pipe(self, fake_shell):
        session = await _open()
        fake_shell.last.stdin.raise_on_write = BrokenPipeError("pipe closed")
        with pytest.raises(StdinUnavailable, match="Error sending input: pipe closed"):
            await session.write("x")

    async def test_close_input_is_idempotent(self, fake_shell):
        eofs = []
        fake_shell.on_eof = eofs.append
        session = await _open()
        session.close_input()
        session.close_input()
        assert len(eofs) == 1

    async def test_kill(self, fake_shell):
        session = await _open()
        session.kill()
        assert fake_shell.last.killed
        await asyncio.wait_for(session.exited.wait(), 1)
        session.kill()
