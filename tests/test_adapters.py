"""Notification channels, dispatcher and shipped executors."""

import asyncio
import json
import sys

import httpx
import pytest

from gatekeeper.adapters import executor as executor_module
from gatekeeper.adapters.base import NotificationChannel
from gatekeeper.adapters.executor import CommandExecutor, NoopExecutor, build_executor
from gatekeeper.adapters.notify import WebhookChannel
from gatekeeper.config import Settings
from gatekeeper.errors import ExecutionError
from gatekeeper.schemas.approval import ExecutionStepName
from gatekeeper.services.notifications import NotificationDispatcher


class BrokenChannel(NotificationChannel):
    name = "pager"

    async def send(self, kind, payload):
        raise ConnectionError("pager offline")


@pytest.mark.asyncio
async def test_webhook_posts_json():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(204)

    channel = WebhookChannel("https://hooks.example.test/gk", transport=httpx.MockTransport(handler))
    await channel.send("approval_request", {"id": "a1"})
    assert seen == [{"kind": "approval_request", "payload": {"id": "a1"}}]


@pytest.mark.asyncio
async def test_webhook_raises_on_error_status():
    channel = WebhookChannel(
        "https://hooks.example.test/gk",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )
    with pytest.raises(httpx.HTTPStatusError):
        await channel.send("approval_status", {})


@pytest.mark.asyncio
async def test_dispatcher_swallows_channel_failures(channel):
    events = []
    dispatcher = NotificationDispatcher([channel, BrokenChannel()], default_channels=["log", "pager"])
    dispatcher.subscribe("notification:sent", events.append)

    delivered = await dispatcher.notify("approval_status", {"id": "a1"})
    assert delivered == ["log"]
    assert channel.sent == [("approval_status", {"id": "a1"})]
    assert events[0]["channels"] == ["log"]


@pytest.mark.asyncio
async def test_dispatcher_skips_unknown_channels(channel):
    dispatcher = NotificationDispatcher([channel])
    assert await dispatcher.notify("x", {}, ["email", "log"]) == ["log"]


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_emit():
    calls = []

    async def ok(payload):
        calls.append(payload)

    def broken(payload):
        raise RuntimeError("listener bug")

    dispatcher = NotificationDispatcher()
    dispatcher.subscribe("approval:updated", broken)
    dispatcher.subscribe("approval:updated", ok)
    await dispatcher.emit("approval:updated", 1)
    assert calls == [1]


# ── Executors ────────────────────────────────────────────────────────


def test_build_executor_from_settings():
    assert isinstance(build_executor(Settings(executor="noop")), NoopExecutor)
    executor = build_executor(Settings(executor="command", update_command="echo hi"))
    assert isinstance(executor, CommandExecutor)
    assert executor.commands["update"] == "echo hi"


@pytest.mark.asyncio
async def test_command_executor_runs_stages(engine, request_factory):
    approval = (await engine.submit(request_factory())).approval_request
    py = sys.executable
    executor = CommandExecutor(
        backup_command=f"{py} -c \"print('backed up')\"",
        update_command=f"{py} -c \"import os; print(os.environ['GATEKEEPER_POLICY'])\"",
    )
    result = await executor.execute(approval)
    assert [s.step for s in result.steps] == [
        ExecutionStepName.BACKUP, ExecutionStepName.UPDATE, ExecutionStepName.VERIFICATION,
    ]
    assert result.steps[0].detail == "backed up"
    assert result.steps[1].detail == "patch"
    assert result.steps[2].detail == "no command configured"


@pytest.mark.asyncio
async def test_command_executor_failure_carries_steps(engine, request_factory):
    approval = (await engine.submit(request_factory())).approval_request
    executor = CommandExecutor(
        backup_command=f"{sys.executable} -c \"print('ok')\"",
        update_command=f"{sys.executable} -c \"import sys; sys.exit(3)\"",
    )
    with pytest.raises(ExecutionError) as excinfo:
        await executor.execute(approval)
    assert "exited 3" in str(excinfo.value)
    assert [(s.step, s.status) for s in excinfo.value.steps] == [
        (ExecutionStepName.BACKUP, "completed"),
        (ExecutionStepName.UPDATE, "failed"),
    ]


@pytest.mark.asyncio
async def test_timed_out_command_is_killed_and_reaped(monkeypatch):
    spawned = []
    spawn = asyncio.create_subprocess_exec

    async def recording_spawn(*args, **kwargs):
        proc = await spawn(*args, **kwargs)
        spawned.append(proc)
        return proc

    monkeypatch.setattr(asyncio, "create_subprocess_exec", recording_spawn)
    code, _, err = await executor_module._run(
        [sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.2
    )
    assert code == 1
    assert "timed out" in err
    assert spawned[0].returncode is not None
