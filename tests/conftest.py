"""Shared fakes: an in-memory version-control system and a runner that interprets its commands."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from plugin_installer.errors import CommandFailure
from plugin_installer.models import Plugin
from plugin_installer.protocols import Command

FAKE = "fakevcs"


class FakeVCS:
    """Revisions per plugin name. A plugin's directory is created by its first merge."""

    def __init__(self) -> None:
        self.heads: dict[str, str] = {}
        self.upstream: dict[str, str] = {}
        self.logs: dict[str, list[str]] = {}
        self.fail_at: dict[str, str] = {}  # plugin name -> sync step that exits non-zero
        self.pending: dict[str, list[str]] = {}


class FakeProtocol:
    def __init__(self, vcs: FakeVCS) -> None:
        self.vcs = vcs

    def sync_commands(self, plugin):
        return [
            Command(FAKE, ("fetch", plugin.name)),
            Command(FAKE, ("merge", plugin.name, plugin.path or "")),
        ]

    def rollback_commands(self, plugin, rev):
        return [Command(FAKE, ("reset", plugin.name, rev))]

    def revision_lock_commands(self, plugin, rev):
        return [Command(FAKE, ("checkout", plugin.name, rev or "HEAD"))]

    def current_revision(self, plugin):
        return self.vcs.heads.get(plugin.name, "")

    def remote_revision(self, plugin):
        return self.vcs.upstream.get(plugin.name, "")

    def remote_check_commands(self, plugin):
        return [Command(FAKE, ("pending", plugin.name))]

    def log_commands(self, plugin, old_rev, new_rev):
        return [Command(FAKE, ("log", plugin.name, old_rev, new_rev))]

    def changes_count_commands(self, plugin, old_rev, new_rev):
        return [Command(FAKE, ("count", plugin.name, old_rev, new_rev))]

    def diff_commands(self, plugin, old_rev, new_rev):
        return [Command(FAKE, ("diff", plugin.name, old_rev, new_rev))]

    def url(self, plugin):
        return f"https://github.com/example/{plugin.name}"


class FakeRunner:
    """Stands in for ProcessRunner. Records commands and the peak number running at once."""

    def __init__(self, vcs: FakeVCS, delay: float = 0) -> None:
        self.vcs = vcs
        self.delay = delay
        self.commands: list[Command] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def run(self, command, *, cwd=None, on_stdout, on_stderr, env=None):
        self.commands.append(command)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            return self._dispatch(command, on_stdout, on_stderr)
        finally:
            self.in_flight -= 1

    async def capture(self, command, *, cwd=None, on_stderr):
        lines: list[str] = []
        ok = await self.run(command, cwd=cwd, on_stdout=lines.append, on_stderr=on_stderr)
        return ok, lines

    async def check_output(self, command, *, cwd=None):
        lines: list[str] = []
        errors: list[str] = []
        if not await self.run(command, cwd=cwd, on_stdout=lines.append, on_stderr=errors.append):
            raise CommandFailure(command, 1, "\n".join(errors))
        return lines

    def builds(self) -> list[str]:
        return [c.args[1] for c in self.commands if c.command == "/bin/sh"]

    def _dispatch(self, command, on_stdout, on_stderr) -> bool:
        vcs = self.vcs
        if command.command == "/bin/sh":
            if "fail" in command.args[1]:
                on_stderr("build error")
                return False
            return True
        if command.command != FAKE:
            return True

        step, name, *rest = command.args
        if vcs.fail_at.get(name) == step:
            on_stderr(f"{step} failed for {name}")
            return False
        if step == "fetch":
            on_stdout(f"fetched {name}")
        elif step == "merge":
            Path(rest[0]).mkdir(parents=True, exist_ok=True)
            vcs.heads[name] = vcs.upstream.get(name, "")
        elif step in ("reset", "checkout"):
            if rest[0] != "HEAD":
                vcs.heads[name] = rest[0]
        elif step == "log":
            for line in vcs.logs.get(name, []):
                on_stdout(line)
        elif step == "count":
            on_stdout(str(len(vcs.logs.get(name, []))))
        elif step == "diff":
            on_stdout(f"doc/{name}.txt changed")
        elif step == "pending":
            for line in vcs.pending.get(name, []):
                on_stdout(line)
        return True


@pytest.fixture
def vcs() -> FakeVCS:
    return FakeVCS()


@pytest.fixture
def fake_protocols(vcs):
    return {FAKE: FakeProtocol(vcs)}


@pytest.fixture
def runner(vcs) -> FakeRunner:
    return FakeRunner(vcs)


@pytest.fixture
def make_plugin(tmp_path):
    """Factory for plugins served by the fake protocol, rooted under tmp_path."""

    def factory(name: str, installed: bool = False, **fields) -> Plugin:
        path = tmp_path / "plugins" / name
        if installed:
            path.mkdir(parents=True)
        fields.setdefault("protocol", FAKE)
        return Plugin(name=name, path=str(path), **fields)

    return factory
