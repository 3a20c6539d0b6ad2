"""The per-plugin update workflow.

capture old revision → (unpin) → sync [+ rollback] → (re-pin) → classify →
post-update hook → build → cache warm → outcome
"""

from __future__ import annotations

import asyncio
import shutil
from typing import TYPE_CHECKING

import structlog

from ..errors import CommandFailure, ExecutionError
from ..protocols._base import Command
from ._run import UpdateOutcome, WorkflowResult, WorkflowStatus

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..models.config import InstallerConfig
    from ..models.plugin import Plugin
    from ..protocols._base import ProtocolBinding, VCSProtocol
    from ..protocols._table import ProtocolTable
    from ._process import ProcessRunner
    from ._run import RunContext

logger = structlog.get_logger(__name__)


class PluginWorkflow:
    """Drives plugins through the update state machine for one run.

    Never raises for a plugin: every call resolves to exactly one
    WorkflowResult, and failures are recorded on the run context.
    """

    def __init__(
        self,
        run: RunContext,
        protocols: ProtocolTable,
        runner: ProcessRunner,
        config: InstallerConfig,
    ) -> None:
        self._run = run
        self._host = run.host
        self._protocols = protocols
        self._runner = runner
        self._config = config

    async def update(
        self,
        plugin: Plugin,
        index: int,
        total: int,
        rollback_rev: str | None = None,
    ) -> WorkflowResult:
        self._run.progress(f"[{index}/{total}] {plugin.name}")
        log = logger.bind(plugin=plugin.name)
        try:
            binding = self._protocols.resolve(plugin)
            if binding is None:
                log.debug("no_protocol_declared")
                return WorkflowResult(plugin, WorkflowStatus.SKIPPED)
            result = await self._update(plugin, binding, rollback_rev)
        except Exception as e:
            log.exception("workflow_failed")
            self._run.error(f"{plugin.name}: {e}")
            self._run.record_failed(plugin)
            return WorkflowResult(plugin, WorkflowStatus.FAILED)
        log.info("workflow_finished", status=result.status.value)
        return result

    async def _update(
        self, plugin: Plugin, binding: ProtocolBinding, rollback_rev: str | None
    ) -> WorkflowResult:
        protocol = binding.protocol
        old_rev = await asyncio.to_thread(protocol.current_revision, plugin)
        pin = plugin.rev or None

        ok = True
        if pin and plugin.is_installed:
            # Sync must start from the branch head, not the pinned commit.
            ok = await self.execute(plugin, protocol.revision_lock_commands(plugin, None))

        if ok:
            commands = protocol.sync_commands(plugin)
            if rollback_rev:
                commands = [*commands, *protocol.rollback_commands(plugin, rollback_rev)]
            if plugin.hook_pre_update:
                self._host.call_hook("pre_update", plugin)
            ok = await self.execute(plugin, commands)

        if pin and plugin.is_installed:
            restored = await self.execute(plugin, protocol.revision_lock_commands(plugin, pin))
            ok = ok and restored

        if not ok:
            self._run.record_failed(plugin)
            return WorkflowResult(plugin, WorkflowStatus.FAILED)

        new_rev = await asyncio.to_thread(protocol.current_revision, plugin)
        if old_rev and old_rev == new_rev:
            return WorkflowResult(plugin, WorkflowStatus.UNCHANGED)

        # "post_update" runs before the build
        if plugin.hook_post_update:
            self._host.call_hook("post_update", plugin)

        if not await self.build(plugin):
            self._run.error(f"Build failed: {plugin.name}")
            self._run.record_failed(plugin)
            return WorkflowResult(plugin, WorkflowStatus.FAILED)

        await self.warm_cache(plugin)

        outcome = UpdateOutcome(
            plugin=plugin,
            binding=binding,
            old_rev=old_rev,
            new_rev=new_rev,
            url=protocol.url(plugin),
            log_message=await self.log_message(plugin, protocol, old_rev, new_rev),
            changes_count=await self.changes_count(plugin, protocol, old_rev, new_rev),
        )
        self._run.record_updated(outcome)
        return WorkflowResult(plugin, WorkflowStatus.UPDATED, outcome)

    async def execute(
        self,
        plugin: Plugin,
        commands: list[Command],
        env: Mapping[str, str] | None = None,
    ) -> bool:
        """Run commands in order, streaming output; stop at the first failure."""
        for command in commands:
            try:
                ok = await self._runner.run(
                    command,
                    cwd=plugin.directory,
                    on_stdout=self._run.progress,
                    on_stderr=self._run.error,
                    env=env,
                )
            except ExecutionError as e:
                self._run.error(str(e))
                return False
            if not ok:
                logger.warning("command_failed", plugin=plugin.name, command=str(command))
                return False
        return True

    async def build(self, plugin: Plugin) -> bool:
        directory = plugin.directory
        if directory is None or not plugin.build:
            return True
        shell, flag = self._host.shell()
        return await self.execute(plugin, [Command(shell, (flag, plugin.build))])

    async def warm_cache(self, plugin: Plugin) -> bool:
        """Run the configured cache-priming command. Failures are reported, not fatal."""
        argv = self._config.cache_warm_command
        directory = plugin.directory
        if not argv or directory is None or plugin.name in self._config.cache_warm_exclude:
            return True
        marker = self._config.cache_warm_marker
        if marker and not (directory / marker).is_dir():
            return True
        if shutil.which(argv[0]) is None:
            return True
        return await self.execute(plugin, [Command(argv[0], tuple(argv[1:]))], env={"NO_COLOR": "1"})

    async def log_message(
        self, plugin: Plugin, protocol: VCSProtocol, old_rev: str, new_rev: str
    ) -> str:
        if not old_rev or not new_rev or old_rev == new_rev:
            return ""
        lines = await self._collect(plugin, protocol.log_commands(plugin, old_rev, new_rev))
        return "\n".join(lines)

    async def changes_count(
        self, plugin: Plugin, protocol: VCSProtocol, old_rev: str, new_rev: str
    ) -> int:
        if not old_rev or not new_rev or old_rev == new_rev:
            return 0
        lines = await self._collect(plugin, protocol.changes_count_commands(plugin, old_rev, new_rev))
        for line in reversed(lines):
            try:
                return int(line.strip())
            except ValueError:
                continue
        return 0

    async def diff(
        self, plugin: Plugin, protocol: VCSProtocol, old_rev: str, new_rev: str
    ) -> list[str]:
        if not old_rev or not new_rev or old_rev == new_rev:
            return []
        lines = await self._collect(plugin, protocol.diff_commands(plugin, old_rev, new_rev))
        return [line for line in lines if line]

    async def check_remote(self, plugin: Plugin, index: int, total: int) -> UpdateOutcome | None:
        """Ask upstream which commits are not yet local, without touching the tree.

        Returns a would-be outcome (current vs. remote revision) when there are any.
        """
        self._run.progress(f"[{index}/{total}] {plugin.name}")
        log = logger.bind(plugin=plugin.name)
        try:
            binding = self._protocols.resolve(plugin)
            if binding is None:
                return None
            protocol = binding.protocol
            lines: list[str] = []
            for command in protocol.remote_check_commands(plugin):
                ok, out = await self._runner.capture(
                    command, cwd=plugin.directory, on_stderr=self._run.error
                )
                if not ok:
                    return None
                lines.extend(line for line in out if line)
            if not lines:
                return None
            old_rev = await asyncio.to_thread(protocol.current_revision, plugin)
            new_rev = await asyncio.to_thread(protocol.remote_revision, plugin)
            return UpdateOutcome(
                plugin=plugin,
                binding=binding,
                old_rev=old_rev,
                new_rev=new_rev,
                url=protocol.url(plugin),
                log_message="\n".join(lines),
                changes_count=len(lines),
            )
        except Exception as e:
            log.exception("remote_check_failed")
            self._run.error(f"{plugin.name}: {e}")
            return None

    async def _collect(self, plugin: Plugin, commands: list[Command]) -> list[str]:
        lines: list[str] = []
        for command in commands:
            try:
                lines.extend(await self._runner.check_output(command, cwd=plugin.directory))
            except (ExecutionError, CommandFailure) as e:
                self._run.error(str(e))
        return lines
