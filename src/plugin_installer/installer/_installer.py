"""Installer: entry points for install, update, reinstall, build and staleness checks."""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from ..errors import ConfigurationError, CorruptStateError, ExecutionError, RemoteAPIError
from ..models.config import InstallerConfig
from ..protocols._table import ProtocolTable
from ..remote._github import fetch_pushed_since
from ._process import ProcessRunner
from ._registry import list_plugins, missing_names
from ._report import breaking_summary, format_check_prompt, updated_summary
from ._run import CheckedPlugin, RunContext, UpdateOutcome, WorkflowStatus
from ._scheduler import run_bounded
from ._workflow import PluginWorkflow

if TYPE_CHECKING:
    from ..models.plugin import Plugin
    from ..protocols._base import VCSProtocol
    from ._protocols import HostAdapter, PluginRegistryAdapter, RollbackStateAdapter

logger = structlog.get_logger(__name__)


def _now() -> str:
    return datetime.now().isoformat(sep=" ", timespec="seconds")


class Installer:
    """Orchestrates plugin updates across the declared registry.

    Build one with ``make_installer()`` for the local filesystem, or pass
    adapters directly:

        installer = Installer(registry, rollbacks, host)
        await installer.update(["foo"])
        installer.get_updated()

    Each ``install``/``update``/``reinstall``/``check_*`` call starts a fresh
    run; the ``get_*`` accessors read the most recent one.
    """

    def __init__(
        self,
        registry: PluginRegistryAdapter,
        rollbacks: RollbackStateAdapter,
        host: HostAdapter,
        config: InstallerConfig | None = None,
        protocols: ProtocolTable | Mapping[str, VCSProtocol] | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        self._registry = registry
        self._rollbacks = rollbacks
        self._host = host
        self._config = config or InstallerConfig()
        if isinstance(protocols, ProtocolTable):
            self._protocols = protocols
        else:
            self._protocols = ProtocolTable(protocols)
        self._runner = runner or ProcessRunner(timeout=self._config.command_timeout)
        self._run: RunContext | None = None

    @property
    def config(self) -> InstallerConfig:
        return self._config

    @property
    def last_run(self) -> RunContext | None:
        return self._run

    # --- entry points ---

    async def install(self, names: Iterable[str] = (), rollback: str | None = None) -> None:
        """Install the targeted plugins that are not on disk yet."""
        names = list(names)
        with self._new_run() as run:
            revisions = self._load_rollback(run, rollback)
            plugins = [p for p in self._targets(run, names) if p.path and not p.is_installed]
            await self._update_plugins(run, plugins, revisions)

    async def update(self, names: Iterable[str] = (), rollback: str | None = None) -> None:
        names = list(names)
        with self._new_run() as run:
            revisions = self._load_rollback(run, rollback)
            await self._update_plugins(run, self._targets(run, names), revisions)

    async def reinstall(self, names: Iterable[str], rollback: str | None = None) -> None:
        """Delete the targeted plugins' directories, then update them.

        Raises:
            ConfigurationError: If no names are given.
        """
        names = list(names)
        with self._new_run() as run:
            if not names:
                run.error("names must be set for reinstall plugins.")
                raise ConfigurationError("names must be set for reinstall plugins.")
            revisions = self._load_rollback(run, rollback)
            plugins = self._targets(run, names)

            directories = [p.directory for p in plugins if p.directory is not None]
            for directory in directories:
                logger.info("removing_plugin_directory", path=str(directory))
            await asyncio.gather(*(asyncio.to_thread(shutil.rmtree, d) for d in directories))

            await self._update_plugins(run, plugins, revisions)

    async def build(self, names: Iterable[str] = ()) -> list[Plugin]:
        """Run only the build step. Returns the plugins whose build failed."""
        with self._run or self._new_run() as run:
            plugins = list_plugins(self._registry, names)
            workflow = self._workflow(run)

            async def build_one(_index: int, plugin: Plugin) -> bool:
                return await workflow.build(plugin)

            results = await run_bounded(plugins, build_one, self._config.concurrency)
            failed = [p for p, ok in zip(plugins, results) if not ok]
            for plugin in failed:
                run.error(f"Build failed: {plugin.name}")
            return failed

    async def cache_warm(self, names: Iterable[str] = ()) -> None:
        """Run only the cache-priming step."""
        with self._run or self._new_run() as run:
            workflow = self._workflow(run)
            for plugin in list_plugins(self._registry, names):
                await workflow.warm_cache(plugin)

    async def check_not_updated(self, names: Iterable[str] = (), force: bool = False) -> None:
        """Update the plugins GitHub reports as pushed since the last snapshot.

        Not-installed plugins are always included. Unless ``force`` is set the
        host is asked for confirmation first.
        """
        names = list(names)
        with self._new_run() as run:
            checked = await self._github_updated(run, self._targets(run, names))
            await self._confirm_and_update(run, self._with_not_installed(checked, names), force)

    async def check_remote_updated(self, names: Iterable[str] = (), force: bool = False) -> None:
        """Like check_not_updated, but asks each repository directly instead of the API."""
        names = list(names)
        with self._new_run() as run:
            outcomes = await self._remote_updated(run, self._targets(run, names))
            checked = [CheckedPlugin(plugin=o.plugin, count=o.changes_count) for o in outcomes]
            await self._confirm_and_update(run, self._with_not_installed(checked, names), force)

    async def get_not_updated(self, names: Iterable[str] = ()) -> list[Plugin]:
        with self._scratch_run() as run:
            checked = await self._github_updated(run, list_plugins(self._registry, names))
        return [c.plugin for c in checked]

    async def get_remote_updated(self, names: Iterable[str] = ()) -> list[Plugin]:
        with self._scratch_run() as run:
            outcomes = await self._remote_updated(run, list_plugins(self._registry, names))
        return [o.plugin for o in outcomes]

    # --- accessors ---

    def get_not_installed(self, names: Iterable[str] = ()) -> list[Plugin]:
        return [p for p in list_plugins(self._registry, names) if p.path and not p.is_installed]

    def get_failed(self) -> list[Plugin]:
        return list(self._run.failed) if self._run else []

    def get_updated(self) -> list[Plugin]:
        return [o.plugin for o in self._run.updated] if self._run else []

    def get_logs(self) -> list[str]:
        return list(self._run.logs) if self._run else []

    def get_update_logs(self) -> list[str]:
        return list(self._run.update_logs) if self._run else []

    # --- internals ---

    def _new_run(self) -> RunContext:
        self._run = self._scratch_run()
        return self._run

    def _scratch_run(self) -> RunContext:
        return RunContext(self._host, self._config.log_file)

    def _workflow(self, run: RunContext) -> PluginWorkflow:
        return PluginWorkflow(run, self._protocols, self._runner, self._config)

    def _targets(self, run: RunContext, names: list[str]) -> list[Plugin]:
        plugins = list_plugins(self._registry, names)
        missing = missing_names(plugins, names)
        if missing:
            run.error("Unknown or excluded plugins: " + ", ".join(missing))
        return plugins

    def _load_rollback(self, run: RunContext, label: str | None) -> dict[str, str]:
        if not label:
            return {}
        try:
            return self._rollbacks.load(label)
        except (ConfigurationError, CorruptStateError) as e:
            run.error(str(e))
            raise

    def _with_not_installed(self, checked: list[CheckedPlugin], names: list[str]) -> list[CheckedPlugin]:
        by_name = {c.plugin.name: c for c in checked}
        for plugin in self.get_not_installed(names):
            by_name.setdefault(plugin.name, CheckedPlugin(plugin=plugin))
        return sorted(by_name.values(), key=lambda c: c.plugin.name)

    async def _confirm_and_update(
        self, run: RunContext, checked: list[CheckedPlugin], force: bool
    ) -> None:
        if not checked:
            run.message("Updated plugins are not found.")
            return
        if not force and not self._host.confirm(format_check_prompt(checked)):
            logger.info("update_declined", plugins=len(checked))
            return
        plugins = list_plugins(self._registry, [c.plugin.name for c in checked])
        await self._update_plugins(run, plugins, {})

    def _report_no_targets(self, run: RunContext) -> None:
        run.error("Target plugins are not found.")
        run.error(
            "You may have used the wrong plugin name, or all of the plugins are already installed."
        )

    async def _github_updated(self, run: RunContext, plugins: list[Plugin]) -> list[CheckedPlugin]:
        if not plugins:
            self._report_no_targets(run)
            return []
        if not self._config.github_api_token:
            run.error('"githubAPIToken" must be set.')
            return []

        cutoff = self._rollbacks.latest_saved_at()
        if cutoff is None:
            # Never updated: nothing can be confirmed stale
            return []

        try:
            found = await fetch_pushed_since(plugins, cutoff, self._config.github_api_token)
        except RemoteAPIError as e:
            logger.warning("precheck_failed", error=str(e))
            run.error(str(e))
            return []
        return [CheckedPlugin(plugin=p, updated=pushed) for p, pushed in found]

    async def _remote_updated(self, run: RunContext, plugins: list[Plugin]) -> list[UpdateOutcome]:
        if not plugins:
            self._report_no_targets(run)
            return []

        run.message(f"Start: {_now()}")
        workflow = self._workflow(run)
        total = len(plugins)

        async def check_one(index: int, plugin: Plugin) -> UpdateOutcome | None:
            return await workflow.check_remote(plugin, index, total)

        results = await run_bounded(
            plugins, check_one, self._config.concurrency, self._config.wait_seconds
        )
        outcomes = [o for o in results if o is not None]
        if outcomes:
            run.message(updated_summary(outcomes))
            breaking = breaking_summary(outcomes)
            if breaking:
                run.message(breaking)

        self._host.close_progress()
        run.message(f"Done: {_now()}")
        return outcomes

    async def _update_plugins(
        self, run: RunContext, plugins: list[Plugin], revisions: dict[str, str]
    ) -> None:
        if not plugins:
            self._report_no_targets(run)
            self._host.make_state()
            self._host.update_done()
            return

        run.message(f"Start: {_now()}")
        try:
            await self._run_workflows(run, plugins, revisions)
        finally:
            # Completion is signalled even when a hook or the snapshot raised
            self._host.close_progress()
            self._host.make_state()
            run.message(f"Done: {_now()}")
            self._host.update_done()

    async def _run_workflows(
        self, run: RunContext, plugins: list[Plugin], revisions: dict[str, str]
    ) -> None:
        workflow = self._workflow(run)
        total = len(plugins)

        async def update_one(index: int, plugin: Plugin):
            return await workflow.update(plugin, index, total, revisions.get(plugin.name) or None)

        results = await run_bounded(
            plugins, update_one, self._config.concurrency, self._config.wait_seconds
        )
        # Report in submission order, not completion order
        run.updated = [r.outcome for r in results if r.outcome is not None]
        run.failed = [r.plugin for r in results if r.status is WorkflowStatus.FAILED]
        logger.info(
            "update_run_finished",
            total=total,
            updated=len(run.updated),
            failed=len(run.failed),
        )

        await self._dispatch_hooks(run, workflow)

        if run.updated:
            run.message(updated_summary(run.updated))
            # https://www.conventionalcommits.org/en/v1.0.0/
            breaking = breaking_summary(run.updated)
            if breaking:
                run.message(breaking)
            await self._save_rollback(run)

        if run.failed:
            run.message(
                "Failed plugins:\n"
                + "\n".join(p.name for p in run.failed)
                + "\nPlease read the error message log."
            )

    async def _dispatch_hooks(self, run: RunContext, workflow: PluginWorkflow) -> None:
        declared = self._registry.get_plugins()
        called_depends: set[str] = set()
        for outcome in run.updated:
            plugin = outcome.plugin
            if plugin.hook_done_update:
                self._host.call_hook("done_update", plugin)

            for name in plugin.depend_names:
                depend = declared.get(name)
                if depend is None or not depend.hook_depends_update or name in called_depends:
                    continue
                called_depends.add(name)
                self._host.call_hook("depends_update", depend)

            if self._config.check_diff:
                lines = await workflow.diff(
                    plugin, outcome.binding.protocol, outcome.old_rev, outcome.new_rev
                )
                if lines:
                    self._host.show_diff(plugin, lines)

    async def _save_rollback(self, run: RunContext) -> None:
        """Snapshot the current revision of every eligible plugin, not just the updated ones."""
        revisions: dict[str, str] = {}
        for plugin in list_plugins(self._registry):
            try:
                binding = self._protocols.resolve(plugin)
                if binding is None:
                    continue
                revisions[plugin.name] = await asyncio.to_thread(
                    binding.protocol.current_revision, plugin
                )
            except (ConfigurationError, ExecutionError) as e:
                run.error(f"{plugin.name}: {e}")
        try:
            self._rollbacks.save(revisions)
        except OSError as e:
            logger.warning("rollback_save_failed", error=str(e))
            run.error(f"Cannot save rollback snapshot: {e}")
