"""
Network runner.

This module handles one run of the local network:
- Loading identities and checking inputs (nothing is spawned on failure)
- Preparing the workspace and the per-node slots
- Supervising every node, monitoring bootstrap and provisioning the
  custom VM, all inside one SupervisedTaskGroup
- Shutting everything down and turning the outcome into a RunResult
"""

import asyncio
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from avasim.commands.cancellation import (
    CancellationScope,
    SupervisedTaskGroup,
    install_signal_handlers,
    remove_signal_handlers,
)
from avasim.commands.client import NodeClient
from avasim.commands.config import RunSettings, validate_settings
from avasim.commands.constants import (
    BLOCKCHAIN_ENDPOINT,
    ERROR_FILE_NOT_FOUND,
    EXIT_FAILURE,
    EXIT_INTERRUPTED,
    EXIT_OK,
    SHUTDOWN_GRACE,
    WORK_DIR_PREFIX,
)
from avasim.commands.errors import (
    AvasimError,
    CancellationError,
    ConfigurationError,
    FatalSetupError,
)
from avasim.commands.identity import IdentityPool, find_cert_dir
from avasim.commands.node_config import NodeSlot, build_slots
from avasim.commands.provisioning import (
    ProvisioningContext,
    ProvisioningWorkflow,
    StepRecord,
)
from avasim.commands.readiness import NetworkBootstrapMonitor, ReadinessSignal
from avasim.commands.result import fail, ok
from avasim.commands.supervisor import ProcessSupervisor
from avasim.commands.utils import console

# Reason the runner gives when it shuts the network down itself
COMPLETED_REASON = "run complete"


@dataclass
class RunResult:
    """Outcome of a run, as surfaced to the CLI."""

    success: bool
    interrupted: bool = False
    ready: bool = False
    subnet_id: Optional[str] = None
    blockchain_id: Optional[str] = None
    node_ids: list[str] = field(default_factory=list)
    endpoints: list[str] = field(default_factory=list)
    steps: list[StepRecord] = field(default_factory=list)
    work_dir: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def exit_code(self) -> int:
        if self.success:
            return EXIT_OK
        if self.interrupted:
            return EXIT_INTERRUPTED
        return EXIT_FAILURE

    def to_dict(self) -> dict[str, Any]:
        data = {
            "ready": self.ready,
            "interrupted": self.interrupted,
            "subnet_id": self.subnet_id,
            "blockchain_id": self.blockchain_id,
            "node_ids": self.node_ids,
            "endpoints": self.endpoints,
            "steps": [s.to_dict() for s in self.steps],
            "work_dir": self.work_dir,
        }
        if self.success:
            return ok(data)
        message = str(self.error) if self.error else "Run did not complete"
        return fail(message, error=self.error, data=data)


class NetworkRunner:
    """Runs one local network from setup to shutdown."""

    def __init__(
        self,
        settings: RunSettings,
        pool: Optional[IdentityPool] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        client_factory: Callable[[str], NodeClient] = NodeClient,
        shutdown_grace: float = SHUTDOWN_GRACE,
        handle_signals: bool = True,
    ):
        self.settings = settings
        self.pool = pool
        self.supervisor = supervisor or ProcessSupervisor(binary_path=settings.binary_path)
        self.client_factory = client_factory
        self.shutdown_grace = shutdown_grace
        self.handle_signals = handle_signals

        self.scope: Optional[CancellationScope] = None
        self.slots: list[NodeSlot] = []
        self.clients: dict[str, NodeClient] = {}
        self.readiness: Optional[ReadinessSignal] = None
        self.workflow: Optional[ProvisioningWorkflow] = None
        self.work_dir: Optional[Path] = None
        self._created_work_dir = False

    # Setup

    def _check_inputs(self) -> None:
        """Fail fast on missing files before anything is spawned."""
        settings = self.settings
        validate_settings(settings)

        if settings.chain_config_dir and not Path(settings.chain_config_dir).is_dir():
            raise ConfigurationError(
                f"{settings.chain_config_dir} does not exist",
                field="chain_config_dir",
            )
        for path in (settings.vm_path, settings.vm_genesis):
            if path is not None and not Path(path).is_file():
                raise FatalSetupError(ERROR_FILE_NOT_FOUND.format(path=path), path=path)

    def setup(self) -> list[NodeSlot]:
        """Load identities, prepare the workspace and lay out the node slots.

        Raises:
            FatalSetupError: on any problem; no node process has been started
        """
        settings = self.settings
        self._check_inputs()

        binary = self.supervisor.resolve_binary()

        if self.pool is None:
            cert_dir = find_cert_dir(settings.cert_dir, binary_path=binary)
            self.pool = IdentityPool.from_directory(cert_dir, settings.node_count)
        elif len(self.pool) != settings.node_count:
            raise ConfigurationError(
                f"Identity pool holds {len(self.pool)} identities but "
                f"node_count is {settings.node_count}",
                field="node_count",
            )
        self.pool.check_network(settings.network_id)

        if settings.work_dir:
            self.work_dir = Path(settings.work_dir).absolute()
            self.work_dir.mkdir(parents=True, exist_ok=True)
        else:
            self.work_dir = Path(tempfile.mkdtemp(prefix=WORK_DIR_PREFIX))
            self._created_work_dir = True
        console.print(f"[cyan]Working directory: {self.work_dir}[/cyan]")

        try:
            self.supervisor.prepare_workspace(
                self.work_dir,
                plugin_source_dir=settings.plugin_dir,
                vm_path=settings.vm_path,
                vm_id=settings.vm_id,
            )
            self.slots = build_slots(self.pool, self.work_dir, settings)
            for slot in self.slots:
                self.supervisor.materialize(slot)
        except OSError as e:
            raise FatalSetupError(
                f"Failed to prepare workspace: {e}", path=str(self.work_dir)
            ) from e

        return self.slots

    # Endpoints

    def endpoints(self) -> list[str]:
        blockchain_id = self.workflow.blockchain_id if self.workflow else None
        if blockchain_id:
            suffix = BLOCKCHAIN_ENDPOINT.format(blockchain_id=blockchain_id)
            return [f"{slot.uri}{suffix}" for slot in self.slots]
        return [slot.uri for slot in self.slots]

    def _print_endpoints(self) -> None:
        console.print("\n[bold]Endpoints:[/bold]")
        for slot, endpoint in zip(self.slots, self.endpoints()):
            console.print(f"  {slot.name}: {endpoint}")

    # Tasks

    async def _finish(self) -> None:
        self._print_endpoints()
        if self.settings.exit_on_complete:
            console.print("[cyan]Shutting down network (--exit-on-complete)[/cyan]")
            self.scope.cancel(COMPLETED_REASON)
        else:
            console.print("\n[bold]Network is running. Press Ctrl+C to stop.[/bold]")

    async def _monitor(self, monitor: NetworkBootstrapMonitor) -> None:
        await monitor.run(self.scope)
        if self.workflow is None:
            await self._finish()

    async def _provision(self) -> None:
        await self.workflow.execute()
        await self._finish()

    # Run

    async def run(self) -> RunResult:
        """Run the network until it fails, is interrupted, or completes.

        Setup errors are returned as a failed RunResult; nothing is spawned.
        """
        try:
            self.setup()
        except AvasimError as e:
            console.print(f"[red]✗ {e}[/red]")
            return RunResult(success=False, error=e)

        self.scope = CancellationScope()
        installed = install_signal_handlers(self.scope) if self.handle_signals else []

        self.clients = {slot.name: self.client_factory(slot.uri) for slot in self.slots}
        self.readiness = ReadinessSignal()
        monitor = NetworkBootstrapMonitor(
            self.clients,
            self.readiness,
            poll_interval=self.settings.bootstrap_poll_interval,
            node_ids={slot.name: slot.identity.node_id for slot in self.slots},
        )
        if self.settings.has_custom_vm:
            seed = self.slots[0]
            context = ProvisioningContext.from_settings(
                self.settings,
                client=self.clients[seed.name],
                scope=self.scope,
                node_ids=self.pool.node_ids(),
            )
            self.workflow = ProvisioningWorkflow(context, self.readiness)

        group = SupervisedTaskGroup(self.scope, shutdown_grace=self.shutdown_grace)
        error: Optional[BaseException] = None
        try:
            for slot in self.slots:
                group.spawn(slot.name, self.supervisor.supervise(slot, self.scope))
            group.spawn("bootstrap monitor", self._monitor(monitor))
            if self.workflow is not None:
                group.spawn("provisioning", self._provision())

            await group.wait()
        except AvasimError as e:
            # CancellationError included: interrupt or our own shutdown
            error = e
        except Exception as e:
            task = group.first_error_task or "network"
            console.print(f"[red]✗ Unexpected error in {task}: {e}[/red]")
            error = e
        finally:
            await self._shutdown(installed)

        return self._result(error)

    async def _shutdown(self, installed: list[int]) -> None:
        console.print("[cyan]Stopping network...[/cyan]")
        await self.supervisor.stop_all()
        await asyncio.gather(*(client.close() for client in self.clients.values()))
        if installed:
            remove_signal_handlers(installed)

    def _result(self, error: Optional[BaseException]) -> RunResult:
        ready = self.readiness is not None and self.readiness.is_set()
        completed = ready and (self.workflow is None or self.workflow.completed)
        interrupted = isinstance(error, CancellationError)

        if interrupted and self.scope.reason == COMPLETED_REASON:
            interrupted = False
            error = None

        success = error is None or (interrupted and completed)
        result = RunResult(
            success=success,
            interrupted=interrupted,
            ready=ready,
            subnet_id=self.workflow.subnet_id if self.workflow else None,
            blockchain_id=self.workflow.blockchain_id if self.workflow else None,
            node_ids=self.pool.node_ids() if self.pool else [],
            endpoints=self.endpoints() if ready else [],
            steps=list(self.workflow.records) if self.workflow else [],
            work_dir=str(self.work_dir) if self.work_dir else None,
            error=None if success else error,
        )

        if result.success:
            if self._created_work_dir:
                shutil.rmtree(self.work_dir, ignore_errors=True)
            console.print("\n[bold green]✓ Network stopped cleanly[/bold green]")
        elif result.interrupted:
            console.print(f"\n[yellow]Run interrupted: {self.scope.reason}[/yellow]")
            console.print(f"[yellow]Node logs kept in {self.work_dir}[/yellow]")
        else:
            console.print(f"\n[bold red]✗ Run failed: {error}[/bold red]")
            console.print(f"[yellow]Node logs kept in {self.work_dir}[/yellow]")
        return result


async def run_network(
    settings: RunSettings,
    pool: Optional[IdentityPool] = None,
    verbose: bool = False,
) -> RunResult:
    """
    Start a local network and (with a custom VM) provision it.

    Args:
        settings: Effective run settings (YAML merged with CLI options)
        pool: Pre-loaded identity pool; loaded from settings.cert_dir if None
        verbose: Print the per-step records when the run ends

    Returns:
        RunResult describing the outcome
    """
    runner = NetworkRunner(settings, pool=pool)
    result = await runner.run()

    if verbose and result.steps:
        console.print("\n[bold]Provisioning steps:[/bold]")
        for record in result.steps:
            console.print(
                f"  {record.kind}: {record.status} {record.reference_id or ''}".rstrip()
            )
    return result


def run_network_sync(
    settings: RunSettings,
    pool: Optional[IdentityPool] = None,
    verbose: bool = False,
) -> RunResult:
    """
    Synchronous wrapper for run_network.

    Returns:
        RunResult describing the outcome
    """
    return asyncio.run(run_network(settings, pool=pool, verbose=verbose))
