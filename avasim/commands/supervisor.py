"""
Process Supervisor - runs each node of the network as a native child process.

One supervise() task exists per node slot. It starts the node, then waits for
whichever happens first: the process exiting or the run being cancelled. An
exit while the run is not cancelling is a SupervisionError; an exit after
cancellation is the normal shutdown path.
"""

import asyncio
import os
import shutil
from pathlib import Path
from typing import Optional, Union

from avasim.commands.cancellation import CancellationScope
from avasim.commands.constants import (
    COMMON_BINARY_PATHS,
    ERROR_FILE_NOT_FOUND,
    ERROR_NODE_EXITED,
    NODE_BINARY_NAME,
    PLUGINS_DIR_NAME,
    PROCESS_WAIT_TIMEOUT,
)
from avasim.commands.errors import FatalSetupError, SupervisionError
from avasim.commands.node_config import NodeSlot
from avasim.commands.utils import console, copy_file, ensure_dir


def _is_executable(path: Union[str, Path]) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def find_binary(binary_path: Optional[str] = None) -> str:
    """Locate the node binary.

    Looks at ``binary_path`` first, then PATH, then common install locations.

    Raises:
        FatalSetupError: if no executable binary is found
    """
    if binary_path:
        expanded = os.path.expanduser(binary_path)
        if _is_executable(expanded):
            return expanded
        console.print(
            f"[yellow]Warning: {NODE_BINARY_NAME} binary not found at {binary_path!r}, searching PATH[/yellow]"
        )

    binary = shutil.which(NODE_BINARY_NAME)
    if binary:
        console.print(f"[green]✓ Found {NODE_BINARY_NAME} binary in PATH: {binary}[/green]")
        return binary

    for path in COMMON_BINARY_PATHS:
        path = os.path.expanduser(path)
        if _is_executable(path):
            console.print(f"[green]✓ Found {NODE_BINARY_NAME} binary: {path}[/green]")
            return path

    raise FatalSetupError(
        f"{NODE_BINARY_NAME} binary not found. Install it or specify --binary-path "
        "(searched PATH and /usr/local/bin, /usr/bin, ~/bin, ./build, ./)",
        path=binary_path,
    )


class NodeHandle:
    """A running (or exited) node process. Mutated only by its supervisor."""

    def __init__(self, slot: NodeSlot, process: asyncio.subprocess.Process):
        self.slot = slot
        self.process = process
        self.exit_code: Optional[int] = None
        self._stopping: Optional[asyncio.Future] = None

    @property
    def stopped(self) -> bool:
        return self._stopping is not None

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def running(self) -> bool:
        return self.exit_code is None and self.process.returncode is None

    def __repr__(self) -> str:
        return f"NodeHandle({self.slot.name!r}, pid={self.process.pid}, exit_code={self.exit_code})"


class ProcessSupervisor:
    """Starts, watches and stops the node processes of one run."""

    def __init__(
        self,
        binary_path: Optional[str] = None,
        wait_timeout: float = PROCESS_WAIT_TIMEOUT,
    ):
        self.binary_path = binary_path
        self.wait_timeout = wait_timeout
        self.handles: dict[str, NodeHandle] = {}

    def resolve_binary(self) -> str:
        if not self.binary_path or not _is_executable(self.binary_path):
            self.binary_path = find_binary(self.binary_path)
        return self.binary_path

    def prepare_workspace(
        self,
        work_dir: Union[str, Path],
        plugin_source_dir: Union[str, Path, None] = None,
        vm_path: Union[str, Path, None] = None,
        vm_id: Optional[str] = None,
    ) -> Path:
        """Create ``work_dir/plugins`` holding the system plugins and custom VM.

        Raises:
            FatalSetupError: if the custom VM binary does not exist
        """
        plugin_dir = ensure_dir(Path(work_dir) / PLUGINS_DIR_NAME)

        if plugin_source_dir is not None:
            source = Path(plugin_source_dir)
            if source.is_dir():
                for plugin in sorted(source.iterdir()):
                    if plugin.is_file():
                        copy_file(plugin, plugin_dir / plugin.name, executable=True)
                        console.print(f"[green]✓ Copied system plugin {plugin.name}[/green]")
            else:
                console.print(
                    f"[yellow]⚠ System plugin directory {source} not found, skipping[/yellow]"
                )

        if vm_path is not None:
            vm_file = Path(vm_path)
            if not vm_file.is_file():
                raise FatalSetupError(
                    ERROR_FILE_NOT_FOUND.format(path=vm_file), path=str(vm_file)
                )
            copy_file(vm_file, plugin_dir / vm_id, executable=True)
            console.print(f"[green]✓ Installed custom VM as {PLUGINS_DIR_NAME}/{vm_id}[/green]")

        return plugin_dir

    def materialize(self, slot: NodeSlot) -> None:
        """Write the slot's staking files and create its db and log dirs."""
        ensure_dir(slot.node_dir)
        slot.cert_file.write_bytes(slot.identity.cert_bytes)
        slot.key_file.write_bytes(slot.identity.key_bytes)
        os.chmod(slot.key_file, 0o600)
        ensure_dir(slot.db_dir)
        ensure_dir(slot.log_dir)

    async def start(self, slot: NodeSlot) -> NodeHandle:
        """Spawn the node process with stdout/stderr appended to its log file."""
        binary = self.resolve_binary()
        ensure_dir(slot.log_dir)
        cmd = [binary, *slot.args()]

        console.print(f"[cyan]Starting node {slot.name}...[/cyan]")
        console.print(f"[cyan]  Node ID: {slot.identity.node_id}[/cyan]")
        console.print(f"[cyan]  HTTP port: {slot.http_port}[/cyan]")
        console.print(f"[cyan]  Staking port: {slot.staking_port}[/cyan]")
        if not slot.is_seed:
            console.print(f"[cyan]  Bootstrap: {slot.bootstrap_ip} ({slot.bootstrap_id})[/cyan]")

        with open(slot.log_file, "a", encoding="utf-8") as log_f:
            try:
                process = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=log_f,
                    stderr=asyncio.subprocess.STDOUT,
                )
            except OSError as e:
                raise FatalSetupError(
                    f"Failed to start node {slot.name}: {e}", path=binary
                ) from e

        handle = NodeHandle(slot, process)
        self.handles[slot.name] = handle
        console.print(
            f"[green]✓ Node {slot.name} started (PID: {process.pid})[/green]"
        )
        console.print(f"[cyan]  View logs: tail -f {slot.log_file}[/cyan]")
        return handle

    async def await_exit(self, handle: NodeHandle) -> int:
        code = await handle.process.wait()
        handle.exit_code = code
        return code

    async def stop(self, handle: NodeHandle) -> None:
        """Terminate the process, killing it if it does not exit in time.

        Safe to call more than once and after the process exited on its own;
        concurrent callers all wait for the same shutdown.
        """
        if handle._stopping is None:
            handle._stopping = asyncio.ensure_future(self._terminate(handle))
        await asyncio.shield(handle._stopping)

    async def _terminate(self, handle: NodeHandle) -> None:
        process = handle.process
        if process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(process.wait(), timeout=self.wait_timeout)
            except asyncio.TimeoutError:
                console.print(
                    f"[yellow]⚠ Node {handle.slot.name} did not stop in {self.wait_timeout}s, killing[/yellow]"
                )
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
            console.print(f"[green]✓ Stopped node {handle.slot.name}[/green]")

        handle.exit_code = process.returncode

    async def stop_all(self) -> None:
        await asyncio.gather(*(self.stop(h) for h in self.handles.values()))

    async def supervise(self, slot: NodeSlot, scope: CancellationScope) -> None:
        """Run one node until it exits or the scope is cancelled.

        Raises:
            SupervisionError: if the node exits while the run is not cancelling
        """
        handle = await self.start(slot)
        try:
            exit_task = asyncio.ensure_future(self.await_exit(handle))
            cancel_task = asyncio.ensure_future(scope.wait())
            try:
                await asyncio.wait(
                    {exit_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
                )
            finally:
                cancel_task.cancel()

            if exit_task.done() and not scope.cancelled:
                code = exit_task.result()
                raise SupervisionError(
                    ERROR_NODE_EXITED.format(node=slot.name, code=code)
                    + f" (see {slot.log_file})",
                    node=slot.name,
                    exit_code=code,
                )
            exit_task.cancel()
        finally:
            await self.stop(handle)
