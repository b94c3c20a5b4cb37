"""
Network bootstrap monitoring.

The monitor fans out one poll loop per node. A node is ready when it reports
the node id it was started with, every required chain reports bootstrapped
and it is connected to at least N-1 peers. Once every loop has finished, the monitor sets the ReadinessSignal
exactly once; the provisioning workflow waits on that signal.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from avasim.commands.cancellation import CancellationScope
from avasim.commands.client import NodeClient
from avasim.commands.constants import BOOTSTRAP_POLL_INTERVAL, REQUIRED_CHAINS
from avasim.commands.errors import (
    IdentityError,
    RemoteRejectionError,
    TransientNetworkError,
)
from avasim.commands.retry import poll_until
from avasim.commands.utils import console


class ReadinessSignal:
    """Single-assignment flag: unset until the whole network is ready."""

    def __init__(self):
        self._event = asyncio.Event()

    def is_set(self) -> bool:
        return self._event.is_set()

    def set(self) -> None:
        if self._event.is_set():
            raise RuntimeError("Readiness signal can only be set once")
        self._event.set()

    async def wait(self, scope: CancellationScope) -> None:
        """Block until set.

        Raises:
            CancellationError: if the scope is cancelled first
        """
        await scope.guard(self._event.wait())


@dataclass
class NodeReadiness:
    """Bootstrap progress of one node as last observed."""

    name: str
    chains: dict[str, bool]
    min_peers: int
    peers: int = 0
    expected_node_id: Optional[str] = None
    node_id: Optional[str] = None

    @property
    def chains_ready(self) -> bool:
        return all(self.chains.values())

    @property
    def identity_confirmed(self) -> bool:
        return self.expected_node_id is None or self.node_id == self.expected_node_id

    @property
    def ready(self) -> bool:
        return (
            self.identity_confirmed
            and self.chains_ready
            and self.peers >= self.min_peers
        )

    def describe(self) -> str:
        done = [chain for chain, ok in self.chains.items() if ok]
        chains = ",".join(done) if done else "no chains"
        return f"{chains} bootstrapped, {self.peers}/{self.min_peers} peers"


class NetworkBootstrapMonitor:
    """Waits for every node to bootstrap and peer with the rest of the network."""

    def __init__(
        self,
        clients: dict[str, NodeClient],
        signal: ReadinessSignal,
        chains: tuple = REQUIRED_CHAINS,
        poll_interval: float = BOOTSTRAP_POLL_INTERVAL,
        min_peers: Optional[int] = None,
        node_ids: Optional[dict[str, str]] = None,
    ):
        self.clients = clients
        self.signal = signal
        self.chains = tuple(chains)
        self.poll_interval = poll_interval
        if min_peers is None:
            min_peers = len(clients) - 1
        node_ids = node_ids or {}
        self.states: dict[str, NodeReadiness] = {
            name: NodeReadiness(
                name=name,
                chains={chain: False for chain in self.chains},
                min_peers=min_peers,
                expected_node_id=node_ids.get(name),
            )
            for name in clients
        }

    async def _check_node(self, client: NodeClient, state: NodeReadiness) -> bool:
        if not state.identity_confirmed:
            state.node_id = await client.get_node_id()
            if not state.identity_confirmed:
                raise IdentityError(
                    f"{state.name} is running as {state.node_id}, "
                    f"expected {state.expected_node_id}; another node may be "
                    "using its ports"
                )
        # Chain state only moves from not-ready to ready
        for chain in self.chains:
            if not state.chains[chain] and await client.is_bootstrapped(chain):
                state.chains[chain] = True
        state.peers = await client.peers()
        return state.ready

    async def watch_node(self, name: str, scope: CancellationScope) -> NodeReadiness:
        """Poll one node until it is ready."""
        client = self.clients[name]
        state = self.states[name]

        await poll_until(
            lambda: self._check_node(client, state),
            scope=scope,
            interval=self.poll_interval,
            # Chains not yet registered are reported as JSON-RPC errors
            transient=(TransientNetworkError, RemoteRejectionError),
        )
        console.print(f"[green]✓ {name} ready: {state.describe()}[/green]")
        return state

    async def _report(self, scope: CancellationScope) -> None:
        while True:
            await scope.sleep(self.poll_interval)
            waiting = [s for s in self.states.values() if not s.ready]
            if not waiting:
                return
            for state in waiting:
                console.print(f"[cyan]waiting for {state.name}: {state.describe()}[/cyan]")

    async def run(self, scope: CancellationScope) -> None:
        """Watch all nodes concurrently and set the signal once all are ready.

        Raises:
            CancellationError: if the scope is cancelled before readiness
        """
        console.print(
            f"[cyan]Waiting for {len(self.clients)} nodes to bootstrap "
            f"({', '.join(self.chains)}) and peer...[/cyan]"
        )
        watchers = [
            asyncio.ensure_future(self.watch_node(name, scope)) for name in self.clients
        ]
        reporter = asyncio.ensure_future(self._report(scope))
        try:
            await asyncio.gather(*watchers)
        finally:
            reporter.cancel()
            for task in watchers:
                task.cancel()
            await asyncio.gather(reporter, *watchers, return_exceptions=True)

        self.signal.set()
        console.print("[green]✓ Network is bootstrapped and fully connected[/green]")
