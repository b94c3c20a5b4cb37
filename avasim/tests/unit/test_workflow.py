"""
Unit tests for the provisioning workflow and its steps.
"""

import asyncio

import pytest

from avasim.commands.cancellation import CancellationScope
from avasim.commands.config import RunSettings
from avasim.commands.errors import (
    CancellationError,
    ConfigurationError,
    FatalSetupError,
    RemoteRejectionError,
)
from avasim.commands.provisioning import (
    STEP_SEQUENCE,
    ProvisioningContext,
    ProvisioningWorkflow,
    StepRecord,
)
from avasim.commands.provisioning.steps import CreateAccountStep
from avasim.commands.readiness import ReadinessSignal


NODE_IDS = [f"NodeID-fake{i}" for i in range(1, 6)]


def _workflow(client, genesis_path, ready=True, **overrides):
    settings = RunSettings(
        vm_genesis=genesis_path,
        tx_poll_interval=0.01,
        activation_poll_interval=0.01,
    )
    context = ProvisioningContext.from_settings(
        settings, client, CancellationScope(), NODE_IDS
    )
    for name, value in overrides.items():
        setattr(context, name, value)
    signal = ReadinessSignal()
    if ready:
        signal.set()
    return ProvisioningWorkflow(context, signal)


class TestProvisioningWorkflow:
    @pytest.mark.asyncio
    async def test_full_sequence(self, node_client_class, vm_files):
        client = node_client_class()
        workflow = _workflow(client, vm_files[1])

        blockchain_id = await asyncio.wait_for(workflow.execute(), timeout=5)

        assert blockchain_id == client.blockchain_id
        assert client.calls == [
            "keystore.createUser",
            "platform.importKey",
            "platform.getBalance",
            "platform.createSubnet",
            "platform.getTxStatus",
            *["platform.addSubnetValidator", "platform.getTxStatus"] * 5,
            "platform.createBlockchain",
            "platform.getTxStatus",
            "platform.getBlockchains",
            "platform.getBlockchainStatus",
        ]
        assert client.validators == NODE_IDS

        assert workflow.completed
        assert [r.kind for r in workflow.records] == [s.kind for s in STEP_SEQUENCE]
        assert all(r.status == "committed" for r in workflow.records)
        assert workflow.records[1].reference_id == client.funded_address
        assert workflow.subnet_id == client.subnet_tx_id
        assert workflow.context.validator_tx_ids == [
            f"validator-tx-{i}" for i in range(1, 6)
        ]

    @pytest.mark.asyncio
    async def test_waits_for_readiness(self, node_client_class, vm_files):
        client = node_client_class()
        workflow = _workflow(client, vm_files[1], ready=False)

        run = asyncio.ensure_future(workflow.execute())
        await asyncio.sleep(0.05)
        assert client.calls == []

        workflow.signal.set()
        await asyncio.wait_for(run, timeout=5)
        assert workflow.completed

    @pytest.mark.asyncio
    async def test_rejection_names_step_and_stops(self, node_client_class, vm_files):
        client = node_client_class(reject={"platform.createBlockchain"})
        workflow = _workflow(client, vm_files[1])

        with pytest.raises(RemoteRejectionError) as exc_info:
            await asyncio.wait_for(workflow.execute(), timeout=5)

        assert exc_info.value.step_name == "create blockchain"
        assert "platform.getBlockchains" not in client.calls
        assert len(workflow.records) == 6
        assert workflow.records[-1].status == "failed"
        assert all(r.status == "committed" for r in workflow.records[:-1])
        assert not workflow.completed

    @pytest.mark.asyncio
    async def test_dropped_tx_fails_step(self, node_client_class, vm_files):
        client = node_client_class(tx_status="Dropped")
        workflow = _workflow(client, vm_files[1])

        with pytest.raises(RemoteRejectionError) as exc_info:
            await asyncio.wait_for(workflow.execute(), timeout=5)

        assert exc_info.value.step_name == "await subnet commit"
        assert "dropped" in exc_info.value.message
        assert "platform.addSubnetValidator" not in client.calls

    @pytest.mark.asyncio
    async def test_aborted_tx_fails_step(self, node_client_class, vm_files):
        client = node_client_class(tx_status="Aborted")
        workflow = _workflow(client, vm_files[1])

        with pytest.raises(RemoteRejectionError) as exc_info:
            await asyncio.wait_for(workflow.execute(), timeout=5)

        assert exc_info.value.step_name == "await subnet commit"
        assert "aborted" in exc_info.value.message
        # the status is terminal; no further polling
        assert client.calls.count("platform.getTxStatus") == 1
        assert workflow.records[-1].status == "failed"

    @pytest.mark.asyncio
    async def test_zero_balance_fails(self, node_client_class, vm_files):
        client = node_client_class(balance=0)
        workflow = _workflow(client, vm_files[1])

        with pytest.raises(RemoteRejectionError) as exc_info:
            await asyncio.wait_for(workflow.execute(), timeout=5)
        assert exc_info.value.step_name == "fund account"

    @pytest.mark.asyncio
    async def test_cancel_while_polling(self, node_client_class, vm_files):
        client = node_client_class(tx_status="Processing")
        workflow = _workflow(client, vm_files[1])

        run = asyncio.ensure_future(workflow.execute())
        await asyncio.sleep(0.05)
        workflow.context.scope.cancel("received SIGINT")

        with pytest.raises(CancellationError):
            await asyncio.wait_for(run, timeout=1)
        assert workflow.records[-1].kind == "AwaitDomainCommit"
        assert workflow.records[-1].status == "failed"
        assert "platform.addSubnetValidator" not in client.calls

    @pytest.mark.asyncio
    async def test_missing_genesis_is_fatal(self, node_client_class, tmp_path):
        client = node_client_class()
        workflow = _workflow(client, str(tmp_path / "missing.json"))

        with pytest.raises(FatalSetupError):
            await asyncio.wait_for(workflow.execute(), timeout=5)
        assert "platform.createBlockchain" not in client.calls

    @pytest.mark.asyncio
    async def test_activation_waits_for_validating(self, node_client_class, vm_files):
        client = node_client_class(blockchain_status="Syncing")
        workflow = _workflow(client, vm_files[1])

        run = asyncio.ensure_future(workflow.execute())
        await asyncio.sleep(0.1)
        assert not run.done()
        assert workflow.blockchain_id == client.blockchain_id

        client.blockchain_status = "Validating"
        await asyncio.wait_for(run, timeout=1)
        assert workflow.completed


class TestSteps:
    def test_missing_required_fields(self, node_client_class, vm_files):
        workflow = _workflow(node_client_class(), vm_files[1], username="")

        with pytest.raises(ConfigurationError) as exc_info:
            CreateAccountStep(workflow.context)
        assert exc_info.value.field == "username"

    def test_record_to_dict(self):
        record = StepRecord(kind="CreateDomain", name="create subnet", reference_id="tx")
        assert not record.terminal
        record.status = "committed"
        assert record.terminal
        assert record.to_dict() == {
            "kind": "CreateDomain",
            "name": "create subnet",
            "reference_id": "tx",
            "status": "committed",
        }
