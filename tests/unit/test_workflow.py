"""Unit tests for the provisioning workflow, using in-memory collaborators."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from structlog.testing import capture_logs

from cosmos_provisioning.config.defaults import build_workflow_config
from cosmos_provisioning.config.models import (
    AccountConfig,
    ConsistencyLevel,
    DataConfig,
    WorkflowConfig,
)
from cosmos_provisioning.errors import ResourceNotFoundError
from cosmos_provisioning.resources import (
    AccountCredentials,
    AccountInfo,
    CollectionSpec,
    DatabaseSpec,
    ResourceHandle,
    ResourceKind,
)
from cosmos_provisioning.workflow.results import Outcome, WorkflowState
from cosmos_provisioning.workflow.runner import ProvisioningWorkflow, provision_from_env


class FakeManagement:
    """Records every control-plane call; raises from methods listed in *fail*."""

    def __init__(
        self, calls: list[tuple[Any, ...]], fail: dict[str, Exception] | None = None
    ) -> None:
        self.calls = calls
        self.fail = fail or {}
        self.accounts: dict[str, AccountConfig] = {}

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, *args))
        if method in self.fail:
            raise self.fail[method]

    def create_resource_group(self, name: str, location: str) -> ResourceHandle:
        self._record("create_resource_group", name, location)
        return ResourceHandle(
            id=f"/subscriptions/sub/resourceGroups/{name}",
            name=name,
            kind=ResourceKind.RESOURCE_GROUP,
        )

    def delete_resource_group(self, name: str) -> None:
        self._record("delete_resource_group", name)

    def create_database_account(
        self, resource_group: str, name: str, account: AccountConfig
    ) -> AccountInfo:
        self._record("create_database_account", resource_group, name)
        self.accounts[name] = account
        return AccountInfo(
            id=f"/subscriptions/sub/resourceGroups/{resource_group}/{name}",
            name=name,
            document_endpoint=f"https://{name}.documents.azure.com:443/",
            kind=account.kind.value,
            write_locations=("East US",),
            read_locations=("East US", "Central US"),
        )

    def list_keys(self, resource_group: str, name: str) -> str:
        self._record("list_keys", resource_group, name)
        return "primary-key=="

    def delete_database_account(self, resource_group: str, name: str) -> None:
        self._record("delete_database_account", resource_group, name)


class FakeDataPlane:
    def __init__(
        self, calls: list[tuple[Any, ...]], fail: dict[str, Exception] | None = None
    ) -> None:
        self.calls = calls
        self.fail = fail or {}

    def create_database(self, database: DatabaseSpec) -> None:
        self.calls.append(("create_database", database.id))
        if "create_database" in self.fail:
            raise self.fail["create_database"]

    def create_collection(self, database_id: str, collection: CollectionSpec) -> None:
        self.calls.append(("create_collection", database_id, collection))
        if "create_collection" in self.fail:
            raise self.fail["create_collection"]


def _workflow(
    fail: dict[str, Exception] | None = None,
    config: WorkflowConfig | None = None,
) -> tuple[ProvisioningWorkflow, list[tuple[Any, ...]], list[Any]]:
    calls: list[tuple[Any, ...]] = []
    opened: list[Any] = []
    management = FakeManagement(calls, fail)

    def open_data_plane(
        credentials: AccountCredentials, consistency_level: ConsistencyLevel
    ) -> FakeDataPlane:
        calls.append(("open_data_plane", credentials.endpoint))
        opened.append((credentials, consistency_level))
        if "open_data_plane" in (fail or {}):
            raise fail["open_data_plane"]
        return FakeDataPlane(calls, fail)

    workflow = ProvisioningWorkflow(management, open_data_plane, config)
    return workflow, calls, opened


def _methods(calls: list[tuple[Any, ...]]) -> list[str]:
    return [c[0] for c in calls]


class TestSuccessfulRun:
    def test_calls_happen_in_dependency_order(self):
        workflow, calls, _ = _workflow()
        result = workflow.run(group_name="rg1", account="acct1")

        assert _methods(calls) == [
            "create_resource_group",
            "create_database_account",
            "list_keys",
            "open_data_plane",
            "create_database",
            "create_collection",
            "delete_database_account",
            "delete_resource_group",
        ]
        assert result.outcome == Outcome.SUCCEEDED
        assert result.succeeded

    def test_visits_every_state(self):
        workflow, _, _ = _workflow()
        result = workflow.run(group_name="rg1", account="acct1")

        assert result.states == [
            WorkflowState.IDLE,
            WorkflowState.GROUP_CREATED,
            WorkflowState.ACCOUNT_CREATED,
            WorkflowState.DATA_POPULATED,
            WorkflowState.ACCOUNT_DELETED,
            WorkflowState.GROUP_DELETED,
        ]
        assert result.final_state == WorkflowState.GROUP_DELETED

    def test_account_is_created_inside_the_group(self):
        workflow, calls, _ = _workflow()
        workflow.run(group_name="rg1", account="acct1")

        assert ("create_resource_group", "rg1", "eastus") in calls
        assert ("create_database_account", "rg1", "acct1") in calls
        assert ("list_keys", "rg1", "acct1") in calls

    def test_data_plane_opened_with_credentials_at_session_consistency(self):
        workflow, _, opened = _workflow()
        workflow.run(group_name="rg1", account="acct1")

        credentials, level = opened[0]
        assert credentials.endpoint == "https://acct1.documents.azure.com:443/"
        assert credentials.primary_key == "primary-key=="
        assert level == ConsistencyLevel.SESSION

    def test_collection_uses_configured_throughput(self):
        config = WorkflowConfig(data=DataConfig(throughput=1000))
        workflow, calls, _ = _workflow(config=config)
        workflow.run(group_name="rg1", account="acct1")

        collection_calls = [c for c in calls if c[0] == "create_collection"]
        assert len(collection_calls) == 1
        _, database_id, collection = collection_calls[0]
        assert database_id == "TestDB"
        assert collection.id == "TestCollection"
        assert collection.throughput == 1000

    def test_default_throughput(self):
        workflow, calls, _ = _workflow()
        workflow.run(group_name="rg1", account="acct1")

        collection = next(c[2] for c in calls if c[0] == "create_collection")
        assert collection.throughput == 4000

    def test_account_delete_step_can_be_disabled(self):
        config = WorkflowConfig(delete_account=False)
        workflow, calls, _ = _workflow(config=config)
        result = workflow.run(group_name="rg1", account="acct1")

        assert "delete_database_account" not in _methods(calls)
        assert _methods(calls)[-1] == "delete_resource_group"
        assert result.outcome == Outcome.SUCCEEDED
        assert WorkflowState.ACCOUNT_DELETED not in result.states

    def test_result_reports_names_and_steps(self):
        workflow, _, _ = _workflow()
        result = workflow.run(group_name="rg1", account="acct1")

        assert result.resource_group_name == "rg1"
        assert result.account_name == "acct1"
        assert [s.name for s in result.steps] == [
            "create_resource_group",
            "create_database_account",
            "list_keys",
            "populate_data",
            "delete_database_account",
        ]
        assert [s.name for s in result.cleanup] == ["delete_resource_group"]
        assert result.failed_steps == []


class TestConsistencyPayload:
    def test_bounded_staleness_parameters_reach_the_account_request(self):
        workflow, _, _ = _workflow(config=build_workflow_config())
        management = workflow._management
        workflow.run(group_name="rg1", account="acct1")

        sent = management.accounts["acct1"]
        assert sent.consistency.level == ConsistencyLevel.BOUNDED_STALENESS
        assert sent.consistency.max_staleness_prefix == 100000
        assert sent.consistency.max_interval_in_seconds == 300
        assert sent.automatic_failover_enabled is False
        assert sent.multiple_write_locations_enabled is True
        assert sent.write_region == "eastus"


class TestTeardownAlways:
    @pytest.mark.parametrize(
        "failing",
        [
            "create_database_account",
            "list_keys",
            "open_data_plane",
            "create_database",
            "create_collection",
            "delete_database_account",
        ],
    )
    def test_group_deleted_exactly_once_when_a_later_step_fails(self, failing):
        workflow, calls, _ = _workflow(fail={failing: RuntimeError("boom")})
        result = workflow.run(group_name="rg1", account="acct1")

        assert _methods(calls).count("delete_resource_group") == 1
        assert _methods(calls)[-1] == "delete_resource_group"
        assert result.final_state == WorkflowState.GROUP_DELETED

    @pytest.mark.parametrize(
        "failing",
        ["create_database_account", "list_keys", "create_database", "create_collection"],
    )
    def test_failed_provisioning_skips_remaining_steps(self, failing):
        workflow, calls, _ = _workflow(fail={failing: RuntimeError("boom")})
        result = workflow.run(group_name="rg1", account="acct1")

        methods = _methods(calls)
        assert methods.index(failing) == len(methods) - 2
        assert "delete_database_account" not in methods
        assert result.outcome == Outcome.PROVISIONING_FAILED
        assert result.failed_steps[0].error == "boom"

    def test_populate_failure_leaves_account_created_state(self):
        workflow, _, _ = _workflow(fail={"create_collection": RuntimeError("boom")})
        result = workflow.run(group_name="rg1", account="acct1")

        assert result.states == [
            WorkflowState.IDLE,
            WorkflowState.GROUP_CREATED,
            WorkflowState.ACCOUNT_CREATED,
            WorkflowState.GROUP_DELETED,
        ]

    def test_group_delete_failure_is_logged_not_raised(self):
        workflow, calls, _ = _workflow(
            fail={"delete_resource_group": RuntimeError("throttled")}
        )
        result = workflow.run(group_name="rg1", account="acct1")

        assert _methods(calls).count("delete_resource_group") == 1
        assert result.outcome == Outcome.CLEANUP_FAILED
        assert result.cleanup[0].ok is False
        assert result.cleanup[0].error == "throttled"
        assert result.final_state == WorkflowState.ACCOUNT_DELETED

    def test_group_delete_failure_does_not_mask_provisioning_error(self):
        workflow, _, _ = _workflow(
            fail={
                "create_database": RuntimeError("forbidden"),
                "delete_resource_group": RuntimeError("throttled"),
            }
        )
        result = workflow.run(group_name="rg1", account="acct1")

        errors = [s.error for s in result.failed_steps]
        assert errors == ["forbidden", "throttled"]
        assert result.outcome == Outcome.CLEANUP_FAILED

    def test_group_already_gone_counts_as_deleted(self):
        workflow, _, _ = _workflow(
            fail={
                "delete_resource_group": ResourceNotFoundError(
                    ResourceKind.RESOURCE_GROUP, "rg1"
                )
            }
        )
        result = workflow.run(group_name="rg1", account="acct1")

        assert result.outcome == Outcome.SUCCEEDED
        assert result.cleanup[0].detail == "not found"

    def test_keyboard_interrupt_still_cleans_up(self):
        workflow, calls, _ = _workflow(fail={"create_database": KeyboardInterrupt()})

        with pytest.raises(KeyboardInterrupt):
            workflow.run(group_name="rg1", account="acct1")

        assert _methods(calls)[-1] == "delete_resource_group"


class TestNoGroupNoDelete:
    def test_group_creation_failure_attempts_no_deletes(self):
        workflow, calls, _ = _workflow(
            fail={"create_resource_group": RuntimeError("quota exceeded")}
        )
        result = workflow.run(group_name="rg1", account="acct1")

        assert _methods(calls) == ["create_resource_group"]
        assert result.cleanup == []
        assert result.states == [WorkflowState.IDLE]
        assert result.outcome == Outcome.PROVISIONING_FAILED
        assert result.steps[0].error == "quota exceeded"

    def test_cleanup_not_needed_is_logged(self):
        workflow, _, _ = _workflow(
            fail={"create_resource_group": RuntimeError("quota exceeded")}
        )
        with capture_logs() as logs:
            workflow.run(group_name="rg1", account="acct1")

        events = [entry["event"] for entry in logs]
        assert "workflow.cleanup_not_needed" in events
        assert "workflow.group_deleting" not in events
        skipped = next(e for e in logs if e["event"] == "workflow.cleanup_not_needed")
        assert skipped["log_level"] == "info"


class TestSwallowedDeleteError:
    def test_account_not_found_on_delete_still_deletes_group(self):
        workflow, calls, _ = _workflow(
            fail={
                "delete_database_account": ResourceNotFoundError(
                    ResourceKind.DATABASE_ACCOUNT, "acct1", "404"
                )
            }
        )
        result = workflow.run(group_name="rg1", account="acct1")

        assert _methods(calls)[-2:] == [
            "delete_database_account",
            "delete_resource_group",
        ]
        assert result.outcome == Outcome.SUCCEEDED
        delete_step = result.steps[-1]
        assert delete_step.ok is True
        assert delete_step.detail == "not found"
        assert WorkflowState.ACCOUNT_DELETED in result.states

    def test_other_account_delete_errors_are_reported(self):
        workflow, calls, _ = _workflow(
            fail={"delete_database_account": RuntimeError("conflict")}
        )
        result = workflow.run(group_name="rg1", account="acct1")

        assert _methods(calls)[-1] == "delete_resource_group"
        assert result.outcome == Outcome.CLEANUP_FAILED
        assert result.steps[-1].error == "conflict"


class TestNaming:
    def test_generated_names_differ_between_runs(self):
        workflow, _, _ = _workflow()
        first = workflow.run()
        second = workflow.run()

        assert first.resource_group_name != second.resource_group_name
        assert first.account_name != second.account_name

    def test_generated_names_use_configured_prefixes(self):
        workflow, _, _ = _workflow()
        result = workflow.run()

        assert result.resource_group_name.startswith("rgcosmos")
        assert result.account_name.startswith("docdb")
        assert result.account_name == result.account_name.lower()

    def test_runs_do_not_share_state(self):
        workflow, calls, _ = _workflow()
        workflow.run(group_name="rg1", account="acct1")
        calls.clear()
        workflow._management.fail = {"create_resource_group": RuntimeError("x")}
        result = workflow.run(group_name="rg2", account="acct2")

        assert _methods(calls) == ["create_resource_group"]
        assert result.cleanup == []


class TestProvisionFromEnv:
    def test_missing_credentials_is_setup_failure(self):
        result = provision_from_env(WorkflowConfig(), environ={})

        assert result.outcome == Outcome.SETUP_FAILED
        assert "CLIENT_ID" in result.error
        assert result.steps == []
        assert result.cleanup == []

    def test_complete_environment_builds_azure_clients_and_runs(self):
        env = {
            "CLIENT_ID": "cid",
            "CLIENT_SECRET": "secret",
            "TENANT_ID": "tid",
            "SUBSCRIPTION_ID": "sub-1",
        }
        with (
            patch("azure.identity.ClientSecretCredential") as credential_cls,
            patch("azure.mgmt.resource.resources.ResourceManagementClient") as rm_cls,
            patch("azure.mgmt.cosmosdb.CosmosDBManagementClient") as cosmos_cls,
            patch("cosmos_provisioning.clients.cosmos_data.CosmosClient") as client_cls,
        ):
            group = MagicMock()
            group.id = "/subscriptions/sub-1/resourceGroups/rg1"
            group.name = "rg1"
            rm_cls.return_value.resource_groups.create_or_update.return_value = group
            created = MagicMock()
            created.id = "/subscriptions/sub-1/.../acct1"
            created.name = "acct1"
            created.document_endpoint = "https://acct1.documents.azure.com:443/"
            created.kind = "GlobalDocumentDB"
            created.write_locations = []
            created.read_locations = []
            accounts = cosmos_cls.return_value.database_accounts
            accounts.begin_create_or_update.return_value.result.return_value = created
            accounts.list_keys.return_value.primary_master_key = "k=="

            result = provision_from_env(
                WorkflowConfig(), environ=env, group_name="rg1", account="acct1"
            )

        assert result.outcome == Outcome.SUCCEEDED
        credential = credential_cls.return_value
        rm_cls.assert_called_once_with(credential, "sub-1")
        cosmos_cls.assert_called_once_with(credential, "sub-1")
        client_cls.assert_called_once_with(
            "https://acct1.documents.azure.com:443/",
            credential="k==",
            consistency_level="Session",
        )
        rm_cls.return_value.resource_groups.begin_delete.assert_called_once_with("rg1")
