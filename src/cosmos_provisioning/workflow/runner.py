"""Provisioning workflow — resource group → account → data, then teardown."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

import structlog

from cosmos_provisioning.clients.base import DataPlaneFactory, ResourceManager
from cosmos_provisioning.config.models import WorkflowConfig
from cosmos_provisioning.errors import ResourceNotFoundError
from cosmos_provisioning.naming import account_name, resource_group_name
from cosmos_provisioning.resources import (
    AccountCredentials,
    AccountInfo,
    CollectionSpec,
    DatabaseSpec,
    ResourceHandle,
    ResourceKind,
)
from cosmos_provisioning.workflow.results import (
    Outcome,
    StepResult,
    WorkflowResult,
    WorkflowState,
)

logger = structlog.get_logger()


@dataclass
class _RunState:
    """Mutable record for a single run; never shared between runs."""

    group_name: str
    account_name: str
    group: ResourceHandle | None = None
    account: ResourceHandle | None = None
    account_info: AccountInfo | None = None
    credentials: AccountCredentials | None = None
    steps: list[StepResult] = field(default_factory=list)
    cleanup: list[StepResult] = field(default_factory=list)
    states: list[WorkflowState] = field(default_factory=lambda: [WorkflowState.IDLE])

    def advance(self, state: WorkflowState) -> None:
        self.states.append(state)
        logger.debug("workflow.state_changed", state=state.value)


class ProvisioningWorkflow:
    """Provisions a Cosmos DB account end to end and always tears it down.

    Steps run in a fixed order; the first failing step ends provisioning and
    the run moves straight to cleanup. Cleanup deletes the resource group
    (cascading to the account) if and only if the group was created. Nothing
    raised by a step or by cleanup escapes ``run()``.
    """

    def __init__(
        self,
        management: ResourceManager,
        open_data_plane: DataPlaneFactory,
        config: WorkflowConfig | None = None,
    ) -> None:
        self._management = management
        self._open_data_plane = open_data_plane
        self._config = config or WorkflowConfig()

    @property
    def config(self) -> WorkflowConfig:
        return self._config

    def run(
        self,
        *,
        group_name: str | None = None,
        account: str | None = None,
    ) -> WorkflowResult:
        """Run every step, then clean up. Names are generated when omitted."""
        naming = self._config.naming
        state = _RunState(
            group_name=group_name or resource_group_name(naming),
            account_name=account or account_name(naming),
        )
        logger.info(
            "workflow.started",
            resource_group=state.group_name,
            account=state.account_name,
        )

        steps: list[tuple[str, Callable[[_RunState], str | None]]] = [
            ("create_resource_group", self._create_resource_group),
            ("create_database_account", self._create_database_account),
            ("list_keys", self._list_keys),
            ("populate_data", self._populate_data),
        ]
        if self._config.delete_account:
            steps.append(("delete_database_account", self._delete_database_account))

        try:
            for name, action in steps:
                result = self._attempt(name, action, state)
                state.steps.append(result)
                if not result.ok:
                    break
        finally:
            self._cleanup(state)

        result = WorkflowResult(
            outcome=self._outcome(state),
            resource_group_name=state.group_name,
            account_name=state.account_name,
            steps=state.steps,
            cleanup=state.cleanup,
            states=state.states,
        )
        logger.info(
            "workflow.finished",
            outcome=result.outcome.value,
            final_state=result.final_state.value,
        )
        return result

    # -- steps -----------------------------------------------------------------

    def _attempt(
        self,
        name: str,
        action: Callable[[_RunState], str | None],
        state: _RunState,
    ) -> StepResult:
        logger.info("workflow.step_started", step=name)
        try:
            detail = action(state)
        except Exception as exc:
            logger.exception("workflow.step_failed", step=name, error=str(exc))
            return StepResult.failure(name, exc)
        logger.info("workflow.step_succeeded", step=name)
        return StepResult.success(name, detail or "")

    def _create_resource_group(self, state: _RunState) -> str:
        handle = self._management.create_resource_group(
            state.group_name, self._config.location
        )
        state.group = handle
        state.advance(WorkflowState.GROUP_CREATED)
        logger.info(
            "workflow.group_created",
            resource_group=handle.name,
            id=handle.id,
            location=self._config.location,
        )
        return handle.id

    def _create_database_account(self, state: _RunState) -> str:
        assert state.group is not None
        info = self._management.create_database_account(
            state.group.name, state.account_name, self._config.account
        )
        state.account_info = info
        state.account = ResourceHandle(
            id=info.id, name=info.name, kind=ResourceKind.DATABASE_ACCOUNT
        )
        state.advance(WorkflowState.ACCOUNT_CREATED)
        consistency = self._config.account.consistency
        logger.info(
            "workflow.account_created",
            id=info.id,
            account=info.name,
            endpoint=info.document_endpoint,
            kind=info.kind,
            consistency=consistency.level.value,
            max_staleness_prefix=consistency.max_staleness_prefix,
            max_interval_in_seconds=consistency.max_interval_in_seconds,
            write_locations=list(info.write_locations),
            read_locations=list(info.read_locations),
        )
        return info.id

    def _list_keys(self, state: _RunState) -> None:
        assert state.group is not None
        assert state.account is not None
        assert state.account_info is not None
        primary_key = self._management.list_keys(state.group.name, state.account.name)
        state.credentials = AccountCredentials(
            endpoint=state.account_info.document_endpoint,
            primary_key=primary_key,
        )

    def _populate_data(self, state: _RunState) -> str:
        assert state.credentials is not None
        data = self._config.data
        plane = self._open_data_plane(state.credentials, data.session_consistency)

        plane.create_database(DatabaseSpec(id=data.database_id))
        logger.info("workflow.database_created", database=data.database_id)

        plane.create_collection(
            data.database_id,
            CollectionSpec(
                id=data.collection_id,
                throughput=data.throughput,
                partition_key_path=data.partition_key_path,
            ),
        )
        logger.info(
            "workflow.collection_created",
            database=data.database_id,
            collection=data.collection_id,
            throughput=data.throughput,
        )
        state.advance(WorkflowState.DATA_POPULATED)
        return f"dbs/{data.database_id}/colls/{data.collection_id}"

    def _delete_database_account(self, state: _RunState) -> str:
        assert state.group is not None
        assert state.account is not None
        account = state.account
        detail = "deleted"
        try:
            self._management.delete_database_account(state.group.name, account.name)
        except ResourceNotFoundError as exc:
            logger.info(
                "workflow.account_delete_not_found",
                account=account.name,
                detail=str(exc),
            )
            detail = "not found"
        finally:
            # Attempted either way; the handle must not be deleted twice
            account.created = False
        state.advance(WorkflowState.ACCOUNT_DELETED)
        logger.info("workflow.account_deleted", account=account.name)
        return detail

    # -- cleanup ---------------------------------------------------------------

    def _cleanup(self, state: _RunState) -> None:
        group = state.group
        if group is None or not group.created:
            logger.info(
                "workflow.cleanup_not_needed",
                message="Did not create any resources. No clean up is necessary",
            )
            return

        name = "delete_resource_group"
        logger.info("workflow.group_deleting", resource_group=group.name, id=group.id)
        try:
            self._management.delete_resource_group(group.name)
        except ResourceNotFoundError as exc:
            logger.info(
                "workflow.group_delete_not_found",
                resource_group=group.name,
                detail=str(exc),
            )
            state.cleanup.append(StepResult.success(name, "not found"))
        except Exception as exc:
            logger.exception(
                "workflow.group_delete_failed",
                resource_group=group.name,
                error=str(exc),
            )
            state.cleanup.append(StepResult.failure(name, exc))
            return
        else:
            logger.info("workflow.group_deleted", resource_group=group.name)
            state.cleanup.append(StepResult.success(name, "deleted"))
        finally:
            group.created = False
        state.advance(WorkflowState.GROUP_DELETED)

    @staticmethod
    def _outcome(state: _RunState) -> Outcome:
        if any(not s.ok for s in state.cleanup):
            return Outcome.CLEANUP_FAILED
        delete_steps = {"delete_database_account"}
        if any(not s.ok and s.name in delete_steps for s in state.steps):
            return Outcome.CLEANUP_FAILED
        if any(not s.ok for s in state.steps):
            return Outcome.PROVISIONING_FAILED
        return Outcome.SUCCEEDED


def provision_from_env(
    config: WorkflowConfig | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    group_name: str | None = None,
    account: str | None = None,
) -> WorkflowResult:
    """Authenticate from the environment, build the Azure clients and run.

    Setup failures (missing variables, client construction errors) are logged
    and reported as ``Outcome.SETUP_FAILED``; provisioning is never attempted.
    """
    from cosmos_provisioning.auth import load_credentials_from_env
    from cosmos_provisioning.clients.azure_management import AzureResourceManager
    from cosmos_provisioning.clients.cosmos_data import CosmosDataPlane

    try:
        credentials = load_credentials_from_env(environ)
        management = AzureResourceManager.from_credentials(credentials)
    except Exception as exc:
        logger.exception("workflow.setup_failed", error=str(exc))
        return WorkflowResult.setup_failed(exc)

    workflow = ProvisioningWorkflow(management, CosmosDataPlane.connect, config)
    return workflow.run(group_name=group_name, account=account)
