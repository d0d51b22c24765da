"""AzureResourceManager — resource groups and Cosmos DB accounts via the ARM SDKs."""

from __future__ import annotations

from typing import Any

import structlog
from azure.core.exceptions import HttpResponseError
from azure.core.exceptions import ResourceNotFoundError as AzureNotFoundError
from azure.mgmt.cosmosdb import models as cosmos_models

from cosmos_provisioning.config.models import AccountConfig, AzureCredentialsConfig
from cosmos_provisioning.errors import ResourceNotFoundError
from cosmos_provisioning.resources import AccountInfo, ResourceHandle, ResourceKind

logger = structlog.get_logger()


def build_account_parameters(
    account: AccountConfig,
) -> cosmos_models.DatabaseAccountCreateUpdateParameters:
    """Translate an AccountConfig into the create-or-update request body."""
    policy = account.consistency
    return cosmos_models.DatabaseAccountCreateUpdateParameters(
        location=account.location,
        kind=account.kind.value,
        consistency_policy=cosmos_models.ConsistencyPolicy(
            default_consistency_level=policy.level.value,
            max_staleness_prefix=policy.max_staleness_prefix,
            max_interval_in_seconds=policy.max_interval_in_seconds,
        ),
        locations=[
            cosmos_models.Location(
                location_name=loc.region,
                failover_priority=loc.failover_priority,
                is_zone_redundant=loc.zone_redundant,
            )
            for loc in account.locations
        ],
        ip_rules=[
            cosmos_models.IpAddressOrRange(ip_address_or_range=rule)
            for rule in account.ip_rules
        ],
        is_virtual_network_filter_enabled=account.virtual_network_filter_enabled,
        enable_automatic_failover=account.automatic_failover_enabled,
        enable_multiple_write_locations=account.multiple_write_locations_enabled,
    )


def _is_not_found(exc: Exception) -> bool:
    # Account deletes sometimes surface a bare 404 instead of ResourceNotFoundError
    if isinstance(exc, AzureNotFoundError):
        return True
    return isinstance(exc, HttpResponseError) and exc.status_code == 404


def _location_names(locations: Any) -> tuple[str, ...]:
    return tuple(loc.location_name for loc in locations or [])


class AzureResourceManager:
    """Control-plane collaborator backed by azure-mgmt-resource and azure-mgmt-cosmosdb.

    Long-running operations are always waited on, so each method returns only
    once Azure reports the operation complete.
    """

    def __init__(self, resource_client: Any, cosmos_client: Any) -> None:
        self._resources = resource_client
        self._cosmos = cosmos_client

    @classmethod
    def from_credentials(
        cls, config: AzureCredentialsConfig, credential: Any | None = None
    ) -> AzureResourceManager:
        """Build both management clients for the configured subscription."""
        from azure.mgmt.cosmosdb import CosmosDBManagementClient
        from azure.mgmt.resource.resources import ResourceManagementClient

        from cosmos_provisioning.auth import build_credential

        if credential is None:
            credential = build_credential(config)
        return cls(
            ResourceManagementClient(credential, config.subscription_id),
            CosmosDBManagementClient(credential, config.subscription_id),
        )

    def create_resource_group(self, name: str, location: str) -> ResourceHandle:
        group = self._resources.resource_groups.create_or_update(
            name, {"location": location}
        )
        return ResourceHandle(
            id=group.id, name=group.name, kind=ResourceKind.RESOURCE_GROUP
        )

    def delete_resource_group(self, name: str) -> None:
        try:
            self._resources.resource_groups.begin_delete(name).result()
        except HttpResponseError as exc:
            if _is_not_found(exc):
                raise ResourceNotFoundError(
                    ResourceKind.RESOURCE_GROUP, name, exc.message or ""
                ) from exc
            raise

    def create_database_account(
        self, resource_group: str, name: str, account: AccountConfig
    ) -> AccountInfo:
        params = build_account_parameters(account)
        result = self._cosmos.database_accounts.begin_create_or_update(
            resource_group, name, params
        ).result()
        return AccountInfo(
            id=result.id,
            name=result.name,
            document_endpoint=result.document_endpoint,
            kind=str(result.kind or ""),
            write_locations=_location_names(result.write_locations),
            read_locations=_location_names(result.read_locations),
        )

    def list_keys(self, resource_group: str, name: str) -> str:
        keys = self._cosmos.database_accounts.list_keys(resource_group, name)
        return keys.primary_master_key

    def delete_database_account(self, resource_group: str, name: str) -> None:
        try:
            self._cosmos.database_accounts.begin_delete(resource_group, name).result()
        except HttpResponseError as exc:
            if _is_not_found(exc):
                logger.debug(
                    "azure.account_delete_not_found",
                    account=name,
                    status_code=exc.status_code,
                )
                raise ResourceNotFoundError(
                    ResourceKind.DATABASE_ACCOUNT, name, exc.message or ""
                ) from exc
            raise
