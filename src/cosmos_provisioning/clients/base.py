"""Collaborator protocols for the control plane and the data plane."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from cosmos_provisioning.config.models import AccountConfig, ConsistencyLevel
from cosmos_provisioning.resources import (
    AccountCredentials,
    AccountInfo,
    CollectionSpec,
    DatabaseSpec,
    ResourceHandle,
)


@runtime_checkable
class ResourceManager(Protocol):
    """Creates and deletes resource groups and database accounts.

    Every call blocks until the underlying long-running operation completes.
    Deletes raise ``ResourceNotFoundError`` when the resource is already gone.
    """

    def create_resource_group(self, name: str, location: str) -> ResourceHandle: ...

    def delete_resource_group(self, name: str) -> None: ...

    def create_database_account(
        self, resource_group: str, name: str, account: AccountConfig
    ) -> AccountInfo: ...

    def list_keys(self, resource_group: str, name: str) -> str:
        """Return the account's primary master key."""
        ...

    def delete_database_account(self, resource_group: str, name: str) -> None: ...


@runtime_checkable
class DataPlane(Protocol):
    """Creates databases and collections inside one database account."""

    def create_database(self, database: DatabaseSpec) -> None: ...

    def create_collection(self, database_id: str, collection: CollectionSpec) -> None: ...


class DataPlaneFactory(Protocol):
    """Opens a data-plane session from retrieved account credentials."""

    def __call__(
        self, credentials: AccountCredentials, consistency_level: ConsistencyLevel
    ) -> DataPlane: ...
