"""Value objects describing provisioned resources and data-plane requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class ResourceKind(StrEnum):
    RESOURCE_GROUP = "ResourceGroup"
    DATABASE_ACCOUNT = "DatabaseAccount"


@dataclass
class ResourceHandle:
    """A provider-side resource whose creation call returned successfully."""

    id: str
    name: str
    kind: ResourceKind
    created: bool = True


@dataclass(frozen=True)
class AccountInfo:
    """Account details returned by the create-or-update call."""

    id: str
    name: str
    document_endpoint: str
    kind: str = ""
    write_locations: tuple[str, ...] = ()
    read_locations: tuple[str, ...] = ()


@dataclass(frozen=True)
class AccountCredentials:
    """Endpoint and primary key for opening a data-plane session.

    The key is excluded from ``repr`` so it never reaches log output.
    """

    endpoint: str
    primary_key: str = field(repr=False)


@dataclass(frozen=True)
class DatabaseSpec:
    id: str


@dataclass(frozen=True)
class CollectionSpec:
    id: str
    throughput: int
    partition_key_path: str = "/id"
