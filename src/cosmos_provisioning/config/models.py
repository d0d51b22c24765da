"""Pydantic configuration models for the Cosmos DB provisioning workflow."""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator


class ConsistencyLevel(StrEnum):
    """Cosmos DB default consistency levels."""

    EVENTUAL = "Eventual"
    CONSISTENT_PREFIX = "ConsistentPrefix"
    SESSION = "Session"
    BOUNDED_STALENESS = "BoundedStaleness"
    STRONG = "Strong"


class AccountKind(StrEnum):
    """Database account API kinds."""

    GLOBAL_DOCUMENT_DB = "GlobalDocumentDB"
    MONGO_DB = "MongoDB"
    PARSE = "Parse"


class LoggingConfig(BaseModel):
    """structlog rendering settings."""

    level: str = "INFO"
    json_output: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Unknown log level '{v}'"
            raise ValueError(msg)
        return level


class AzureCredentialsConfig(BaseModel):
    """Service-principal settings used to authenticate against Azure."""

    client_id: str = Field(min_length=1)
    client_secret: SecretStr
    tenant_id: str = Field(min_length=1)
    subscription_id: str = Field(min_length=1)


class ConsistencyPolicy(BaseModel, frozen=True):
    """Default consistency of a database account.

    The staleness bounds only take effect for ``BoundedStaleness`` but are
    always sent along, matching what the management API accepts.
    """

    level: ConsistencyLevel = ConsistencyLevel.BOUNDED_STALENESS
    max_staleness_prefix: int = Field(default=100000, ge=1)
    max_interval_in_seconds: int = Field(default=300, ge=1)


class LocationConfig(BaseModel, frozen=True):
    """One replica region of a database account."""

    region: str = Field(min_length=1)
    # 0 is the write region
    failover_priority: int = Field(default=0, ge=0)
    zone_redundant: bool = False


class NamingConfig(BaseModel):
    """Prefixes and length limits for generated resource names."""

    resource_group_prefix: str = "rgcosmos"
    resource_group_max_length: int = Field(default=24, ge=4, le=90)
    account_prefix: str = "docdb"
    account_max_length: int = Field(default=20, ge=4, le=44)

    @model_validator(mode="after")
    def check_prefix_lengths(self) -> Self:
        """Leave room for a random suffix after each prefix."""
        if len(self.resource_group_prefix) >= self.resource_group_max_length:
            msg = "resource_group_prefix must be shorter than resource_group_max_length"
            raise ValueError(msg)
        if len(self.account_prefix) >= self.account_max_length:
            msg = "account_prefix must be shorter than account_max_length"
            raise ValueError(msg)
        return self

    @field_validator("account_prefix")
    @classmethod
    def validate_account_prefix(cls, v: str) -> str:
        if not re.match(r"^[a-z][a-z0-9-]*$", v):
            msg = (
                f"account_prefix '{v}' must start with a lowercase letter and "
                f"contain only lowercase letters, digits and hyphens"
            )
            raise ValueError(msg)
        return v


class AccountConfig(BaseModel):
    """Settings for the create-or-update database account request."""

    location: str = "westus"
    kind: AccountKind = AccountKind.GLOBAL_DOCUMENT_DB
    consistency: ConsistencyPolicy = ConsistencyPolicy()
    ip_rules: list[str] = Field(default_factory=list)
    virtual_network_filter_enabled: bool = True
    automatic_failover_enabled: bool = False
    multiple_write_locations_enabled: bool = True
    locations: list[LocationConfig] = Field(
        default_factory=lambda: [LocationConfig(region="eastus")]
    )

    @field_validator("ip_rules")
    @classmethod
    def validate_ip_rules(cls, v: list[str]) -> list[str]:
        """Accept IPv4 addresses and IPv4 CIDR ranges."""
        pattern = re.compile(r"^\d{1,3}(\.\d{1,3}){3}(/\d{1,2})?$")
        for rule in v:
            if not pattern.match(rule):
                msg = f"IP rule '{rule}' must be an IPv4 address or CIDR range"
                raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def check_locations(self) -> Self:
        """Require exactly one write region and unique failover priorities."""
        if not self.locations:
            msg = "at least one location is required"
            raise ValueError(msg)
        priorities = [loc.failover_priority for loc in self.locations]
        if len(set(priorities)) != len(priorities):
            msg = "failover priorities must be unique across locations"
            raise ValueError(msg)
        if 0 not in priorities:
            msg = "one location must have failover_priority 0 (the write region)"
            raise ValueError(msg)
        regions = [loc.region.lower() for loc in self.locations]
        if len(set(regions)) != len(regions):
            msg = "each region may appear only once in locations"
            raise ValueError(msg)
        return self

    @property
    def write_region(self) -> str:
        return next(
            loc.region for loc in self.locations if loc.failover_priority == 0
        )


class DataConfig(BaseModel):
    """Database and collection created through the data plane."""

    database_id: str = Field(default="TestDB", min_length=1, max_length=255)
    collection_id: str = Field(default="TestCollection", min_length=1, max_length=255)
    # Manual throughput floor for a container is 400 RU/s
    throughput: int = Field(default=4000, ge=400)
    partition_key_path: str = "/id"
    session_consistency: ConsistencyLevel = ConsistencyLevel.SESSION

    @field_validator("database_id", "collection_id")
    @classmethod
    def validate_resource_id(cls, v: str) -> str:
        for ch in "/\\?#":
            if ch in v:
                msg = f"'{v}' must not contain '{ch}'"
                raise ValueError(msg)
        if v.endswith(" "):
            msg = f"'{v}' must not end with a space"
            raise ValueError(msg)
        return v

    @field_validator("partition_key_path")
    @classmethod
    def validate_partition_key_path(cls, v: str) -> str:
        if not v.startswith("/"):
            msg = f"partition_key_path '{v}' must start with '/'"
            raise ValueError(msg)
        return v


class WorkflowConfig(BaseModel, extra="forbid"):
    """Top-level settings for one provisioning run."""

    location: str = "eastus"
    naming: NamingConfig = NamingConfig()
    account: AccountConfig = AccountConfig()
    data: DataConfig = DataConfig()
    # Run the account delete step before group teardown
    delete_account: bool = True
    logging: LoggingConfig = LoggingConfig()
