"""CosmosDataPlane — database and container creation via azure-cosmos."""

from __future__ import annotations

from typing import Any

import structlog
from azure.cosmos import CosmosClient, PartitionKey

from cosmos_provisioning.config.models import ConsistencyLevel
from cosmos_provisioning.resources import AccountCredentials, CollectionSpec, DatabaseSpec

logger = structlog.get_logger()


class CosmosDataPlane:
    """Data-plane collaborator wrapping a single ``CosmosClient`` session."""

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def connect(
        cls,
        credentials: AccountCredentials,
        consistency_level: ConsistencyLevel = ConsistencyLevel.SESSION,
    ) -> CosmosDataPlane:
        client = CosmosClient(
            credentials.endpoint,
            credential=credentials.primary_key,
            consistency_level=consistency_level.value,
        )
        logger.debug(
            "cosmos.client_opened",
            endpoint=credentials.endpoint,
            consistency=consistency_level.value,
        )
        return cls(client)

    def create_database(self, database: DatabaseSpec) -> None:
        self._client.create_database(id=database.id)

    def create_collection(self, database_id: str, collection: CollectionSpec) -> None:
        db = self._client.get_database_client(database_id)
        db.create_container(
            id=collection.id,
            partition_key=PartitionKey(path=collection.partition_key_path),
            offer_throughput=collection.throughput,
        )
