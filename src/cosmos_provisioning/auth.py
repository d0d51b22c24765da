"""Service-principal authentication from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import TYPE_CHECKING

from pydantic import SecretStr

from cosmos_provisioning.config.models import AzureCredentialsConfig
from cosmos_provisioning.errors import SetupError

if TYPE_CHECKING:
    from azure.identity import ClientSecretCredential

ENV_CLIENT_ID = "CLIENT_ID"
ENV_CLIENT_SECRET = "CLIENT_SECRET"
ENV_TENANT_ID = "TENANT_ID"
ENV_SUBSCRIPTION_ID = "SUBSCRIPTION_ID"

REQUIRED_ENV_VARS = (ENV_CLIENT_ID, ENV_CLIENT_SECRET, ENV_TENANT_ID, ENV_SUBSCRIPTION_ID)


def load_credentials_from_env(
    environ: Mapping[str, str] | None = None,
) -> AzureCredentialsConfig:
    """Read service-principal settings; raise SetupError naming any missing variable."""
    env = os.environ if environ is None else environ
    missing = [name for name in REQUIRED_ENV_VARS if not env.get(name)]
    if missing:
        msg = f"Missing required environment variable(s): {', '.join(missing)}"
        raise SetupError(msg)
    return AzureCredentialsConfig(
        client_id=env[ENV_CLIENT_ID],
        client_secret=SecretStr(env[ENV_CLIENT_SECRET]),
        tenant_id=env[ENV_TENANT_ID],
        subscription_id=env[ENV_SUBSCRIPTION_ID],
    )


def build_credential(config: AzureCredentialsConfig) -> ClientSecretCredential:
    """Build the azure-identity credential used by the management clients."""
    from azure.identity import ClientSecretCredential

    return ClientSecretCredential(
        tenant_id=config.tenant_id,
        client_id=config.client_id,
        client_secret=config.client_secret.get_secret_value(),
    )
