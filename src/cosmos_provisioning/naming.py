"""Random-suffix naming for resources that must be globally or regionally unique."""

from __future__ import annotations

import uuid

from cosmos_provisioning.config.models import NamingConfig


def random_resource_name(prefix: str, max_length: int) -> str:
    """Append a random hex suffix to *prefix*, truncated to *max_length*.

    At least one random character is always kept, so repeated calls do not
    collide on the bare prefix.
    """
    if len(prefix) >= max_length:
        msg = f"Prefix '{prefix}' leaves no room for a suffix within {max_length} chars"
        raise ValueError(msg)
    suffix = ""
    while len(prefix) + len(suffix) < max_length:
        suffix += uuid.uuid4().hex
    return f"{prefix}{suffix}"[:max_length]


def resource_group_name(naming: NamingConfig) -> str:
    return random_resource_name(
        naming.resource_group_prefix, naming.resource_group_max_length
    )


def account_name(naming: NamingConfig) -> str:
    """Build a Cosmos DB account name (lowercase letters, digits, hyphens only)."""
    return random_resource_name(naming.account_prefix, naming.account_max_length).lower()
