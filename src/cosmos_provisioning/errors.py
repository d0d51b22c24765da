"""Exceptions raised at the package's collaborator seams."""

from __future__ import annotations


class ProvisioningError(Exception):
    """Base class for errors raised by this package."""


class SetupError(ProvisioningError):
    """Credentials or configuration are missing or invalid; nothing was provisioned."""


class ResourceNotFoundError(ProvisioningError):
    """The remote resource does not exist (or the provider reported it gone)."""

    def __init__(self, kind: str, name: str, detail: str = "") -> None:
        self.kind = kind
        self.name = name
        self.detail = detail
        message = f"{kind} '{name}' not found"
        if detail:
            message += f": {detail}"
        super().__init__(message)
