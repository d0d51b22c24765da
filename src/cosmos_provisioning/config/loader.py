"""YAML + environment variable config loader."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import ValidationError

from cosmos_provisioning.config.defaults import build_workflow_config, merge_configs
from cosmos_provisioning.config.models import WorkflowConfig

# Matches ${VAR} or ${VAR:-default}
_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-((?:[^}\\]|\\.)*))?}")


def _resolve_env_str(value: str, environ: Mapping[str, str]) -> str:
    def _replace(match: re.Match[str]) -> str:
        var_name, default = match.group(1), match.group(2)
        if var_name in environ:
            return environ[var_name]
        if default is not None:
            return default.replace("\\}", "}")
        msg = f"Environment variable '{var_name}' is not set and no default provided"
        raise ValueError(msg)

    return _ENV_PATTERN.sub(_replace, value)


def resolve_env_vars(data: Any, environ: Mapping[str, str] | None = None) -> Any:
    """Recursively resolve ${VAR} and ${VAR:-default} in parsed YAML data.

    Values come from *environ*, or the process environment when omitted.
    """
    env = os.environ if environ is None else environ
    if isinstance(data, str):
        return _resolve_env_str(data, env)
    if isinstance(data, dict):
        return {k: resolve_env_vars(v, env) for k, v in data.items()}
    if isinstance(data, list):
        return [resolve_env_vars(item, env) for item in data]
    return data


def load_yaml(
    path: str | Path, environ: Mapping[str, str] | None = None
) -> dict[str, Any]:
    """Load a YAML mapping from *path* with env references resolved."""
    p = Path(path)
    if not p.exists():
        msg = f"Config file not found: {p}"
        raise FileNotFoundError(msg)
    try:
        with p.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        msg = f"Failed to parse YAML in {p}"
        mark = getattr(exc, "problem_mark", None)
        if mark is not None:
            msg += f" at line {mark.line + 1}, column {mark.column + 1}"
        raise ValueError(f"{msg}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping at top level in {p}, got {type(data).__name__}"
        raise TypeError(msg)
    return cast(dict[str, Any], resolve_env_vars(data, environ))


def load_workflow_config(
    path: str | Path | None = None,
    *,
    overrides: dict[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> WorkflowConfig:
    """Load workflow config from built-in defaults and an optional YAML file.

    *overrides* (e.g. CLI flags) are applied last, on top of the file. The
    file's ``${VAR}`` references resolve against *environ* when it is given.
    """
    data = load_yaml(path, environ) if path is not None else {}
    if overrides:
        data = merge_configs(data, overrides)
    try:
        return build_workflow_config(data)
    except ValidationError as exc:
        source = path or "built-in defaults"
        msg = f"Invalid workflow config ({source}):\n{exc}"
        raise ValueError(msg) from exc
