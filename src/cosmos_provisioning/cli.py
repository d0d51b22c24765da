"""Typer CLI for the Cosmos DB provisioning workflow."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cosmos_provisioning.config.loader import load_workflow_config
from cosmos_provisioning.config.models import WorkflowConfig
from cosmos_provisioning.naming import account_name, resource_group_name
from cosmos_provisioning.observability.logging_setup import configure_logging
from cosmos_provisioning.workflow.results import Outcome, WorkflowResult

console = Console()
app = typer.Typer(name="cosmos-provision", help="Cosmos DB provisioning CLI")


def _load(
    config_path: str | None,
    overrides: dict[str, Any] | None = None,
) -> WorkflowConfig:
    if config_path is not None and not Path(config_path).exists():
        console.print(f"[red]Config file not found: {config_path}[/red]")
        raise typer.Exit(1)
    try:
        return load_workflow_config(config_path, overrides=overrides)
    except (ValueError, TypeError) as exc:
        console.print(f"[red]Invalid config:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc


def _render_result(result: WorkflowResult) -> None:
    table = Table(title=f"Provisioning run — {result.outcome.value}")
    table.add_column("Step", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")

    for step in [*result.steps, *result.cleanup]:
        if step.ok:
            table.add_row(step.name, "[green]ok[/green]", step.detail)
        else:
            table.add_row(step.name, "[red]failed[/red]", escape(step.error or ""))

    console.print(table)
    console.print(f"  resource group: {result.resource_group_name}")
    console.print(f"  account:        {result.account_name}")
    console.print(f"  final state:    {result.final_state.value}")


@app.command()
def validate(
    config_path: str | None = typer.Option(
        None, "--config", "-c", help="Workflow YAML (defaults if omitted)"
    ),
) -> None:
    """Validate a workflow configuration file."""
    config = _load(config_path)
    account = config.account
    console.print("[green]Valid[/green]")
    console.print(f"  resource group location: {config.location}")
    console.print(f"  account location:        {account.location} ({account.kind})")
    console.print(
        f"  consistency:             {account.consistency.level} "
        f"(prefix={account.consistency.max_staleness_prefix}, "
        f"interval={account.consistency.max_interval_in_seconds}s)"
    )
    for loc in sorted(account.locations, key=lambda loc: loc.failover_priority):
        role = "write" if loc.failover_priority == 0 else "read"
        console.print(f"    - {loc.region} priority={loc.failover_priority} ({role})")
    console.print(f"  ip rules:                {', '.join(account.ip_rules) or '(none)'}")
    console.print(
        f"  collection:              {config.data.database_id}/"
        f"{config.data.collection_id} @ {config.data.throughput} RU/s"
    )


@app.command()
def names(
    count: int = typer.Option(1, "--count", "-n", min=1, help="How many to generate"),
    config_path: str | None = typer.Option(None, "--config", "-c", help="Workflow YAML"),
) -> None:
    """Print generated resource-group and account names."""
    config = _load(config_path)
    for _ in range(count):
        console.print(
            f"{resource_group_name(config.naming)}  {account_name(config.naming)}"
        )


@app.command()
def run(
    config_path: str | None = typer.Option(
        None, "--config", "-c", help="Workflow YAML (defaults if omitted)"
    ),
    throughput: int | None = typer.Option(
        None, "--throughput", help="Collection throughput in RU/s"
    ),
    location: str | None = typer.Option(
        None, "--location", help="Resource group location"
    ),
    keep_account: bool = typer.Option(
        False, "--keep-account", help="Skip the explicit account delete step"
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
) -> None:
    """Provision an account, database and collection, then tear them down."""
    overrides: dict[str, Any] = {}
    if throughput is not None:
        overrides["data"] = {"throughput": throughput}
    if location is not None:
        overrides["location"] = location
    if keep_account:
        overrides["delete_account"] = False
    if json_logs:
        overrides["logging"] = {"json_output": True}

    config = _load(config_path, overrides)
    configure_logging(config.logging)

    from cosmos_provisioning.workflow.runner import provision_from_env

    result = provision_from_env(config)
    if result.outcome == Outcome.SETUP_FAILED:
        console.print(f"[red]Setup failed:[/red] {escape(result.error or '')}")
        raise typer.Exit(1)
    _render_result(result)
