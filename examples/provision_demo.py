#!/usr/bin/env python3
"""Runnable demo: provision a Cosmos DB account, populate it, and tear it down.

Prerequisites:
    export CLIENT_ID=... CLIENT_SECRET=... TENANT_ID=... SUBSCRIPTION_ID=...
    uv run python examples/provision_demo.py
"""

from __future__ import annotations

import sys
from pathlib import Path

from rich.console import Console

from cosmos_provisioning.config.loader import load_workflow_config
from cosmos_provisioning.observability.logging_setup import configure_logging
from cosmos_provisioning.workflow.results import Outcome
from cosmos_provisioning.workflow.runner import provision_from_env

console = Console()


def main() -> None:
    # 1. Build config from defaults + the example overrides
    config = load_workflow_config(Path(__file__).parent / "bounded-staleness.yaml")
    configure_logging(config.logging)
    console.print(
        f"[bold]Config loaded[/bold] — {config.data.throughput} RU/s, "
        f"write region {config.account.write_region}"
    )

    # 2. Provision, populate, tear down
    result = provision_from_env(config)

    # 3. Report
    if result.outcome == Outcome.SETUP_FAILED:
        console.print(f"[red]Setup failed:[/red] {result.error}")
        sys.exit(1)
    for step in [*result.steps, *result.cleanup]:
        status = "[green]ok[/green]" if step.ok else f"[red]{step.error}[/red]"
        console.print(f"  {step.name}: {status}")
    console.print(f"[yellow]Outcome:[/yellow] {result.outcome}")


if __name__ == "__main__":
    main()
