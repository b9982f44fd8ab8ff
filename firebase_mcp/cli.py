"""CLI for running and inspecting the Firebase MCP server."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table
import typer

app = typer.Typer(
    name="firebase-mcp",
    help="Firebase MCP Server CLI",
    add_completion=False,
)
console = Console()


@app.command()
def serve(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to firebase-mcp.toml"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Override log level"),
) -> None:
    """Run the MCP server on stdio."""
    from firebase_mcp.config import load_config
    from firebase_mcp.connection import connect
    from firebase_mcp.server import FirebaseMcpServer, configure_logging

    config = load_config(config_path)
    if log_level:
        config.server.log_level = log_level
        config.observability.log_level = log_level
    config.validate()
    configure_logging(config)

    if not config.enabled:
        # stderr: stdout belongs to the protocol
        Console(stderr=True).print("[yellow]![/] MCP server disabled in config")
        raise typer.Exit(0)

    server = FirebaseMcpServer(config, connect(config))
    asyncio.run(server.run())


@app.command()
def tools() -> None:
    """Show the tool catalog."""
    from firebase_mcp.server import TOOLS

    table = Table(title="Firebase MCP tools")
    table.add_column("Tool", style="bold")
    table.add_column("Required")
    table.add_column("Optional")

    for tool in TOOLS:
        props = tool.inputSchema.get("properties", {})
        required = tool.inputSchema.get("required", [])
        optional = []
        for name, schema in props.items():
            if name in required:
                continue
            if "default" in schema:
                optional.append(f"{name}({schema['default']})")
            else:
                optional.append(name)
        table.add_row(tool.name, ", ".join(required) or "-", ", ".join(optional) or "-")

    console.print(table)


@app.command()
def check(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to firebase-mcp.toml"
    ),
) -> None:
    """Validate config and show how the project and bucket resolve."""
    from firebase_mcp.config import load_config
    from firebase_mcp.connection import read_project_id
    from firebase_mcp.tools.storage import bucket_candidates

    config = load_config(config_path)
    key_path = config.firebase.service_account_key_path

    if not key_path:
        console.print("[red]✗[/] SERVICE_ACCOUNT_KEY_PATH is not set")
        raise typer.Exit(1)
    if not Path(key_path).is_file():
        console.print(f"[red]✗[/] Service account key not found: {key_path}")
        raise typer.Exit(1)

    try:
        project_id = config.firebase.project_id or read_project_id(key_path)
    except ValueError as e:
        console.print(f"[red]✗[/] {e}")
        raise typer.Exit(1) from e

    table = Table(show_header=False)
    table.add_row("Project:", project_id)
    table.add_row("Key file:", str(key_path))
    table.add_row("Emulator:", "yes" if config.emulator.active else "no")
    table.add_row("Strict not-found:", str(config.storage.strict_not_found))
    table.add_row(
        "Bucket candidates:",
        ", ".join(bucket_candidates(project_id, config.firebase, config.emulator)),
    )
    console.print(table)
    console.print("[green]✓[/] Configuration OK")


if __name__ == "__main__":
    app()
