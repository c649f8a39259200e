"""Configuration Commands - CLI settings management"""

import typer
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm

from ..utils.config_manager import config
from ..utils.formatting import print_error, print_info, print_success

console = Console()
app = typer.Typer(name="config", help="CLI configuration management")

NUMERIC_SUFFIXES = (".timeout", "_s", ".default_limit")


@app.command("set")
def set_config(
    key: str = typer.Argument(..., help="Configuration key (e.g., 'api.base_url')"),
    value: str = typer.Argument(..., help="Configuration value"),
):
    """⚙️ Set a configuration value"""
    if key == "api.base_url" and not value.startswith(("http://", "https://")):
        print_error("API base URL must start with http:// or https://")
        raise typer.Exit(1)

    parsed: object = value
    if key.endswith(NUMERIC_SUFFIXES):
        try:
            parsed = float(value)
        except ValueError:
            print_error(f"{key} must be numeric")
            raise typer.Exit(1) from None
        if parsed <= 0:
            print_error(f"{key} must be positive")
            raise typer.Exit(1)
        if parsed.is_integer():
            parsed = int(parsed)

    try:
        config.set(key, parsed)
    except OSError as e:
        print_error(f"Failed to set configuration: {e}")
        raise typer.Exit(1) from None

    print_success(f"Set {key} = {parsed}")
    if key == "api.base_url":
        print_info("Test connection with: backoffice-queue status")


@app.command("get")
def get_config(
    key: str | None = typer.Argument(
        None, help="Configuration key (optional - shows all if omitted)"
    ),
):
    """📋 Get configuration value(s)"""
    if not key:
        show_all_config()
        return

    value = config.get(key)
    if value is None:
        console.print(f"[yellow]Key '{key}' not found[/yellow]")
        console.print(
            "Use [cyan]backoffice-queue config show[/cyan] to see all available keys"
        )
    else:
        console.print(f"[cyan]{key}[/cyan] = [yellow]{value}[/yellow]")


@app.command("show")
def show_all_config():
    """📊 Show all configuration settings"""
    console.print(
        Panel(
            "[bold cyan]Back Office Queue CLI Configuration[/bold cyan]\n\n"
            f"[dim]Configuration is stored in {config.config_file}[/dim]",
            title="Configuration",
            border_style="blue",
        )
    )
    console.print(yaml.dump(config.load_config(), default_flow_style=False))


@app.command("reset")
def reset_config(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """🔄 Reset configuration to defaults"""
    if not yes and not Confirm.ask(
        "⚠️ This will reset ALL configuration to defaults. Continue?"
    ):
        console.print("Configuration reset cancelled.")
        return

    try:
        config.reset()
    except OSError as e:
        print_error(f"Failed to reset configuration: {e}")
        raise typer.Exit(1) from None

    print_success("Configuration reset to defaults")


@app.command("path")
def show_config_path():
    """📁 Show configuration file path"""
    console.print(f"Configuration file: [cyan]{config.config_file}[/cyan]")
    if not config.config_file.exists():
        console.print("[dim]Configuration file will be created on first change[/dim]")
