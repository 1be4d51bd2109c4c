"""
Shared utilities for CLI commands.
"""
from rich.console import Console

# Global console instances
console = Console()
error_console = Console(stderr=True)

SEVERITY_STYLES = {
    "low": "green",
    "medium": "yellow",
    "high": "red",
    "critical": "bold white on red",
}


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    error_console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str) -> None:
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str) -> None:
    console.print(f"[blue]ℹ {message}[/blue]")
