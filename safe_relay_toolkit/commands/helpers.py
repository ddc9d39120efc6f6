"""Shared command helpers and utilities."""

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from rich import print as rprint
from rich.console import Console

from safe_relay_toolkit.shared.exceptions import NonRetryableException

# Shared console instance
console = Console()


def handle_command_error(
    error: Exception, show_usage_fn: Optional[Callable[[], None]] = None
) -> None:
    """
    Standard error handling for commands.

    Args:
        error: The exception that occurred
        show_usage_fn: Optional function to display usage instructions
    """
    if isinstance(error, (ValueError, NonRetryableException)):
        rprint(f"[red]Error:[/red] {str(error)}")
    else:
        rprint(f"[red]Unexpected error:[/red] {str(error)}")

    if show_usage_fn:
        show_usage_fn()

    sys.exit(1)


def save_json_output(
    data: Dict[str, Any],
    filename: str,
    output_dir: str = "output",
) -> str:
    """
    Save data to a JSON file with automatic directory creation.

    Args:
        data: Data to save
        filename: Output filename (can include subdirectories)
        output_dir: Base output directory (default: 'output')

    Returns:
        Full path to saved file
    """
    output_path = Path(output_dir)
    filepath = output_path / filename
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, "w") as f:
        json.dump(data, f, indent=2)

    return str(filepath)
