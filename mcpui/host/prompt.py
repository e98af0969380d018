"""Default interactive confirmation for permission requests."""

from __future__ import annotations

from typing import Optional, TextIO

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

_AFFIRMATIVE = {"y", "yes"}


def describe_request(scope: str, reasoning: Optional[str] = None) -> str:
    return reasoning.strip() if reasoning and reasoning.strip() else f"access to {scope}"


def confirm_permission_request(
    ui_name: str,
    scope: str,
    reasoning: Optional[str] = None,
    *,
    console: Optional[Console] = None,
    stream: Optional[TextIO] = None,
) -> bool:
    """Ask on the console whether ``ui_name`` may use ``scope``; defaults to no."""
    console = console or Console()

    body = Text()
    body.append(f'"{ui_name}"', style="yellow")
    body.append(f" is requesting {describe_request(scope, reasoning)}.\n\n")
    body.append("Scope: ")
    body.append(scope, style="dim")

    console.print()
    console.print(Panel(body, title="Permission Request", border_style="cyan", padding=(1, 2)))
    try:
        answer = console.input("[cyan]▶[/cyan] Do you want to allow this? [y/N]: ", stream=stream)
    except (EOFError, KeyboardInterrupt):
        return False
    return answer.strip().lower() in _AFFIRMATIVE
