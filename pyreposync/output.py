"""Output formatting for the CLI: plain text, JSON and rich trees."""

import json
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from .models import FolderNode, HierarchyNode
from .utils import format_size


class OutputFormatter:
    """Formats user-facing messages.

    Info messages are suppressed in quiet mode; errors and warnings are
    always shown and go to stderr.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON for results
            quiet: Suppress non-essential output
        """
        self.json_output = json_output
        self.quiet = quiet

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            click.echo(message)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            click.echo(click.style(message, fg="green"))

    def warning(self, message: str) -> None:
        click.echo(click.style(message, fg="yellow"), err=True)

    def error(self, message: str) -> None:
        click.echo(click.style(message, fg="red"), err=True)

    def print(self, message: str = "") -> None:
        if not self.quiet and not self.json_output:
            click.echo(message)

    def output_json(self, data: Any) -> None:
        click.echo(json.dumps(data, indent=2))

    def format_size(self, size_bytes: int) -> str:
        return format_size(size_bytes)

    def print_tree(self, node: HierarchyNode) -> None:
        """Print a hierarchy as a rich tree (or JSON in JSON mode)."""
        if self.json_output:
            self.output_json(node.to_dict())
            return

        label = escape(node.name or ".")
        tree = Tree(f"[bold blue]{label}/" if isinstance(node, FolderNode) else label)
        if isinstance(node, FolderNode):
            _add_children(tree, node)
        Console(highlight=False).print(tree)


def _add_children(tree: Tree, folder: FolderNode) -> None:
    for child in folder.children:
        name = escape(child.name)
        if isinstance(child, FolderNode):
            branch = tree.add(f"[bold blue]{name}/")
            _add_children(branch, child)
        elif child.modified:
            tree.add(f"[yellow]{name}[/yellow] (modified)")
        else:
            tree.add(name)
