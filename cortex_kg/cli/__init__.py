"""
Command-Line Interface

CLI commands for a local cortex-kg knowledge base.

Commands:
    cortex-kg add      - Add text documents and fold them into the graph
    cortex-kg ask      - Ask a question
    cortex-kg rebuild  - Rebuild the graph from stored documents
    cortex-kg graph    - Show the capped display graph
    cortex-kg brief    - Short update over recent documents
    cortex-kg conversations - List or delete stored conversations
    cortex-kg info     - Display knowledge base information

Usage:
    # Add notes
    cortex-kg add notes.md --kb ./kb

    # Add a directory of notes
    cortex-kg add ./notes --kb ./kb --pattern "**/*.txt"

    # Ask
    cortex-kg ask "What did I write about Paris?" --kb ./kb

    # Continue a conversation
    cortex-kg ask "And the museums?" --kb ./kb --conversation <id>
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

if TYPE_CHECKING:
    from cortex_kg.api.brain import Brain

__all__ = ["main", "app"]

app = typer.Typer(
    name="cortex-kg",
    help="Personal knowledge twin: multi-expert answers over your own knowledge graph",
    no_args_is_help=True,
)
console = Console()

KB_OPTION = typer.Option(Path("./kb"), "--kb", "-k", help="Knowledge base directory")
USER_OPTION = typer.Option("local", "--user", "-u", help="Knowledge base owner")
CONFIG_OPTION = typer.Option(None, "--config", "-c", help="TOML configuration file", exists=True)


def _brain(kb: Path, user: str, config_path: Optional[Path]) -> "Brain":
    from cortex_kg.api.brain import Brain
    from cortex_kg.config import CortexConfig
    from cortex_kg.storage.parquet import ParquetStorage

    config = CortexConfig.from_file(config_path) if config_path else CortexConfig()
    return Brain(ParquetStorage(kb), user, config)


@app.command()
def add(
    path: Path = typer.Argument(..., help="Text file or directory to add", exists=True),
    kb: Path = KB_OPTION,
    user: str = USER_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    pattern: str = typer.Option("**/*.md", "--pattern", "-p", help="Glob pattern for directories"),
    domain: str = typer.Option("general", "--domain", "-d", help="Domain tag"),
) -> None:
    """Add documents and fold them into the graph."""
    files = sorted(path.glob(pattern)) if path.is_dir() else [path]
    if not files:
        console.print(f"[yellow]No files matching '{pattern}' found in {path}[/]")
        raise typer.Exit()

    async def _run() -> None:
        async with _brain(kb, user, config) as brain:
            entities = 0
            connections = 0
            warnings: list[str] = []

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=console,
            ) as progress:
                task = progress.add_task("Adding...", total=len(files))
                for file_path in files:
                    progress.update(task, description=f"Adding {file_path.name}")
                    content = file_path.read_text(encoding="utf-8", errors="replace")
                    result = await brain.add_document(file_path.stem, content, domain=domain)
                    entities += result.entities
                    connections += result.connections_created
                    warnings.extend(f"{file_path.name}: {e}" for e in result.errors)
                    progress.advance(task)

            console.print()
            console.print(Panel(
                f"[green]Added {len(files)} document(s)[/]\n\n"
                f"  Entities: {entities}\n"
                f"  New connections: {connections}",
                title="Ingestion Complete",
            ))
            if warnings:
                console.print("[yellow]Warnings:[/]")
                for warning in warnings:
                    console.print(f"  - {warning}")

    asyncio.run(_run())


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to ask"),
    kb: Path = KB_OPTION,
    user: str = USER_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    validate: bool = typer.Option(True, "--validate/--no-validate", help="Fact-check the answer"),
    conversation: Optional[str] = typer.Option(
        None, "--conversation", help="Conversation id to continue"
    ),
) -> None:
    """Ask a question."""

    async def _run() -> None:
        async with _brain(kb, user, config) as brain:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                task = progress.add_task("Thinking...")
                result = await brain.ask(
                    question, conversation_id=conversation, validate=validate
                )
                progress.update(task, completed=True)

            console.print()
            console.print(Panel(
                Markdown(result.answer),
                title=f"Answer ({', '.join(e.value for e in result.experts_used)})",
                border_style="yellow" if result.flagged else "green",
            ))

            if result.sources:
                table = Table(title="Sources")
                table.add_column("Type", style="dim")
                table.add_column("Title", style="cyan")
                table.add_column("URL")
                for source in result.sources:
                    table.add_row(source.type, source.title, source.url or "")
                console.print(table)

            if result.timing:
                console.print(f"\n[dim]Query time: {result.total_time_ms}ms[/]")
            console.print(f"[dim]Conversation: {result.conversation_id}[/]")

    asyncio.run(_run())


@app.command()
def rebuild(
    kb: Path = KB_OPTION,
    user: str = USER_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Rebuild the graph from every stored document."""

    async def _run() -> None:
        async with _brain(kb, user, config) as brain:
            with console.status("Rebuilding graph..."):
                result = await brain.rebuild_graph()
            console.print(Panel(
                f"  Documents processed: {result.documents_processed}\n"
                f"  New nodes: {result.nodes_created}\n"
                f"  New connections: {result.connections_created}",
                title="Graph Rebuilt",
            ))

    asyncio.run(_run())


@app.command()
def graph(
    kb: Path = KB_OPTION,
    user: str = USER_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    max_nodes: Optional[int] = typer.Option(None, "--max-nodes", "-n", help="Node cap"),
) -> None:
    """Show the capped display graph."""

    async def _run() -> None:
        from cortex_kg.config import CortexConfig
        from cortex_kg.graph.clustering import compute_visual_graph
        from cortex_kg.storage.parquet import ParquetStorage

        settings = CortexConfig.from_file(config) if config else CortexConfig()
        async with ParquetStorage(kb) as storage:
            nodes = await storage.list_nodes(user)
        visual = compute_visual_graph(
            nodes,
            max_nodes=max_nodes or settings.graph_max_nodes,
            max_links_per_node=settings.graph_max_links_per_node,
        )

        table = Table(title=f"Graph: {len(visual.nodes)} nodes, {visual.components} clusters")
        table.add_column("Label", style="cyan")
        table.add_column("Type", style="dim")
        table.add_column("Strength", justify="right", style="green")
        table.add_column("Links", justify="right")
        for node in sorted(visual.nodes, key=lambda n: n.strength, reverse=True):
            table.add_row(
                node.label,
                node.type.value,
                f"{node.strength:.1f}",
                str(len(visual.neighbors(node.id))),
            )
        console.print(table)
        console.print(f"[dim]{len(visual.links)} links, {len(visual.bridges)} bridges[/]")

    asyncio.run(_run())


@app.command()
def brief(
    kb: Path = KB_OPTION,
    user: str = USER_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Short update over recent documents."""

    async def _run() -> None:
        async with _brain(kb, user, config) as brain:
            text = await brain.brief()
        console.print(Panel(text, title="Brief"))

    asyncio.run(_run())


@app.command()
def conversations(
    kb: Path = KB_OPTION,
    user: str = USER_OPTION,
    delete: Optional[str] = typer.Option(None, "--delete", help="Delete this conversation"),
) -> None:
    """List stored conversations, or delete one."""

    async def _run() -> None:
        from cortex_kg.storage.parquet import ParquetStorage

        async with ParquetStorage(kb) as storage:
            if delete is not None:
                conversation = await storage.get_conversation(delete)
                if conversation is None or conversation.user_id != user:
                    console.print(f"[red]Conversation not found:[/] {delete}")
                    raise typer.Exit(1)
                await storage.delete_conversation(delete)
                console.print(f"[green]Deleted conversation[/] {conversation.title}")
                return

            stored = await storage.list_conversations(user)
            counts = [len(await storage.list_messages(c.id)) for c in stored]

        if not stored:
            console.print("[yellow]No conversations yet[/]")
            return

        table = Table(title="Conversations")
        table.add_column("ID", style="dim")
        table.add_column("Title", style="cyan")
        table.add_column("Messages", justify="right")
        table.add_column("Updated")
        for conversation, count in zip(stored, counts):
            table.add_row(
                conversation.id,
                conversation.title,
                str(count),
                conversation.updated_at.strftime("%Y-%m-%d %H:%M"),
            )
        console.print(table)

    asyncio.run(_run())


@app.command()
def info(
    kb: Path = KB_OPTION,
    user: str = USER_OPTION,
) -> None:
    """Display knowledge base information."""

    async def _run() -> None:
        from cortex_kg.storage.parquet import ParquetStorage

        async with ParquetStorage(kb) as storage:
            documents = await storage.list_documents(user)
            nodes = await storage.list_nodes(user)

        table = Table(title=f"Knowledge Base: {kb}")
        table.add_column("Metric", style="cyan")
        table.add_column("Count", justify="right", style="green")
        table.add_row("Documents", str(len(documents)))
        table.add_row("Processed", str(sum(1 for d in documents if d.summary)))
        table.add_row("Nodes", str(len(nodes)))
        table.add_row("Connections", str(sum(len(n.connections) for n in nodes) // 2))
        console.print(table)

    asyncio.run(_run())


def main() -> None:
    """Entry point for the CLI."""
    load_dotenv()
    app()
