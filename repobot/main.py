"""
RepoBot - CLI Entry Point
--------------------------
Exposes Typer commands for ingestion, questions and the chat surfaces.

Usage:
    python -m repobot.main ingest https://github.com/<owner>/<repo>/tree/main/docs
    python -m repobot.main ask "How do I configure the cache?"
    python -m repobot.main chat            # local chat loop through the dispatcher
    python -m repobot.main status          # index statistics
    python -m repobot.main serve           # HTTP chat webhook (FastAPI)
"""
from __future__ import annotations

import asyncio
import json
from typing import Optional

import typer
from loguru import logger
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from repobot.collection.github_crawler import GitHubTreeCrawler
from repobot.config import DEFAULT_CONFIG_PATH, Settings, load_settings
from repobot.embedding.store import VectorStore
from repobot.errors import RepoBotError
from repobot.schemas import ChatMessage
from repobot.services import build_services
from repobot.utils.helpers import truncate_text
from repobot.utils.logger import setup_logger

app = typer.Typer(
    name="repobot",
    help="RepoBot - answer questions from indexed GitHub documentation",
    add_completion=False,
)
console = Console()

LOCAL_USER = "local-user"


# --- Helpers ------------------------------------------------------------------

def _settings(config: str) -> Settings:
    settings = load_settings(config)
    setup_logger(settings.logging)
    return settings


class ConsoleChannel:
    """Prints dispatcher notices to the terminal."""

    async def send(self, channel_id: str, text: str) -> None:
        console.print(Panel(Markdown(text), title=f"[cyan]#{channel_id}[/cyan]", border_style="cyan"))


# --- Commands -----------------------------------------------------------------

@app.command()
def ingest(
    url: str = typer.Argument(..., help="https://github.com/<owner>/<repo>/tree/<branch>/<path>"),
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to config YAML"),
    index: Optional[str] = typer.Option(None, "--index", help="Override the target index name"),
) -> None:
    """Crawl a GitHub folder and index its md/mdx/txt files."""
    settings = _settings(config)
    if index:
        settings.index.name = index
    services = build_services(settings)

    try:
        with console.status(f"[cyan]Indexing {url}...[/cyan]"):
            report = asyncio.run(services.ingestion.run(url))
    except RepoBotError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[green][OK] {report.documents_ingested} document(s), "
        f"{report.chunks_written} chunk(s) -> '{report.index_name}'[/green]"
    )
    for failure in report.failures:
        console.print(f"  [yellow]skipped[/yellow] {truncate_text(failure, 160)}")


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to answer from the index"),
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to config YAML"),
    json_out: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Answer one question from the index (no quota applied)."""
    services = build_services(_settings(config))

    with console.status("[cyan]Thinking...[/cyan]"):
        result = services.answers.answer(question)

    if json_out:
        console.print_json(json.dumps(result.to_dict()))
        return

    console.print(Panel(Markdown(result.answer), title="[bold green]Answer[/bold green]", border_style="green"))
    if result.citations:
        table = Table("No.", "Source", "Chunk", "Score", box=box.SIMPLE, header_style="bold dim")
        for cit in result.citations:
            table.add_row(
                str(cit["index"]),
                cit["source_path"],
                str(cit["chunk_index"]),
                f"{cit['relevance_score']:.4f}",
            )
        console.print(table)
    console.print(
        f"[dim]retrieve={result.retrieval_ms:.0f}ms  generate={result.generation_ms:.0f}ms  "
        f"tokens={result.prompt_tokens}+{result.completion_tokens}[/dim]"
    )


@app.command()
def chat(
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to config YAML"),
    user: str = typer.Option(LOCAL_USER, "--user", help="Identity used for the quota"),
) -> None:
    """Local chat loop: every line goes through the command dispatcher."""
    settings = _settings(config)
    channel_id = settings.bot.target_channel_id or "local"
    settings.bot.target_channel_id = channel_id
    dispatcher = build_services(settings).dispatcher(ConsoleChannel())

    console.print(
        f"[bold]Commands:[/bold] {settings.bot.question_prefix} <question> | "
        f"{settings.bot.upload_prefix} <github tree url>"
    )
    console.print("[dim]Type 'exit' or press Ctrl+C to quit.[/dim]\n")

    async def _loop() -> None:
        while True:
            try:
                raw = await asyncio.to_thread(console.input, "[bold cyan]You[/bold cyan] > ")
            except (EOFError, KeyboardInterrupt):
                break
            if raw.strip().lower() in {"exit", "quit"}:
                break
            outcome = await dispatcher.on_message(
                ChatMessage(sender_id=user, channel_id=channel_id, content=raw)
            )
            logger.debug(f"[Chat] outcome={outcome.value}")

    try:
        asyncio.run(_loop())
    except KeyboardInterrupt:
        console.print()
    console.print("[dim]Goodbye.[/dim]")


@app.command()
def status(
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to config YAML"),
) -> None:
    """Show statistics for the configured index."""
    settings = load_settings(config)
    store = VectorStore(settings.index.dir, dimensions=settings.index.dimensions)
    name = settings.index.name

    crawler = GitHubTreeCrawler(github_token=settings.crawler.github_token)
    github_ok = asyncio.run(crawler.health_check())
    console.print(f"GitHub API: {'[green]reachable[/green]' if github_ok else '[red]unreachable[/red]'}")

    if not store.exists(name):
        console.print(f"[yellow]Index '{name}' does not exist yet. Run: repobot ingest <url>[/yellow]")
        raise typer.Exit(1)

    stats = store.stats(name)
    console.print()
    console.print(f"[bold]Index '{name}'[/bold]")
    console.print(f"  Vectors      : [green]{stats['vectors']:,}[/green]")
    console.print(f"  Dimensions   : {stats['dimensions']}")
    console.print(f"  Source files : {stats['source_paths']:,}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
) -> None:
    """Run the HTTP chat webhook (app.server:app) with uvicorn."""
    import uvicorn

    uvicorn.run("app.server:app", host=host, port=port)


# --- Entry Point --------------------------------------------------------------

if __name__ == "__main__":
    app()
