"""
Handbook RAG - CLI Entry Point
-------------------------------
Exposes Typer commands for running and poking at the chat backend.

Usage:
    handbook-rag serve                       # Run the HTTP API
    handbook-rag chat                        # Interactive terminal chat
    handbook-rag chat --query "..." --json   # Single-shot query
    handbook-rag chunks --query "..."        # Inspect chunking and scoring
    handbook-rag search "..."                # One web-search lookup
"""
from __future__ import annotations

import sys

# Windows cp1252 terminal fix
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

import os
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from handbook_rag.config import Settings
from handbook_rag.errors import CompletionFailure, ConfigError
from handbook_rag.generation.prompts import FALLBACK_REPLY
from handbook_rag.ingestion.loader import DocumentLoader
from handbook_rag.memory.session_store import DEFAULT_SESSION_ID
from handbook_rag.retrieval.retriever import KeywordRetriever, extract_query_terms
from handbook_rag.search.tavily import TavilySearch
from handbook_rag.serving.pipeline import ChatResult, ChatService, failure_response
from handbook_rag.utils.helpers import normalize_whitespace, to_json, truncate_text
from handbook_rag.utils.logger import setup_logger

app = typer.Typer(
    name="handbook-rag",
    help="Employee handbook RAG chat backend",
    add_completion=False,
)
console = Console()


# --- Helpers ------------------------------------------------------------------

def _settings() -> Settings:
    try:
        return Settings.from_env()
    except ConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)


# --- Commands -----------------------------------------------------------------

@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: PORT or 3001)"),
) -> None:
    """Run the chat API under uvicorn."""
    import uvicorn

    settings = _settings()
    uvicorn.run("app.server:app", host=host, port=port or settings.port)


@app.command()
def chat(
    query: Optional[str] = typer.Option(
        None, "--query", "-q", help="Single query (omit for interactive loop)"
    ),
    session: str = typer.Option(DEFAULT_SESSION_ID, "--session", "-s", help="Session id"),
    no_rag: bool = typer.Option(False, "--no-rag", help="Skip handbook and web context"),
    json_out: bool = typer.Option(
        False, "--json", help="Print result as JSON (single-query mode only)"
    ),
) -> None:
    """
    Chat with the handbook assistant.

    \b
    Steps per message:
      1. Keyword retrieval over handbook chunks (top 3)
      2. Tavily web-search snippet
      3. Prompt assembly with the session transcript
      4. Azure OpenAI completion
    """
    settings = _settings()
    setup_logger(log_level="WARNING", log_file=settings.log_file)

    service = ChatService.from_settings(settings)
    with console.status("[cyan]Loading employee handbook...[/cyan]"):
        loaded = service.load_document()

    if loaded:
        console.print(
            f"[green][OK] Handbook loaded[/green] | {len(service.loader.chunks)} chunks "
            f"| search={'on' if service.search_enabled else 'off'}"
        )
    else:
        console.print(
            f"[yellow]Handbook not available at {service.loader.path} -- "
            "answering without document context[/yellow]"
        )

    # --- Single-shot mode -----------------------------------------------------
    if query:
        try:
            result = service.chat(query, use_rag=not no_rag, session_id=session)
        except CompletionFailure as exc:
            if json_out:
                console.print_json(to_json(failure_response(exc)))
            else:
                console.print(f"[red]{FALLBACK_REPLY}[/red] [dim]({exc})[/dim]")
            raise typer.Exit(1)
        if json_out:
            console.print_json(to_json(result.to_dict()))
        else:
            _print_result(result)
        return

    # --- Interactive loop -----------------------------------------------------
    console.print()
    console.print("[bold]Ask anything about the employee handbook.[/bold]")
    console.print("[dim]Type 'exit', 'quit', or press Ctrl+C to quit.[/dim]\n")

    while True:
        try:
            raw = console.input("[bold cyan]You[/bold cyan] > ").strip()
        except (EOFError, KeyboardInterrupt):
            console.print("\n[dim]Goodbye.[/dim]")
            break

        if not raw:
            continue
        if raw.lower() in {"exit", "quit", "q"}:
            console.print("[dim]Goodbye.[/dim]")
            break

        try:
            with console.status("[cyan]Thinking...[/cyan]"):
                result = service.chat(raw, use_rag=not no_rag, session_id=session)
        except CompletionFailure as exc:
            console.print(f"[red]{FALLBACK_REPLY}[/red] [dim]({exc})[/dim]\n")
            continue

        _print_result(result)


def _print_result(result: ChatResult) -> None:
    """Render a ChatResult to the terminal using Rich."""
    console.print()
    console.print(
        Panel(
            Markdown(result.reply),
            title="[bold green]Assistant[/bold green]",
            border_style="green",
            expand=True,
        )
    )

    if result.sources:
        table = Table("No.", "Source", box=box.SIMPLE, header_style="bold dim")
        for i, source in enumerate(result.sources, start=1):
            table.add_row(str(i), truncate_text(normalize_whitespace(source), 100))
        console.print(table)

    console.print(
        f"[dim]"
        f"retrieve={result.retrieval_ms:.0f}ms  "
        f"search={result.search_ms:.0f}ms  "
        f"generate={result.generation_ms:.0f}ms  |  "
        f"tokens={result.prompt_tokens}+{result.completion_tokens}"
        f"[/dim]\n"
    )


@app.command()
def chunks(
    pdf: Optional[str] = typer.Option(None, "--pdf", help="PDF path (default: HANDBOOK_PDF_PATH)"),
    chunk_size: int = typer.Option(2000, "--chunk-size", help="Characters per chunk"),
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Show scores for this query"),
    top: int = typer.Option(10, "--top", help="Rows to show"),
) -> None:
    """Load the handbook and show chunk statistics (no credentials needed)."""
    from dotenv import load_dotenv

    load_dotenv()
    path = pdf or os.getenv("HANDBOOK_PDF_PATH", "data/employee_handbook.pdf")
    loader = DocumentLoader(path, chunk_size=chunk_size)
    if not loader.try_load():
        console.print(f"[red]Could not load {path}[/red]")
        raise typer.Exit(1)

    sizes = [c.char_count for c in loader.chunks]
    console.print(
        f"[green][OK][/green] {loader.path.name} | {len(loader.text or ''):,} chars | "
        f"{len(sizes)} chunks | max={max(sizes, default=0)} "
        f"| oversized={sum(1 for s in sizes if s > chunk_size)}"
    )

    if not query:
        return

    console.print(f"Terms: [cyan]{extract_query_terms(query)}[/cyan]")
    scored = KeywordRetriever(loader).score(query)
    table = Table("Chunk", "Score", "Preview", box=box.SIMPLE, header_style="bold dim")
    for chunk, score in scored[:top]:
        table.add_row(str(chunk.chunk_index), str(score), truncate_text(chunk.text, 80))
    console.print(table)


@app.command()
def search(query: str = typer.Argument(..., help="Search query")) -> None:
    """Run one Tavily web search and print the answer snippet."""
    from dotenv import load_dotenv

    load_dotenv()
    client = TavilySearch(api_key=os.getenv("TAVILY_API_KEY"))
    if not client.enabled:
        console.print("[red]TAVILY_API_KEY is not set[/red]")
        raise typer.Exit(1)

    result = client.search(query)
    if result is None:
        console.print("[yellow]No answer snippet returned.[/yellow]")
        return
    console.print(Panel(result, title="[bold]Tavily[/bold]", expand=True))


# --- Entry Point --------------------------------------------------------------

if __name__ == "__main__":
    app()
