"""
QueryGPT CLI

Command-line interface for generating SQL from natural language.

Usage:
    querygpt ask "active users by role"              # One-shot generation
    querygpt ask "orders per outlet" -t ck_order     # Skip table selection
    querygpt chat                                     # Interactive mode
    querygpt tables "outlet orders last month"        # Shortlist only
    querygpt schema --search outlet                   # Browse the schema
    querygpt tenants                                  # Known tenants
"""

import asyncio
import logging
import sys

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from querygpt import __version__
from querygpt.agents.table_selector import TableSelector, fallback_suggest_tables
from querygpt.config import Settings, get_settings
from querygpt.llm.client import ChatServiceClient
from querygpt.models.errors import QueryGPTError
from querygpt.models.query import ChatMessage, TicketContext
from querygpt.pipeline.orchestrator import QueryConversation
from querygpt.schema.store import SchemaContextStore
from querygpt.schema.tenants import is_known_tenant, search_tenants
from querygpt.tickets import extract_ticket_key

console = Console()

_EXIT_WORDS = {"exit", "quit", "bye", "q", ":q"}


def configure_cli_logging() -> None:
    logging.disable(logging.CRITICAL)
    logging.basicConfig(level=logging.CRITICAL)
    for logger_name in ("querygpt", "httpx", "httpcore", "asyncio"):
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)


# ============================================================================
# Helpers
# ============================================================================


def load_store(settings: Settings) -> SchemaContextStore:
    """Schema store loaded from the configured files."""
    store = SchemaContextStore.from_settings(settings.schema_files)
    store.reload()
    return store


def create_conversation_from_config(tenant: str | None = None) -> QueryConversation:
    """
    Build a conversation from settings.

    Raises:
        ValueError: If the chat service URL is not configured
        SchemaLoadError: If the schema files cannot be loaded
    """
    settings = get_settings()
    store = load_store(settings)
    client = ChatServiceClient.from_settings(settings.chat_service)
    return QueryConversation.from_settings(settings, store, client, tenant=tenant)


def format_message(message: ChatMessage) -> None:
    """Render an assistant message."""
    if message.is_error:
        console.print(Panel(message.content, title="[bold red]Error[/bold red]", border_style="red"))
        return

    if not message.query:
        console.print(Panel(Markdown(message.content), title="[bold green]QueryGPT[/bold green]"))
        return

    console.print(f"[bold green]{message.content}[/bold green]")
    if message.tables:
        console.print(f"[dim]Tables: {', '.join(message.tables)}[/dim]")
    console.print(Panel(message.query, title="SQL", border_style="cyan", highlight=True))
    if message.explanation:
        console.print(Panel(Markdown(message.explanation), title="Explanation"))
    if message.suggested_indexes:
        console.print("\n[bold cyan]Suggested indexes:[/bold cyan]")
        for suggestion in message.suggested_indexes:
            console.print(f"  • {suggestion}")


def _parse_tables(value: str) -> list[str]:
    return [part.strip() for part in value.replace("\n", ",").split(",") if part.strip()]


def _should_exit_chat(text: str) -> bool:
    return text.strip().lower() in _EXIT_WORDS


def _ticket_from_option(ticket: str | None) -> TicketContext | None:
    if not ticket:
        return None
    key = extract_ticket_key(ticket)
    if key is None:
        raise click.BadParameter(f"Invalid ticket key or URL: {ticket}", param_hint="--ticket")
    return TicketContext(key=key)


def _check_tenant(tenant: str | None) -> str | None:
    if tenant is not None and not is_known_tenant(tenant):
        raise click.BadParameter(f"Unknown tenant: {tenant}", param_hint="--tenant")
    return tenant.strip().lower() if tenant else None


# ============================================================================
# Commands
# ============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="QueryGPT")
def cli():
    """QueryGPT - Natural-language to SQL generation for SalesCode schemas."""
    configure_cli_logging()


@cli.command()
@click.argument("question")
@click.option("--tenant", default=None, help="Tenant to generate for (default: DEFAULT_TENANT).")
@click.option(
    "--table",
    "-t",
    "tables",
    multiple=True,
    help="Table to use; repeat to use several. Skips table selection.",
)
@click.option("--ticket", default=None, help="Ticket key or browse URL to attach.")
def ask(question: str, tenant: str | None, tables: tuple[str, ...], ticket: str | None):
    """Generate a SQL query for QUESTION."""
    tenant = _check_tenant(tenant)
    ticket_context = _ticket_from_option(ticket)

    async def run_ask() -> ChatMessage:
        conversation = create_conversation_from_config(tenant)
        conversation.set_ticket_context(ticket_context)
        try:
            with console.status("[cyan]Generating query...[/cyan]", spinner="dots"):
                return await conversation.ask(question, tables=list(tables) or None)
        finally:
            await conversation.aclose()
            await conversation.session_manager.client.aclose()

    try:
        message = asyncio.run(run_ask())
    except (QueryGPTError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    format_message(message)
    if message.is_error:
        sys.exit(1)


@cli.command()
@click.option("--tenant", default=None, help="Tenant to start with (default: DEFAULT_TENANT).")
def chat(tenant: str | None):
    """Interactive mode: confirm tables, then ask follow-ups in one session."""
    tenant = _check_tenant(tenant)
    console.print(
        Panel.fit(
            "[bold green]QueryGPT Interactive Mode[/bold green]\n"
            "Ask for a query in plain English. Follow-ups reuse the same tables.\n"
            "Commands: /reset, /tenant <name>, /ticket <key>, exit",
            border_style="green",
        )
    )

    async def run_chat() -> None:
        conversation = create_conversation_from_config(tenant)
        console.print(f"[dim]Tenant: {conversation.tenant}[/dim]\n")
        try:
            while True:
                try:
                    text = (
                        await asyncio.to_thread(console.input, "[bold cyan]You:[/bold cyan] ")
                    ).strip()
                    if not text:
                        continue
                    if _should_exit_chat(text):
                        console.print("\n[yellow]Goodbye![/yellow]")
                        break
                    if text.startswith("/"):
                        await _run_chat_command(conversation, text)
                        continue

                    with console.status("[cyan]Thinking...[/cyan]", spinner="dots"):
                        outcome = await conversation.submit(text)

                    if outcome.awaiting_confirmation:
                        shortlist = ", ".join(outcome.shortlist) or "(none found)"
                        console.print(f"[bold]Suggested tables:[/bold] {shortlist}")
                        edited = await asyncio.to_thread(
                            console.input,
                            "[bold cyan]Tables[/bold cyan] (comma-separated, Enter to accept): ",
                        )
                        with console.status("[cyan]Generating query...[/cyan]", spinner="dots"):
                            message = await conversation.confirm_tables(
                                _parse_tables(edited) or None
                            )
                    else:
                        message = outcome.message

                    if message is not None:
                        format_message(message)

                except KeyboardInterrupt:
                    console.print("\n[yellow]Interrupted. Type 'exit' to quit.[/yellow]")
                    continue
                except (QueryGPTError, ValueError) as e:
                    console.print(f"\n[red]Error: {e}[/red]")
                    continue
        finally:
            await conversation.aclose()
            await conversation.session_manager.client.aclose()

    try:
        asyncio.run(run_chat())
    except (QueryGPTError, ValueError) as e:
        console.print(f"[red]Failed to start: {e}[/red]")
        sys.exit(1)


async def _run_chat_command(conversation: QueryConversation, text: str) -> None:
    command, _, argument = text.partition(" ")
    argument = argument.strip()
    if command == "/reset":
        await conversation.reset()
        console.print("[yellow]Conversation reset.[/yellow]")
    elif command == "/tenant" and argument:
        await conversation.set_tenant(argument)
        console.print(f"[yellow]Tenant set to {conversation.tenant}. Session ended.[/yellow]")
    elif command == "/ticket":
        conversation.set_ticket_context(_ticket_from_option(argument) if argument else None)
        console.print(f"[yellow]Ticket: {argument or 'cleared'}[/yellow]")
    else:
        console.print(f"[red]Unknown command: {text}[/red]")


@cli.command()
@click.argument("question")
@click.option("--tenant", default=None, help="Tenant the question is for.")
@click.option(
    "--offline",
    is_flag=True,
    help="Use keyword matching only; do not call the chat service.",
)
def tables(question: str, tenant: str | None, offline: bool):
    """Suggest the tables relevant to QUESTION."""
    tenant = _check_tenant(tenant)
    settings = get_settings()
    try:
        store = load_store(settings)
    except QueryGPTError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    descriptions = store.context.descriptions_map()
    if offline:
        shortlist = fallback_suggest_tables(
            question,
            descriptions,
            limit=settings.selector.max_fallback_tables,
            min_word_length=settings.selector.min_word_length,
        )
    else:

        async def run_select() -> list[str]:
            client = ChatServiceClient.from_settings(settings.chat_service)
            selector = TableSelector(
                client,
                fallback_limit=settings.selector.max_fallback_tables,
                min_word_length=settings.selector.min_word_length,
            )
            try:
                return await selector.suggest_tables(
                    question, tenant or settings.default_tenant, descriptions
                )
            finally:
                await selector.flush_background_tasks()
                await client.aclose()

        try:
            shortlist = asyncio.run(run_select())
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)

    if not shortlist:
        console.print("[yellow]No relevant tables found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Table")
    table.add_column("Description")
    for name in shortlist:
        table.add_row(name, descriptions.get(name, ""))
    console.print(table)


@cli.command()
@click.option("--search", "-s", default="", help="Filter by table or column name.")
@click.option("--columns", is_flag=True, help="Show each table's columns.")
def schema(search: str, columns: bool):
    """Browse the loaded schema."""
    try:
        store = load_store(get_settings())
    except QueryGPTError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    context = store.context
    matches = context.search(search)
    if not matches:
        console.print("[yellow]No tables match.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan", title=f"{len(matches)} tables")
    table.add_column("Table")
    table.add_column("Columns", justify="right")
    table.add_column("Description")
    for item in matches:
        table.add_row(item.name, str(len(item.fields)), context.describe_table(item.name))
    console.print(table)

    if columns:
        for item in matches:
            column_table = Table(title=item.name, show_header=True, header_style="bold")
            column_table.add_column("Column")
            column_table.add_column("Type")
            column_table.add_column("Key")
            column_table.add_column("Nullable")
            for field in item.fields:
                column_table.add_row(
                    field.name,
                    field.type,
                    "PRI" if field.is_primary else "",
                    "yes" if field.is_nullable else "no",
                )
            console.print(column_table)


@cli.command()
@click.option("--search", "-s", default="", help="Filter tenants by name.")
def tenants(search: str):
    """List known tenants."""
    names = search_tenants(search)
    if not names:
        console.print("[yellow]No tenants match.[/yellow]")
        return
    default_tenant = get_settings().default_tenant
    for name in names:
        marker = " [green](default)[/green]" if name == default_tenant else ""
        console.print(f"{name}{marker}")


def main():
    cli()


if __name__ == "__main__":
    main()
