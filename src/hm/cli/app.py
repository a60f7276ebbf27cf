"""
Main CLI application entry point.

This module contains the Typer application and the command handlers for hm:
``explain``, ``suggest`` and ``config``.
"""

import logging
from pathlib import Path
from typing import Annotated, Dict, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from hm import VERSION
from hm.config.hierarchical import HierarchicalConfigLoader
from hm.config.settings import SETTING_KEYS, HmSettings
from hm.core.client import CompletionClient
from hm.core.errors import HmError, MissingConfiguration
from hm.core.prompt import PromptMode, build_completion_request, join_user_input

ENV_FILE_NAME = ".env"

# Create the main Typer application
app = typer.Typer(
    name="hm",
    help="Help Me - A CLI tool for explanations and suggestions",
    add_completion=False,
    rich_markup_mode="rich",
)

# Rich consoles; completions are written with typer.echo so they are not reflowed
console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

# Words after the verb are the query, even when they look like options.
QUERY_CONTEXT = {"ignore_unknown_options": True}

QueryArgument = Annotated[List[str], typer.Argument(help="Command or description", show_default=False)]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", help="Config file (default is $HOME/.hm.json)", show_default=False),
]
ApiKeyOption = Annotated[Optional[str], typer.Option("--api-key", help="Azure OpenAI API key", show_default=False)]
ApiEndpointOption = Annotated[
    Optional[str], typer.Option("--api-endpoint", help="Azure OpenAI API endpoint", show_default=False)
]
ApiVersionOption = Annotated[
    Optional[str], typer.Option("--api-version", help="Azure OpenAI API version", show_default=False)
]
DeploymentOption = Annotated[
    Optional[str],
    typer.Option("--deployment", "--deployment-id", help="Azure OpenAI deployment ID", show_default=False),
]
SystemPromptOption = Annotated[Optional[str], typer.Option("--system-prompt", help="System prompt", show_default=False)]


class CliState:
    """Flags given on the root command, inherited by every subcommand."""

    def __init__(self, config_path: Optional[Path] = None, **overrides: Optional[str]):
        self.config_path = config_path
        self.overrides: Dict[str, Optional[str]] = overrides

    def merged(self, config_path: Optional[Path], **overrides: Optional[str]) -> "CliState":
        """Combine with subcommand flags; subcommand values win."""
        combined = dict(self.overrides)
        combined.update({key: value for key, value in overrides.items() if value is not None})
        return CliState(config_path or self.config_path, **combined)


def version_callback(value: bool) -> None:
    """Display version information and exit."""
    if value:
        typer.echo(f"hm version {VERSION}")
        raise typer.Exit()


def configure_logging(debug: bool) -> None:
    """Send hm's log records to stderr through Rich."""
    handler = RichHandler(console=err_console, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    package_logger = logging.getLogger("hm")
    package_logger.handlers = [handler]
    package_logger.setLevel(logging.DEBUG if debug else logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: ConfigOption = None,
    api_key: ApiKeyOption = None,
    api_endpoint: ApiEndpointOption = None,
    api_version: ApiVersionOption = None,
    deployment: DeploymentOption = None,
    system_prompt: SystemPromptOption = None,
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """
    Help Me - A CLI tool for explanations and suggestions.

    Explains shell commands and suggests commands for a described task
    using an Azure OpenAI deployment.
    """
    configure_logging(debug)
    ctx.obj = CliState(
        config,
        api_key=api_key,
        api_endpoint=api_endpoint,
        api_version=api_version,
        deployment=deployment,
        system_prompt=system_prompt,
    )


def _report_error(error: Exception) -> None:
    err_console.print(f"[red]Error:[/red] {escape(str(error))}", soft_wrap=True, highlight=False)


def _build_loader(state: CliState) -> HierarchicalConfigLoader:
    return HierarchicalConfigLoader(
        config_path=state.config_path,
        flag_overrides=state.overrides,
        env_file=Path(ENV_FILE_NAME),
    )


def resolve_settings(state: CliState) -> HmSettings:
    """Load validated settings and mention the config file that was used."""
    loader = _build_loader(state)
    settings = loader.load(validate=False)

    if loader.loaded_config_file is not None:
        err_console.print(
            f"Using config file: {escape(str(loader.loaded_config_file))}",
            soft_wrap=True,
            highlight=False,
        )

    missing = settings.missing_required()
    if missing:
        raise MissingConfiguration(missing)
    return settings


def create_completion_client(settings: HmSettings) -> CompletionClient:
    """Create the client for one invocation."""
    return CompletionClient(settings)


def run_query(state: CliState, mode: PromptMode, words: List[str]) -> None:
    """Resolve settings, request a completion and print it."""
    try:
        settings = resolve_settings(state)
        request = build_completion_request(mode, join_user_input(words), settings)
        response = create_completion_client(settings).complete(request)
    except HmError as e:
        logger.debug(f"{e.code}: {e.details}")
        _report_error(e)
        raise typer.Exit(1)

    typer.echo(response.text)


@app.command("explain", context_settings=QUERY_CONTEXT)
def explain_command(
    ctx: typer.Context,
    text: QueryArgument,
    config: ConfigOption = None,
    api_key: ApiKeyOption = None,
    api_endpoint: ApiEndpointOption = None,
    api_version: ApiVersionOption = None,
    deployment: DeploymentOption = None,
    system_prompt: SystemPromptOption = None,
) -> None:
    """Explain a command or concept."""
    state = ctx.ensure_object(CliState).merged(
        config,
        api_key=api_key,
        api_endpoint=api_endpoint,
        api_version=api_version,
        deployment=deployment,
        system_prompt=system_prompt,
    )
    run_query(state, PromptMode.EXPLAIN, text)


@app.command("suggest", context_settings=QUERY_CONTEXT)
def suggest_command(
    ctx: typer.Context,
    text: QueryArgument,
    config: ConfigOption = None,
    api_key: ApiKeyOption = None,
    api_endpoint: ApiEndpointOption = None,
    api_version: ApiVersionOption = None,
    deployment: DeploymentOption = None,
    system_prompt: SystemPromptOption = None,
) -> None:
    """Suggest a command or solution."""
    state = ctx.ensure_object(CliState).merged(
        config,
        api_key=api_key,
        api_endpoint=api_endpoint,
        api_version=api_version,
        deployment=deployment,
        system_prompt=system_prompt,
    )
    run_query(state, PromptMode.SUGGEST, text)


@app.command("config")
def config_command(
    ctx: typer.Context,
    config: ConfigOption = None,
) -> None:
    """Show the effective configuration and where each value comes from."""
    state = ctx.ensure_object(CliState).merged(config)
    loader = _build_loader(state)
    try:
        settings = loader.load(validate=False)
    except HmError as e:
        _report_error(e)
        raise typer.Exit(1)

    values = settings.to_dict()

    table = Table(title="Current Configuration", show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    table.add_column("Source", style="dim")

    for name, key in SETTING_KEYS.items():
        value = values.get(name)
        if name == "system_prompt" and not value:
            display, source_info = "(built-in)", "default"
        else:
            display = value if value else "Not set"
            source = loader.source_of(name)
            source_info = source.value if source else "default"
        table.add_row(key, escape(str(display)), source_info)

    console.print(table)

    config_file = loader.loaded_config_file
    err_console.print(
        f"[dim]Config file: {escape(str(config_file)) if config_file else 'None found'}[/dim]",
        soft_wrap=True,
    )
    if not settings.is_configured:
        err_console.print(f"[yellow]Missing:[/yellow] {', '.join(settings.missing_required())}")


def main() -> None:
    """Entry point for the CLI application."""
    app()


if __name__ == "__main__":
    main()
