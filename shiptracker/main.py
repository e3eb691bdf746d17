"""Main entry point for the Ship Tracker application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import typer
import logging
import asyncio

from pathlib import Path
from typing import Any, Coroutine, Dict, List, Optional, TypeVar
from typing_extensions import Annotated

# --- Core Layer ---
from shiptracker.core.command_handler import CommandHandler
from shiptracker.core.services.leaderboard_service import LeaderboardService
from shiptracker.core.services.session_service import SessionService
from shiptracker.core.services.stats_service import StatsService

# --- Domain Layer ---
from shiptracker.domain.models.stats import SortKey

# --- Infrastructure Layer ---
# Config
from shiptracker.infrastructure.config.settings import (
    load_configuration, get_config, get_github_token, get_api_base_url,
    get_graph_base_url, get_retry_policy, get_cache_ttl, get_batch_size,
    get_batch_pause, get_request_delay, get_sample_commit_size,
)
# UI
from shiptracker.infrastructure.cli.display import ConsoleDisplay
# Remote API
from shiptracker.infrastructure.github.client import GitHubClient
# Cache
from shiptracker.infrastructure.cache.caching_service import InMemoryCacheService
# Resilience
from shiptracker.infrastructure.resilience.api_retry import ApiRetryService
from shiptracker.infrastructure.resilience.batch_executor import BatchExecutor
# Monitoring
from shiptracker.infrastructure.monitoring.logger_setup import setup_logging, level_from_name

logger = logging.getLogger(__name__)

T = TypeVar("T")

# --- Dependency Injection Container (Manual) ---

def create_dependencies(verbose: bool = False, token: Optional[str] = None) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    dependencies: Dict[str, Any] = {}

    # 1. Load Configuration First
    load_configuration()
    log_level = logging.DEBUG if verbose else level_from_name(get_config('logging.level'))
    setup_logging(
        log_level=log_level,
        log_file=get_config('logging.file'),
        log_format=get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
    )
    logger.info("Configuration and logging initialized.")

    # 2. Instantiate Infrastructure Adapters & Services
    dependencies['ui'] = ConsoleDisplay()
    dependencies['cache_service'] = InMemoryCacheService(default_ttl=get_cache_ttl())
    policy = get_retry_policy()
    dependencies['retry_service'] = ApiRetryService(
        cache_service=dependencies['cache_service'],
        max_retries=policy['max_retries'],
        initial_backoff_s=policy['initial_delay'],
        backoff_factor=policy['factor'],
        default_ttl=get_cache_ttl(),
    )
    dependencies['batch_executor'] = BatchExecutor(
        retry_service=dependencies['retry_service'],
        pause_s=get_batch_pause(),
    )
    dependencies['github_api'] = GitHubClient(
        token=token or get_github_token(),
        base_url=get_api_base_url(),
    )

    # 3. Instantiate Core Services (injecting dependencies)
    dependencies['stats_service'] = StatsService(
        github_api=dependencies['github_api'],
        retry_service=dependencies['retry_service'],
        graph_base_url=get_graph_base_url(),
        sample_commit_size=get_sample_commit_size(),
    )
    dependencies['leaderboard_service'] = LeaderboardService(
        stats_service=dependencies['stats_service'],
        batch_executor=dependencies['batch_executor'],
        request_delay_s=get_request_delay(),
    )

    # 4. Instantiate Command Handler
    dependencies['command_handler'] = CommandHandler(
        leaderboard_service=dependencies['leaderboard_service'],
        github_api=dependencies['github_api'],
        retry_service=dependencies['retry_service'],
        cache_service=dependencies['cache_service'],
        ui=dependencies['ui'],
        batch_size=get_batch_size(),
    )
    dependencies['session_service'] = SessionService(
        handler=dependencies['command_handler'],
        ui=dependencies['ui'],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies

# --- Typer App Definition ---
app = typer.Typer(
    name="shiptracker",
    help="Ship Tracker: a GitHub commit activity leaderboard with rate-limit aware fetching.",
    add_completion=False,
)

# --- Helper for Running Async Commands ---
def run_async(dependencies: Dict[str, Any], coro: Coroutine[Any, Any, T]) -> T:
    """Runs a coroutine to completion and closes the HTTP client afterwards."""
    async def _runner() -> T:
        try:
            return await coro
        finally:
            await dependencies['github_api'].aclose()

    return asyncio.run(_runner())

# --- CLI Options ---

SortOption = Annotated[
    SortKey,
    typer.Option("--sort-by", "-s", case_sensitive=False, help="Leaderboard column to sort by.")
]
AscendingOption = Annotated[
    bool,
    typer.Option("--asc", help="Sort ascending instead of descending.")
]

# --- CLI Commands ---

@app.command()
def add(
    ctx: typer.Context,
    usernames: Annotated[List[str], typer.Argument(help="GitHub usernames to add.")],
    sort_by: SortOption = SortKey.COMMITS_PER_WEEK,
    asc: AscendingOption = False,
):
    """Fetch stats for GitHub users one at a time and show the leaderboard."""
    dependencies = ctx.obj
    handler: CommandHandler = dependencies['command_handler']
    handler.set_sort(sort_by, descending=not asc)
    summary = run_async(dependencies, handler.handle_add(usernames))
    handler.show_leaderboard()
    if summary.all_failed:
        raise typer.Exit(code=1)

@app.command(name="import-csv")
def import_csv(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(
        exists=True, file_okay=True, dir_okay=False, readable=True, resolve_path=True,
        help="CSV file with a 'username' column (or usernames in the first column).",
    )],
    batch_size: Annotated[Optional[int], typer.Option("--batch-size", "-b", min=1, help="Concurrent requests per batch.")] = None,
    sort_by: SortOption = SortKey.COMMITS_PER_WEEK,
    asc: AscendingOption = False,
):
    """Bulk import GitHub users from a CSV file in rate-limit friendly batches."""
    dependencies = ctx.obj
    handler: CommandHandler = dependencies['command_handler']
    handler.set_sort(sort_by, descending=not asc)
    summary = run_async(dependencies, handler.handle_import_csv(file, batch_size))
    handler.show_leaderboard()
    if summary.all_failed:
        raise typer.Exit(code=1)

@app.command(name="rate-limit")
def rate_limit(ctx: typer.Context):
    """Show the remaining GitHub API quota."""
    dependencies = ctx.obj
    handler: CommandHandler = dependencies['command_handler']
    run_async(dependencies, handler.handle_rate_limit())

@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
    token: Annotated[Optional[str], typer.Option("--token", help="GitHub token (overrides GITHUB_TOKEN).")] = None,
):
    """Main entry point. Starts an interactive session if no command is given."""
    ctx.obj = create_dependencies(verbose=verbose, token=token)
    if ctx.invoked_subcommand is None:
        logger.info("No command invoked, starting interactive session.")
        session: SessionService = ctx.obj['session_service']
        run_async(ctx.obj, session.run())

# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()

if __name__ == "__main__":
    cli_entry_point()
