"""Command line entry point."""

import logging
import signal
import threading
from pathlib import Path

import click
from github import Auth, Github

from review_notifier.cache import StateStore, get_cache_path, load_cache
from review_notifier.config import Config, ConfigError, get_config_path, load_config
from review_notifier.github_client import GitHubClient, GitHubError
from review_notifier.monitor import Monitor, MonitorSettings, PollCancelled
from review_notifier.notifications import DesktopNotifier, LogNotifier

logger = logging.getLogger(__name__)


def build_settings(config: Config, client: GitHubClient) -> MonitorSettings:
    """Fill in the defaults that need GitHub or the filesystem.

    Raises:
        GitHubError: If the author is not configured and the authenticated
            user cannot be resolved.
    """
    return MonitorSettings(
        assigned_query=config.assigned_query,
        author=config.author or client.current_user_login(),
        cache_file=config.cache_file or get_cache_path(),
        poll_interval=config.poll_interval,
        max_results=config.max_results,
    )


def install_signal_handlers(stop_event: threading.Event) -> None:
    def handler(signum, _frame):
        logger.info("Received %s, shutting down", signal.Signals(signum).name)
        stop_event.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Path to the configuration file. [default: {get_config_path()}]",
    envvar="REVIEW_NOTIFIER_CONFIG",
)
@click.option("--interval", type=click.IntRange(min=1), help="Poll interval in seconds.")
@click.option("--assigned-query", help="GitHub search query for review requests.")
@click.option("--author", help="GitHub login whose pull requests are tracked.")
@click.option(
    "--cache",
    "cache_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to the state file.",
)
@click.option("--max-results", type=click.IntRange(min=1), help="Result cap per search.")
@click.option("--once", is_flag=True, help="Poll a single time and exit.")
@click.option("--dry-run", is_flag=True, help="Log notifications instead of displaying them.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(
    config_path: Path | None,
    interval: int | None,
    assigned_query: str | None,
    author: str | None,
    cache_file: Path | None,
    max_results: int | None,
    once: bool,
    dry_run: bool,
    verbose: bool,
) -> None:
    """Notify about GitHub review requests and activity on your pull requests."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(config_path or get_config_path(), required=config_path is not None)
    except ConfigError as e:
        raise click.ClickException(str(e))

    if interval is not None:
        config.poll_interval = interval
    if assigned_query:
        config.assigned_query = assigned_query
    if author:
        config.author = author
    if cache_file is not None:
        config.cache_file = cache_file
    if max_results is not None:
        config.max_results = max_results

    github = Github(auth=Auth.Token(config.github_token), timeout=config.request_timeout)
    client = GitHubClient(github)
    try:
        settings = build_settings(config, client)
    except GitHubError as e:
        raise click.ClickException(f"failed to resolve current GitHub user: {e}")

    try:
        store = StateStore(load_cache(settings.cache_file))
    except OSError as e:
        raise click.ClickException(f"failed to read state file {settings.cache_file}: {e}")
    notifier = LogNotifier() if dry_run else DesktopNotifier()
    stop_event = threading.Event()
    monitor = Monitor(settings, client, notifier, store, stop_event)

    logger.info(
        "Starting review notifier (interval=%ss, author=%s, cache=%s)",
        settings.poll_interval,
        settings.author,
        settings.cache_file,
    )

    if once:
        try:
            monitor.poll()
        except PollCancelled:
            return
        if store.mark_initialized():
            monitor.persist()
        return

    install_signal_handlers(stop_event)
    monitor.run()


if __name__ == "__main__":
    main()
