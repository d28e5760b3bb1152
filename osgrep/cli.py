"""CLI interface for osgrep."""

import logging
import signal
import sys
from pathlib import Path
from typing import Any, NoReturn, Optional

import click

from .api import StoreClient
from .cli_progress import SyncProgressDisplay
from .config import config
from .exceptions import LeaseHeldError, OsgrepError
from .hooks import handle_session_end, handle_session_start, read_payload
from .lease import acquire_lease, release_lease, stop_lease_owner
from .output import OutputFormatter
from .store_resolver import get_auto_store_id
from .sync import IncrementalWatcher, SyncEngine, SyncResult

logger = logging.getLogger(__name__)


def _resolve_store(ctx: Any, root: Path) -> str:
    """Store given on the command line or in config, else derived from root."""
    return ctx.obj["store"] or config.store or get_auto_store_id(root)


def _create_client(ctx: Any) -> StoreClient:
    return StoreClient(api_key=ctx.obj["api_key"])


def _run_initial_sync(
    ctx: Any,
    client: StoreClient,
    store: str,
    root: Path,
    force: bool,
    workers: Optional[int],
) -> SyncResult:
    """Run one sync pass with a spinner and print its summary."""
    out: OutputFormatter = ctx.obj["out"]
    engine = SyncEngine(
        client,
        max_workers=workers or config.max_workers,
        max_file_size=config.max_file_size,
    )

    if out.interactive:
        with SyncProgressDisplay(root) as display:
            result = engine.sync(
                store, root, force=force, progress_callback=display.update
            )
    else:
        result = engine.sync(store, root, force=force)

    out.success(
        f"Initial sync complete ({result.processed}/{result.total}) "
        f"• uploaded {result.uploaded}"
    )
    if result.deleted:
        out.info(f"  Removed {result.deleted} stale document(s)")
    if result.failed:
        out.warning(
            f"  {result.failed} file(s) failed, they will be retried next sync"
        )
    return result


def _install_sigterm_handler() -> None:
    def _exit(signum: int, frame: Any) -> NoReturn:
        raise SystemExit(0)

    signal.signal(signal.SIGTERM, _exit)


@click.group()
@click.option("--store", "-s", envvar="OSGREP_STORE", help="Store to sync into")
@click.option("--api-key", "-k", envvar="OSGREP_API_KEY", help="Store API key")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="osgrep")
@click.pass_context
def main(
    ctx: Any,
    store: Optional[str],
    api_key: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """osgrep - keep a semantic search store in sync with a directory."""
    ctx.ensure_object(dict)
    ctx.obj["store"] = store
    ctx.obj["api_key"] = api_key
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("osgrep").setLevel(logging.DEBUG)
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--api-key",
    "-k",
    prompt="Enter your osgrep API key",
    hide_input=True,
    help="Store API key",
)
@click.pass_context
def init(ctx: Any, api_key: str) -> None:
    """Store the API key in ~/.config/osgrep/config."""
    out: OutputFormatter = ctx.obj["out"]
    path = config.save_api_key(api_key.strip())
    out.success(f"✓ API key saved to {path}")


@main.command()
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.option("--force", "-f", is_flag=True, help="Re-upload every file")
@click.option(
    "--workers", "-w", type=click.IntRange(min=1), help="Concurrent uploads"
)
@click.pass_context
def sync(ctx: Any, path: Path, force: bool, workers: Optional[int]) -> None:
    """Run one full sync of PATH into the store."""
    out: OutputFormatter = ctx.obj["out"]
    root = path.resolve()

    try:
        store = _resolve_store(ctx, root)
        with _create_client(ctx) as client:
            out.info(f"Syncing {root} into store {store}")
            result = _run_initial_sync(ctx, client, store, root, force, workers)
    except OsgrepError as e:
        out.error(f"Sync failed: {e}")
        ctx.exit(1)

    if out.json_output:
        out.output_json({"store": store, **result.to_dict()})


@main.command()
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.option(
    "--workers", "-w", type=click.IntRange(min=1), help="Concurrent uploads"
)
@click.pass_context
def watch(ctx: Any, path: Path, workers: Optional[int]) -> None:
    """Sync PATH, then keep the store updated as files change."""
    out: OutputFormatter = ctx.obj["out"]
    root = path.resolve()

    try:
        acquire_lease(root)
    except LeaseHeldError as e:
        out.error(str(e))
        ctx.exit(1)

    _install_sigterm_handler()
    try:
        store = _resolve_store(ctx, root)
        with _create_client(ctx) as client:
            try:
                _run_initial_sync(ctx, client, store, root, False, workers)
            except OsgrepError:
                out.error("Initial upload failed")
                raise

            watcher = IncrementalWatcher(
                client,
                store,
                root,
                max_workers=workers or config.max_workers,
                max_file_size=config.max_file_size,
                debounce=config.debounce,
            )
            out.info(f"Watching for file changes in {root}")
            try:
                watcher.run_forever()
            except KeyboardInterrupt:
                out.info("Stopped watching")
    except OsgrepError as e:
        out.error(f"Failed to start watcher: {e}")
        ctx.exit(1)
    finally:
        release_lease(root)


@main.command()
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.pass_context
def stop(ctx: Any, path: Path) -> None:
    """Stop the watcher running for PATH."""
    out: OutputFormatter = ctx.obj["out"]
    if stop_lease_owner(path.resolve()):
        out.success("Watcher stopped")
    else:
        out.info("No watcher running")


@main.command("store-id")
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.pass_context
def store_id(ctx: Any, path: Path) -> None:
    """Print the store name used for PATH."""
    out: OutputFormatter = ctx.obj["out"]
    store = _resolve_store(ctx, path.resolve())
    if out.json_output:
        out.output_json({"store": store})
    else:
        click.echo(store)


@main.group()
def hook() -> None:
    """Session hooks for editor and agent integrations."""


@hook.command("start")
@click.pass_context
def hook_start(ctx: Any) -> None:
    """SessionStart hook: start a background watcher."""
    response = handle_session_start(read_payload(sys.stdin))
    ctx.obj["out"].output_json(response)


@hook.command("stop")
@click.pass_context
def hook_stop(ctx: Any) -> None:
    """SessionEnd hook: stop the background watcher."""
    response = handle_session_end(read_payload(sys.stdin))
    ctx.obj["out"].output_json(response)


if __name__ == "__main__":
    main()
