"""CLI entry point for the image enhancement pipeline."""

import json
import sys
from pathlib import Path

import click
from loguru import logger

from .api.dropbox import DropboxClient
from .concurrency import acquire_global_lock
from .config import PipelineConfig
from .cursor_store import CursorStore
from .enhance import ImageEnhancer, resolve_settings
from .errors import PipelineError, describe_error
from .models import RunSummary
from .orchestrator import RunOrchestrator

log = logger.bind(stage="cli")


def _find_config_file() -> Path | None:
    """Look for .env next to the package or in cwd."""
    pkg_dir = Path(__file__).resolve().parent
    for candidate in [
        pkg_dir.parent.parent / ".env",  # dev: src/../.env
        Path.cwd() / ".env",
    ]:
        if candidate.is_file():
            return candidate
    return None


def _load_config(ctx: click.Context) -> PipelineConfig:
    opts = ctx.obj or {}
    env_file = opts.get("config_file") or _find_config_file()
    config_kwargs: dict[str, object] = {"_env_file": env_file}
    if opts.get("verbose"):
        config_kwargs["verbose"] = True
        config_kwargs["log_level"] = "DEBUG"
    config = PipelineConfig(**config_kwargs)  # type: ignore[arg-type]
    config.setup_logging()
    if env_file:
        log.debug(f"Loaded env from {env_file}")
    return config


def _print_summary(summary: RunSummary) -> None:
    click.echo(
        f"\nRun {summary.request_id} ({summary.trigger}) finished in "
        f"{summary.duration_seconds:.1f}s"
    )
    click.echo(
        f"  pages={summary.pages_scanned} entries={summary.entries_seen} "
        f"files={summary.files_scanned}"
    )
    click.echo(
        f"  enqueued={summary.enqueued_jobs} succeeded={summary.succeeded_jobs} "
        f"failed={summary.failed_jobs}"
    )
    if summary.skipped_total:
        click.echo("  skipped:")
        for reason, count in summary.skipped.items():
            if count:
                click.echo(f"    {reason}: {count}")


@click.group()
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to .env file.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_file: Path | None, verbose: bool) -> None:
    """Enhance new images from a Dropbox folder with OpenAI image models."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["verbose"] = verbose


@main.command()
@click.option(
    "--trigger",
    default="manual",
    show_default=True,
    help="Label recorded in the run summary (manual, webhook, timer, ...).",
)
@click.option("--request-id", default=None, help="Run identifier for log correlation.")
@click.option("--no-lock", is_flag=True, help="Skip the single-instance lock.")
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    trigger: str,
    request_id: str | None,
    no_lock: bool,
    as_json: bool,
) -> None:
    """Process every image added since the last run.

    Exits 1 on configuration or scan failure, 2 if any single file failed.
    """
    config = _load_config(ctx)

    try:
        # Config problems surface before any lock, DB, or network activity
        resolve_settings(config)
        config.require_dropbox_auth()
        config.require_openai_auth()

        config.ensure_dirs()
        lock = acquire_global_lock(config.lock_dir, skip=no_lock)
        try:
            cursor_store = CursorStore(config.cursor_db_path)
            try:
                with DropboxClient.from_config(config) as storage:
                    orchestrator = RunOrchestrator(
                        config=config,
                        storage=storage,
                        cursor_store=cursor_store,
                        enhancer=ImageEnhancer.from_config(config),
                    )
                    summary = orchestrator.run_once(trigger=trigger, request_id=request_id)
            finally:
                cursor_store.close()
        finally:
            if lock is not None:
                lock.close()
    except PipelineError as e:
        log.error(describe_error(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(summary.as_dict(), indent=2))
    else:
        _print_summary(summary)

    if summary.failed_jobs:
        sys.exit(2)


@main.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Validate configuration and Dropbox credentials."""
    config = _load_config(ctx)

    try:
        settings = resolve_settings(config)
        config.require_dropbox_auth()
        config.require_openai_auth()
        with DropboxClient.from_config(config) as storage:
            account = storage.get_current_account()
    except PipelineError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    name = (account.get("name") or {}).get("display_name", "")
    click.echo(f"Dropbox auth: {config.dropbox_auth_mode} ({name or account.get('email', '?')})")
    click.echo(f"Input: {config.dropbox_input_path} -> Output: {config.dropbox_output_path}")
    click.echo(
        f"Enhancement: endpoint={settings.endpoint} model={settings.image_model} "
        f"quality={settings.quality} format={settings.output_format}"
    )


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the stored listing cursor."""
    config = _load_config(ctx)
    try:
        store = CursorStore(config.cursor_db_path)
    except PipelineError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    try:
        cursor = store.get()
        if cursor is None:
            click.echo("No cursor stored: next run performs a full listing.")
        else:
            click.echo(f"Cursor: {cursor[:24]}... (updated {store.updated_at()})")
    finally:
        store.close()
