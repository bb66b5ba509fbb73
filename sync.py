#!/usr/bin/env python3
"""
LeetCode → Markdown Sync CLI

Usage:
    leetcode-sync                     # Fetch new submissions and render pages
    leetcode-sync --commit --push     # ...then commit and push the changes
    leetcode-sync --no-fetch          # Render from processed-submissions.json only
    leetcode-sync --test-config test_config.py   # Use a local config module
    leetcode-sync status              # Show sync status
    leetcode-sync clean               # Remove rendered pages and state
    leetcode-sync backfill-ids        # Fill in missing question ids
    leetcode-sync contests fetch      # Download contest data
    leetcode-sync contests annotate   # Tag stored problems with their contest
    leetcode-sync contests pages      # Rebuild index.md and contests_list.md
"""

import sys
from pathlib import Path
from typing import Callable

import click
from dotenv import load_dotenv
from rich.console import Console

from leetcode_sync import __version__
from leetcode_sync.config import Config
from leetcode_sync.store import StoreError
from leetcode_sync.sync_engine import SyncEngine

console = Console()


@click.group(invoke_without_command=True)
@click.option("--no-fetch", is_flag=True, help="Only render from the processed submissions store")
@click.option("--commit", is_flag=True, help="Commit changed pages and state files")
@click.option("--push", is_flag=True, help="Push after committing (implies --commit)")
@click.option("--dry-run", is_flag=True, help="Preview git operations without running them")
@click.option("--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--test-config",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Read settings from a local config module instead of the environment",
)
@click.pass_context
def cli(ctx, no_fetch: bool, commit: bool, push: bool, dry_run: bool, verbose: bool, test_config):
    """
    LeetCode → Markdown Sync

    Mirrors accepted LeetCode submissions into Markdown pages.
    """
    ctx.ensure_object(dict)
    ctx.obj["no_fetch"] = no_fetch
    ctx.obj["commit"] = commit or push
    ctx.obj["push"] = push
    ctx.obj["dry_run"] = dry_run
    ctx.obj["verbose"] = verbose
    ctx.obj["test_config"] = test_config

    # If no subcommand, run sync
    if ctx.invoked_subcommand is None:
        ctx.invoke(sync)


def load_config(ctx, require_credentials: bool) -> Config:
    """Load config from the test module or the environment and apply CLI overrides."""
    load_dotenv()

    test_config = ctx.obj.get("test_config")
    if test_config:
        config = Config.from_module(test_config, require_credentials=require_credentials)
    else:
        config = Config.from_env(require_credentials=require_credentials)

    if ctx.obj.get("dry_run"):
        config.dry_run = True
    if ctx.obj.get("verbose"):
        config.verbose = True

    return config


def run(ctx, action: Callable[[SyncEngine], object], require_credentials: bool = False):
    """Build an engine and run ``action`` with uniform error handling."""
    try:
        config = load_config(ctx, require_credentials)
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        console.print("\n[dim]Set the variables in your environment or a .env file.[/dim]")
        sys.exit(1)

    try:
        return action(SyncEngine(config))
    except StoreError as e:
        console.log(f"[red]State error:[/red] {e}")
        sys.exit(1)
    except ValueError as e:
        console.log(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Sync cancelled.[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.log(f"[red]Error:[/red] {e}")
        console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def sync(ctx):
    """Fetch new submissions, then render every problem page."""
    fetch = not ctx.obj.get("no_fetch")

    result = run(
        ctx,
        lambda engine: engine.sync(
            fetch=fetch,
            commit=ctx.obj.get("commit", False),
            push=ctx.obj.get("push", False),
        ),
        require_credentials=fetch,
    )

    # Exit with error code if any page failed
    if not result.success:
        sys.exit(1)


@cli.command()
@click.pass_context
def render(ctx):
    """Render pages from processed-submissions.json without fetching."""
    result = run(ctx, lambda engine: engine.render())
    if not result.success:
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx):
    """Show current sync status."""
    run(ctx, lambda engine: engine.status())


@cli.command()
@click.option("--yes", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def clean(ctx, yes: bool):
    """Remove rendered pages and reset state."""
    run(ctx, lambda engine: engine.clean(confirm=yes))


@cli.command("backfill-ids")
@click.pass_context
def backfill_ids(ctx):
    """Fetch question ids for stored problems that lack one."""
    run(ctx, lambda engine: engine.backfill_question_ids(), require_credentials=True)


@cli.group()
def contests():
    """Contest data and contest index pages."""


@contests.command("fetch")
@click.pass_context
def contests_fetch(ctx):
    """Download all past contests and their question lists."""
    run(ctx, lambda engine: engine.fetch_contests(), require_credentials=True)


@contests.command("annotate")
@click.pass_context
def contests_annotate(ctx):
    """Record each stored problem's contest in processed-submissions.json."""
    run(ctx, lambda engine: engine.annotate_contests())


@contests.command("pages")
@click.pass_context
def contests_pages(ctx):
    """Rebuild index.md and contests_list.md."""
    run(ctx, lambda engine: engine.generate_contest_pages())


@cli.command()
def version():
    """Show version information."""
    console.print(f"LeetCode → Markdown Sync v{__version__}")


if __name__ == "__main__":
    cli()
