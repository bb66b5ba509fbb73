"""
Main sync engine for LeetCode → Markdown synchronization.

Orchestrates:
- Incremental submission fetching (pagination driver)
- Detail enrichment
- Store merge
- Page rendering
- Contest pages
- Git operations
- State management
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from .config import Config
from .contests import CONTEST_LIST_PAGE, INDEX_PAGE, ContestIndexer, load_contests
from .git_handler import GitHandler
from .leetcode_api import (
    MAX_RETRIES,
    PAGE_SIZE,
    LeetCodeAPI,
    LeetCodeAPIError,
    QuestionData,
    Submission,
)
from .markdown_renderer import ProblemRenderer
from .reconciler import SeenMap, merge_submission, reconcile_page
from .store import ProcessedSubmissions, SubmissionStore, TimestampStore

console = Console()

PAGE_DELAY = 1.0
BACKFILL_DELAY = 1.0


@dataclass
class SyncResult:
    """Result of a sync operation."""

    submissions_fetched: int = 0
    submissions_merged: list[str] = field(default_factory=list)
    submissions_stale: list[str] = field(default_factory=list)
    submissions_locked: list[str] = field(default_factory=list)
    pages_written: list[str] = field(default_factory=list)
    pages_skipped: list[str] = field(default_factory=list)
    pages_failed: list[str] = field(default_factory=list)
    last_timestamp: Optional[int] = None
    commit_created: bool = False
    pushed: bool = False

    @property
    def success(self) -> bool:
        """Check if sync was successful."""
        return len(self.pages_failed) == 0


class SyncEngine:
    """
    Main orchestrator for LeetCode → Markdown synchronization.

    One pass:
    1. Read the high-water mark and the processed submissions store
    2. Page through new submissions, filtering near-duplicates
    3. Enrich each with code and problem metadata
    4. Merge into the store; save store, then the new high-water mark
    5. Render one page per problem (and contest pages, if fetched)
    6. Optionally commit and push
    """

    def __init__(
        self,
        config: Config,
        api: Optional[LeetCodeAPI] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize sync engine.

        Args:
            config: Configuration instance.
            api: Optional API client; built from config on first use.
            sleep: Delay function for page spacing and retries.
        """
        self.config = config
        self.sleep = sleep
        self._api = api
        self.submission_store = SubmissionStore(config.processed_submissions_file)
        self.timestamp_store = TimestampStore(config.timestamp_file)
        self.git_handler = GitHandler(config)

    @property
    def api(self) -> LeetCodeAPI:
        if self._api is None:
            self._api = LeetCodeAPI(self.config, sleep=self.sleep)
        return self._api

    def sync(
        self,
        fetch: bool = True,
        commit: bool = False,
        push: bool = False,
    ) -> SyncResult:
        """
        Perform a full pass.

        Args:
            fetch: Pull new submissions before rendering.
            commit: Commit the changed pages and state files.
            push: Push after committing.

        Returns:
            SyncResult with details of the operation.
        """
        result = SyncResult()

        console.print("\n[bold blue]🔄 Starting LeetCode Sync[/bold blue]\n")

        store = self.fetch(result) if fetch else None
        self.render(result, store)

        if commit:
            self.commit(result, push=push)

        self._print_summary(result)
        return result

    def fetch(self, result: Optional[SyncResult] = None) -> ProcessedSubmissions:
        """
        Pull new submissions and merge them into the store.

        The store is saved before the timestamp so an interrupted pass
        re-fetches instead of losing submissions.

        Raises:
            ValueError: If credentials are missing.
            StoreError: If the existing store is malformed.
            LeetCodeAPIError: If a page or detail request exhausts its retries.
        """
        result = result or SyncResult()
        self.config.require_credentials()

        store = self.submission_store.load()
        last_timestamp = self.timestamp_store.load()

        submissions, newest_timestamp = self.fetch_new_submissions(last_timestamp)
        result.submissions_fetched = len(submissions)

        console.log(f"Syncing {len(submissions)} submissions...")
        self.enrich_and_merge(submissions, store, result)

        self.submission_store.save(store)

        if newest_timestamp is not None and newest_timestamp > last_timestamp:
            self.timestamp_store.save(newest_timestamp)
            result.last_timestamp = newest_timestamp
        else:
            result.last_timestamp = last_timestamp

        console.log("Done syncing all submissions.")
        return store

    def fetch_new_submissions(self, last_timestamp: int) -> tuple[list[Submission], Optional[int]]:
        """
        Page through the submission list until the high-water mark.

        The first page is requested without retries so bad credentials
        fail fast; later pages retry with backoff and are spaced by
        PAGE_DELAY.

        Args:
            last_timestamp: High-water mark in ms since epoch.

        Returns:
            Tuple of (new submissions, newest timestamp on the first page
            in ms or None when the remote returned nothing).
        """
        last_timestamp_secs = last_timestamp / 1000
        seen: SeenMap = {}
        submissions: list[Submission] = []
        newest_timestamp = None
        offset = 0

        while True:
            console.log(f"Getting submissions from LeetCode, offset {offset}")
            if offset > 0:
                self.sleep(PAGE_DELAY)
            page = self.api.get_submission_list(
                offset,
                limit=PAGE_SIZE,
                max_retries=0 if offset == 0 else MAX_RETRIES,
            )

            if offset == 0 and page.submissions:
                newest_timestamp = page.submissions[0].timestamp * 1000

            batch, keep_going = reconcile_page(
                page.submissions,
                last_timestamp_secs,
                self.config.filter_duplicate_secs,
                seen,
            )
            submissions.extend(batch)

            if not keep_going or not page.has_next:
                break
            offset += PAGE_SIZE

        return submissions, newest_timestamp

    def enrich_and_merge(
        self,
        submissions: list[Submission],
        store: ProcessedSubmissions,
        result: SyncResult,
    ) -> None:
        """Fetch details and metadata for each submission and merge it."""
        question_cache: dict[str, Optional[QuestionData]] = {}

        for index, submission in enumerate(submissions):
            label = f"{submission.title_slug} in {submission.lang}"
            if self.config.verbose:
                console.log(f"[dim]index: {index}, submission: #{submission.id} {label}[/dim]")

            enriched = self.api.get_submission_details(submission)
            if enriched is None:
                result.submissions_locked.append(label)
                continue

            question_data = self._question_data(enriched.title_slug, store, question_cache)
            if question_data is None:
                result.submissions_locked.append(label)
                continue

            if merge_submission(store, enriched, question_data):
                console.log(f"Added/Updated submission for {label}")
                result.submissions_merged.append(label)
            else:
                console.log(f"[dim]Skipping older submission for {label}[/dim]")
                result.submissions_stale.append(label)

    def _question_data(
        self,
        title_slug: str,
        store: ProcessedSubmissions,
        cache: dict[str, Optional[QuestionData]],
    ) -> Optional[QuestionData]:
        """Cached metadata from the store, else fetched once per pass."""
        record = store.get(title_slug)
        if record is not None:
            return record.question_data
        if title_slug not in cache:
            cache[title_slug] = self.api.get_question_data(title_slug)
        return cache[title_slug]

    def render(
        self,
        result: Optional[SyncResult] = None,
        store: Optional[ProcessedSubmissions] = None,
    ) -> SyncResult:
        """
        Render every stored problem, then the contest pages if contest
        data has been fetched.
        """
        result = result or SyncResult()
        if store is None:
            store = self.submission_store.load()

        renderer = ProblemRenderer(self.config)
        for record in store:
            try:
                path = renderer.write(record)
            except (ValueError, OSError) as e:
                console.log(f"[red]Failed to render '{record.title_slug}': {e}[/red]")
                result.pages_failed.append(record.title_slug)
                continue

            if path is None:
                result.pages_skipped.append(record.title_slug)
            else:
                result.pages_written.append(path.name)

        console.log(f"Done processing submissions from {self.submission_store.path.name}")

        if self.config.contests_file.exists():
            self.generate_contest_pages(store)

        return result

    def generate_contest_pages(self, store: Optional[ProcessedSubmissions] = None) -> None:
        """Rebuild index.md and contests_list.md from fetched contest data."""
        if store is None:
            store = self.submission_store.load()
        contests = load_contests(self.config.contests_file)
        ContestIndexer(self.config).generate_pages(store, contests)

    def fetch_contests(self) -> None:
        """Download contest data for the contest pages."""
        ContestIndexer(self.config, api=self._api, sleep=self.sleep).fetch_contests()

    def annotate_contests(self) -> int:
        """Record contest membership in the store's question data."""
        store = self.submission_store.load()
        contests = load_contests(self.config.contests_file)
        annotated = ContestIndexer(self.config).annotate_store(store, contests)
        self.submission_store.save(store)
        return annotated

    def backfill_question_ids(self) -> tuple[int, int]:
        """
        Refetch metadata for stored problems cached without a questionId.

        Returns:
            Tuple of (updated, failed) counts.
        """
        self.config.require_credentials()
        store = self.submission_store.load()
        missing = [r for r in store if not r.question_data.question_id]
        console.log(f"Found {len(missing)} of {len(store)} problems without a questionId")

        updated = failed = 0
        for index, record in enumerate(missing):
            if index > 0:
                self.sleep(BACKFILL_DELAY)
            try:
                fresh = self.api.get_question_data(record.title_slug)
            except LeetCodeAPIError as e:
                console.log(f"[red]Error processing {record.title_slug}: {e}[/red]")
                failed += 1
                continue

            if fresh is None or not fresh.question_id:
                console.log(f"[red]Failed to get questionId for {record.title_slug}[/red]")
                failed += 1
                continue

            record.question_data = QuestionData.from_dict({
                **record.question_data.to_dict(),
                **fresh.to_dict(),
            })
            updated += 1
            console.log(f"[green]Updated {record.title_slug} with questionId: {fresh.question_id}[/green]")

        self.submission_store.save(store)
        console.log(f"Backfill complete: {updated} updated, {failed} errors")
        return updated, failed

    def commit(self, result: SyncResult, push: bool = False) -> None:
        """Commit (and optionally push) the sync's output."""
        if not self.git_handler.is_git_repo():
            console.log(f"[yellow]{self.config.repo_root} is not a git repository, skipping commit[/yellow]")
            return

        self.git_handler.configure_user()
        changes = self.git_handler.get_changes()
        if not changes.has_changes:
            console.log("[dim]No changes to commit[/dim]")
            return

        self.git_handler.stage(changes)
        message = self.git_handler.generate_commit_message(changes)
        result.commit_created = self.git_handler.commit(message)

        if push and result.commit_created:
            result.pushed = self.git_handler.push()

    def _print_summary(self, result: SyncResult) -> None:
        """Print sync summary."""
        console.print("\n" + "=" * 50)
        console.print("[bold]Sync Summary[/bold]")
        console.print("=" * 50)

        table = Table(show_header=False, box=None)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="white")

        table.add_row("New submissions", str(result.submissions_fetched))
        table.add_row("Merged", str(len(result.submissions_merged)))
        table.add_row("Older duplicates", str(len(result.submissions_stale)))
        table.add_row("Locked", str(len(result.submissions_locked)))
        table.add_row("Pages written", str(len(result.pages_written)))
        table.add_row("Pages skipped", str(len(result.pages_skipped)))
        table.add_row("Pages failed", str(len(result.pages_failed)))
        table.add_row("Commit created", "✓" if result.commit_created else "✗")
        table.add_row("Pushed to remote", "✓" if result.pushed else "✗")
        if self._api is not None:
            table.add_row("API requests", str(self._api.request_count))

        console.print(table)

        if result.submissions_merged:
            console.print(f"\n[green]Merged:[/green] {', '.join(result.submissions_merged)}")

        if result.pages_failed:
            console.print(f"\n[red]Failed:[/red] {', '.join(result.pages_failed)}")

        console.print("")

    def status(self) -> None:
        """Print current sync status."""
        console.print("\n[bold]Sync Status[/bold]\n")

        store = self.submission_store.load()
        if not len(store):
            console.print("[yellow]No problems have been synced yet.[/yellow]")
            console.print("Run 'leetcode-sync' to perform the initial sync.")
            return

        table = Table(title="Synced Problems")
        table.add_column("ID", style="cyan", justify="right")
        table.add_column("Problem", style="green")
        table.add_column("Languages", style="yellow")
        table.add_column("Latest Submission", style="blue")

        def sort_key(record):
            frontend_id = record.question_data.frontend_id
            return (0, int(frontend_id)) if frontend_id.isdigit() else (1, frontend_id)

        for record in sorted(store, key=sort_key):
            latest = record.latest_timestamp
            table.add_row(
                record.question_data.frontend_id,
                record.question_data.title,
                ", ".join(sorted(record.submissions)),
                datetime.fromtimestamp(latest, tz=timezone.utc).strftime("%Y-%m-%d %H:%M") if latest else "-",
            )

        console.print(table)

        last_timestamp = self.timestamp_store.load()
        if last_timestamp:
            last_sync = datetime.fromtimestamp(last_timestamp / 1000, tz=timezone.utc)
            console.print(f"\nHigh-water mark: {last_sync.strftime('%Y-%m-%d %H:%M UTC')}")

    def clean(self, confirm: bool = False) -> None:
        """
        Remove rendered pages and reset state.

        Args:
            confirm: Whether to proceed without confirmation.
        """
        if not confirm:
            console.print("[yellow]This will delete all rendered pages and reset sync state.[/yellow]")
            if not Confirm.ask("Are you sure?", default=False):
                console.print("Aborted.")
                return

        store = self.submission_store.load()
        renderer = ProblemRenderer(self.config)
        paths = [renderer.file_path(record) for record in store]
        paths += [self.config.destination_dir / INDEX_PAGE, self.config.destination_dir / CONTEST_LIST_PAGE]
        paths += [self.config.processed_submissions_file, self.config.timestamp_file]

        for path in paths:
            if path.exists():
                path.unlink()
                console.print(f"Removed: {path}")

        console.print("[green]Clean complete.[/green]")
