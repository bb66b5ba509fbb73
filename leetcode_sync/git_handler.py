"""
Git plumbing for committing rendered pages and sync state.

Handles:
- Change detection in the destination folder
- Commit message generation with the configured header
- Staging and committing
- Push operations
"""

import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from rich.console import Console

from .config import Config
from .contests import CONTEST_LIST_PAGE, INDEX_PAGE

console = Console()

INDEX_PAGES = {INDEX_PAGE, CONTEST_LIST_PAGE}


class ChangeType(Enum):
    """Kind of change reported by git status."""
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


@dataclass
class FileChange:
    """One changed path under the tracked sync outputs."""

    path: Path
    change_type: ChangeType
    old_path: Optional[Path] = None  # For renames

    @property
    def problem(self) -> Optional[str]:
        """
        Problem page name for this file, if it is one.

        Examples:
            problems/0001-two-sum.md -> "0001-two-sum"
            problems/index.md -> None
            processed-submissions.json -> None
        """
        if self.path.suffix != ".md" or self.path.name in INDEX_PAGES:
            return None
        return self.path.stem

    @property
    def is_index(self) -> bool:
        return self.path.name in INDEX_PAGES


@dataclass
class SyncChanges:
    """Changed pages and state files after a pass."""

    files: list[FileChange] = field(default_factory=list)

    @property
    def problems_changed(self) -> list[str]:
        return sorted({f.problem for f in self.files if f.problem})

    @property
    def problems_added(self) -> list[str]:
        return sorted({
            f.problem for f in self.files
            if f.problem and f.change_type == ChangeType.ADDED
        })

    @property
    def has_index_changes(self) -> bool:
        return any(f.is_index for f in self.files)

    @property
    def has_changes(self) -> bool:
        return len(self.files) > 0


class GitHandler:
    """
    Stages, commits and pushes the output of a sync pass.

    Commits the rendered pages together with the state files so the
    next run starts from what was committed.
    """

    def __init__(self, config: Config):
        self.config = config
        self.repo_root = config.repo_root

    def _run_git(
        self,
        *args: str,
        capture_output: bool = True,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        """Run a git command."""
        cmd = ["git", "-C", str(self.repo_root)] + list(args)

        if self.config.verbose:
            console.log(f"[dim]Running: {' '.join(cmd)}[/dim]")

        return subprocess.run(
            cmd,
            capture_output=capture_output,
            text=True,
            check=check,
        )

    @property
    def tracked_paths(self) -> list[str]:
        """Paths the sync writes, relative to the repo root."""
        return [
            self.config.destination_folder,
            self.config.timestamp_file.name,
            self.config.processed_submissions_file.name,
            self.config.contests_file.name,
        ]

    def is_git_repo(self) -> bool:
        """Check if repo_root is a git repository."""
        try:
            self._run_git("rev-parse", "--git-dir")
            return True
        except subprocess.CalledProcessError:
            return False

    def configure_user(self) -> None:
        """Configure git user for commits, when one is configured."""
        try:
            if self.config.git_user_name:
                self._run_git("config", "user.name", self.config.git_user_name)
            if self.config.git_user_email:
                self._run_git("config", "user.email", self.config.git_user_email)
        except subprocess.CalledProcessError as e:
            console.log(f"[yellow]Warning: Could not configure git user: {e}[/yellow]")

    def get_changes(self) -> SyncChanges:
        """
        Detect changes in the paths the sync writes.

        Parses ``git status --porcelain=v1`` output, one ``XY PATH``
        entry per line.
        """
        changes = SyncChanges()

        try:
            result = self._run_git("status", "--porcelain=v1", "-uall", "--", *self.tracked_paths)
        except subprocess.CalledProcessError:
            return changes

        for line in result.stdout.splitlines():
            if len(line) < 4:
                continue

            status, path_str = line[:2], line[3:].strip()
            if not path_str:
                continue

            if " -> " in path_str:
                old_path, new_path = path_str.split(" -> ", 1)
                changes.files.append(FileChange(
                    path=Path(new_path.strip()),
                    change_type=ChangeType.RENAMED,
                    old_path=Path(old_path.strip()),
                ))
                continue

            idx_status, wt_status = status[0], status[1]
            if idx_status == "?" or wt_status == "?" or idx_status == "A":
                change_type = ChangeType.ADDED
            elif idx_status == "D" or wt_status == "D":
                change_type = ChangeType.DELETED
            else:
                change_type = ChangeType.MODIFIED

            changes.files.append(FileChange(path=Path(path_str), change_type=change_type))

        return changes

    def stage(self, changes: SyncChanges) -> None:
        """Stage the detected changes."""
        paths = []
        for change in changes.files:
            paths.append(str(change.path))
            if change.old_path:
                paths.append(str(change.old_path))
        if paths:
            self._run_git("add", "-A", "--", *paths)

    def generate_commit_message(self, changes: SyncChanges) -> str:
        """
        Build a commit message prefixed with the configured header.

        - One problem changed: "<header> Add <problem>" or "Update <problem>"
        - Several problems: "<header> Sync N problems", list in body
        - Index pages only: "<header> Update contest index"
        """
        header = self.config.commit_header.strip()
        problems = changes.problems_changed

        if len(problems) == 1:
            problem = problems[0]
            action = "Add" if problem in changes.problems_added else "Update"
            subject = f"{action} {problem}"
            return f"{header} {subject}".strip()

        if len(problems) > 1:
            added = changes.problems_added
            body = "\n".join(
                f"- {p}{' (new)' if p in added else ''}" for p in problems
            )
            return f"{header} Sync {len(problems)} problems".strip() + f"\n\n{body}"

        if changes.has_index_changes:
            return f"{header} Update contest index".strip()

        return f"{header} Update sync state".strip()

    def commit(self, message: str) -> bool:
        """
        Create a commit with the given message.

        Returns:
            True if commit was created, False if nothing to commit.
        """
        if self.config.dry_run:
            console.print(f"[yellow]Dry run - would commit:[/yellow]\n{message}")
            return True

        try:
            result = self._run_git("diff", "--cached", "--quiet", check=False)
            if result.returncode == 0:
                console.log("[dim]No changes to commit[/dim]")
                return False

            self._run_git("commit", "-m", message)
            console.log(f"[green]Committed:[/green] {message.splitlines()[0]}")
            return True

        except subprocess.CalledProcessError as e:
            console.log(f"[red]Commit failed: {e.stderr or e}[/red]")
            return False

    def push(self, remote: str = "origin", branch: Optional[str] = None) -> bool:
        """
        Push commits to remote.

        Returns:
            True if push succeeded.
        """
        branch = branch or self.get_current_branch()

        if self.config.dry_run:
            console.print(f"[yellow]Dry run - would push to {remote}/{branch}[/yellow]")
            return True

        try:
            result = self._run_git("remote", "get-url", remote, check=False)
            if result.returncode != 0:
                console.log(f"[yellow]Remote '{remote}' not configured, skipping push[/yellow]")
                return False

            self._run_git("push", remote, branch)
            console.log(f"[green]Pushed to {remote}/{branch}[/green]")
            return True

        except subprocess.CalledProcessError as e:
            console.log(f"[red]Push failed: {e.stderr or e}[/red]")
            return False

    def get_current_branch(self) -> str:
        """Get the current branch name."""
        try:
            result = self._run_git("rev-parse", "--abbrev-ref", "HEAD")
            return result.stdout.strip()
        except subprocess.CalledProcessError:
            return "main"
