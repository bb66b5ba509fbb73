"""
Configuration management for LeetCode → Markdown sync.

Loads settings from environment variables (or a local config module
in test mode) and provides structured configuration for all sync
components.
"""

import importlib.util
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

DEFAULT_DESTINATION_FOLDER = "problems"
DEFAULT_FILTER_DUPLICATE_SECS = 86400
DEFAULT_COMMIT_HEADER = "[LeetCode Sync]"


def _as_bool(value: Any) -> bool:
    """Interpret env-style booleans ("true", "1", True)."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass
class Config:
    """
    Central configuration for the sync system.

    All secrets are loaded from env vars or the test config module,
    never hardcoded.
    """

    # LeetCode credentials
    leetcode_csrf_token: Optional[str] = None
    leetcode_session: Optional[str] = None

    # Output
    destination_folder: str = DEFAULT_DESTINATION_FOLDER
    templates_dir: Optional[Path] = None

    # Sync behavior
    filter_duplicate_secs: int = DEFAULT_FILTER_DUPLICATE_SECS
    verbose: bool = False
    dry_run: bool = False

    # Git settings
    commit_header: str = DEFAULT_COMMIT_HEADER
    git_user_name: Optional[str] = None
    git_user_email: Optional[str] = None

    # Paths
    repo_root: Path = field(default_factory=lambda: Path.cwd())

    @property
    def destination_dir(self) -> Path:
        """Folder that receives the rendered markdown pages."""
        return self.repo_root / self.destination_folder

    @property
    def timestamp_file(self) -> Path:
        """Path to the high-water-mark JSON file."""
        return self.repo_root / "last_timestamp.json"

    @property
    def processed_submissions_file(self) -> Path:
        """Path to the processed submissions JSON document."""
        return self.repo_root / "processed-submissions.json"

    @property
    def contests_file(self) -> Path:
        """Path to the fetched contest data."""
        return self.repo_root / "leetcode-contests.json"

    def require_credentials(self) -> None:
        """
        Fail fast when the LeetCode credential pair is missing.

        Raises:
            ValueError: If either token is missing.
        """
        if not self.leetcode_csrf_token:
            raise ValueError(
                "LEETCODE_CSRF_TOKEN is required.\n"
                "Copy the 'csrftoken' cookie from a logged-in leetcode.com session."
            )
        if not self.leetcode_session:
            raise ValueError(
                "LEETCODE_SESSION is required.\n"
                "Copy the 'LEETCODE_SESSION' cookie from a logged-in leetcode.com session."
            )

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Path] = None,
        require_credentials: bool = True,
    ) -> "Config":
        """
        Load configuration from environment variables.

        Args:
            env_file: Optional path to .env file. If not provided,
                     looks for .env in current directory.
            require_credentials: Raise when the LeetCode tokens are missing.

        Returns:
            Configured Config instance.

        Raises:
            ValueError: If required environment variables are missing
                        or malformed.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        repo_root_str = os.getenv("REPO_ROOT")
        templates_dir_str = os.getenv("TEMPLATES_DIR")

        config = cls(
            leetcode_csrf_token=os.getenv("LEETCODE_CSRF_TOKEN") or None,
            leetcode_session=os.getenv("LEETCODE_SESSION") or None,
            destination_folder=os.getenv("DESTINATION_FOLDER") or DEFAULT_DESTINATION_FOLDER,
            templates_dir=Path(templates_dir_str) if templates_dir_str else None,
            filter_duplicate_secs=os.getenv("FILTER_DUPLICATE_SECS") or DEFAULT_FILTER_DUPLICATE_SECS,
            verbose=_as_bool(os.getenv("VERBOSE", "false")),
            dry_run=_as_bool(os.getenv("DRY_RUN", "false")),
            commit_header=os.getenv("COMMIT_HEADER") or DEFAULT_COMMIT_HEADER,
            git_user_name=os.getenv("GIT_USER_NAME") or None,
            git_user_email=os.getenv("GIT_USER_EMAIL") or None,
            repo_root=Path(repo_root_str) if repo_root_str else Path.cwd(),
        )

        if require_credentials:
            config.require_credentials()

        return config

    @classmethod
    def from_module(cls, path: Path, require_credentials: bool = True) -> "Config":
        """
        Load configuration from a local Python config module (test mode).

        The module defines upper-case constants named like the
        environment variables, e.g. ``LEETCODE_SESSION = "..."``.
        """
        path = Path(path)
        if not path.exists():
            raise ValueError(f"Test config module not found: {path}")

        module_spec = importlib.util.spec_from_file_location("leetcode_sync_test_config", path)
        module = importlib.util.module_from_spec(module_spec)
        module_spec.loader.exec_module(module)

        def get(name: str, default: Any = None) -> Any:
            value = getattr(module, name, default)
            return default if value in (None, "") else value

        repo_root = get("REPO_ROOT")
        templates_dir = get("TEMPLATES_DIR")

        config = cls(
            leetcode_csrf_token=get("LEETCODE_CSRF_TOKEN"),
            leetcode_session=get("LEETCODE_SESSION"),
            destination_folder=get("DESTINATION_FOLDER", DEFAULT_DESTINATION_FOLDER),
            templates_dir=Path(templates_dir) if templates_dir else None,
            filter_duplicate_secs=get("FILTER_DUPLICATE_SECS", DEFAULT_FILTER_DUPLICATE_SECS),
            verbose=_as_bool(get("VERBOSE", False)),
            dry_run=_as_bool(get("DRY_RUN", False)),
            commit_header=get("COMMIT_HEADER", DEFAULT_COMMIT_HEADER),
            git_user_name=get("GIT_USER_NAME"),
            git_user_email=get("GIT_USER_EMAIL"),
            repo_root=Path(repo_root) if repo_root else path.parent,
        )

        if require_credentials:
            config.require_credentials()

        return config

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.repo_root, str):
            self.repo_root = Path(self.repo_root)

        try:
            self.filter_duplicate_secs = int(self.filter_duplicate_secs)
        except (TypeError, ValueError):
            raise ValueError(
                f"FILTER_DUPLICATE_SECS must be an integer number of seconds, "
                f"got {self.filter_duplicate_secs!r}"
            )
        if self.filter_duplicate_secs < 0:
            raise ValueError("FILTER_DUPLICATE_SECS must not be negative")

        if not self.destination_folder:
            raise ValueError("DESTINATION_FOLDER must not be empty")
