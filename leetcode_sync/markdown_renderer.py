"""
Problem records to Markdown renderer.

Fills the problem template with metadata and one fenced code block
per language. Handles:
- Difficulty badges
- Topic tag lists
- Language display names and code fence tags
- The permanent skip list
"""

import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from rich.console import Console

from .config import Config
from .store import ProblemRecord

console = Console()

PACKAGE_TEMPLATES_DIR = Path(__file__).parent / "templates"
PROBLEM_TEMPLATE = "PROBLEM_TEMPLATE.md"

# Problems whose content cannot be rendered safely.
SKIPPED_PROBLEMS = frozenset({"2917-find-the-k-or-of-an-array"})

# Asia/Singapore has no DST.
CREATED_AT_TZ = timezone(timedelta(hours=8))

BADGE_URL = "https://img.shields.io/badge/Difficulty-{difficulty}-blue.svg"

CODE_TEMPLATE = "### {LANGUAGE_FULL_NAME}\n``` {LANGUAGE} title='{PROBLEM_SLUG}'\n{CODE}\n```\n"

# LeetCode language tag -> (code fence tag, display name)
LANGUAGES: dict[str, tuple[str, str]] = {
    "bash": ("bash", "Bash"),
    "c": ("c", "C"),
    "cpp": ("cpp", "C++"),
    "csharp": ("csharp", "C#"),
    "dart": ("dart", "Dart"),
    "elixir": ("elixir", "Elixir"),
    "erlang": ("erlang", "Erlang"),
    "golang": ("go", "Go"),
    "java": ("java", "Java"),
    "javascript": ("javascript", "JavaScript"),
    "kotlin": ("kotlin", "Kotlin"),
    "mssql": ("sql", "MS SQL Server"),
    "mysql": ("sql", "MySQL"),
    "oraclesql": ("sql", "Oracle"),
    "php": ("php", "PHP"),
    "postgresql": ("sql", "PostgreSQL"),
    "python": ("python", "Python"),
    "python3": ("python", "Python3"),
    "pythondata": ("python", "Pandas"),
    "racket": ("racket", "Racket"),
    "ruby": ("ruby", "Ruby"),
    "rust": ("rust", "Rust"),
    "scala": ("scala", "Scala"),
    "swift": ("swift", "Swift"),
    "typescript": ("typescript", "TypeScript"),
}

PLACEHOLDER_PATTERN = re.compile(r"\{([A-Z_]+)\}")


def fill_template(template: str, values: dict[str, str]) -> str:
    """
    Replace ``{NAME}`` placeholders in a single pass.

    Unknown placeholders are left untouched, and substituted text is
    never scanned again.
    """
    return PLACEHOLDER_PATTERN.sub(
        lambda m: str(values[m.group(1)]) if m.group(1) in values else m.group(0),
        template,
    )


def load_template(name: str, templates_dir: Optional[Path] = None) -> str:
    """Read a template, preferring an override in ``templates_dir``."""
    if templates_dir:
        override = Path(templates_dir) / name
        if override.exists():
            return override.read_text(encoding="utf-8")
    return (PACKAGE_TEMPLATES_DIR / name).read_text(encoding="utf-8")


def normalize_slug(slug: str) -> str:
    """
    Normalize a slug for use in a filename.

    Examples:
        "two-sum" -> "two-sum"
        "Two  Sum!" -> "two-sum"
    """
    return re.sub(r"[^a-z0-9]+", "-", slug.lower()).strip("-")


def problem_file_stem(frontend_id: str, slug: str) -> str:
    return f"{frontend_id}-{normalize_slug(slug)}"


def is_skipped(frontend_id: str, slug: str) -> bool:
    return problem_file_stem(frontend_id, slug) in SKIPPED_PROBLEMS or slug in SKIPPED_PROBLEMS


def format_created_at(timestamp: int) -> str:
    """Epoch seconds -> YYYY-MM-DD in Singapore time."""
    return datetime.fromtimestamp(timestamp, tz=CREATED_AT_TZ).strftime("%Y-%m-%d")


def format_topics(topic_tags: list[dict]) -> str:
    lines = [
        f"  - {tag['name'].lower().replace(' ', '-')}"
        for tag in topic_tags
        if tag.get("name")
    ]
    return "\n" + "\n".join(lines)


class ProblemRenderer:
    """
    Renders problem records to Markdown pages.

    One page per problem, holding every language's latest accepted
    solution.
    """

    def __init__(self, config: Config):
        self.config = config
        self.template = load_template(PROBLEM_TEMPLATE, config.templates_dir)

    def file_path(self, record: ProblemRecord) -> Path:
        """Where the page for ``record`` is written."""
        data = record.question_data
        return self.config.destination_dir / f"{problem_file_stem(data.frontend_id, data.title_slug)}.md"

    def render(self, record: ProblemRecord) -> str:
        """
        Render one problem record.

        Raises:
            ValueError: If the record has no submissions.
        """
        if not record.submissions:
            raise ValueError(f"No submissions found for {record.title_slug}")

        data = record.question_data
        created_at = format_created_at(
            min(s.timestamp for s in record.submissions.values())
        )

        return fill_template(self.template, {
            "PROBLEM_ID": data.frontend_id,
            "PROBLEM_TITLE": data.title,
            "PROBLEM_SLUG": data.title_slug,
            "PROBLEM_DESCRIPTION": data.content or "",
            "PROBLEM_DIFFICULTY_BADGE": BADGE_URL.format(difficulty=data.difficulty),
            "PROBLEM_TOPICS": format_topics(data.topic_tags),
            "SUBMISSION_TIME": created_at,
            "PROBLEM_SOLUTION": self._render_solutions(record),
        })

    def _render_solutions(self, record: ProblemRecord) -> str:
        sections = []
        for lang in sorted(record.submissions):
            submission = record.submissions[lang]
            fence, full_name = LANGUAGES.get(lang, (lang, lang))
            section = fill_template(CODE_TEMPLATE, {
                "LANGUAGE_FULL_NAME": full_name,
                "LANGUAGE": fence,
                "PROBLEM_SLUG": record.title_slug,
                "CODE": submission.code or "",
            })
            if submission.runtime_percentile or submission.memory_percentile:
                section += (
                    f"\n> Runtime: {submission.runtime or 'N/A'} "
                    f"(beats {submission.runtime_percentile or 'N/A'}), "
                    f"Memory: {submission.memory or 'N/A'} "
                    f"(beats {submission.memory_percentile or 'N/A'})\n"
                )
            sections.append(section)
        return "\n".join(sections)

    def write(self, record: ProblemRecord) -> Optional[Path]:
        """
        Render and save one problem page.

        Returns:
            Path written, or None if the problem is skip-listed.
        """
        data = record.question_data
        if is_skipped(data.frontend_id, data.title_slug):
            console.log(f"Skipping problem {problem_file_stem(data.frontend_id, data.title_slug)}")
            return None

        path = self.file_path(record)
        if self.config.verbose:
            console.log(f"[dim]Saving solution for {data.title_slug}...[/dim]")

        content = self.render(record)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)

        console.log(f"Saved solution for {data.title_slug}")
        return path
