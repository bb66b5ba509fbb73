"""
Contest indexing.

Fetches LeetCode's past contests and their question lists, annotates
stored problems with the contest they appeared in, and builds the
contest navigation pages.
"""

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from .config import Config
from .leetcode_api import BASE_URL, LeetCodeAPI, LeetCodeAPIError
from .markdown_renderer import fill_template, is_skipped, load_template, problem_file_stem
from .store import ProcessedSubmissions

console = Console()

RECENT_CONTESTS = 5
PAGE_DELAY = 1.0
CONTEST_DELAY = 1.5

CONTEST_TEMPLATE = "CONTEST_TEMPLATE.md"
CONTEST_LIST_TEMPLATE = "CONTEST_LIST.md"
INDEX_PAGE = "index.md"
CONTEST_LIST_PAGE = "contests_list.md"


@dataclass
class ContestFetchResult:
    """Outcome of a contest fetch."""

    total: int = 0
    fetched: int = 0
    failed: list[str] = field(default_factory=list)


def contest_questions(contest: dict) -> list[dict]:
    """Question list of a stored contest entry."""
    detailed = contest.get("detailedInfo") or {}
    return list((detailed.get("data") or {}).get("contestQuestionList") or [])


def sorted_contests(contests: dict) -> list[dict]:
    """Contest entries, newest first."""
    return sorted(
        contests.get("contests", {}).values(),
        key=lambda c: c["basicInfo"].get("startTime", 0),
        reverse=True,
    )


def load_contests(path: Path) -> dict:
    """
    Read leetcode-contests.json.

    Raises:
        FileNotFoundError: If contests were never fetched.
    """
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class ContestIndexer:
    """Fetches contests and cross-references them with the store."""

    def __init__(
        self,
        config: Config,
        api: Optional[LeetCodeAPI] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.api = api
        self.sleep = sleep

    def fetch_contests(self) -> ContestFetchResult:
        """
        Fetch every past contest with its question list and save them.

        Per-contest failures are counted, not fatal.
        """
        self.config.require_credentials()
        if self.api is None:
            self.api = LeetCodeAPI(self.config, sleep=self.sleep)

        result = ContestFetchResult()
        all_contests = []

        console.log("Starting to fetch all contest pages...")
        current_page = 1
        total_pages = 1
        while current_page <= total_pages:
            if current_page > 1:
                self.sleep(PAGE_DELAY)
            page = self.api.get_past_contests(current_page)
            total_pages = page.get("pageNum") or 1
            contests = page.get("data") or []
            console.log(f"Page {current_page}/{total_pages} - Found {len(contests)} contests")
            all_contests.extend(contests)
            current_page += 1

        result.total = len(all_contests)
        details = {}

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Fetching contest questions...", total=None)

            for index, contest in enumerate(all_contests):
                slug = contest["titleSlug"]
                if index > 0:
                    self.sleep(CONTEST_DELAY)
                progress.update(task, description=f"Fetching {slug} ({index + 1}/{result.total})")
                try:
                    questions = self.api.get_contest_questions(slug)
                except LeetCodeAPIError as e:
                    console.log(f"[red]Failed to fetch details for {slug}: {e}[/red]")
                    result.failed.append(slug)
                    continue

                details[slug] = {
                    "basicInfo": contest,
                    "detailedInfo": {"data": {"contestQuestionList": questions}},
                }
                result.fetched += 1

        data = {
            "metadata": {
                "totalContests": result.total,
                "fetchedDetails": result.fetched,
                "errors": len(result.failed),
                "fetchedAt": datetime.now(timezone.utc).isoformat(),
            },
            "contests": details,
        }
        with open(self.config.contests_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        console.log(
            f"[green]Fetched {result.fetched}/{result.total} contests "
            f"into {self.config.contests_file.name}[/green]"
        )
        return result

    def annotate_store(self, store: ProcessedSubmissions, contests: dict) -> int:
        """
        Attach contest info to every stored problem that appeared in one.

        Returns:
            Number of records annotated.
        """
        by_question_id = {}
        for contest in contests.get("contests", {}).values():
            for question in contest_questions(contest):
                by_question_id[str(question["questionId"])] = {
                    "basicInfo": {
                        **contest["basicInfo"],
                        "questionTitle": question.get("title"),
                        "questionCredit": question.get("credit"),
                    }
                }

        annotated = 0
        for record in store:
            question_id = record.question_data.question_id
            if question_id and question_id in by_question_id:
                record.question_data.contest = by_question_id[question_id]
                annotated += 1

        console.log(f"Annotated {annotated} problems with contest information")
        return annotated

    def problem_link(self, question: dict, frontend_ids: dict[str, str]) -> str:
        """Markdown link to the local page if one exists, else to LeetCode."""
        slug = question["titleSlug"]
        title = question.get("title", slug).strip()
        frontend_id = frontend_ids.get(str(question.get("questionId")))

        if frontend_id and not is_skipped(frontend_id, slug):
            return f"[{title}]({problem_file_stem(frontend_id, slug)}.md)"
        return f"[{title}]({BASE_URL}/problems/{slug}/)"

    def contest_section(self, contest: dict, frontend_ids: dict[str, str], detailed: bool = False) -> str:
        basic = contest["basicInfo"]
        links = "\n".join(
            f"  - {self.problem_link(q, frontend_ids)}"
            for q in contest_questions(contest)
        )
        if detailed:
            return f"## {basic['title']}\n{links}\n\n"
        return f"- [{basic['title']}]({BASE_URL}/contest/{basic['titleSlug']}/)\n{links}\n"

    def generate_pages(
        self,
        store: ProcessedSubmissions,
        contests: dict,
        today: Optional[str] = None,
    ) -> list[Path]:
        """
        Write index.md (recent contests) and contests_list.md (all contests).

        Returns:
            Paths written.
        """
        modified_at = today or datetime.now(timezone.utc).strftime("%Y-%m-%d")
        frontend_ids = store.frontend_ids_by_question_id()
        ordered = sorted_contests(contests)

        recent = "\n".join(
            self.contest_section(c, frontend_ids)
            for c in ordered[:RECENT_CONTESTS]
        )
        index_content = fill_template(
            load_template(CONTEST_TEMPLATE, self.config.templates_dir),
            {"RECENT_CONTEST_LIST": recent, "MODIFIED_AT": modified_at},
        )

        all_sections = "".join(
            self.contest_section(c, frontend_ids, detailed=True)
            for c in ordered
        )
        list_content = fill_template(
            load_template(CONTEST_LIST_TEMPLATE, self.config.templates_dir),
            {"CONTEST_LIST": all_sections, "MODIFIED_AT": modified_at},
        )

        destination = self.config.destination_dir
        destination.mkdir(parents=True, exist_ok=True)
        written = []
        for name, content in ((INDEX_PAGE, index_content), (CONTEST_LIST_PAGE, list_content)):
            path = destination / name
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
            written.append(path)

        console.log("Successfully generated contest pages")
        return written
