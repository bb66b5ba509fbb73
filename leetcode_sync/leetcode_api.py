"""
LeetCode GraphQL API wrapper for the sync system.

Provides a clean interface to LeetCode's GraphQL endpoint with:
- Cookie + CSRF header authentication
- Rate limiting compliance
- Bounded retry with exponential backoff
- Locked (premium-only) content detection
"""

import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional

import requests
from ratelimit import limits, sleep_and_retry
from rich.console import Console

from .config import Config

console = Console()

BASE_URL = "https://leetcode.com"
GRAPHQL_URL = f"{BASE_URL}/graphql/"

PAGE_SIZE = 20
MAX_RETRIES = 5
BACKOFF_BASE = 3
REQUEST_TIMEOUT = 30

# Client-side ceiling; the sync adds its own fixed delays on top.
RATE_LIMIT_CALLS = 5
RATE_LIMIT_PERIOD = 1  # second

SUBMISSION_LIST_QUERY = """
query ($offset: Int!, $limit: Int!, $slug: String) {
  submissionList(offset: $offset, limit: $limit, questionSlug: $slug) {
    hasNext
    submissions {
      id
      lang
      timestamp
      statusDisplay
      runtime
      title
      memory
      titleSlug
    }
  }
}
"""

SUBMISSION_DETAILS_QUERY = """
query submissionDetails($submissionId: Int!) {
  submissionDetails(submissionId: $submissionId) {
    runtimePercentile
    memoryPercentile
    code
    timestamp
    question {
      questionId
    }
  }
}
"""

QUESTION_DETAIL_QUERY = """
query getQuestionDetail($titleSlug: String!) {
  question(titleSlug: $titleSlug) {
    questionId
    content
    difficulty
    questionTitleSlug
    questionTitle
    questionFrontendId
    topicTags {
      name
      slug
    }
  }
}
"""

PAST_CONTESTS_QUERY = """
query pastContests($pageNo: Int, $numPerPage: Int) {
  pastContests(pageNo: $pageNo, numPerPage: $numPerPage) {
    pageNum
    currentPage
    totalNum
    numPerPage
    data {
      title
      titleSlug
      startTime
      originStartTime
    }
  }
}
"""

CONTEST_QUESTION_LIST_QUERY = """
query contestQuestionList($contestSlug: String!) {
  contestQuestionList(contestSlug: $contestSlug) {
    isAc
    credit
    title
    titleSlug
    titleCn
    questionId
    isContest
  }
}
"""


class LeetCodeAPIError(Exception):
    """Raised when the API cannot be reached or returns an unusable payload."""


class LockedContentError(LeetCodeAPIError):
    """Raised on HTTP 403: the item needs LeetCode Premium."""


def pad_question_id(question_id: Any) -> str:
    """
    Left-pad a numeric question id to four digits.

    Examples:
        1 -> "0001"
        2917 -> "2917"
        10001 -> "10001"
        None -> "N/A"
    """
    if question_id is None or question_id == "":
        return "N/A"
    text = str(question_id)
    if len(text) > 4:
        return text
    return text.zfill(4)


def format_percentile(value: Optional[float]) -> str:
    """Format a percentile as "NN.NN%", or "N/A" when missing."""
    if value is None:
        return "N/A"
    return f"{float(value):.2f}%"


@dataclass(frozen=True)
class Submission:
    """One accepted (or not) attempt, optionally enriched with details."""

    id: str
    lang: str
    timestamp: int
    status_display: str
    title: str
    title_slug: str
    runtime: str = ""
    memory: str = ""

    # Enrichment
    runtime_percentile: Optional[str] = None
    memory_percentile: Optional[str] = None
    question_id: Optional[str] = None
    code: Optional[str] = None

    @property
    def is_accepted(self) -> bool:
        return self.status_display == "Accepted"

    @property
    def is_enriched(self) -> bool:
        return self.code is not None

    @classmethod
    def from_api_response(cls, data: dict) -> "Submission":
        """Create Submission from a submissionList entry."""
        return cls(
            id=str(data["id"]),
            lang=data["lang"],
            timestamp=int(data["timestamp"]),
            status_display=data.get("statusDisplay", ""),
            title=data.get("title", ""),
            title_slug=data["titleSlug"],
            runtime=data.get("runtime") or "",
            memory=data.get("memory") or "",
        )

    def enriched(self, details: dict) -> "Submission":
        """Return a copy carrying the submissionDetails payload."""
        question = details.get("question") or {}
        return replace(
            self,
            runtime_percentile=format_percentile(details.get("runtimePercentile")),
            memory_percentile=format_percentile(details.get("memoryPercentile")),
            question_id=pad_question_id(question.get("questionId")),
            code=details.get("code") or "",
        )

    def to_dict(self) -> dict:
        """Convert to the persisted JSON shape."""
        data = {
            "id": self.id,
            "lang": self.lang,
            "timestamp": str(self.timestamp),
            "statusDisplay": self.status_display,
            "runtime": self.runtime,
            "title": self.title,
            "memory": self.memory,
            "titleSlug": self.title_slug,
        }
        if self.is_enriched:
            data.update({
                "runtimePerc": self.runtime_percentile,
                "memoryPerc": self.memory_percentile,
                "qid": self.question_id,
                "code": self.code,
            })
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Submission":
        """Create from the persisted JSON shape."""
        return replace(
            cls.from_api_response(data),
            runtime_percentile=data.get("runtimePerc"),
            memory_percentile=data.get("memoryPerc"),
            question_id=data.get("qid"),
            code=data.get("code"),
        )


@dataclass
class SubmissionPage:
    """One page of the submissionList query."""

    has_next: bool
    submissions: list[Submission] = field(default_factory=list)

    @classmethod
    def from_api_response(cls, data: dict) -> "SubmissionPage":
        submission_list = data.get("submissionList")
        if submission_list is None:
            raise LeetCodeAPIError(
                "submissionList missing from response; check the LeetCode session tokens"
            )
        return cls(
            has_next=bool(submission_list.get("hasNext")),
            submissions=[
                Submission.from_api_response(s)
                for s in submission_list.get("submissions") or []
            ],
        )


@dataclass
class QuestionData:
    """Problem metadata, fetched once per slug and cached in the store."""

    title_slug: str
    title: str
    frontend_id: str
    content: Optional[str] = None
    difficulty: str = ""
    topic_tags: list[dict] = field(default_factory=list)
    question_id: Optional[str] = None
    contest: Optional[dict] = None
    extra: dict = field(default_factory=dict)

    REQUIRED_KEYS = ("questionTitleSlug", "questionTitle", "questionFrontendId")
    KNOWN_KEYS = REQUIRED_KEYS + ("content", "difficulty", "topicTags", "questionId", "contest")

    @classmethod
    def from_api_response(cls, data: dict) -> "QuestionData":
        """
        Create QuestionData from a question query result.

        Raises:
            KeyError: If a required key is missing.
        """
        missing = [k for k in cls.REQUIRED_KEYS if data.get(k) in (None, "")]
        if missing:
            raise KeyError(f"question data missing {', '.join(missing)}")

        question_id = data.get("questionId")
        return cls(
            title_slug=data["questionTitleSlug"],
            title=data["questionTitle"],
            frontend_id=str(data["questionFrontendId"]),
            content=data.get("content"),
            difficulty=data.get("difficulty") or "",
            topic_tags=list(data.get("topicTags") or []),
            question_id=str(question_id) if question_id is not None else None,
            contest=data.get("contest"),
            extra={k: v for k, v in data.items() if k not in cls.KNOWN_KEYS},
        )

    from_dict = from_api_response

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data.update({
            "content": self.content,
            "difficulty": self.difficulty,
            "questionTitleSlug": self.title_slug,
            "questionTitle": self.title,
            "questionFrontendId": self.frontend_id,
            "topicTags": self.topic_tags,
        })
        if self.question_id is not None:
            data["questionId"] = self.question_id
        if self.contest is not None:
            data["contest"] = self.contest
        return data


def call_with_retry(
    func: Callable[[], Any],
    description: str,
    max_retries: int = MAX_RETRIES,
    sleep: Callable[[float], None] = time.sleep,
    skip_locked: bool = False,
) -> Any:
    """
    Call ``func`` with exponential backoff.

    The delay before retry ``n`` (0-based) is ``BACKOFF_BASE ** n``
    seconds. A LockedContentError is never retried: it yields None
    when ``skip_locked`` is set and propagates otherwise.

    Args:
        func: Zero-argument callable performing one request.
        description: What is being fetched, for log lines.
        max_retries: Retries after the first attempt.
        sleep: Delay function, injectable for tests.
        skip_locked: Convert locked content into None.

    Returns:
        Whatever ``func`` returns, or None for skipped locked content.

    Raises:
        LeetCodeAPIError: Once retries are exhausted. Transport errors
            from requests are wrapped.
    """
    retry_count = 0
    while True:
        try:
            return func()
        except LockedContentError:
            if skip_locked:
                console.log(f"[yellow]Skipping locked problem: {description}[/yellow]")
                return None
            raise
        except (LeetCodeAPIError, requests.RequestException) as e:
            if retry_count >= max_retries:
                if isinstance(e, LeetCodeAPIError):
                    raise
                raise LeetCodeAPIError(f"Request for {description} failed: {e}") from e
            wait = BACKOFF_BASE ** retry_count
            console.log(
                f"[yellow]Error fetching {description} ({e}), "
                f"retrying in {wait} seconds...[/yellow]"
            )
            sleep(wait)
            retry_count += 1


class LeetCodeAPI:
    """
    Wrapper around the LeetCode GraphQL API.

    Handles:
    - Authentication (cookie + x-csrftoken header)
    - Rate limiting
    - Retries with exponential backoff
    - Locked content (HTTP 403)
    """

    def __init__(
        self,
        config: Config,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the LeetCode API client.

        Args:
            config: Configuration instance with LeetCode tokens.
            session: Optional pre-built HTTP session.
            sleep: Delay function used between retries.
        """
        self.config = config
        self.session = session or requests.Session()
        self.sleep = sleep
        self._request_count = 0

    def _headers(self, referer: str = BASE_URL) -> dict:
        csrf_token = self.config.leetcode_csrf_token
        return {
            "content-type": "application/json",
            "origin": BASE_URL,
            "referer": referer,
            "cookie": f"csrftoken={csrf_token}; LEETCODE_SESSION={self.config.leetcode_session};",
            "x-csrftoken": csrf_token,
        }

    @sleep_and_retry
    @limits(calls=RATE_LIMIT_CALLS, period=RATE_LIMIT_PERIOD)
    def _rate_limited_call(self, func, *args, **kwargs) -> Any:
        """Execute a rate-limited API call."""
        self._request_count += 1
        return func(*args, **kwargs)

    def _graphql(
        self,
        query: str,
        variables: dict,
        operation_name: Optional[str] = None,
        referer: str = BASE_URL,
    ) -> dict:
        """
        Post one GraphQL query and return its ``data`` object.

        Raises:
            LockedContentError: On HTTP 403.
            LeetCodeAPIError: On any other HTTP or payload error.
        """
        body = {"query": query, "variables": variables}
        if operation_name:
            body["operationName"] = operation_name

        response = self._rate_limited_call(
            self.session.post,
            GRAPHQL_URL,
            json=body,
            headers=self._headers(referer),
            timeout=REQUEST_TIMEOUT,
        )

        if response.status_code == 403:
            raise LockedContentError(f"403 Forbidden for {operation_name or 'query'}")
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise LeetCodeAPIError(str(e)) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise LeetCodeAPIError(f"Invalid JSON from LeetCode: {e}") from e

        data = payload.get("data")
        if data is None:
            errors = payload.get("errors") or "no data"
            raise LeetCodeAPIError(f"GraphQL error: {errors}")

        if self.config.verbose:
            console.log(f"[dim]GraphQL {operation_name or 'query'} {variables}[/dim]")

        return data

    def get_submission_list(
        self,
        offset: int,
        limit: int = PAGE_SIZE,
        slug: Optional[str] = None,
        max_retries: int = MAX_RETRIES,
    ) -> SubmissionPage:
        """
        Fetch one page of the user's submissions, newest first.

        Args:
            offset: Index of the first submission.
            limit: Page size.
            slug: Optional problem slug filter.
            max_retries: Retries for this page; 0 fails immediately.
        """
        def fetch() -> SubmissionPage:
            data = self._graphql(
                SUBMISSION_LIST_QUERY,
                {"offset": offset, "limit": limit, "slug": slug},
            )
            return SubmissionPage.from_api_response(data)

        page = call_with_retry(
            fetch,
            f"submissions at offset {offset}",
            max_retries=max_retries,
            sleep=self.sleep,
        )
        console.log(f"Fetched submissions from LeetCode, offset {offset}")
        return page

    def get_submission_details(self, submission: Submission) -> Optional[Submission]:
        """
        Fetch code and percentiles for a submission.

        Returns:
            Enriched copy of the submission, or None if it is locked.
        """
        def fetch() -> Optional[Submission]:
            data = self._graphql(
                SUBMISSION_DETAILS_QUERY,
                {"submissionId": int(submission.id)},
                operation_name="submissionDetails",
            )
            details = data.get("submissionDetails")
            if details is None:
                raise LeetCodeAPIError(f"No details for submission #{submission.id}")
            return submission.enriched(details)

        enriched = call_with_retry(
            fetch,
            submission.title or f"submission #{submission.id}",
            sleep=self.sleep,
            skip_locked=True,
        )
        if enriched is not None:
            console.log(f"Got info for submission #{submission.id}")
        return enriched

    def get_question_data(self, title_slug: str) -> Optional[QuestionData]:
        """
        Fetch problem metadata by slug.

        Returns:
            QuestionData, or None if the problem is locked.
        """
        console.log(f"Getting question data for {title_slug}...")

        def fetch() -> Optional[QuestionData]:
            data = self._graphql(
                QUESTION_DETAIL_QUERY,
                {"titleSlug": title_slug},
                operation_name="getQuestionDetail",
            )
            question = data.get("question")
            if question is None:
                raise LeetCodeAPIError(f"No question data for {title_slug}")
            try:
                return QuestionData.from_api_response(question)
            except KeyError as e:
                raise LeetCodeAPIError(f"Incomplete question data for {title_slug}: {e}") from e

        return call_with_retry(
            fetch,
            title_slug,
            sleep=self.sleep,
            skip_locked=True,
        )

    def get_past_contests(self, page_no: int) -> dict:
        """
        Fetch one page of past contests.

        Returns:
            The ``pastContests`` object: pageNum, currentPage, data, ...
        """
        console.log(f"Fetching contests page {page_no}...")
        data = call_with_retry(
            lambda: self._graphql(
                PAST_CONTESTS_QUERY,
                {"pageNo": page_no},
                operation_name="pastContests",
            ),
            f"contests page {page_no}",
            sleep=self.sleep,
        )
        past_contests = data.get("pastContests")
        if past_contests is None:
            raise LeetCodeAPIError(f"pastContests missing from page {page_no}")
        return past_contests

    def get_contest_questions(self, contest_slug: str) -> list[dict]:
        """Fetch the question list of one contest."""
        console.log(f"Fetching contest details for {contest_slug}...")
        data = call_with_retry(
            lambda: self._graphql(
                CONTEST_QUESTION_LIST_QUERY,
                {"contestSlug": contest_slug},
                operation_name="contestQuestionList",
                referer=f"{BASE_URL}/contest/{contest_slug}/",
            ),
            f"contest {contest_slug}",
            sleep=self.sleep,
        )
        return list(data.get("contestQuestionList") or [])

    @property
    def request_count(self) -> int:
        """Number of API requests made."""
        return self._request_count
