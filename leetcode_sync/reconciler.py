"""
Incremental reconciliation of fetched submissions.

Two steps, both pure apart from the mappings passed in:

- ``reconcile_page`` filters one page of the remote submission list
  against the previous high-water mark and the near-duplicate gap.
- ``merge_submission`` folds an enriched submission into the
  processed submissions store.

All timestamps here are epoch seconds.
"""

import re
from typing import Iterable

from .leetcode_api import QuestionData, Submission
from .store import ProblemRecord, ProcessedSubmissions

# (normalized problem name, language) -> timestamp of the last kept submission
SeenMap = dict[tuple[str, str], int]


def normalize_name(problem_name: str) -> str:
    """
    Turn a problem title into a filesystem-safe key.

    Examples:
        "Two Sum" -> "two-sum"
        "Pow(x, n)" -> "powx-n"
    """
    name = re.sub(r"\s", "-", problem_name.lower())
    return re.sub(r"[^a-zA-Z0-9_-]", "", name)


def reconcile_page(
    submissions: Iterable[Submission],
    last_timestamp: float,
    filter_duplicate_secs: int,
    seen: SeenMap,
) -> tuple[list[Submission], bool]:
    """
    Select the new accepted submissions from one page.

    The page is assumed newest-first. Scanning stops at the first
    submission at or below ``last_timestamp``; nothing after it on the
    page is looked at. An accepted submission is dropped when the same
    (problem, language) was kept less than ``filter_duplicate_secs``
    before it.

    Args:
        submissions: One page of submissions, newest first.
        last_timestamp: Previous high-water mark, in seconds.
        filter_duplicate_secs: Minimum gap between kept submissions.
        seen: Accumulator shared across the pages of one pass; updated
              in place.

    Returns:
        Tuple of (kept submissions in page order, keep_going). keep_going
        is False once the high-water mark has been reached.
    """
    batch = []
    for submission in submissions:
        if submission.timestamp <= last_timestamp:
            return batch, False
        if not submission.is_accepted:
            continue

        key = (normalize_name(submission.title), submission.lang)
        previous = seen.get(key)
        if previous is not None and previous - submission.timestamp < filter_duplicate_secs:
            continue

        seen[key] = submission.timestamp
        batch.append(submission)

    return batch, True


def merge_submission(
    store: ProcessedSubmissions,
    submission: Submission,
    question_data: QuestionData,
) -> bool:
    """
    Record ``submission`` as the latest for its problem and language.

    Creates the problem record on first sighting. An existing entry is
    replaced only by a strictly newer submission, so merging the same
    submission twice changes nothing.

    Returns:
        True if the store changed.
    """
    record = store.problems.get(submission.title_slug)
    if record is None:
        record = ProblemRecord(question_data=question_data)
        store.problems[submission.title_slug] = record

    existing = record.submissions.get(submission.lang)
    if existing is not None and submission.timestamp <= existing.timestamp:
        return False

    record.submissions[submission.lang] = submission
    return True
