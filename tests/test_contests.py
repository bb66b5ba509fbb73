"""Tests for contest fetching, annotation and index pages."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from leetcode_sync.contests import ContestIndexer, load_contests, sorted_contests
from leetcode_sync.leetcode_api import LeetCodeAPI, LeetCodeAPIError
from leetcode_sync.reconciler import merge_submission
from leetcode_sync.store import ProcessedSubmissions
from tests.factories import make_question, make_submission, response


def contest(slug, title, start_time, questions):
    return {
        "basicInfo": {"title": title, "titleSlug": slug, "startTime": start_time},
        "detailedInfo": {"data": {"contestQuestionList": questions}},
    }


def question(question_id, title, slug, credit=3):
    return {"questionId": question_id, "title": title, "titleSlug": slug, "credit": credit}


@pytest.fixture()
def contests():
    data = {"contests": {}}
    for n in range(1, 8):
        data["contests"][f"weekly-contest-{n}"] = contest(
            f"weekly-contest-{n}",
            f"Weekly Contest {n}",
            1600000000 + n * 604800,
            [question(str(100 + n), f"Problem {n}", f"problem-{n}")],
        )
    data["contests"]["weekly-contest-7"]["detailedInfo"]["data"]["contestQuestionList"].append(
        question("1", "Two Sum ", "two-sum", credit=4)
    )
    return data


@pytest.fixture()
def store():
    store = ProcessedSubmissions()
    merge_submission(store, make_submission(timestamp=1000), make_question())
    return store


class TestAnnotate:
    def test_annotates_matching_question(self, config, store, contests):
        annotated = ContestIndexer(config).annotate_store(store, contests)

        assert annotated == 1
        info = store.get("two-sum").question_data.contest["basicInfo"]
        assert info["title"] == "Weekly Contest 7"
        assert info["questionTitle"] == "Two Sum "
        assert info["questionCredit"] == 4

    def test_problem_without_question_id_is_left_alone(self, config, contests):
        store = ProcessedSubmissions()
        merge_submission(store, make_submission(timestamp=1000), make_question(question_id=None))
        assert ContestIndexer(config).annotate_store(store, contests) == 0
        assert store.get("two-sum").question_data.contest is None


class TestPages:
    def test_generates_index_and_list(self, config, store, contests):
        paths = ContestIndexer(config).generate_pages(store, contests, today="2024-01-01")

        assert [p.name for p in paths] == ["index.md", "contests_list.md"]
        index = (config.destination_dir / "index.md").read_text()
        full = (config.destination_dir / "contests_list.md").read_text()

        assert "- [Weekly Contest 7](https://leetcode.com/contest/weekly-contest-7/)" in index
        assert "Weekly Contest 3" in index
        assert "Weekly Contest 2" not in index
        assert "*Last updated: 2024-01-01*" in index

        assert full.index("## Weekly Contest 7") < full.index("## Weekly Contest 1")
        assert "## Weekly Contest 1\n" in full

    def test_solved_problem_links_locally(self, config, store, contests):
        ContestIndexer(config).generate_pages(store, contests, today="2024-01-01")
        index = (config.destination_dir / "index.md").read_text()

        assert "  - [Two Sum](1-two-sum.md)" in index
        assert "  - [Problem 7](https://leetcode.com/problems/problem-7/)" in index

    def test_skip_listed_problem_links_remotely(self, config, contests):
        store = ProcessedSubmissions()
        slug = "find-the-k-or-of-an-array"
        merge_submission(
            store,
            make_submission(timestamp=1000, title_slug=slug),
            make_question(slug=slug, frontend_id="2917", question_id="3183"),
        )
        contests["contests"]["weekly-contest-7"]["detailedInfo"]["data"]["contestQuestionList"].append(
            question("3183", "Find the K-or of an Array", slug)
        )
        ContestIndexer(config).generate_pages(store, contests, today="2024-01-01")
        index = (config.destination_dir / "index.md").read_text()

        assert f"(https://leetcode.com/problems/{slug}/)" in index
        assert "2917-find-the-k-or-of-an-array.md" not in index

    def test_sorted_newest_first(self, contests):
        titles = [c["basicInfo"]["title"] for c in sorted_contests(contests)]
        assert titles[0] == "Weekly Contest 7"
        assert titles[-1] == "Weekly Contest 1"


class TestFetch:
    def test_fetch_writes_contest_file(self, config, delays):
        api = MagicMock()
        api.get_past_contests.side_effect = [
            {"pageNum": 2, "data": [{"title": "Weekly Contest 2", "titleSlug": "weekly-contest-2", "startTime": 2}]},
            {"pageNum": 2, "data": [{"title": "Weekly Contest 1", "titleSlug": "weekly-contest-1", "startTime": 1}]},
        ]
        api.get_contest_questions.side_effect = [
            [question("1", "Two Sum", "two-sum")],
            LeetCodeAPIError("boom"),
        ]

        result = ContestIndexer(config, api=api, sleep=delays.append).fetch_contests()

        assert (result.total, result.fetched, result.failed) == (2, 1, ["weekly-contest-1"])
        assert delays == [1.0, 1.5]
        data = load_contests(config.contests_file)
        assert list(data["contests"]) == ["weekly-contest-2"]
        assert data["metadata"]["errors"] == 1
        entry = data["contests"]["weekly-contest-2"]
        assert entry["detailedInfo"]["data"]["contestQuestionList"][0]["titleSlug"] == "two-sum"

    def test_fetch_requires_credentials(self, config):
        config.leetcode_csrf_token = None
        with pytest.raises(ValueError):
            ContestIndexer(config, api=MagicMock()).fetch_contests()

    def test_load_contests_round_trip(self, config, contests):
        config.contests_file.write_text(json.dumps(contests))
        assert load_contests(config.contests_file) == contests

    def test_network_failure_on_one_contest_is_counted(self, config, delays):
        session = MagicMock()
        session.post.side_effect = [
            response(payload={"data": {"pastContests": {"pageNum": 1, "data": [
                {"title": "Weekly Contest 2", "titleSlug": "weekly-contest-2", "startTime": 2},
                {"title": "Weekly Contest 1", "titleSlug": "weekly-contest-1", "startTime": 1},
            ]}}}),
            response(payload={"data": {"contestQuestionList": [question("1", "Two Sum", "two-sum")]}}),
        ] + [requests.Timeout("slow")] * 6
        api = LeetCodeAPI(config, session=session, sleep=delays.append)

        result = ContestIndexer(config, api=api, sleep=delays.append).fetch_contests()

        assert (result.total, result.fetched, result.failed) == (2, 1, ["weekly-contest-1"])
        data = load_contests(config.contests_file)
        assert list(data["contests"]) == ["weekly-contest-2"]
        assert data["metadata"]["errors"] == 1
