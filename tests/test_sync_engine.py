"""Tests for the sync pass: pagination, enrichment, merge and persistence."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from leetcode_sync.leetcode_api import LeetCodeAPI, LeetCodeAPIError, SubmissionPage
from leetcode_sync.reconciler import merge_submission
from leetcode_sync.store import ProcessedSubmissions, StoreError, SubmissionStore, TimestampStore
from leetcode_sync.sync_engine import SyncEngine, SyncResult
from tests.factories import FakeAPI, make_question, make_submission, response


def page(*submissions, has_next=True):
    return SubmissionPage(has_next=has_next, submissions=list(submissions))


@pytest.fixture()
def engine_factory(config, delays):
    def build(api):
        return SyncEngine(config, api=api, sleep=delays.append)
    return build


class TestPagination:
    def test_stops_at_high_water_mark(self, config, engine_factory, delays):
        TimestampStore(config.timestamp_file).save(1000 * 1000)
        api = FakeAPI(pages=[
            page(make_submission(id="3", timestamp=3000), make_submission(id="2", timestamp=2000, lang="java")),
            page(make_submission(id="1", timestamp=900, lang="cpp"), make_submission(id="0", timestamp=800)),
            page(make_submission(id="-1", timestamp=700)),
        ])
        engine = engine_factory(api)

        submissions, newest = engine.fetch_new_submissions(1000 * 1000)

        assert [s.id for s in submissions] == ["3", "2"]
        assert newest == 3000 * 1000
        assert [offset for offset, _ in api.page_calls] == [0, 20]

    def test_first_page_has_no_retries(self, engine_factory):
        api = FakeAPI(pages=[
            page(make_submission(id="2", timestamp=3000)),
            page(make_submission(id="1", timestamp=2000, lang="java"), has_next=False),
        ])
        engine_factory(api).fetch_new_submissions(0)
        assert api.page_calls == [(0, 0), (20, 5)]

    def test_one_second_delay_between_pages(self, engine_factory, delays):
        api = FakeAPI(pages=[
            page(make_submission(id="3", timestamp=3000)),
            page(make_submission(id="2", timestamp=2000, lang="java")),
            page(make_submission(id="1", timestamp=1000, lang="cpp"), has_next=False),
        ])
        engine_factory(api).fetch_new_submissions(0)
        assert delays == [1.0, 1.0]

    def test_stops_when_remote_has_no_more(self, engine_factory):
        api = FakeAPI(pages=[page(make_submission(timestamp=3000), has_next=False)])
        submissions, _ = engine_factory(api).fetch_new_submissions(0)
        assert len(submissions) == 1
        assert len(api.page_calls) == 1

    def test_dedup_spans_pages(self, engine_factory):
        api = FakeAPI(pages=[
            page(make_submission(id="2", timestamp=100000)),
            page(make_submission(id="1", timestamp=99000), has_next=False),
        ])
        submissions, _ = engine_factory(api).fetch_new_submissions(0)
        assert [s.id for s in submissions] == ["2"]

    def test_empty_account(self, engine_factory):
        api = FakeAPI(pages=[page(has_next=False)])
        submissions, newest = engine_factory(api).fetch_new_submissions(0)
        assert submissions == []
        assert newest is None


class TestFetch:
    def test_full_pass_persists_store_and_timestamp(self, config, engine_factory):
        api = FakeAPI(pages=[page(
            make_submission(id="3", timestamp=3000, lang="java"),
            make_submission(id="2", timestamp=2000, title="Add Two Numbers", title_slug="add-two-numbers"),
            has_next=False,
        )])
        result = SyncResult()
        engine_factory(api).fetch(result)

        data = json.loads(config.processed_submissions_file.read_text())
        assert set(data) == {"two-sum", "add-two-numbers"}
        assert data["two-sum"]["submissions"]["java"]["code"] == "# solution 3"
        assert json.loads(config.timestamp_file.read_text()) == {"lastTimestamp": 3000 * 1000}
        assert result.submissions_fetched == 2
        assert len(result.submissions_merged) == 2

    def test_question_data_fetched_once_per_slug(self, engine_factory):
        api = FakeAPI(pages=[page(
            make_submission(id="3", timestamp=3000, lang="java"),
            make_submission(id="2", timestamp=2900, lang="cpp"),
            has_next=False,
        )])
        engine_factory(api).fetch()
        assert api.question_calls == ["two-sum"]

    def test_known_problem_uses_cached_question_data(self, config, engine_factory):
        first = FakeAPI(pages=[page(make_submission(id="1", timestamp=1000), has_next=False)])
        engine_factory(first).fetch()

        second = FakeAPI(pages=[page(make_submission(id="2", timestamp=200000), has_next=False)])
        engine_factory(second).fetch()

        assert second.question_calls == []
        store = SubmissionStore(config.processed_submissions_file).load()
        assert store.get("two-sum").submissions["python3"].id == "2"

    def test_locked_submission_is_dropped(self, config, engine_factory):
        api = FakeAPI(
            pages=[page(
                make_submission(id="9", timestamp=3000, title="Premium", title_slug="premium"),
                make_submission(id="2", timestamp=2000),
                has_next=False,
            )],
            locked_submissions={"9"},
        )
        result = SyncResult()
        engine_factory(api).fetch(result)

        store = SubmissionStore(config.processed_submissions_file).load()
        assert "premium" not in store
        assert "two-sum" in store
        assert result.submissions_locked == ["premium in python3"]

    def test_locked_question_is_dropped(self, config, engine_factory):
        api = FakeAPI(
            pages=[page(make_submission(id="9", timestamp=3000, title="Premium", title_slug="premium"), has_next=False)],
            locked_questions={"premium"},
        )
        engine_factory(api).fetch()
        assert "premium" not in SubmissionStore(config.processed_submissions_file).load()

    def test_second_run_is_incremental(self, config, engine_factory):
        engine_factory(FakeAPI(pages=[page(make_submission(id="1", timestamp=1000), has_next=False)])).fetch()

        api = FakeAPI(pages=[page(
            make_submission(id="2", timestamp=500000, lang="java"),
            make_submission(id="1", timestamp=1000),
            has_next=True,
        )])
        engine_factory(api).fetch()

        assert api.detail_calls == ["2"]
        assert len(api.page_calls) == 1
        assert TimestampStore(config.timestamp_file).load() == 500000 * 1000

    def test_timestamp_never_decreases(self, config, engine_factory):
        TimestampStore(config.timestamp_file).save(9000 * 1000)
        api = FakeAPI(pages=[page(make_submission(timestamp=5000), has_next=False)])
        result = SyncResult()
        engine_factory(api).fetch(result)
        assert TimestampStore(config.timestamp_file).load() == 9000 * 1000
        assert result.last_timestamp == 9000 * 1000

    def test_fatal_error_writes_nothing(self, config, engine_factory):
        class FailingAPI(FakeAPI):
            def get_submission_details(self, submission):
                raise LeetCodeAPIError("retries exhausted")

        api = FailingAPI(pages=[page(make_submission(timestamp=3000), has_next=False)])
        with pytest.raises(LeetCodeAPIError):
            engine_factory(api).fetch()

        assert not config.timestamp_file.exists()
        assert not config.processed_submissions_file.exists()

    def test_missing_credentials_fail_before_network(self, config, engine_factory):
        config.leetcode_session = None
        api = FakeAPI()
        with pytest.raises(ValueError, match="LEETCODE_SESSION"):
            engine_factory(api).fetch()
        assert api.page_calls == []

    def test_malformed_store_fails_before_network(self, config, engine_factory):
        config.processed_submissions_file.write_text("[]")
        api = FakeAPI()
        with pytest.raises(StoreError):
            engine_factory(api).fetch()
        assert api.page_calls == []


class TestRenderAndSync:
    def test_sync_renders_pages(self, config, engine_factory):
        api = FakeAPI(pages=[page(make_submission(id="3", timestamp=1700000000), has_next=False)])
        result = engine_factory(api).sync()

        assert result.success
        assert result.pages_written == ["1-two-sum.md"]
        content = (config.destination_dir / "1-two-sum.md").read_text()
        assert "# solution 3" in content

    def test_render_only_reads_store(self, config, engine_factory):
        engine_factory(FakeAPI(pages=[page(make_submission(timestamp=1700000000), has_next=False)])).fetch()
        api = FakeAPI()
        result = engine_factory(api).sync(fetch=False)

        assert api.page_calls == []
        assert result.pages_written == ["1-two-sum.md"]

    def test_skip_listed_problem_never_rendered(self, config, engine_factory):
        slug = "find-the-k-or-of-an-array"
        api = FakeAPI(
            pages=[page(make_submission(timestamp=1700000000, title="Find the K-or of an Array", title_slug=slug), has_next=False)],
            questions={slug: make_question(slug=slug, title="Find the K-or of an Array", frontend_id="2917", question_id="3183")},
        )
        result = engine_factory(api).sync()

        assert result.pages_skipped == [slug]
        assert not (config.destination_dir / "2917-find-the-k-or-of-an-array.md").exists()


class TestBackfill:
    def test_fills_missing_question_ids(self, config, engine_factory, delays):
        engine_factory(FakeAPI(
            pages=[page(
                make_submission(id="2", timestamp=2000),
                make_submission(id="1", timestamp=1000, title="Add Two Numbers", title_slug="add-two-numbers"),
                has_next=False,
            )],
            questions={
                "two-sum": make_question(question_id=None),
                "add-two-numbers": make_question(slug="add-two-numbers", frontend_id="2", question_id=None),
            },
        )).fetch()
        delays.clear()

        api = FakeAPI(questions={
            "two-sum": make_question(question_id="1"),
            "add-two-numbers": make_question(slug="add-two-numbers", frontend_id="2", question_id=None),
        })
        updated, failed = engine_factory(api).backfill_question_ids()

        assert (updated, failed) == (1, 1)
        assert delays == [1.0]
        store = SubmissionStore(config.processed_submissions_file).load()
        assert store.get("two-sum").question_data.question_id == "1"
        assert store.get("add-two-numbers").question_data.question_id is None


    def test_network_failure_keeps_earlier_updates(self, config, delays):
        store = ProcessedSubmissions()
        merge_submission(store, make_submission(id="1", timestamp=1000), make_question(question_id=None))
        merge_submission(
            store,
            make_submission(id="2", timestamp=2000, title="Add Two Numbers", title_slug="add-two-numbers"),
            make_question(slug="add-two-numbers", title="Add Two Numbers", frontend_id="2", question_id=None),
        )
        SubmissionStore(config.processed_submissions_file).save(store)

        session = MagicMock()
        session.post.side_effect = [requests.ConnectionError("reset")] * 6 + [response(payload={"data": {"question": {
            "questionId": "2",
            "content": "<p>...</p>",
            "difficulty": "Medium",
            "questionTitleSlug": "add-two-numbers",
            "questionTitle": "Add Two Numbers",
            "questionFrontendId": "2",
            "topicTags": [],
        }}})]
        api = LeetCodeAPI(config, session=session, sleep=delays.append)

        updated, failed = SyncEngine(config, api=api, sleep=delays.append).backfill_question_ids()

        assert (updated, failed) == (1, 1)
        saved = SubmissionStore(config.processed_submissions_file).load()
        assert saved.get("add-two-numbers").question_data.question_id == "2"
        assert saved.get("two-sum").question_data.question_id is None


class TestClean:
    def test_removes_pages_and_state(self, config, engine_factory):
        engine = engine_factory(FakeAPI(pages=[page(make_submission(timestamp=1700000000), has_next=False)]))
        engine.sync()
        assert (config.destination_dir / "1-two-sum.md").exists()

        engine.clean(confirm=True)

        assert not (config.destination_dir / "1-two-sum.md").exists()
        assert not config.processed_submissions_file.exists()
        assert not config.timestamp_file.exists()
