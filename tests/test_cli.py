"""Tests for the command line entry point."""

import pytest
from click.testing import CliRunner

from leetcode_sync import __version__
from leetcode_sync.reconciler import merge_submission
from leetcode_sync.store import ProcessedSubmissions, SubmissionStore
from sync import cli
from tests.factories import make_question, make_submission


@pytest.fixture()
def config_module(tmp_path):
    def write(credentials=True):
        lines = ['DESTINATION_FOLDER = "problems"\n']
        if credentials:
            lines += ['LEETCODE_CSRF_TOKEN = "csrf"\n', 'LEETCODE_SESSION = "session"\n']
        path = tmp_path / "test_config.py"
        path.write_text("".join(lines))
        return path
    return write


class TestCli:
    def test_version(self):
        result = CliRunner().invoke(cli, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_sync_without_credentials_exits_with_error(self, config_module):
        module = config_module(credentials=False)
        result = CliRunner().invoke(cli, ["--test-config", str(module), "sync"])
        assert result.exit_code == 1
        assert "LEETCODE_CSRF_TOKEN" in result.output

    def test_render_works_offline(self, config_module, tmp_path):
        module = config_module(credentials=False)
        store = ProcessedSubmissions()
        merge_submission(store, make_submission(timestamp=1700000000), make_question())
        SubmissionStore(tmp_path / "processed-submissions.json").save(store)

        result = CliRunner().invoke(cli, ["--test-config", str(module), "render"])

        assert result.exit_code == 0
        assert (tmp_path / "problems" / "1-two-sum.md").exists()

    def test_malformed_store_exits_with_error(self, config_module, tmp_path):
        module = config_module()
        (tmp_path / "processed-submissions.json").write_text("not json")

        result = CliRunner().invoke(cli, ["--test-config", str(module), "render"])

        assert result.exit_code == 1
