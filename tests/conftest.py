"""Shared test fixtures for the LeetCode sync test suite."""

import pytest

from leetcode_sync.config import Config


@pytest.fixture()
def config(tmp_path):
    """Config rooted in a temporary directory."""
    return Config(
        leetcode_csrf_token="csrf",
        leetcode_session="session",
        repo_root=tmp_path,
    )


@pytest.fixture()
def delays():
    """Pass ``delays.append`` as the sleep function to record delays."""
    return []
