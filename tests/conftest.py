"""
Pytest configuration and fixtures for minigit tests.
"""

import pytest

from minigit import data


@pytest.fixture
def repo(tmp_path, monkeypatch):
    """An initialized object database in a temp directory, also the cwd."""
    monkeypatch.chdir(tmp_path)
    with data.change_git_dir(tmp_path):
        data.init()
        yield tmp_path


@pytest.fixture
def work_dir(repo):
    """Empty directory next to .git to build trees from."""
    path = repo / "work"
    path.mkdir()
    return path
