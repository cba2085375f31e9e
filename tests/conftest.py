import pytest

from tests.fakes import FakeGitHubClient


@pytest.fixture
def github():
    return FakeGitHubClient()
