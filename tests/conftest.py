"""Shared test fixtures."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from review_notifier.cache import StateStore
from review_notifier.github_client import (
    GitHubError,
    IssueComment,
    PullRequestDetails,
    PullRequestSummary,
    Review,
)
from review_notifier.monitor import MonitorSettings
from review_notifier.notifications import Notification, NotificationError


def utc(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 1, 1, hour, minute, tzinfo=timezone.utc)


class FakeReviewSource:
    """In-memory ReviewSource. Keys are "repo#number"."""

    def __init__(self) -> None:
        self.login = "octocat"
        self.assigned: list[PullRequestSummary] = []
        self.authored: list[PullRequestSummary] = []
        self.details: dict[str, PullRequestDetails] = {}
        self.comments: dict[str, list[IssueComment]] = {}
        self.review_lists: dict[str, list[Review]] = {}
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple] = []

    def _maybe_fail(self, name: str) -> None:
        if name in self.failures:
            raise self.failures[name]

    def current_user_login(self) -> str:
        return self.login

    def search_assigned(self, query: str, limit: int) -> list[PullRequestSummary]:
        self.calls.append(("search_assigned", query, limit))
        self._maybe_fail("search_assigned")
        return list(self.assigned)

    def list_authored(self, author: str, limit: int) -> list[PullRequestSummary]:
        self.calls.append(("list_authored", author, limit))
        self._maybe_fail("list_authored")
        return list(self.authored)

    def pull_request_details(self, repo: str, number: int) -> PullRequestDetails:
        key = f"{repo}#{number}"
        self.calls.append(("pull_request_details", key))
        self._maybe_fail("pull_request_details")
        if key not in self.details:
            raise GitHubError(f"no details for {key}")
        return self.details[key]

    def comments_since(self, repo, number, since):
        key = f"{repo}#{number}"
        self.calls.append(("comments_since", key, since))
        self._maybe_fail("comments_since")
        return list(self.comments.get(key, []))

    def reviews(self, repo, number):
        key = f"{repo}#{number}"
        self.calls.append(("reviews", key))
        self._maybe_fail("reviews")
        return list(self.review_lists.get(key, []))


class FakeNotifier:
    """Records notifications; optionally fails every call."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.sent.append(notification)
        if self.fail:
            raise NotificationError("display unavailable")

    @property
    def messages(self) -> list[str]:
        return [n.message for n in self.sent]


@pytest.fixture
def source() -> FakeReviewSource:
    return FakeReviewSource()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def store() -> StateStore:
    return StateStore()


@pytest.fixture
def settings(tmp_path: Path) -> MonitorSettings:
    return MonitorSettings(
        assigned_query="is:open is:pr user-review-requested:@me",
        author="octocat",
        cache_file=tmp_path / "state.json",
        poll_interval=60,
        max_results=30,
    )


@pytest.fixture
def sample_pr() -> PullRequestSummary:
    """A pull request in org/example."""
    return PullRequestSummary(
        number=42,
        title="Improve observability",
        url="https://github.com/org/example/pull/42",
        updated_at=utc(13),
    )


@pytest.fixture
def sample_details() -> PullRequestDetails:
    return PullRequestDetails(
        number=42,
        title="Improve observability",
        url="https://github.com/org/example/pull/42",
        additions=120,
        deletions=8,
        changed_files=5,
    )
