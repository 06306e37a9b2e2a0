"""GitHub API client for the pull request snapshots the monitor consumes."""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from itertools import islice
from typing import Iterator, Protocol
from urllib.parse import urlparse

from github import Github, GithubException


class GitHubError(Exception):
    """Raised when a GitHub request fails or returns something unusable."""


@dataclass
class PullRequestSummary:
    """A pull request as returned by a search."""

    number: int
    title: str
    url: str
    updated_at: datetime


@dataclass
class PullRequestDetails:
    """Diff size information for a single pull request."""

    number: int
    title: str
    url: str
    additions: int
    deletions: int
    changed_files: int


@dataclass
class IssueComment:
    """A conversation comment on a pull request."""

    id: int
    body: str
    updated_at: datetime
    author: str
    url: str


@dataclass
class Review:
    """A pull request review. submitted_at is None while the review is pending."""

    id: int
    body: str
    state: str
    submitted_at: datetime | None
    author: str
    url: str


class ReviewSource(Protocol):
    """Everything the monitor needs from the code hosting service."""

    def current_user_login(self) -> str: ...

    def search_assigned(self, query: str, limit: int) -> list[PullRequestSummary]: ...

    def list_authored(self, author: str, limit: int) -> list[PullRequestSummary]: ...

    def pull_request_details(self, repo: str, number: int) -> PullRequestDetails: ...

    def comments_since(
        self, repo: str, number: int, since: datetime | None
    ) -> list[IssueComment]: ...

    def reviews(self, repo: str, number: int) -> list[Review]: ...


def repo_from_url(url: str) -> str:
    """Extract "owner/name" from a pull request URL.

    Args:
        url: URL like https://github.com/owner/name/pull/42.

    Returns:
        The repository full name.

    Raises:
        ValueError: If the URL path is too short to contain a pull request.
    """
    parts = urlparse(url).path.strip("/").split("/")
    if len(parts) < 4 or not parts[0] or not parts[1]:
        raise ValueError(f"url path too short: {url!r}")
    return f"{parts[0]}/{parts[1]}"


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize a PyGithub timestamp to an aware UTC datetime."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _login(user) -> str:
    return user.login if user is not None else "ghost"


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except GithubException as e:
        raise GitHubError(f"{action}: {e.status} {e.data}") from e
    except (OSError, AttributeError, KeyError, TypeError, ValueError) as e:
        raise GitHubError(f"{action}: {e}") from e


class GitHubClient:
    """ReviewSource backed by the GitHub REST API."""

    def __init__(self, github: Github) -> None:
        """Initialize the client.

        Args:
            github: Authenticated PyGithub instance.
        """
        self._github = github
        self._username: str | None = None

    def current_user_login(self) -> str:
        """Get the authenticated user's login (cached)."""
        if self._username is None:
            with _translate_errors("resolve current user"):
                login = self._github.get_user().login
            if not login:
                raise GitHubError("GitHub returned an empty login")
            self._username = login
        return self._username

    def _search(self, query: str, limit: int) -> list[PullRequestSummary]:
        issues = self._github.search_issues(query, sort="updated", order="desc")
        return [
            PullRequestSummary(
                number=issue.number,
                title=issue.title,
                url=issue.html_url,
                updated_at=as_utc(issue.updated_at),
            )
            for issue in islice(issues, limit)
        ]

    def search_assigned(self, query: str, limit: int) -> list[PullRequestSummary]:
        """Search pull requests awaiting the user's review.

        Args:
            query: GitHub search query.
            limit: Maximum number of results.

        Returns:
            Matching pull requests, most recently updated first.
        """
        with _translate_errors("search assigned pull requests"):
            return self._search(query, limit)

    def list_authored(self, author: str, limit: int) -> list[PullRequestSummary]:
        """List open pull requests authored by a user, most recently updated first."""
        with _translate_errors("list authored pull requests"):
            return self._search(f"is:pr is:open author:{author}", limit)

    def pull_request_details(self, repo: str, number: int) -> PullRequestDetails:
        with _translate_errors(f"load {repo}#{number}"):
            pr = self._github.get_repo(repo).get_pull(number)
            return PullRequestDetails(
                number=pr.number,
                title=pr.title,
                url=pr.html_url,
                additions=pr.additions,
                deletions=pr.deletions,
                changed_files=pr.changed_files,
            )

    def comments_since(
        self, repo: str, number: int, since: datetime | None
    ) -> list[IssueComment]:
        """Fetch conversation comments updated at or after since.

        The since filter is applied by GitHub and only narrows the response;
        callers still compare timestamps themselves.
        """
        with _translate_errors(f"load comments for {repo}#{number}"):
            issue = self._github.get_repo(repo).get_issue(number)
            comments = issue.get_comments(since=since) if since else issue.get_comments()
            return [
                IssueComment(
                    id=comment.id,
                    body=comment.body or "",
                    updated_at=as_utc(comment.updated_at),
                    author=_login(comment.user),
                    url=comment.html_url,
                )
                for comment in comments
            ]

    def reviews(self, repo: str, number: int) -> list[Review]:
        with _translate_errors(f"load reviews for {repo}#{number}"):
            pr = self._github.get_repo(repo).get_pull(number)
            return [
                Review(
                    id=review.id,
                    body=review.body or "",
                    state=review.state or "",
                    submitted_at=as_utc(review.submitted_at),
                    author=_login(review.user),
                    url=review.html_url,
                )
                for review in pr.get_reviews()
            ]
