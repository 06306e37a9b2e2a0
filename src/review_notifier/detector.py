"""Decide which review activity is new since the last poll.

Everything here is pure: callers pass in the stored watermark and freshly
fetched snapshots and get back the notifications to send plus the watermark
to store. A watermark of None is the zero time, so anything observed is
after it.

Before the first completed poll (``initialized`` is False) watermarks are
still advanced but nothing is emitted, so a fresh install does not replay
every existing comment and review.
"""

from dataclasses import dataclass, field
from datetime import datetime

from review_notifier.cache import AuthoredRecord, later
from review_notifier.github_client import (
    IssueComment,
    PullRequestDetails,
    PullRequestSummary,
    Review,
)
from review_notifier.notifications import Notification

COMMENT_SUMMARY_LIMIT = 220
REVIEW_SUMMARY_LIMIT = 180


@dataclass
class AssignedDecision:
    """Outcome for one pull request in the review-requested flow."""

    emit: bool
    watermark: datetime


@dataclass
class AuthoredDecision:
    """Outcome for one pull request in the authored flow."""

    notifications: list[Notification] = field(default_factory=list)
    watermark: AuthoredRecord = field(default_factory=AuthoredRecord)


def pr_key(repo: str, number: int) -> str:
    """Return the cache key for a pull request, e.g. "org/repo#42"."""
    return f"{repo}#{number}"


def is_after(value: datetime | None, watermark: datetime | None) -> bool:
    """Return True if value is strictly after watermark (None is the zero time)."""
    if value is None:
        return False
    return watermark is None or value > watermark


def summarize_text(body: str, limit: int) -> str:
    """Reduce a comment body to a one-line summary.

    Uses the first line, or the second one when the first is blank, and cuts
    it to limit characters with a trailing ellipsis.

    Args:
        body: Raw markdown body.
        limit: Maximum number of characters kept.

    Returns:
        The summary, or "" for a blank body.
    """
    if not body.strip():
        return ""
    lines = body.replace("\r\n", "\n").split("\n")
    summary = lines[0].strip()
    if not summary and len(lines) > 1:
        summary = lines[1].strip()
    if len(summary) > limit:
        return summary[:limit] + "…"
    return summary


def title_case(text: str) -> str:
    """Lowercase text and capitalize its first character: "APPROVED" -> "Approved"."""
    if not text:
        return ""
    lower = text.lower()
    return lower[0].upper() + lower[1:]


def decide_assigned(
    initialized: bool, watermark: datetime | None, updated_at: datetime
) -> AssignedDecision:
    """Decide whether a review-requested pull request should notify.

    A pull request never seen before notifies once the monitor is
    initialized, which is how new review requests are announced.

    Args:
        initialized: Whether the first poll has completed.
        watermark: Last seen updated_at for this pull request, or None.
        updated_at: The pull request's current updated_at.

    Returns:
        Whether to notify and the watermark to store.
    """
    emit = initialized and is_after(updated_at, watermark)
    return AssignedDecision(emit=emit, watermark=later(watermark, updated_at))


def assigned_notification(
    repo: str, pr: PullRequestSummary, details: PullRequestDetails
) -> Notification:
    """Build the notification for a review request."""
    return Notification(
        title=details.title or pr.title,
        subtitle=repo,
        message=(
            f"#{details.number} · +{details.additions} −{details.deletions}"
            f" · {details.changed_files} files"
        ),
        link=pr.url,
    )


def comment_message(comment: IssueComment) -> str:
    return f"{comment.author}: {summarize_text(comment.body, COMMENT_SUMMARY_LIMIT)}"


def review_message(review: Review) -> str:
    state = title_case(review.state)
    summary = summarize_text(review.body, REVIEW_SUMMARY_LIMIT)
    if summary:
        return f"{review.author}: {state} — {summary}"
    return f"{review.author}: {state}"


def decide_authored(
    initialized: bool,
    watermark: AuthoredRecord,
    repo: str,
    pr: PullRequestSummary,
    comments: list[IssueComment] | None,
    reviews: list[Review] | None,
) -> AuthoredDecision:
    """Find new comments and reviews on a pull request the user authored.

    Comments and reviews are tracked against separate watermarks. Passing
    None for either list means it could not be fetched; its watermark is
    carried over unchanged.

    Args:
        initialized: Whether the first poll has completed.
        watermark: Stored comment and review watermarks.
        repo: Repository full name.
        pr: The pull request being inspected.
        comments: Conversation comments, or None if unavailable.
        reviews: Reviews, or None if unavailable.

    Returns:
        Notifications in order (comments first, then reviews) and the new
        watermark pair.
    """
    subtitle = pr_key(repo, pr.number)
    notifications = []

    last_comment = watermark.last_issue_comment
    for comment in comments or []:
        last_comment = later(last_comment, comment.updated_at)
        if initialized and is_after(comment.updated_at, watermark.last_issue_comment):
            notifications.append(
                Notification(pr.title, subtitle, comment_message(comment), comment.url)
            )

    last_review = watermark.last_review
    for review in reviews or []:
        # Pending reviews have no submission time yet.
        if review.submitted_at is None:
            continue
        last_review = later(last_review, review.submitted_at)
        if initialized and is_after(review.submitted_at, watermark.last_review):
            notifications.append(
                Notification(pr.title, subtitle, review_message(review), review.url)
            )

    return AuthoredDecision(
        notifications=notifications,
        watermark=AuthoredRecord(last_issue_comment=last_comment, last_review=last_review),
    )
