"""Poll loop that turns GitHub activity into notifications."""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from review_notifier.cache import StateStore, save_cache
from review_notifier.detector import (
    assigned_notification,
    decide_assigned,
    decide_authored,
    pr_key,
)
from review_notifier.github_client import (
    GitHubError,
    PullRequestSummary,
    ReviewSource,
    repo_from_url,
)
from review_notifier.notifications import Notification, NotificationError, Notifier

logger = logging.getLogger(__name__)


class PollCancelled(Exception):
    """Raised inside a poll when the stop event is set."""


@dataclass
class MonitorSettings:
    """What to poll and where to keep state."""

    assigned_query: str
    author: str
    cache_file: Path
    poll_interval: float
    max_results: int = 30


class Monitor:
    """Polls GitHub for review requests and activity on the user's own PRs.

    Each poll runs the assigned flow, then the authored flow, then saves the
    state. Failures in one flow or on one pull request are logged and skipped;
    nothing short of cancellation aborts a poll.

    Cancellation is checked between calls. A GitHub request already in flight
    is bounded only by the client timeout, and a desktop notification runs to
    completion.
    """

    def __init__(
        self,
        settings: MonitorSettings,
        client: ReviewSource,
        notifier: Notifier,
        store: StateStore,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self.notifier = notifier
        self.store = store
        self.stop_event = stop_event or threading.Event()

    def run(self) -> None:
        """Poll immediately, then every poll_interval seconds until stopped."""
        try:
            self.poll()
        except PollCancelled:
            logger.info("Stopped during initial poll")
            return
        if self.store.mark_initialized():
            logger.info("Initial poll complete; notifying on new activity from now on")
            self.persist()

        while not self.stop_event.wait(self.settings.poll_interval):
            try:
                self.poll()
            except PollCancelled:
                break
        logger.info("Monitor stopped")

    def stop(self) -> None:
        self.stop_event.set()

    def poll(self) -> None:
        """Run one full pass over both flows and persist the result.

        Raises:
            PollCancelled: If the stop event was set mid-pass. Nothing is
                saved in that case.
        """
        try:
            self.poll_assigned()
        except GitHubError as e:
            logger.warning("Assigned pull request poll failed: %s", e)

        try:
            self.poll_authored()
        except GitHubError as e:
            logger.warning("Authored pull request poll failed: %s", e)

        self._check_cancelled()
        self.persist()

    def persist(self) -> bool:
        """Write the current state to disk. Returns False if the write failed."""
        try:
            save_cache(self.store.snapshot(), self.settings.cache_file)
        except OSError as e:
            logger.warning("Failed to save state to %s: %s", self.settings.cache_file, e)
            return False
        return True

    def _check_cancelled(self) -> None:
        if self.stop_event.is_set():
            raise PollCancelled()

    def _resolve_repo(self, pr: PullRequestSummary) -> str | None:
        try:
            return repo_from_url(pr.url)
        except ValueError as e:
            logger.warning("Failed to resolve repo for PR #%s: %s", pr.number, e)
            return None

    def _send(self, notification: Notification, key: str) -> None:
        try:
            self.notifier.notify(notification)
        except NotificationError as e:
            logger.warning("Notification for %s failed: %s", key, e)

    def poll_assigned(self) -> None:
        """Notify about pull requests newly awaiting the user's review."""
        self._check_cancelled()
        results = self.client.search_assigned(
            self.settings.assigned_query, self.settings.max_results
        )
        logger.debug("Found %d assigned pull requests", len(results))

        initialized = self.store.initialized
        for pr in results:
            self._check_cancelled()
            repo = self._resolve_repo(pr)
            if repo is None:
                continue
            key = pr_key(repo, pr.number)

            decision = decide_assigned(initialized, self.store.assigned(key), pr.updated_at)
            if decision.emit:
                try:
                    details = self.client.pull_request_details(repo, pr.number)
                except GitHubError as e:
                    logger.warning("Failed to load details for %s: %s", key, e)
                else:
                    self._send(assigned_notification(repo, pr, details), key)

            self.store.advance_assigned(key, decision.watermark)

    def poll_authored(self) -> None:
        """Notify about new comments and reviews on the user's own pull requests."""
        self._check_cancelled()
        results = self.client.list_authored(self.settings.author, self.settings.max_results)
        logger.debug("Found %d authored pull requests", len(results))

        initialized = self.store.initialized
        for pr in results:
            self._check_cancelled()
            repo = self._resolve_repo(pr)
            if repo is None:
                continue
            key = pr_key(repo, pr.number)
            watermark = self.store.authored(key)

            try:
                comments = self.client.comments_since(
                    repo, pr.number, watermark.last_issue_comment
                )
            except GitHubError as e:
                logger.warning("Failed to load comments for %s: %s", key, e)
                comments = None

            self._check_cancelled()
            try:
                reviews = self.client.reviews(repo, pr.number)
            except GitHubError as e:
                logger.warning("Failed to load reviews for %s: %s", key, e)
                reviews = None

            decision = decide_authored(initialized, watermark, repo, pr, comments, reviews)
            for notification in decision.notifications:
                self._send(notification, key)

            self.store.advance_authored(key, decision.watermark)
