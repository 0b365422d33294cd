"""
Learner Context Snapshots

Read-through cache of personalization insights and conversation summaries,
one snapshot per learner.

A snapshot younger than max_age_seconds is served as-is. Otherwise both
collaborators are called concurrently; a collaborator that fails or times
out leaves its part of the last known good snapshot in place.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from adaptive_lesson_engine.collaborators import ContextSummarizer, PersonalizationService

logger = logging.getLogger(__name__)


@dataclass
class LearnerSnapshot:
    """Personalization and context known about a learner at one point in time."""
    personalization: Dict[str, Any] = field(default_factory=dict)
    conversation_summary: Optional[str] = None
    refreshed_at: float = 0.0

    @property
    def learning_analysis(self) -> Optional[Dict[str, Any]]:
        return self.personalization.get("learning_analysis")


class LearnerContextCache:
    """
    Read-through snapshot cache with last-known-good fallback.

    Args:
        personalization: PersonalizationService
        summarizer: ContextSummarizer
        max_age_seconds: How long a snapshot is served without refreshing
        timeout_seconds: Upper bound for each collaborator call
    """

    def __init__(
        self,
        personalization: PersonalizationService,
        summarizer: ContextSummarizer,
        max_age_seconds: float = 60.0,
        timeout_seconds: float = 10.0
    ):
        self.personalization = personalization
        self.summarizer = summarizer
        self.max_age_seconds = max_age_seconds
        self.timeout_seconds = timeout_seconds
        self._snapshots: Dict[str, LearnerSnapshot] = {}

    def peek(self, user_id: str) -> Optional[LearnerSnapshot]:
        """Last known snapshot without refreshing."""
        return self._snapshots.get(user_id)

    def forget_inactive(self, active_user_ids: Iterable[str]) -> int:
        """Drop snapshots of learners without a live session; returns how many were dropped."""
        keep = set(active_user_ids)
        stale = [user_id for user_id in self._snapshots if user_id not in keep]
        for user_id in stale:
            del self._snapshots[user_id]
        return len(stale)

    async def get(self, user_id: str, force_refresh: bool = False) -> LearnerSnapshot:
        """
        Return the learner's snapshot, refreshing it when stale or forced.

        Never raises; failed refreshes keep the previous values.
        """
        cached = self._snapshots.get(user_id)
        if cached and not force_refresh and time.monotonic() - cached.refreshed_at < self.max_age_seconds:
            return cached

        previous = cached or LearnerSnapshot()
        personalization, summary = await asyncio.gather(
            asyncio.wait_for(self.personalization.insights(user_id), timeout=self.timeout_seconds),
            asyncio.wait_for(self.summarizer.summarize(user_id), timeout=self.timeout_seconds),
            return_exceptions=True,
        )

        if isinstance(personalization, BaseException) or not isinstance(personalization, dict):
            logger.warning(f"⚠️ [ContextSnapshots] Personalization refresh failed for {user_id}: {personalization!r}")
            personalization = previous.personalization
        if isinstance(summary, BaseException) or not isinstance(summary, str):
            logger.warning(f"⚠️ [ContextSnapshots] Summary refresh failed for {user_id}: {summary!r}")
            summary = previous.conversation_summary

        snapshot = LearnerSnapshot(
            personalization=personalization,
            conversation_summary=summary,
            refreshed_at=time.monotonic(),
        )
        self._snapshots[user_id] = snapshot
        return snapshot
