"""
Learner Memory

In-process, per-learner memory shared by the assessment, personalization and
summarization collaborators.

Tracks:
- The learner profile supplied when a lesson starts
- Recent response scores (for trend and difficulty adaptation)
- Recent assessed responses (for the context digest)
- The learner's current difficulty level

Implements PersonalizationService.insights() and ContextSummarizer.summarize().
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

MAX_SCORES = 5
MAX_INTERACTIONS = 20


def calculate_trend(scores: List[float]) -> str:
    """
    Calculate performance trend from scores (most recent last).

    Returns:
        "improving", "declining", or "stable"
    """
    if len(scores) < 2:
        return "stable"

    mid = len(scores) // 2
    first_half_avg = sum(scores[:mid]) / len(scores[:mid])
    second_half_avg = sum(scores[mid:]) / len(scores[mid:])

    diff = second_half_avg - first_half_avg
    if diff > 0.1:
        return "improving"
    elif diff < -0.1:
        return "declining"
    return "stable"


@dataclass
class LearnerRecord:
    """Everything remembered about one learner."""
    user_id: str
    profile: Dict[str, Any] = field(default_factory=dict)
    difficulty: str = "beginner"
    scores: Deque[float] = field(default_factory=lambda: deque(maxlen=MAX_SCORES))
    interactions: Deque[Dict[str, Any]] = field(default_factory=lambda: deque(maxlen=MAX_INTERACTIONS))
    last_updated: datetime = field(default_factory=datetime.now)


class LearnerMemory:
    """In-memory learner records keyed by user id."""

    def __init__(self):
        self._records: Dict[str, LearnerRecord] = {}

    def _record(self, user_id: str) -> LearnerRecord:
        record = self._records.get(user_id)
        if record is None:
            record = LearnerRecord(user_id=user_id)
            self._records[user_id] = record
        return record

    def remember_profile(self, user_id: str, profile: Optional[Dict[str, Any]], difficulty: Optional[str] = None):
        """Store the learner profile (and optionally a starting difficulty)."""
        record = self._record(user_id)
        record.profile = dict(profile or {})
        if difficulty:
            record.difficulty = difficulty
        record.last_updated = datetime.now()

    def record_assessment(self, user_id: str, response_text: str, score: Optional[float],
                          category: str, block_title: str = ""):
        """Remember an assessed response; scored responses feed the trend."""
        record = self._record(user_id)
        if score is not None:
            record.scores.append(score)
        record.interactions.append({
            "response": response_text[:200],
            "score": score,
            "category": category,
            "block_title": block_title,
            "at": datetime.now().isoformat(),
        })
        record.last_updated = datetime.now()

    def forget_inactive(self, active_user_ids: Iterable[str]) -> int:
        """Drop records of learners without a live session; returns how many were dropped."""
        keep = set(active_user_ids)
        stale = [user_id for user_id in self._records if user_id not in keep]
        for user_id in stale:
            del self._records[user_id]
        return len(stale)

    def recent_scores(self, user_id: str) -> List[float]:
        record = self._records.get(user_id)
        return list(record.scores) if record else []

    def get_difficulty(self, user_id: str) -> str:
        record = self._records.get(user_id)
        return record.difficulty if record else "beginner"

    def set_difficulty(self, user_id: str, difficulty: str):
        self._record(user_id).difficulty = difficulty

    async def insights(self, user_id: str) -> Dict[str, Any]:
        """
        Personalization insights for the learner.

        Returns:
            Dict with a 'learning_analysis' entry describing style, performance and pace
        """
        record = self._record(user_id)
        scores = list(record.scores)
        learning = record.profile.get("learning") or {}
        average = sum(scores) / len(scores) if scores else None
        trend = calculate_trend(scores)

        return {
            "learning_analysis": {
                "learning_style": learning.get("preferred_style") or record.profile.get("learning_style") or "multimodal",
                "difficulty": record.difficulty,
                "average_score": round(average, 2) if average is not None else None,
                "performance_trend": trend,
                "struggling": average is not None and average < 0.4,
                "interests": learning.get("preferred_topics") or [],
            },
            "interaction_count": len(record.interactions),
        }

    async def summarize(self, user_id: str) -> str:
        """Short digest of the learner's most recent assessed responses."""
        record = self._records.get(user_id)
        if not record or not record.interactions:
            return "No previous interactions."

        recent = list(record.interactions)[-3:]
        parts = []
        for item in recent:
            where = f" on '{item['block_title']}'" if item.get("block_title") else ""
            parts.append(f"{item['category']} response{where}: \"{item['response'][:80]}\"")
        return f"Difficulty {record.difficulty}. Recent: " + "; ".join(parts)
