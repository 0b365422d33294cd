"""
Tutoring Strategy Advisor

Recommends how the tutor should continue after a learner response.

Difficulty follows the last few assessed scores:
- average above 0.8 while improving: one level up
- average below 0.4 while declining: one level down
- anything else: unchanged

The methodology and immediate actions follow from that decision and the
tutor's chosen next action.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from adaptive_lesson_engine.learner_memory import LearnerMemory, calculate_trend

logger = logging.getLogger(__name__)

DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced")


@dataclass
class DifficultyAdjustment:
    should_adjust: bool
    direction: Optional[str]  # "increase" / "decrease"
    reason: str
    new_difficulty: Optional[str] = None


ACTIONS_BY_NEXT_ACTION = {
    "question": ["Ask the follow-up question", "Wait for the learner to explain their reasoning"],
    "explanation": ["Explain the key idea in one or two sentences", "Check understanding with a quick question"],
    "example": ["Give a concrete example", "Ask the learner for an example of their own"],
    "analogy": ["Offer an everyday analogy", "Ask where the analogy breaks down"],
    "checkpoint": ["Summarize progress so far", "Run a short checkpoint question"],
}

# direction -> (methodology, immediate actions)
METHODOLOGY_BY_DIRECTION = {
    "decrease": ("scaffolded_instruction", ["Break the concept into smaller steps", "Offer a worked example"]),
    "increase": ("inquiry_based_learning", ["Pose a stretch challenge", "Let the learner predict before explaining"]),
}


def shift_difficulty(current: str, step: int) -> str:
    """Move `step` levels along DIFFICULTY_LEVELS, staying put at the ends or for unknown levels."""
    if current not in DIFFICULTY_LEVELS:
        return current
    idx = DIFFICULTY_LEVELS.index(current) + step
    return DIFFICULTY_LEVELS[idx] if 0 <= idx < len(DIFFICULTY_LEVELS) else current


class TutoringStrategyAdvisor:
    """Default strategy advisor backed by LearnerMemory scores."""

    HIGH_SCORE_THRESHOLD = 0.8
    LOW_SCORE_THRESHOLD = 0.4
    MIN_INTERACTIONS = 3

    def __init__(self, memory: LearnerMemory):
        self.memory = memory

    def check_adjustment(self, current_difficulty: str, recent_scores: List[float],
                         performance_trend: Optional[str] = None) -> DifficultyAdjustment:
        """
        Decide whether the learner's difficulty level should move.

        Args:
            current_difficulty: Current level
            recent_scores: Recent scores in [0, 1], most recent last
            performance_trend: "improving" / "declining" / "stable"; computed from
                the scores when omitted
        """
        count = len(recent_scores)
        if count < self.MIN_INTERACTIONS:
            return DifficultyAdjustment(False, None, f"Need at least {self.MIN_INTERACTIONS} interactions (have {count})")

        average = sum(recent_scores) / count
        trend = performance_trend or calculate_trend(recent_scores)
        rules = (
            (average > self.HIGH_SCORE_THRESHOLD and trend == "improving", "increase", 1, "High performance"),
            (average < self.LOW_SCORE_THRESHOLD and trend == "declining", "decrease", -1, "Low performance"),
        )
        for applies, direction, step, label in rules:
            target = shift_difficulty(current_difficulty, step)
            if applies and target != current_difficulty:
                return DifficultyAdjustment(True, direction, f"{label} (avg={average:.2f}) with {trend} trend", target)

        return DifficultyAdjustment(False, None, f"Performance stable (avg={average:.2f}, trend={trend})")

    async def strategy(self, user_id: str, context: Dict[str, Any]) -> Dict[str, Any]:
        """
        Recommend how the tutor should continue with this learner.

        Applies any difficulty change to LearnerMemory. `context` carries
        lesson_title, current_block and the tutor's feedback.
        """
        current = self.memory.get_difficulty(user_id)
        scores = self.memory.recent_scores(user_id)
        adjustment = self.check_adjustment(current, scores)

        if adjustment.should_adjust:
            self.memory.set_difficulty(user_id, adjustment.new_difficulty)
            logger.info(f"📊 [Strategy] {user_id}: {current} → {adjustment.new_difficulty} ({adjustment.reason})")

        direction = adjustment.direction
        if direction is None and scores and sum(scores) / len(scores) < self.LOW_SCORE_THRESHOLD:
            direction = "decrease"

        if direction in METHODOLOGY_BY_DIRECTION:
            methodology, actions = METHODOLOGY_BY_DIRECTION[direction]
        else:
            feedback = context.get("feedback")
            next_action = feedback.get("next_action") if isinstance(feedback, dict) else None
            methodology = "socratic_questioning"
            actions = ACTIONS_BY_NEXT_ACTION.get(next_action, ACTIONS_BY_NEXT_ACTION["question"])

        return {
            "methodology": {"primary_methodology": methodology, "difficulty": adjustment.new_difficulty or current},
            "actions": {"immediate_actions": list(actions)},
            "difficulty_adjustment": asdict(adjustment),
        }
