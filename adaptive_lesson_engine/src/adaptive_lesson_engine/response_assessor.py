"""
Response Assessor

Hybrid approach for assessing learner responses:
1. Fast heuristic (catches most cases instantly)
2. Model grading (for uncertain cases)

Implements AssessmentService.assess(). Results are remembered in
LearnerMemory so the strategy advisor can adapt difficulty.
"""

import logging
import re
from typing import Any, Dict, Optional

from adaptive_lesson_engine.collaborators import GenerationService
from adaptive_lesson_engine.learner_memory import LearnerMemory
from adaptive_lesson_engine.prompts import grading_prompt
from adaptive_lesson_engine.response_normalizer import normalize_response

logger = logging.getLogger(__name__)

WEAK_INDICATORS = [
    "i think", "maybe", "not sure", "i don't know",
    "i'm not sure", "unsure", "probably", "perhaps",
    "i guess", "not really"
]
STRONG_INDICATORS = [
    "because", "since", "for example", "specifically",
    "this means", "in other words", "essentially",
    "the key is", "important to note", "crucially"
]
_WORD_RE = re.compile(r"[a-z]{4,}")


class ResponseAssessor:
    """
    Scores learner responses on a scale of 0-1.

    Uses hybrid approach:
    - Heuristic for obvious cases (fast, free)
    - Model grading for nuanced cases, when a generation service is available
    """

    UNCERTAIN_LOW = 0.3
    UNCERTAIN_HIGH = 0.8

    def __init__(self, generation: Optional[GenerationService] = None, memory: Optional[LearnerMemory] = None):
        self.generation = generation
        self.memory = memory

    async def assess(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Assess a learner response.

        Args:
            user_id: Learner id
            payload: user_response, question_type, expected_answer and lesson_context

        Returns:
            Dict with score (None for selections), category, method and reasoning
        """
        response = payload.get("user_response")
        question_type = payload.get("question_type") or "open"
        expected = payload.get("expected_answer") or ""
        lesson_context = payload.get("lesson_context") or {}
        block_title = lesson_context.get("block_title", "")

        if question_type == "choice" or not isinstance(response, str):
            result = {"score": None, "category": "selection", "method": "selection",
                      "reasoning": "Branch selections are not graded"}
            self._remember(user_id, str(response), result, block_title)
            return result

        score, method, reasoning = await self.score(response, block_title or expected, expected)
        result = {
            "score": score,
            "category": self.classify(score),
            "method": method,
            "reasoning": reasoning,
        }
        self._remember(user_id, response, result, block_title)
        return result

    def _remember(self, user_id: str, response_text: str, result: Dict[str, Any], block_title: str):
        if self.memory is not None:
            self.memory.record_assessment(user_id, response_text, result["score"], result["category"], block_title)

    async def score(self, response: str, question: str, expected: str = ""):
        """
        Score a response.

        Returns:
            (score, method, reasoning) with score between 0.0 (weak) and 1.0 (strong)
        """
        if not response or not response.strip():
            return 0.0, "heuristic", "Empty response"

        heuristic_score = self._heuristic_score(response, expected)
        if heuristic_score < self.UNCERTAIN_LOW or heuristic_score > self.UNCERTAIN_HIGH:
            return heuristic_score, "heuristic", "Clear-cut response"

        if self.generation is None:
            return heuristic_score, "heuristic", "Model grading unavailable"

        try:
            raw = await self.generation.generate(grading_prompt(response, question, expected))
            result = normalize_response(raw)
            llm_score = float(result.get("score", 0.5))
            reasoning = str(result.get("reasoning") or "")
            return max(0.0, min(1.0, llm_score)), "llm", reasoning
        except Exception as e:
            logger.warning(f"⚠️ [Assessor] Model grading failed: {e}, using heuristic")
            return heuristic_score, "heuristic", "Model grading failed"

    def _heuristic_score(self, response: str, expected: str = "") -> float:
        """Length, confidence markers and overlap with the learning goal."""
        score = 0.5
        response_lower = response.lower().strip()

        word_count = len(response.split())
        if word_count < 5:
            score -= 0.4
        elif word_count < 10:
            score -= 0.2
        elif word_count > 100:
            score += 0.3
        elif word_count > 50:
            score += 0.2

        weak_count = sum(1 for ind in WEAK_INDICATORS if ind in response_lower)
        strong_count = sum(1 for ind in STRONG_INDICATORS if ind in response_lower)
        score += (strong_count * 0.1) - (weak_count * 0.15)

        # Words shared with the learning goal indicate on-topic answers
        goal_words = set(_WORD_RE.findall(expected.lower()))
        if goal_words:
            overlap = len(goal_words & set(_WORD_RE.findall(response_lower)))
            score += min(overlap * 0.05, 0.2)

        if response.count("?") > 1:
            score -= 0.1

        return max(0.0, min(1.0, score))

    def classify(self, score: float) -> str:
        """
        Classify score into category.

        Returns:
            "strong" if score > 0.7
            "weak" if score < 0.4
            "moderate" otherwise
        """
        if score > 0.7:
            return "strong"
        elif score < 0.4:
            return "weak"
        return "moderate"
