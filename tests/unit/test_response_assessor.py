"""
Unit Tests for Response Assessor and Learner Memory

Tests heuristic scoring, model grading of uncertain answers and the
learner memory the assessor feeds.
"""

import pytest
import sys
import os

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_lesson_engine", "src"))
sys.path.insert(0, os.path.join(project_root, "tests"))

from adaptive_lesson_engine.errors import GenerationError
from adaptive_lesson_engine.learner_memory import LearnerMemory, calculate_trend
from adaptive_lesson_engine.response_assessor import ResponseAssessor
from fakes import ScriptedGeneration

MODERATE_ANSWER = "Gravity pulls the gas cloud together until the core gets hot enough"
STRONG_ANSWER = (
    "Stars form because gravity pulls a cloud of gas together. Specifically, the core heats up "
    "and fusion starts, which essentially means hydrogen becomes helium. For example, our Sun "
    "formed this way, and the key is that pressure balances gravity once fusion begins. "
    "In other words, the star becomes stable."
)


class TestResponseAssessor:
    """Test suite for ResponseAssessor."""

    @pytest.fixture
    def memory(self):
        return LearnerMemory()

    def test_heuristic_short_answer_is_weak(self):
        assessor = ResponseAssessor()
        assert assessor._heuristic_score("maybe?") < 0.3

    def test_heuristic_strong_answer(self):
        assessor = ResponseAssessor()
        assert assessor._heuristic_score(STRONG_ANSWER, "how stars form from gas and gravity") > 0.8

    def test_classify(self):
        assessor = ResponseAssessor()
        assert assessor.classify(0.9) == "strong"
        assert assessor.classify(0.2) == "weak"
        assert assessor.classify(0.5) == "moderate"

    @pytest.mark.asyncio
    async def test_uncertain_answer_graded_by_model(self, memory):
        generation = ScriptedGeneration()
        assessor = ResponseAssessor(generation=generation, memory=memory)

        result = await assessor.assess("u1", {
            "user_response": MODERATE_ANSWER,
            "question_type": "narration",
            "expected_answer": "Star formation",
            "lesson_context": {"block_title": "Birth of stars"},
        })

        assert result["method"] == "llm"
        assert result["score"] == pytest.approx(0.65)
        assert result["category"] == "moderate"
        assert generation.count("grading") == 1
        assert memory.recent_scores("u1") == [pytest.approx(0.65)]

    @pytest.mark.asyncio
    async def test_model_failure_falls_back_to_heuristic(self):
        generation = ScriptedGeneration(responses={"grading": GenerationError("down")})
        assessor = ResponseAssessor(generation=generation)

        score, method, _ = await assessor.score(MODERATE_ANSWER, "question")
        assert method == "heuristic"
        assert 0.0 <= score <= 1.0

    @pytest.mark.asyncio
    async def test_clear_cases_skip_model(self):
        generation = ScriptedGeneration()
        assessor = ResponseAssessor(generation=generation)

        score, method, _ = await assessor.score("no", "question")
        assert method == "heuristic"
        assert score < 0.3
        assert generation.calls == []

    @pytest.mark.asyncio
    async def test_empty_response_scores_zero(self):
        score, _, _ = await ResponseAssessor().score("   ", "question")
        assert score == 0.0

    @pytest.mark.asyncio
    async def test_choice_selection_not_graded(self, memory):
        assessor = ResponseAssessor(memory=memory)
        result = await assessor.assess("u1", {"user_response": {"choice_index": 0}, "question_type": "choice"})

        assert result["score"] is None
        assert result["category"] == "selection"
        assert memory.recent_scores("u1") == []


class TestLearnerMemory:
    """Test suite for LearnerMemory."""

    def test_calculate_trend(self):
        assert calculate_trend([0.2, 0.3, 0.7, 0.8]) == "improving"
        assert calculate_trend([0.8, 0.7, 0.3, 0.2]) == "declining"
        assert calculate_trend([0.5, 0.5, 0.55]) == "stable"
        assert calculate_trend([0.5]) == "stable"

    def test_scores_window(self):
        memory = LearnerMemory()
        for i in range(8):
            memory.record_assessment("u1", f"answer {i}", i / 10, "moderate")
        assert memory.recent_scores("u1") == [0.3, 0.4, 0.5, 0.6, 0.7]

    @pytest.mark.asyncio
    async def test_insights_reflect_profile_and_scores(self):
        memory = LearnerMemory()
        memory.remember_profile("u1", {"learning": {"preferred_style": "visual"}}, "intermediate")
        memory.record_assessment("u1", "a", 0.2, "weak")
        memory.record_assessment("u1", "b", 0.3, "weak")

        insights = await memory.insights("u1")
        analysis = insights["learning_analysis"]
        assert analysis["learning_style"] == "visual"
        assert analysis["difficulty"] == "intermediate"
        assert analysis["average_score"] == 0.25
        assert analysis["struggling"] is True

    @pytest.mark.asyncio
    async def test_summarize(self):
        memory = LearnerMemory()
        assert await memory.summarize("nobody") == "No previous interactions."

        memory.record_assessment("u1", "gravity does it", 0.5, "moderate", block_title="Birth of stars")
        summary = await memory.summarize("u1")
        assert "gravity does it" in summary
        assert "Birth of stars" in summary
