"""
End-to-End Tests for Full Lesson Flow

Drives whole lessons through the engine with a scripted generation service:
- Synthetic plan from start to completion
- Branching lessons
- Learner memory feeding personalization between turns
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_lesson_engine", "src"))
sys.path.insert(0, os.path.join(project_root, "tests"))

from adaptive_lesson_engine.lesson_session_engine import LearnerIdentity, LessonRequest, LessonSessionEngine
from fakes import ScriptedGeneration

USER = LearnerIdentity(id="learner_1", name="Grace")


async def run_lesson(engine, mission_id, choose=0, max_steps=200):
    """Advance a lesson until done, picking `choose` at every choice block."""
    payload = await engine.start_session(USER, LessonRequest(topic="stars", mission_id=mission_id))
    visited = [payload["block_id"]]

    for _ in range(max_steps):
        if payload.get("awaiting_choice"):
            payload = await engine.submit_response(USER.id, mission_id, {"choice_index": choose})
        else:
            payload = await engine.next_turn(USER.id, mission_id)
        if payload["done"]:
            return visited, payload
        if payload["block_id"] != visited[-1]:
            visited.append(payload["block_id"])

    raise AssertionError("Lesson did not finish")


class TestFullLessonFlow:
    """Test complete lesson flows."""

    @pytest.fixture
    def engine(self):
        """Engine whose plan generation fails, so the synthetic plan is used."""
        return LessonSessionEngine(ScriptedGeneration())

    @pytest.mark.asyncio
    async def test_synthetic_plan_runs_to_completion(self, engine):
        visited, final = await run_lesson(engine, "m_synthetic")

        assert visited == [
            "step_1", "step_2", "step_3", "choice_4",
            "step_5", "step_6", "step_7", "choice_8",
        ]
        assert final["done"] is True
        # The last choice has no target, so choosing it ends the lesson
        assert final["branched"] is True

        state = await engine.get_state(USER.id, "m_synthetic")
        assert state["status"] == "completed"
        assert [b["type"] for b in state["blocks"]][:4] == ["narration", "narration", "quiz", "choice"]

    @pytest.mark.asyncio
    async def test_branching_lesson_follows_choice(self):
        plan = [
            {"id": "intro", "type": "narration", "title": "Welcome"},
            {"id": "fork", "type": "choice", "title": "Where next?", "options": [
                {"text": "Visit a nebula", "next": "nebula"},
                {"text": "Visit a black hole", "next": "black_hole"},
            ]},
            {"id": "nebula", "type": "narration", "title": "Nebulae"},
            {"id": "black_hole", "type": "reflection", "title": "Black holes"},
        ]
        engine = LessonSessionEngine(ScriptedGeneration(plan=plan))

        visited, final = await run_lesson(engine, "m_branch", choose=1)

        assert visited == ["intro", "fork", "black_hole"]
        assert final["done"] is True

    @pytest.mark.asyncio
    async def test_responses_feed_learner_memory(self, engine):
        mission_id = "m_memory"
        await engine.start_session(USER, LessonRequest(topic="stars", mission_id=mission_id))

        result = await engine.submit_response(
            USER.id, mission_id, "Gravity pulls the gas cloud together until the core gets hot enough"
        )
        assert result["assessment"]["score"] is not None

        summary = await engine.memory.summarize(USER.id)
        assert "Gravity pulls the gas cloud" in summary
        insights = await engine.memory.insights(USER.id)
        assert insights["interaction_count"] == 1

    @pytest.mark.asyncio
    async def test_sessions_are_independent(self, engine):
        await engine.start_session(USER, LessonRequest(mission_id="m_a"))
        await engine.start_session(USER, LessonRequest(mission_id="m_b"))

        await engine.next_turn(USER.id, "m_a")
        await engine.end_session(USER.id, "m_b")

        state = await engine.get_state(USER.id, "m_a")
        assert state["indices"] == {"block": 0, "turn": 1}
        assert len(engine.store) == 1
