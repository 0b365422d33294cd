"""
Unit Tests for Lesson Planner

Tests plan normalization, validation and the fallback plan.
"""

import pytest
import sys
import os

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_lesson_engine", "src"))
sys.path.insert(0, os.path.join(project_root, "tests"))

from adaptive_lesson_engine.errors import GenerationError
from adaptive_lesson_engine.lesson_models import StepType
from adaptive_lesson_engine.lesson_planner import LessonPlanner, build_fallback_plan, normalize_plan
from fakes import ScriptedGeneration


class TestFallbackPlan:
    """Test suite for the deterministic fallback plan."""

    def test_default_shape(self):
        plan = build_fallback_plan()

        assert [s.id for s in plan] == [
            "step_1", "step_2", "step_3", "choice_4", "step_5", "step_6", "step_7", "choice_8"
        ]
        assert [s.type for s in plan] == [
            StepType.NARRATION, StepType.NARRATION, StepType.QUIZ, StepType.CHOICE,
            StepType.NARRATION, StepType.QUIZ, StepType.NARRATION, StepType.CHOICE,
        ]

    def test_choice_options_point_at_next_step(self):
        plan = build_fallback_plan()
        choice = plan.resolve("choice_4")

        assert [o.text for o in choice.options] == ["Path A", "Path B"]
        assert all(o.next == "step_5" for o in choice.options)
        assert choice.estimated_minutes == 2
        assert plan.resolve("step_5").estimated_minutes == 3

    def test_final_choice_has_no_target(self):
        plan = build_fallback_plan()
        assert all(o.next is None for o in plan.resolve("choice_8").options)

    def test_configurable_length(self):
        assert len(build_fallback_plan(3)) == 3
        assert len(build_fallback_plan(0)) == 1


class TestNormalizePlan:
    """Test suite for plan normalization."""

    def test_missing_fields_defaulted(self):
        plan = normalize_plan([{}, "not a dict", {"type": "QUIZ", "estimated_minutes": 0}])

        first = plan.step_at(0)
        assert first.id == "step_1"
        assert first.type is StepType.NARRATION
        assert first.title == "Step 1"
        assert first.objective == "Learn a key concept"
        assert first.estimated_minutes == 2
        assert plan.step_at(1).id == "step_2"
        assert plan.step_at(2).type is StepType.QUIZ
        assert plan.step_at(2).estimated_minutes == 1

    def test_unknown_type_coerced(self):
        plan = normalize_plan([{"id": "a", "type": "video"}])
        assert plan.step_at(0).type is StepType.NARRATION

    def test_duplicate_ids_made_unique(self):
        plan = normalize_plan([{"id": "intro"}, {"id": "intro"}, {"id": "intro"}])

        assert [s.id for s in plan] == ["intro", "intro_2", "intro_3"]
        assert len(plan.index_by_id) == 3

    def test_dangling_option_target_cleared(self):
        plan = normalize_plan([
            {"id": "c", "type": "choice", "options": [{"text": "Go", "next": "missing"}, {"text": "Stay", "next": "b"}]},
            {"id": "b"},
        ])
        options = plan.resolve("c").options
        assert options[0].next is None
        assert options[1].next == "b"

    def test_options_dropped_on_non_choice_steps(self):
        plan = normalize_plan([{"id": "n", "type": "narration", "options": [{"text": "x", "next": "n"}]}])
        assert plan.step_at(0).options == []
        assert "options" not in plan.step_at(0).to_dict()

    def test_choice_without_options_gets_defaults(self):
        plan = normalize_plan([{"id": "c", "type": "choice"}, {"id": "d"}])
        assert [(o.text, o.next) for o in plan.resolve("c").options] == [("Path A", "d"), ("Path B", "d")]

    def test_successor_found_by_id(self):
        plan = normalize_plan([{"id": "x"}, {"id": "y"}])
        assert plan.successor_of("x").id == "y"
        assert plan.successor_of("y") is None
        assert plan.successor_of("unknown") is None


class TestLessonPlanner:
    """Test suite for LessonPlanner.create_plan."""

    @pytest.mark.asyncio
    async def test_generated_plan_used(self):
        generation = ScriptedGeneration(plan=[
            {"id": "intro", "type": "narration", "title": "Intro", "objective": "Meet Mars", "estimated_minutes": 3},
            {"id": "pick", "type": "choice", "options": [{"text": "Rovers", "next": "intro"}]},
        ])
        plan = await LessonPlanner(generation).create_plan("mars", {"learning": {"preferred_style": "visual"}})

        assert [s.id for s in plan] == ["intro", "pick"]
        assert plan.resolve("pick").options[0].next == "intro"
        assert generation.count("plan") == 1
        assert "visual" in generation.calls[0][1]

    @pytest.mark.asyncio
    async def test_plan_wrapped_in_prose_and_fence(self):
        generation = ScriptedGeneration(responses={
            "plan": 'Here you go:\n```json\n[{"id": "a", "type": "quiz",}]\n```'
        })
        plan = await LessonPlanner(generation).create_plan("orbits")
        assert plan.step_at(0).id == "a"
        assert plan.step_at(0).type is StepType.QUIZ

    @pytest.mark.asyncio
    async def test_steps_key_accepted(self):
        generation = ScriptedGeneration(responses={"plan": '{"steps": [{"id": "only"}]}'})
        plan = await LessonPlanner(generation).create_plan("orbits")
        assert [s.id for s in plan] == ["only"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        GenerationError("provider down"),
        "no json here at all",
        "[]",
        '{"title": "not a list"}',
    ])
    async def test_fallback_plan_on_failure(self, response):
        generation = ScriptedGeneration(responses={"plan": response})
        plan = await LessonPlanner(generation, fallback_steps=8).create_plan("orbits")

        assert len(plan) == 8
        assert plan.step_at(0).id == "step_1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        '[{"id": "c", "type": "choice", "options": 5}]',
        '[{"id": "c", "type": "choice", "options": {"text": "A", "next": "c"}}]',
        '[{"id": "c", "type": "choice", "options": ["A", 3, null]}]',
        '[{"id": "s1", "type": "narration", "estimated_minutes": 1e400}]',
        '[{"id": "s1", "estimated_minutes": "Infinity"}]',
        '[{"id": "s1", "estimated_minutes": NaN}]',
        '[{"id": "s1", "estimated_minutes": "soon"}]',
        '[{"id": "s1", "estimated_minutes": [3]}]',
        '[{"id": "s1", "estimated_minutes": true}]',
        '[7, null, "text", {"id": "s1"}]',
    ])
    async def test_wrong_typed_fields_still_give_usable_plan(self, response):
        generation = ScriptedGeneration(responses={"plan": response})
        plan = await LessonPlanner(generation).create_plan("orbits")

        assert len(plan) >= 1
        for step in plan:
            assert isinstance(step.estimated_minutes, int)
            assert step.estimated_minutes >= 1
            if step.is_choice:
                assert step.options
                assert all(option.next is None or option.next in plan.index_by_id for option in step.options)

    @pytest.mark.parametrize("minutes", [float("inf"), float("-inf"), float("nan"), "Infinity", None, "soon"])
    def test_non_finite_minutes_defaulted(self, minutes):
        plan = normalize_plan([{"id": "s1", "estimated_minutes": minutes}])
        assert plan.step_at(0).estimated_minutes == 2

    def test_scalar_options_replaced_by_defaults(self):
        plan = normalize_plan([{"id": "c", "type": "choice", "options": 5}, {"id": "d"}])
        assert [(o.text, o.next) for o in plan.resolve("c").options] == [("Path A", "d"), ("Path B", "d")]
