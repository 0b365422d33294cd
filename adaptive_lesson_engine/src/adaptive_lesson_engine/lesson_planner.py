"""
Lesson Planner

Builds the upfront lesson plan for a session.

The model is asked for a JSON array of steps; whatever comes back is
normalized into PlanSteps (missing fields defaulted, duplicate ids made
unique, dangling option targets cleared). If the call fails or returns no
usable steps, a deterministic synthetic plan is used instead, so
create_plan() always returns at least one step.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from adaptive_lesson_engine.collaborators import GenerationService
from adaptive_lesson_engine.lesson_models import LessonPlan, PlanOption, PlanStep, StepType
from adaptive_lesson_engine.prompts import create_lesson_plan_prompt
from adaptive_lesson_engine.response_normalizer import normalize_response

logger = logging.getLogger(__name__)

DEFAULT_OBJECTIVE = "Learn a key concept"
DEFAULT_MINUTES = 2


def _default_options(next_step_id: Optional[str]) -> List[PlanOption]:
    return [PlanOption(text="Path A", next=next_step_id), PlanOption(text="Path B", next=next_step_id)]


def build_fallback_plan(total_steps: int = 8) -> LessonPlan:
    """
    Deterministic plan used when generation fails.

    Every 4th step is a choice (both options lead to the next step), other
    steps are quizzes on multiples of 3 and narration otherwise.
    """
    total_steps = max(1, total_steps)

    def step_id(n: int) -> Optional[str]:
        if n > total_steps:
            return None
        return f"choice_{n}" if n % 4 == 0 else f"step_{n}"

    steps = []
    for n in range(1, total_steps + 1):
        if n % 4 == 0:
            steps.append(PlanStep(
                id=step_id(n),
                type=StepType.CHOICE,
                title=f"Choose your path {n}",
                objective="Select an exploration path",
                estimated_minutes=2,
                options=_default_options(step_id(n + 1)),
            ))
        else:
            steps.append(PlanStep(
                id=step_id(n),
                type=StepType.QUIZ if n % 3 == 0 else StepType.NARRATION,
                title=f"Learning Step {n}",
                objective=f"Understand concept {n}",
                estimated_minutes=3,
            ))
    return LessonPlan(steps)


def _coerce_minutes(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_MINUTES
    try:
        minutes = float(value)
    except (TypeError, ValueError):
        return DEFAULT_MINUTES
    if not math.isfinite(minutes):
        return DEFAULT_MINUTES
    return max(1, int(minutes))


def _coerce_text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _unique_id(candidate: str, seen: Dict[str, int]) -> str:
    if candidate not in seen:
        seen[candidate] = 1
        return candidate
    suffix = seen[candidate] + 1
    while f"{candidate}_{suffix}" in seen:
        suffix += 1
    seen[candidate] = suffix
    unique = f"{candidate}_{suffix}"
    seen[unique] = 1
    logger.warning(f"⚠️ [LessonPlanner] Duplicate step id '{candidate}' renamed to '{unique}'")
    return unique


def normalize_plan(raw_steps: List[Any]) -> LessonPlan:
    """
    Turn a raw list of step objects into a valid LessonPlan.

    Args:
        raw_steps: Parsed model output (list of dicts; other items are defaulted)

    Returns:
        LessonPlan with unique ids and valid option targets
    """
    seen: Dict[str, int] = {}
    steps: List[PlanStep] = []

    for i, raw in enumerate(raw_steps):
        raw = raw if isinstance(raw, dict) else {}
        n = i + 1
        raw_id = raw.get("id")
        step_id = str(raw_id).strip() if raw_id not in (None, "") else f"step_{n}"
        step = PlanStep(
            id=_unique_id(step_id, seen),
            type=StepType.parse(raw.get("type")),
            title=_coerce_text(raw.get("title"), f"Step {n}"),
            objective=_coerce_text(raw.get("objective"), DEFAULT_OBJECTIVE),
            estimated_minutes=_coerce_minutes(raw.get("estimated_minutes", DEFAULT_MINUTES)),
        )
        if step.is_choice:
            raw_options = raw.get("options")
            for option in raw_options if isinstance(raw_options, list) else []:
                if not isinstance(option, dict):
                    continue
                text = _coerce_text(option.get("text"), "")
                if not text:
                    continue
                target = option.get("next")
                step.options.append(PlanOption(text=text, next=str(target) if target else None))
        steps.append(step)

    plan = LessonPlan(steps)

    # Option targets must name a step in this plan; otherwise fall back to the
    # sequential successor at branch time.
    for step in plan:
        if not step.is_choice:
            continue
        for option in step.options:
            if option.next is not None and option.next not in plan.index_by_id:
                logger.warning(f"⚠️ [LessonPlanner] Option '{option.text}' of '{step.id}' "
                               f"points at unknown step '{option.next}'")
                option.next = None
        if not step.options:
            successor = plan.successor_of(step.id)
            step.options = _default_options(successor.id if successor else None)

    return plan


class LessonPlanner:
    """
    Creates lesson plans via the generation service.

    Never raises: any failure produces the fallback plan.
    """

    def __init__(self, generation: GenerationService, fallback_steps: int = 8):
        self.generation = generation
        self.fallback_steps = fallback_steps

    async def create_plan(self, topic: str, learner_profile: Optional[Dict[str, Any]] = None) -> LessonPlan:
        """
        Create a lesson plan for a topic.

        Args:
            topic: Lesson topic
            learner_profile: Learner profile dict (learning style, interests, age)

        Returns:
            LessonPlan with at least one step
        """
        prompt = create_lesson_plan_prompt(topic, learner_profile)
        try:
            raw = await self.generation.generate(prompt)
            parsed = normalize_response(raw)
        except Exception as e:
            logger.warning(f"⚠️ [LessonPlanner] Plan generation failed for '{topic}': {e}")
            return build_fallback_plan(self.fallback_steps)

        if isinstance(parsed, dict) and isinstance(parsed.get("steps"), list):
            parsed = parsed["steps"]

        if not isinstance(parsed, list) or not parsed:
            logger.warning(f"⚠️ [LessonPlanner] Plan for '{topic}' was not a non-empty list, using fallback plan")
            return build_fallback_plan(self.fallback_steps)

        try:
            plan = normalize_plan(parsed)
        except Exception as e:
            logger.warning(f"⚠️ [LessonPlanner] Plan for '{topic}' could not be normalized, using fallback plan: {e}")
            return build_fallback_plan(self.fallback_steps)
        logger.info(f"📋 [LessonPlanner] Plan for '{topic}' has {len(plan)} steps")
        return plan
