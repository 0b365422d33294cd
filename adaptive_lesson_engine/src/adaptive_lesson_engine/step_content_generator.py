"""
Step Content Generator

Materializes the Block for a single plan step.

- choice: built from the step's options, no model call
- image: fixed media plus the step objective, no model call
- narration / quiz / reflection: generated by the model and normalized

Generation problems never escape: a fallback block with `error` set is
returned instead.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from adaptive_lesson_engine.collaborators import GenerationService
from adaptive_lesson_engine.errors import GenerationError
from adaptive_lesson_engine.lesson_models import (
    BLOCK_CLASSES,
    Block,
    ChoiceBlock,
    ChoiceOption,
    ImageBlock,
    PlanOption,
    PlanStep,
    QuizBlock,
    ReflectionBlock,
    StepType,
)
from adaptive_lesson_engine.prompts import narration_prompt, quiz_prompt, reflection_prompt
from adaptive_lesson_engine.response_normalizer import normalize_response

logger = logging.getLogger(__name__)

FALLBACK_MEDIA = {
    "image": "/images/mars_base_dark.png",
    "audio": "/audio/ai_guidance_chime.mp3",
    "3d_model": "/models/jumping_space-suit1.glb",
}
IMAGE_MEDIA = {"image": "/images/space_scene.png"}
FALLBACK_INSTRUCTION = "Provide supportive, encouraging guidance to help the learner understand this concept."
FALLBACK_ERROR = "Generated with fallback due to AI generation error"
DEFAULT_SOCRATIC_QUESTIONS = [
    "What do you observe here?",
    "How might this connect to what you already know?",
    "What questions does this raise for you?",
]

_PROMPT_BUILDERS = {
    StepType.NARRATION: narration_prompt,
    StepType.QUIZ: quiz_prompt,
    StepType.REFLECTION: reflection_prompt,
}


@dataclass
class GenerationContext:
    """Everything known about the learner when a block is generated."""
    topic: str
    learner_profile: Dict[str, Any] = field(default_factory=dict)
    learning_analysis: Optional[Dict[str, Any]] = None
    previous_blocks: List[Block] = field(default_factory=list)
    conversation_summary: Optional[str] = None


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def build_fallback_block(step: PlanStep) -> Block:
    """Deterministic block used when content generation fails."""
    block_cls = BLOCK_CLASSES.get(step.type, BLOCK_CLASSES[StepType.NARRATION])
    return block_cls(
        block_id=step.id,
        title=step.title,
        content=(f"Welcome to this learning block about {step.objective}. "
                 f"Take a moment to think about what you already know before we dive in."),
        learning_goal=step.objective,
        media=dict(FALLBACK_MEDIA),
        socratic_questions=list(DEFAULT_SOCRATIC_QUESTIONS),
        llm_instruction=FALLBACK_INSTRUCTION,
        error=FALLBACK_ERROR,
    )


class StepContentGenerator:
    """Generates Blocks for plan steps."""

    def __init__(self, generation: GenerationService):
        self.generation = generation

    async def generate_content_for_step(self, step: PlanStep, context: GenerationContext) -> Block:
        """
        Generate the Block for a plan step.

        Args:
            step: The plan step to materialize
            context: Topic, learner profile and lesson history

        Returns:
            A Block whose block_id and type match the step (never raises)
        """
        if step.type is StepType.CHOICE:
            return self._build_choice_block(step)
        if step.type is StepType.IMAGE:
            return self._build_image_block(step)

        try:
            return await self._generate_block(step, context)
        except Exception as e:
            logger.warning(f"⚠️ [StepContent] Falling back for step '{step.id}' ({step.type.value}): {e}")
            return build_fallback_block(step)

    def _build_choice_block(self, step: PlanStep) -> ChoiceBlock:
        options = step.options or [PlanOption(text="Path A"), PlanOption(text="Path B")]
        choices = [
            ChoiceOption(
                text=option.text,
                next_block=option.next,
                consequence=f"You will explore {option.text.lower()} next.",
                learning_value=step.objective,
            )
            for option in options
        ]
        listing = "\n".join(f"- {choice.text}" for choice in choices)
        return ChoiceBlock(
            block_id=step.id,
            title=step.title,
            content=f"{step.objective.rstrip('.')}. Which path will you take?\n\n{listing}",
            learning_goal=step.objective,
            llm_instruction="Tutor: help the learner weigh the options, then let them decide.",
            choices=choices,
        )

    def _build_image_block(self, step: PlanStep) -> ImageBlock:
        return ImageBlock(
            block_id=step.id,
            title=step.title,
            content=f"Take a close look at this image. {step.objective.rstrip('.')}.",
            learning_goal=step.objective,
            media=dict(IMAGE_MEDIA),
            socratic_questions=[DEFAULT_SOCRATIC_QUESTIONS[0]],
        )

    async def _generate_block(self, step: PlanStep, context: GenerationContext) -> Block:
        build_prompt = _PROMPT_BUILDERS[step.type]
        prompt = build_prompt(
            context.topic,
            step,
            context.learner_profile,
            learning_analysis=context.learning_analysis,
            conversation_summary=context.conversation_summary,
            previous_titles=[block.title for block in context.previous_blocks],
        )

        raw = await self.generation.generate(prompt)
        data = normalize_response(raw)
        if not isinstance(data, dict):
            raise GenerationError(f"Expected a JSON object for step '{step.id}', got {type(data).__name__}")

        content = data.get("content")
        if not isinstance(content, str) or not content.strip():
            raise GenerationError(f"Generated block for step '{step.id}' has no content")

        tutoring = data.get("tutoring_elements") if isinstance(data.get("tutoring_elements"), dict) else {}
        media = data.get("media") if isinstance(data.get("media"), dict) else None
        common = dict(
            block_id=step.id,
            title=step.title,
            content=content.strip(),
            learning_goal=data.get("learning_goal") if isinstance(data.get("learning_goal"), str) else step.objective,
            media=media,
            socratic_questions=_string_list(tutoring.get("socratic_questions")),
            llm_instruction=data.get("llm_instruction") if isinstance(data.get("llm_instruction"), str) else None,
        )

        if step.type is StepType.QUIZ:
            quiz = data.get("quiz") if isinstance(data.get("quiz"), dict) else {}
            return QuizBlock(quiz=quiz, **common)
        if step.type is StepType.REFLECTION:
            return ReflectionBlock(prompts=_string_list(data.get("prompts")), **common)
        return BLOCK_CLASSES[StepType.NARRATION](**common)
