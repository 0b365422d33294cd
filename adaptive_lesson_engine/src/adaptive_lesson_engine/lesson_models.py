"""
Lesson Data Model

Plan steps, generated blocks and conversational turns.

- PlanStep / LessonPlan: the lesson outline produced once per session
- Block: generated content for exactly one plan step, one subclass per type
- Turn: a short fragment of a block used to pace the conversation
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class StepType(Enum):
    """Kinds of plan steps (and of the blocks generated for them)."""
    NARRATION = "narration"
    QUIZ = "quiz"
    IMAGE = "image"
    REFLECTION = "reflection"
    CHOICE = "choice"

    @classmethod
    def parse(cls, value: Any) -> "StepType":
        """Coerce a raw type string, defaulting to NARRATION."""
        if isinstance(value, StepType):
            return value
        raw = str(value or "").strip().lower()
        for member in cls:
            if member.value == raw:
                return member
        return cls.NARRATION


@dataclass
class PlanOption:
    """One branch option of a choice step."""
    text: str
    next: Optional[str] = None  # PlanStep id, or None for the sequential successor

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "next": self.next}


@dataclass
class PlanStep:
    """A planned unit of a lesson before its content is generated."""
    id: str
    type: StepType = StepType.NARRATION
    title: str = ""
    objective: str = ""
    estimated_minutes: int = 2
    options: List[PlanOption] = field(default_factory=list)  # choice steps only

    @property
    def is_choice(self) -> bool:
        return self.type is StepType.CHOICE

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "objective": self.objective,
            "estimated_minutes": self.estimated_minutes,
        }
        if self.is_choice:
            data["options"] = [option.to_dict() for option in self.options]
        return data


class LessonPlan:
    """
    Ordered plan steps with an id -> position index.

    Step ids are expected to be unique; the planner enforces this when it
    builds a plan.
    """

    def __init__(self, steps: List[PlanStep]):
        self.steps: List[PlanStep] = list(steps)
        self.index_by_id: Dict[str, int] = {step.id: i for i, step in enumerate(self.steps)}

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def position_of(self, step_id: Optional[str]) -> Optional[int]:
        if step_id is None:
            return None
        return self.index_by_id.get(step_id)

    def step_at(self, position: Optional[int]) -> Optional[PlanStep]:
        if position is None or position < 0 or position >= len(self.steps):
            return None
        return self.steps[position]

    def resolve(self, step_id: Optional[str]) -> Optional[PlanStep]:
        """Look up a step by id."""
        return self.step_at(self.position_of(step_id))

    def successor_of(self, step_id: str) -> Optional[PlanStep]:
        """Sequential successor of a step, found by id rather than block position."""
        position = self.position_of(step_id)
        if position is None:
            return None
        return self.step_at(position + 1)

    def to_list(self) -> List[Dict[str, Any]]:
        return [step.to_dict() for step in self.steps]


@dataclass
class ChoiceOption:
    """A selectable branch shown to the learner on a choice block."""
    text: str
    next_block: Optional[str] = None
    consequence: str = ""
    learning_value: str = ""
    difficulty_level: str = "beginner"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "next_block": self.next_block,
            "consequence": self.consequence,
            "learning_value": self.learning_value,
            "difficulty_level": self.difficulty_level,
        }


@dataclass
class Block:
    """
    Generated content for one plan step.

    block_id always equals the id of the step it was generated for.
    error is set when the block came from the fallback path.
    """
    block_id: str
    title: str
    content: str
    learning_goal: str = ""
    media: Optional[Dict[str, Any]] = None
    socratic_questions: List[str] = field(default_factory=list)
    llm_instruction: Optional[str] = None
    error: Optional[str] = None

    type = StepType.NARRATION

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "block_id": self.block_id,
            "type": self.type.value,
            "title": self.title,
            "content": self.content,
            "learning_goal": self.learning_goal,
            "media": self.media,
            "tutoring_elements": {"socratic_questions": list(self.socratic_questions)},
            "llm_instruction": self.llm_instruction,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class NarrationBlock(Block):
    type = StepType.NARRATION


@dataclass
class ImageBlock(Block):
    type = StepType.IMAGE


@dataclass
class QuizBlock(Block):
    quiz: Dict[str, Any] = field(default_factory=dict)

    type = StepType.QUIZ

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["quiz"] = self.quiz
        return data


@dataclass
class ReflectionBlock(Block):
    prompts: List[str] = field(default_factory=list)

    type = StepType.REFLECTION

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["prompts"] = list(self.prompts)
        return data


@dataclass
class ChoiceBlock(Block):
    choices: List[ChoiceOption] = field(default_factory=list)

    type = StepType.CHOICE

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["choices"] = [choice.to_dict() for choice in self.choices]
        return data


BLOCK_CLASSES = {
    StepType.NARRATION: NarrationBlock,
    StepType.QUIZ: QuizBlock,
    StepType.IMAGE: ImageBlock,
    StepType.REFLECTION: ReflectionBlock,
    StepType.CHOICE: ChoiceBlock,
}


@dataclass
class Turn:
    """One conversational fragment: either something to say or a question."""
    say: Optional[str] = None
    question: Optional[str] = None
    kind: str = "narration"  # "narration" or "socratic"

    def to_dict(self) -> Dict[str, Any]:
        return {"say": self.say, "question": self.question, "meta": {"type": self.kind}}
