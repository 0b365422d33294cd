"""
Lesson Session State

Defines the LessonSessionState dataclass and the session status stages.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from adaptive_lesson_engine.lesson_models import Block, LessonPlan, Turn


class SessionStatus(Enum):
    """Session lifecycle stages."""
    INITIALIZING = "initializing"
    ACTIVE = "active"
    AWAITING_CHOICE = "awaiting_choice"
    COMPLETED = "completed"


def session_key(user_id: str, mission_id: str) -> str:
    return f"{user_id}:{mission_id}"


@dataclass
class LessonSessionState:
    """State of one learner progressing through one lesson instance."""
    session_id: str
    user_id: str
    mission_id: str
    topic: str
    title: str
    plan: LessonPlan
    user_name: Optional[str] = None
    learner_profile: Dict[str, Any] = field(default_factory=dict)
    difficulty_level: str = "beginner"
    learning_objectives: List[str] = field(default_factory=list)
    status: SessionStatus = SessionStatus.INITIALIZING
    # Generated content, append-only
    blocks: List[Block] = field(default_factory=list)
    # Memoized turns per block index
    turns_by_block: Dict[int, List[Turn]] = field(default_factory=dict)
    block_index: int = 0
    turn_index: int = 0
    # Collaborator results
    personalization: Dict[str, Any] = field(default_factory=dict)
    conversation_summary: Optional[str] = None
    last_assessment: Optional[Dict[str, Any]] = None
    history: List[Dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    last_updated: datetime = field(default_factory=datetime.now)

    @property
    def key(self) -> str:
        return session_key(self.user_id, self.mission_id)

    @property
    def current_block(self) -> Block:
        return self.blocks[self.block_index]

    @property
    def current_turns(self) -> List[Turn]:
        return self.turns_by_block.get(self.block_index, [])

    def record(self, event: str, **details):
        """Append an entry to the interaction history."""
        now = datetime.now()
        self.history.append({"event": event, "at": now.isoformat(), **details})
        self.last_updated = now

    def to_summary(self) -> Dict[str, Any]:
        """Serializable, read-only view of the session."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "mission_id": self.mission_id,
            "title": self.title,
            "topic": self.topic,
            "difficulty_level": self.difficulty_level,
            "learning_objectives": list(self.learning_objectives),
            "status": self.status.value,
            "indices": {"block": self.block_index, "turn": self.turn_index},
            "plan": self.plan.to_list(),
            "blocks": [block.to_dict() for block in self.blocks],
            "turns": {str(i): [turn.to_dict() for turn in turns] for i, turns in self.turns_by_block.items()},
            "personalization": self.personalization,
            "conversation_summary": self.conversation_summary,
            "last_assessment": self.last_assessment,
            "history": list(self.history),
            "created_at": self.created_at.isoformat(),
            "last_updated": self.last_updated.isoformat(),
        }
