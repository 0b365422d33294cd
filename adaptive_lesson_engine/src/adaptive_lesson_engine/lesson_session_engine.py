"""
Lesson Session Engine

Drives a live, multi-turn lesson for one learner.

Flow:
1. start_session() builds the plan once and generates the first block
2. next_turn() paces the current block turn by turn, generating the next
   block lazily when the current one is exhausted
3. submit_response() assesses the learner's answer, then either branches
   (choice blocks) or returns tutor feedback and a next-step recommendation
4. end_session() / get_state() manage and inspect the session

Every collaborator call is isolated: failures degrade to fallbacks or null
values and never abort the session. The only error these operations raise is
SessionNotFoundError. Operations on one session key are serialized by the
store's per-key lock.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional

from adaptive_lesson_engine.collaborators import (
    AssessmentService,
    ContextSummarizer,
    GenerationService,
    PersonalizationService,
    TutoringStrategyAdvisor,
)
from adaptive_lesson_engine.config import EngineSettings
from adaptive_lesson_engine.context_snapshots import LearnerContextCache, LearnerSnapshot
from adaptive_lesson_engine.errors import GenerationError, InvalidChoiceError, SessionNotFoundError
from adaptive_lesson_engine.learner_memory import LearnerMemory
from adaptive_lesson_engine.lesson_models import Block, ChoiceBlock, ChoiceOption, StepType, Turn
from adaptive_lesson_engine.lesson_planner import LessonPlanner
from adaptive_lesson_engine.prompts import feedback_prompt
from adaptive_lesson_engine.response_assessor import ResponseAssessor
from adaptive_lesson_engine.response_normalizer import normalize_response
from adaptive_lesson_engine.session_state import LessonSessionState, SessionStatus, session_key
from adaptive_lesson_engine.session_store import InMemorySessionStore, SessionStore
from adaptive_lesson_engine.step_content_generator import GenerationContext, StepContentGenerator
from adaptive_lesson_engine.tutoring_strategy import TutoringStrategyAdvisor as DefaultStrategyAdvisor
from adaptive_lesson_engine.turn_splitter import split_into_turns

logger = logging.getLogger(__name__)

DONE_MESSAGE = "Lesson complete. Great job!"
CONTINUING_TEXT = "Continuing..."
NEXT_HINT = "Tutor will guide with short, supportive turns."
NEXT_ACTIONS = ("question", "explanation", "example", "analogy", "checkpoint")
DEFAULT_FEEDBACK = {
    "feedback": "Thanks for sharing!",
    "next_action": "question",
    "follow_up_question": None,
    "confidence": 0.6,
}


@dataclass
class LearnerIdentity:
    """The learner a session belongs to."""
    id: str
    name: Optional[str] = None


@dataclass
class LessonRequest:
    """Parameters for starting a lesson."""
    topic: Optional[str] = None
    mission_id: Optional[str] = None
    difficulty_level: Optional[str] = None
    learning_objectives: List[str] = field(default_factory=list)
    learner_profile: Optional[Dict[str, Any]] = None


def sanitize_feedback(parsed: Any) -> Dict[str, Any]:
    """
    Coerce parsed feedback into {feedback, next_action, follow_up_question, confidence}.

    Raises:
        GenerationError: If there is no feedback text
    """
    if not isinstance(parsed, dict):
        raise GenerationError("Feedback is not a JSON object")
    text = parsed.get("feedback")
    if not isinstance(text, str) or not text.strip():
        raise GenerationError("Feedback has no text")

    next_action = str(parsed.get("next_action") or "").strip().lower()
    if next_action not in NEXT_ACTIONS:
        next_action = "question"

    follow_up = parsed.get("follow_up_question")
    if not isinstance(follow_up, str) or not follow_up.strip():
        follow_up = None

    try:
        confidence = max(0.0, min(1.0, float(parsed.get("confidence", DEFAULT_FEEDBACK["confidence"]))))
    except (TypeError, ValueError):
        confidence = DEFAULT_FEEDBACK["confidence"]

    return {
        "feedback": text.strip(),
        "next_action": next_action,
        "follow_up_question": follow_up.strip() if follow_up else None,
        "confidence": confidence,
    }


class LessonSessionEngine:
    """
    Orchestrates lesson sessions.

    Only the generation service is required; the remaining collaborators
    default to implementations backed by a shared LearnerMemory.
    """

    def __init__(
        self,
        generation: GenerationService,
        store: Optional[SessionStore] = None,
        personalization: Optional[PersonalizationService] = None,
        summarizer: Optional[ContextSummarizer] = None,
        assessment: Optional[AssessmentService] = None,
        strategy_advisor: Optional[TutoringStrategyAdvisor] = None,
        memory: Optional[LearnerMemory] = None,
        settings: Optional[EngineSettings] = None
    ):
        self.settings = settings or EngineSettings()
        self.generation = generation
        self.memory = memory or LearnerMemory()
        self.store = store if store is not None else InMemorySessionStore(ttl_seconds=self.settings.session_ttl_seconds)
        self.assessment = assessment or ResponseAssessor(generation=generation, memory=self.memory)
        self.strategy_advisor = strategy_advisor or DefaultStrategyAdvisor(self.memory)
        self.context_cache = LearnerContextCache(
            personalization=personalization or self.memory,
            summarizer=summarizer or self.memory,
            max_age_seconds=self.settings.snapshot_max_age_seconds,
            timeout_seconds=self.settings.collaborator_timeout_seconds,
        )
        self.planner = LessonPlanner(generation, fallback_steps=self.settings.fallback_plan_steps)
        self.content_generator = StepContentGenerator(generation)

    # ==================== Session operations ====================

    async def start_session(self, user: LearnerIdentity, request: Optional[LessonRequest] = None) -> Dict[str, Any]:
        """
        Start a lesson and return its first turn.

        A start for an existing (user, mission) key replaces that session.
        """
        request = request or LessonRequest()
        mission_id = request.mission_id or f"dynamic_lesson_{uuid.uuid4().hex[:12]}"
        key = session_key(user.id, mission_id)
        topic = request.topic or self.settings.default_lesson_topic
        profile = request.learner_profile or {"identity": {"name": user.name}, "learning": {}}

        async with self.store.lock(key):
            if await self.store.get(key) is not None:
                logger.warning(f"⚠️ [LessonSession] Replacing existing session {key}")

            self.memory.remember_profile(user.id, profile, request.difficulty_level)
            plan = await self.planner.create_plan(topic, profile)

            state = LessonSessionState(
                session_id=uuid.uuid4().hex,
                user_id=user.id,
                user_name=user.name,
                mission_id=mission_id,
                topic=topic,
                title=f"Mission: {topic}",
                plan=plan,
                learner_profile=profile,
                difficulty_level=request.difficulty_level or self.memory.get_difficulty(user.id),
                learning_objectives=list(request.learning_objectives),
            )

            snapshot = await self.context_cache.get(user.id, force_refresh=True)
            self._apply_snapshot(state, snapshot)

            first_step = plan.step_at(0)
            block = await self.content_generator.generate_content_for_step(first_step, self._generation_context(state))
            self._append_block(state, block)
            state.record("start", block_id=block.block_id, plan_steps=len(plan))

            await self.store.put(key, state)
            logger.info(f"🚀 [LessonSession] Started {key} ({len(plan)} steps, topic '{topic}')")
            return self._turn_payload(state)

    async def next_turn(self, user_id: str, mission_id: str) -> Dict[str, Any]:
        """Advance to the next turn, generating the next block when needed."""
        key = session_key(user_id, mission_id)
        async with self.store.lock(key):
            state = await self._require_session(user_id, mission_id)

            if state.status is SessionStatus.COMPLETED:
                return self._done_payload(state)

            # More turns in this block
            if state.turn_index + 1 < len(state.current_turns):
                state.turn_index += 1
                state.record("turn", block_id=state.current_block.block_id, turn=state.turn_index)
                await self.store.put(key, state)
                return self._turn_payload(state)

            block = state.current_block

            # Choice blocks wait for an explicit decision
            if block.type is StepType.CHOICE:
                state.status = SessionStatus.AWAITING_CHOICE
                await self.store.put(key, state)
                payload = self._turn_payload(state)
                payload["awaiting_choice"] = True
                return payload

            # Block already generated
            if state.block_index + 1 < len(state.blocks):
                state.block_index += 1
                state.turn_index = 0
                self._ensure_turns(state, state.block_index)
                state.record("turn", block_id=state.current_block.block_id, turn=0)
                await self.store.put(key, state)
                return self._turn_payload(state)

            next_step = state.plan.successor_of(block.block_id)
            if next_step is None:
                state.status = SessionStatus.COMPLETED
                state.record("completed", block_id=block.block_id)
                await self.store.put(key, state)
                logger.info(f"🏁 [LessonSession] {key} completed")
                return self._done_payload(state)

            snapshot = await self.context_cache.get(user_id)
            self._apply_snapshot(state, snapshot)
            new_block = await self.content_generator.generate_content_for_step(next_step, self._generation_context(state))
            self._append_block(state, new_block)
            state.record("turn", block_id=new_block.block_id, turn=0)
            await self.store.put(key, state)
            return self._turn_payload(state)

    async def submit_response(self, user_id: str, mission_id: str, response: Any) -> Dict[str, Any]:
        """
        Handle a learner response to the current block.

        Args:
            user_id: Learner id
            mission_id: Lesson instance id
            response: Free text, or for choice blocks a dict with choice_index or
                choice_text (plain text is matched against the choice texts)

        Returns:
            Branch payload for choice blocks, otherwise assessment, feedback and
            next_recommendation
        """
        key = session_key(user_id, mission_id)
        async with self.store.lock(key):
            state = await self._require_session(user_id, mission_id)

            if state.status is SessionStatus.COMPLETED:
                return self._done_payload(state)

            block = state.current_block
            is_choice = block.type is StepType.CHOICE

            state.last_assessment = await self._best_effort(
                self.assessment.assess(user_id, {
                    "user_response": response,
                    "question_type": "choice" if is_choice else block.type.value,
                    "expected_answer": block.learning_goal,
                    "lesson_context": {
                        "title": state.title,
                        "topic": state.topic,
                        "block_id": block.block_id,
                        "block_title": block.title,
                    },
                }),
                "assessment",
            )

            if is_choice:
                payload = await self._branch(state, block, response)
                await self.store.put(key, state)
                return payload

            feedback = await self._compose_feedback(state, block, response)
            recommendation = await self._recommend_next(state, block, feedback)
            state.record("response", block_id=block.block_id, next_action=feedback["next_action"])
            await self.store.put(key, state)

            return {
                "session_id": state.session_id,
                "mission_id": state.mission_id,
                "block_id": block.block_id,
                "assessment": state.last_assessment,
                "feedback": feedback,
                "next_recommendation": recommendation,
                "done": False,
            }

    async def end_session(self, user_id: str, mission_id: str) -> Dict[str, Any]:
        """Remove a session. Ending an unknown session is not an error."""
        key = session_key(user_id, mission_id)
        async with self.store.lock(key):
            existed = await self.store.delete(key)
        if existed:
            logger.info(f"👋 [LessonSession] Ended {key}")
        return {"ended": True, "mission_id": mission_id}

    async def get_state(self, user_id: str, mission_id: str) -> Dict[str, Any]:
        """Serializable summary of a session."""
        async with self.store.lock(session_key(user_id, mission_id)):
            state = await self._require_session(user_id, mission_id)
            return state.to_summary()

    # ==================== Internals ====================

    async def _require_session(self, user_id: str, mission_id: str) -> LessonSessionState:
        state = await self.store.get(session_key(user_id, mission_id))
        if state is None:
            raise SessionNotFoundError(user_id, mission_id)
        return state

    async def _best_effort(self, call: Awaitable, label: str) -> Optional[Any]:
        try:
            return await asyncio.wait_for(call, timeout=self.settings.collaborator_timeout_seconds)
        except Exception as e:
            logger.warning(f"⚠️ [LessonSession] {label} unavailable: {e!r}")
            return None

    def _apply_snapshot(self, state: LessonSessionState, snapshot: LearnerSnapshot):
        state.personalization = snapshot.personalization
        state.conversation_summary = snapshot.conversation_summary

    def _generation_context(self, state: LessonSessionState) -> GenerationContext:
        return GenerationContext(
            topic=state.topic,
            learner_profile=state.learner_profile,
            learning_analysis=state.personalization.get("learning_analysis"),
            previous_blocks=list(state.blocks),
            conversation_summary=state.conversation_summary,
        )

    def _ensure_turns(self, state: LessonSessionState, block_index: int):
        if block_index in state.turns_by_block:
            return
        block = state.blocks[block_index]
        state.turns_by_block[block_index] = split_into_turns(block.content, block.socratic_questions)

    def _append_block(self, state: LessonSessionState, block: Block):
        state.blocks.append(block)
        state.block_index = len(state.blocks) - 1
        state.turn_index = 0
        state.status = SessionStatus.ACTIVE
        self._ensure_turns(state, state.block_index)

    def _resolve_choice(self, block: ChoiceBlock, response: Any) -> ChoiceOption:
        """
        Match a response against the block's choices.

        Raises:
            InvalidChoiceError: If neither the index nor the text matches
        """
        index = None
        text = None
        if isinstance(response, dict):
            index = response.get("choice_index")
            text = response.get("choice_text")
        elif isinstance(response, str):
            text = response
        elif isinstance(response, int):
            index = response

        choices = block.choices
        if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(choices):
            return choices[index]
        if isinstance(text, str) and text.strip():
            wanted = text.strip().lower()
            for choice in choices:
                if choice.text.strip().lower() == wanted:
                    return choice
        raise InvalidChoiceError(block.block_id, response)

    async def _branch(self, state: LessonSessionState, block: ChoiceBlock, response: Any) -> Dict[str, Any]:
        try:
            chosen = self._resolve_choice(block, response)
        except InvalidChoiceError as e:
            logger.warning(f"⚠️ [LessonSession] {e}; continuing with the next planned step")
            chosen = None

        target = state.plan.resolve(chosen.next_block) if chosen and chosen.next_block else None
        if target is None:
            target = state.plan.successor_of(block.block_id)

        choice_data = chosen.to_dict() if chosen else None
        state.record("branch", block_id=block.block_id,
                     choice=chosen.text if chosen else None,
                     target=target.id if target else None)

        if target is None:
            state.status = SessionStatus.COMPLETED
            logger.info(f"🏁 [LessonSession] {state.key} completed at choice '{block.block_id}'")
            return {"branched": True, "choice": choice_data, **self._done_payload(state)}

        snapshot = await self.context_cache.get(state.user_id, force_refresh=True)
        self._apply_snapshot(state, snapshot)
        new_block = await self.content_generator.generate_content_for_step(target, self._generation_context(state))
        self._append_block(state, new_block)
        logger.info(f"🔀 [LessonSession] {state.key} branched '{block.block_id}' → '{target.id}'")
        return {"branched": True, "choice": choice_data, **self._turn_payload(state)}

    async def _compose_feedback(self, state: LessonSessionState, block: Block, response: Any) -> Dict[str, Any]:
        prompt = feedback_prompt(state.title, block.title, block.learning_goal, response)
        try:
            raw = await self.generation.generate(prompt)
            return sanitize_feedback(normalize_response(raw))
        except Exception as e:
            logger.warning(f"⚠️ [LessonSession] Feedback generation failed, using neutral feedback: {e}")
            return dict(DEFAULT_FEEDBACK)

    async def _recommend_next(self, state: LessonSessionState, block: Block,
                              feedback: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        strategy = await self._best_effort(
            self.strategy_advisor.strategy(state.user_id, {
                "lesson_title": state.title,
                "current_block": block.to_dict(),
                "feedback": feedback,
            }),
            "strategy advisor",
        )
        if not isinstance(strategy, dict):
            return None

        actions = strategy.get("actions")
        methodology = strategy.get("methodology")
        return {
            "next_actions": actions.get("immediate_actions") if isinstance(actions, dict) else None,
            "methodology": methodology.get("primary_methodology") if isinstance(methodology, dict) else None,
        }

    def _turn_payload(self, state: LessonSessionState) -> Dict[str, Any]:
        block = state.current_block
        turns = state.current_turns
        turn = turns[state.turn_index] if state.turn_index < len(turns) else Turn(say=CONTINUING_TEXT)

        payload = {
            "session_id": state.session_id,
            "mission_id": state.mission_id,
            "title": state.title,
            "block_id": block.block_id,
            "block_type": block.type.value,
            "indices": {"block": state.block_index, "turn": state.turn_index},
            "tutor_turn": {
                "say": turn.say,
                "question": turn.question,
                "media": block.media,
            },
            "next_hint": NEXT_HINT if block.llm_instruction else None,
            "done": False,
        }
        if isinstance(block, ChoiceBlock):
            payload["choices"] = [choice.to_dict() for choice in block.choices]
        if block.error:
            payload["error"] = block.error
        return payload

    def _done_payload(self, state: LessonSessionState) -> Dict[str, Any]:
        return {
            "session_id": state.session_id,
            "mission_id": state.mission_id,
            "title": state.title,
            "done": True,
            "message": DONE_MESSAGE,
        }
