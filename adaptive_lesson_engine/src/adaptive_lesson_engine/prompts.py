"""
Prompt Builders

Prompt text for plan, step content, feedback and grading calls.
All prompts ask for JSON so replies can go through normalize_response().
"""

import json
from typing import Any, Dict, List, Optional

from adaptive_lesson_engine.lesson_models import PlanStep


def _learning_style(profile: Optional[Dict[str, Any]]) -> str:
    profile = profile or {}
    learning = profile.get("learning") or {}
    return learning.get("preferred_style") or profile.get("learning_style") or "multimodal"


def _learner_name(profile: Optional[Dict[str, Any]]) -> str:
    profile = profile or {}
    identity = profile.get("identity") or {}
    return identity.get("name") or profile.get("name") or "Explorer"


def create_lesson_plan_prompt(topic: str, learner_profile: Optional[Dict[str, Any]]) -> str:
    """Prompt for the upfront lesson plan (a JSON array of steps)."""
    profile = learner_profile or {}
    learning = profile.get("learning") or {}
    identity = profile.get("identity") or {}
    profile_line = json.dumps({
        "learning_style": _learning_style(profile),
        "interests": learning.get("preferred_topics") or profile.get("interests") or [],
        "age": identity.get("age"),
    })

    return f"""CRITICAL: Return ONLY a valid JSON array. No markdown, no extra text.

You are an expert instructional designer. Create a step-by-step lesson plan for the topic: "{topic}".
Tailor the plan to the learner profile: {profile_line}.

Output strictly a JSON array of steps. Each step MUST be an object with:
  {{
    "id": "unique_step_id",
    "type": "narration|quiz|image|reflection|choice",
    "title": "short title",
    "objective": "learning objective for this step",
    "estimated_minutes": 1-5
  }}

Personalization rules:
- Use learning_style and interests to choose step types and pacing.
- Insert "choice" steps where a branching path could boost curiosity.
- A "choice" step also has "options": 2-3 objects shaped as {{"text": "option text", "next": "id_of_next_step"}}

Global constraints:
- 8-12 steps for a ~20-25 minute lesson.
- Keep ids short and unique (e.g. "intro", "orbit_quiz", "path_choice_1").
- All keys quoted, no trailing commas, valid JSON ONLY."""


def _step_line(step: PlanStep) -> str:
    return json.dumps({"id": step.id, "title": step.title, "objective": step.objective})


def _context_lines(learning_analysis: Optional[Dict[str, Any]], conversation_summary: Optional[str],
                   previous_titles: List[str]) -> str:
    lines = []
    if previous_titles:
        lines.append(f"Already covered: {', '.join(previous_titles[-5:])}")
    if conversation_summary:
        lines.append(f"Recent learner context: {conversation_summary}")
    if learning_analysis:
        lines.append(f"Learning analysis: {json.dumps(learning_analysis, default=str)}")
    return "\n".join(lines)


def narration_prompt(topic: str, step: PlanStep, learner_profile: Optional[Dict[str, Any]],
                     learning_analysis: Optional[Dict[str, Any]] = None,
                     conversation_summary: Optional[str] = None,
                     previous_titles: Optional[List[str]] = None) -> str:
    style = _learning_style(learner_profile)
    name = _learner_name(learner_profile)
    context = _context_lines(learning_analysis, conversation_summary, previous_titles or [])
    return f"""CRITICAL: Return ONLY valid JSON. No markdown.

Generate a narration slide for a lesson.
Topic: {topic}
Step: {_step_line(step)}
Learner: {{"name": "{name}", "style": "{style}"}}
{context}

Return one JSON object with exactly these keys:
{{
  "content": "3-4 short paragraphs of vivid, engaging narration tied to the objective, separated by blank lines",
  "learning_goal": "{step.objective}",
  "media": {{"image": "/images/space_scene.png"}},
  "tutoring_elements": {{"socratic_questions": ["an open question that makes the learner think"]}},
  "llm_instruction": "Tutor: be warm, concise, and adaptive to {style} style"
}}"""


def quiz_prompt(topic: str, step: PlanStep, learner_profile: Optional[Dict[str, Any]],
                learning_analysis: Optional[Dict[str, Any]] = None,
                conversation_summary: Optional[str] = None,
                previous_titles: Optional[List[str]] = None) -> str:
    style = _learning_style(learner_profile)
    context = _context_lines(learning_analysis, conversation_summary, previous_titles or [])
    return f"""CRITICAL: Return ONLY valid JSON. No markdown.

Generate a single-question quiz slide that checks understanding succinctly.
Topic: {topic}
Step: {_step_line(step)}
{context}

Return one JSON object with keys:
{{
  "content": "1-2 sentences introducing the check-in",
  "learning_goal": "{step.objective}",
  "quiz": {{
    "question": "clear question",
    "options": ["A", "B", "C", "D"],
    "correct_index": 0,
    "explanations": ["why A", "why B is wrong", "why C is wrong", "why D is wrong"]
  }},
  "llm_instruction": "Tutor: give brief feedback per choice; adapt to {style}"
}}"""


def reflection_prompt(topic: str, step: PlanStep, learner_profile: Optional[Dict[str, Any]],
                      learning_analysis: Optional[Dict[str, Any]] = None,
                      conversation_summary: Optional[str] = None,
                      previous_titles: Optional[List[str]] = None) -> str:
    name = _learner_name(learner_profile)
    context = _context_lines(learning_analysis, conversation_summary, previous_titles or [])
    return f"""CRITICAL: Return ONLY valid JSON. No markdown.

Generate a reflection slide that prompts metacognition.
Topic: {topic}
Step: {_step_line(step)}
{context}

Return one JSON object with keys:
{{
  "content": "1-2 sentences inviting {name} to reflect",
  "learning_goal": "{step.objective}",
  "prompts": ["prompt 1", "prompt 2", "prompt 3"],
  "tutoring_elements": {{"socratic_questions": ["a question that invites reflection"]}},
  "llm_instruction": "Tutor: acknowledge feelings, reinforce progress"
}}"""


def feedback_prompt(lesson_title: str, block_title: str, learning_goal: str, response: Any) -> str:
    """Prompt for short tutor feedback on a free-form learner response."""
    response_text = response if isinstance(response, str) else json.dumps(response, default=str)
    return f"""Provide short natural tutor feedback and next action as JSON for this response.

CONTEXT:
Lesson Title: {lesson_title}
Block Title: {block_title}
Learning Goal: {learning_goal}
User Response: {response_text}

Return ONLY JSON:
{{
  "feedback": "1-2 sentences of supportive, specific feedback",
  "next_action": "question|explanation|example|analogy|checkpoint",
  "follow_up_question": "a concise question if next_action is question, else null",
  "confidence": 0.0-1.0
}}"""


def grading_prompt(response: str, question: str, expected: str = "") -> str:
    """Prompt for grading a learner response the heuristic scorer is unsure about."""
    expected_line = f"\nExpected learning goal: {expected}" if expected else ""
    return f"""Evaluate this student response on a scale of 0-1.

Question: {question}{expected_line}
Response: {response}

Consider:
1. Correctness (0-1): Is the answer correct or on the right track?
2. Depth (0-1): Does it show understanding beyond surface level?
3. Evidence (0-1): Are there specific examples, explanations, or reasoning?

Calculate: score = (correctness * 0.4) + (depth * 0.3) + (evidence * 0.3)

Return ONLY a JSON object with this exact format:
{{"score": 0.0-1.0, "reasoning": "brief one-sentence explanation"}}

Do not include any other text."""
