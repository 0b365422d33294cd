"""
Test doubles for the lesson engine's external collaborators.
"""

import asyncio
import json
import os
import sys

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.join(project_root, "adaptive_lesson_engine", "src"))

from adaptive_lesson_engine.errors import GenerationError

# Marker text identifying each kind of prompt
PROMPT_KINDS = [
    ("plan", "lesson plan for the topic"),
    ("narration", "Generate a narration slide"),
    ("quiz", "single-question quiz"),
    ("reflection", "Generate a reflection slide"),
    ("feedback", "tutor feedback and next action"),
    ("grading", "Evaluate this student response"),
]

NARRATION_CONTENT = (
    "Stars are born in clouds of gas. Gravity pulls the gas together. It gets hotter and hotter.\n\n"
    "Fusion begins in the core. The star starts to shine!"
)
SOCRATIC_QUESTION = "Why do you think gravity matters here?"

DEFAULT_RESPONSES = {
    "narration": json.dumps({
        "content": NARRATION_CONTENT,
        "learning_goal": "Understand how stars form",
        "media": {"image": "/images/nebula.png"},
        "tutoring_elements": {"socratic_questions": [SOCRATIC_QUESTION]},
        "llm_instruction": "Tutor: be warm",
    }),
    "quiz": json.dumps({
        "content": "Quick check-in time.",
        "learning_goal": "Check understanding",
        "quiz": {"question": "What powers a star?", "options": ["Fusion", "Fire"], "correct_index": 0},
    }),
    "reflection": json.dumps({
        "content": "Take a moment to reflect on what you learned.",
        "prompts": ["What surprised you?", "What is still unclear?"],
    }),
    "feedback": json.dumps({
        "feedback": "Nice reasoning!",
        "next_action": "example",
        "follow_up_question": None,
        "confidence": 0.8,
    }),
    "grading": json.dumps({"score": 0.65, "reasoning": "Partially correct"}),
}


def prompt_kind(prompt):
    for kind, marker in PROMPT_KINDS:
        if marker in prompt:
            return kind
    return "unknown"


class ScriptedGeneration:
    """
    Generation service returning canned responses by prompt kind.

    A response may be a string, an exception (raised) or a callable taking the
    prompt and returning either. Prompt kinds without a response raise
    GenerationError, so by default the planner falls back to its synthetic plan.
    """

    def __init__(self, plan=None, responses=None):
        self.responses = dict(DEFAULT_RESPONSES)
        if plan is not None:
            self.responses["plan"] = json.dumps(plan)
        if responses:
            self.responses.update(responses)
        self.calls = []

    async def generate(self, prompt):
        kind = prompt_kind(prompt)
        self.calls.append((kind, prompt))
        response = self.responses.get(kind)
        if callable(response):
            response = response(prompt)
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise GenerationError(f"No scripted response for {kind}")
        return response

    def count(self, kind):
        return sum(1 for k, _ in self.calls if k == kind)


class FailingCollaborator:
    """Every collaborator method raises."""

    def __init__(self):
        self.calls = 0

    async def _fail(self, *args, **kwargs):
        self.calls += 1
        raise RuntimeError("collaborator down")

    insights = _fail
    summarize = _fail
    assess = _fail
    strategy = _fail


class SlowCollaborator:
    """Every collaborator method sleeps longer than any test timeout."""

    async def _sleep(self, *args, **kwargs):
        await asyncio.sleep(10)
        return {}

    insights = _sleep
    summarize = _sleep
    assess = _sleep
    strategy = _sleep


class CountingPersonalization:
    """Personalization and summarizer returning numbered results."""

    def __init__(self):
        self.insight_calls = 0
        self.summary_calls = 0

    async def insights(self, user_id):
        self.insight_calls += 1
        return {"learning_analysis": {"call": self.insight_calls}}

    async def summarize(self, user_id):
        self.summary_calls += 1
        return f"summary {self.summary_calls}"
