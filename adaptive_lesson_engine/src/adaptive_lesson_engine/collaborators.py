"""
Collaborator Contracts

Interfaces for the external services the session engine depends on.
Any object with matching async methods can be injected.
"""

from typing import Any, Dict, Protocol


class GenerationService(Protocol):
    async def generate(self, prompt: str) -> str:
        """Return model text for the prompt; raise GenerationError on failure."""
        ...


class PersonalizationService(Protocol):
    async def insights(self, user_id: str) -> Dict[str, Any]:
        """Return personalization insights (including 'learning_analysis')."""
        ...


class ContextSummarizer(Protocol):
    async def summarize(self, user_id: str) -> str:
        """Return a short digest of the learner's recent context."""
        ...


class AssessmentService(Protocol):
    async def assess(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Assess a learner response."""
        ...


class TutoringStrategyAdvisor(Protocol):
    async def strategy(self, user_id: str, context: Dict[str, Any]) -> Dict[str, Any]:
        """
        Recommend a tutoring strategy.

        The result carries methodology.primary_methodology and
        actions.immediate_actions.
        """
        ...
