"""Collection-level AI operations: idea generation, MVP pick, folders, brainstorm."""

from __future__ import annotations

import logging
import random
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from ideaforge.core.ideas import IdeaEngine
from ideaforge.core.session import IdeaSession
from ideaforge.exceptions import MalformedCompletionError, ProviderError
from ideaforge.llm import prompts
from ideaforge.llm.parsing import parse_keywords
from ideaforge.llm.service import CompletionService
from ideaforge.models.idea import ChatMessage, Idea
from ideaforge.models.suggestions import FolderSuggestion, GeneratedIdea, MvpSelection

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

FALLBACK_CHAT_TITLE = "New Idea from Chat"
NOT_CONFIGURED_MESSAGE = "Please configure your AI provider in Settings to start brainstorming."

SPARK_VIBES = {
    "chaotic": "Chaotic Good",
    "calculated": "Calculated Risk",
    "zen": "Zen Master",
    "hustle": "Pure Hustle",
}

SPARK_INDUSTRIES = {
    "tech": "Deep Tech",
    "consumer": "Consumer Social",
    "sustainability": "Green Earth",
    "weird": "Something Weird",
}

SPARK_PROMPTS = [
    "A machine that turns clouds into cotton candy",
    "A house designed for a fish",
    "The worst possible way to wake up",
    "An umbrella for a thunderstorm of emotions",
    "A vehicle that runs on laughter",
    "A vegetable with a secret identity",
    "Architecture for a colony of ants",
    "A clock that measures moments, not time",
]


def random_spark_prompt(rng: random.Random | None = None) -> str:
    return (rng or random).choice(SPARK_PROMPTS)


@dataclass(frozen=True)
class SparkInput:
    """Answers from the doodle quiz: founder vibe, industry, prompt and drawing."""

    creative_prompt: str
    drawing: str
    vibe: str = "Unknown"
    industry: str = "General"

    def to_prompt(self) -> str:
        return prompts.SPARK_TEMPLATE.format(
            vibe=SPARK_VIBES.get(self.vibe, self.vibe),
            field=SPARK_INDUSTRIES.get(self.industry, self.industry),
            creative_prompt=self.creative_prompt,
            drawing=self.drawing,
        )


@dataclass(frozen=True)
class RaceOutcome:
    """How an arcade race run went; seeds the idea prompt."""

    themes: tuple[str, ...] = ()
    seconds: float = 0.0
    items: tuple[str, ...] = ()

    def to_prompt(self) -> str:
        start = "the early stage Seed Valley" if "Seed Valley" in self.themes else "a garage"
        counts = Counter(self.items)
        collected = ", ".join(f"{n} {item}" for item, n in counts.items())
        return prompts.RACE_TEMPLATE.format(
            start=start,
            themes=" -> ".join(dict.fromkeys(self.themes)) or "the open road",
            seconds=f"{self.seconds:.0f}",
            items=collected or "Pure adrenaline",
        )


@dataclass
class BrainstormTurn:
    """Chat history after one brainstorm exchange.

    ``create_idea`` is set when the model asked to turn the chat into an
    idea.
    """

    history: list[ChatMessage] = field(default_factory=list)
    create_idea: bool = False

    @property
    def reply(self) -> ChatMessage | None:
        return self.history[-1] if self.history else None


def _validate_items(model: type[M], items: list[Any], what: str) -> list[M]:
    try:
        return [model.model_validate(item) for item in items]
    except ValidationError as e:
        raise MalformedCompletionError(f"AI response did not match the expected {what} format", str(e)) from e


def _last_user_message(history: Sequence[ChatMessage]) -> str:
    return next((m.content for m in reversed(history) if m.role == "user"), "")


class IdeaGenerator:
    """AI operations over the whole idea collection.

    Generated ideas are returned for the caller to pick from; nothing is
    stored until ``save_generated`` or an explicit draft save.
    """

    def __init__(self, ideas: IdeaEngine, completions: CompletionService) -> None:
        self._ideas = ideas
        self._completions = completions

    async def _ideas_from(self, prompt: str) -> list[GeneratedIdea]:
        items = await self._completions.complete_json_array(
            prompts.with_json_ideas(prompt), high_effort=True
        )
        ideas = _validate_items(GeneratedIdea, items, "idea")
        logger.info("Generated %d ideas", len(ideas))
        return ideas

    async def generate_ideas(self, topic: str | None = None) -> list[GeneratedIdea]:
        """Generate new ideas, optionally around a topic.

        Raises:
            ProviderError: If the completion fails
            MalformedCompletionError: If no valid JSON array comes back
        """
        return await self._ideas_from(prompts.generate_prompt(topic))

    async def combine_ideas(self, ideas: Sequence[Idea]) -> list[GeneratedIdea]:
        """Blend two or more existing ideas into new hybrids.

        Raises:
            ValueError: If fewer than two ideas are given
        """
        if len(ideas) < 2:
            raise ValueError("Select at least two ideas to combine")
        return await self._ideas_from(prompts.combine_prompt(list(ideas)))

    async def spark_ideas(self, spark: SparkInput) -> list[GeneratedIdea]:
        return await self._ideas_from(spark.to_prompt())

    async def race_ideas(self, outcome: RaceOutcome) -> list[GeneratedIdea]:
        return await self._ideas_from(outcome.to_prompt())

    async def select_mvp(self, ideas: Sequence[Idea]) -> MvpSelection:
        """Ask which idea is simplest to build as an MVP.

        Raises:
            ValueError: If ``ideas`` is empty
            MalformedCompletionError: If the answer does not name one of the ideas
        """
        if not ideas:
            raise ValueError("No ideas to choose from")
        data = await self._completions.complete_json_object(
            prompts.MVP_TEMPLATE.format(catalog=prompts.catalog(list(ideas)))
        )
        [selection] = _validate_items(MvpSelection, [data], "MVP selection")
        by_id = {idea.id: idea for idea in ideas}
        if selection.idea_id not in by_id:
            raise MalformedCompletionError(
                f"AI picked an idea that is not in the list: {selection.idea_id}"
            )
        if not selection.title:
            selection.title = by_id[selection.idea_id].title
        return selection

    async def suggest_folders(
        self, ideas: Sequence[Idea], existing_names: Sequence[str] = ()
    ) -> list[FolderSuggestion]:
        """Propose thematic folders for ``ideas``.

        Ids the model made up are dropped; suggestions left with no ideas
        are dropped too.
        """
        if not ideas:
            return []
        items = await self._completions.complete_json_array(
            prompts.folders_prompt(list(ideas), list(existing_names))
        )
        suggestions = _validate_items(FolderSuggestion, items, "folder suggestion")
        known = {idea.id for idea in ideas}

        cleaned = []
        for suggestion in suggestions:
            idea_ids = [i for i in dict.fromkeys(suggestion.idea_ids) if i in known]
            dropped = len(suggestion.idea_ids) - len(idea_ids)
            if dropped:
                logger.debug("Dropped %d unknown idea ids from folder %r", dropped, suggestion.name)
            if idea_ids:
                cleaned.append(suggestion.model_copy(update={"idea_ids": idea_ids}))
        return cleaned

    async def brainstorm(self, history: Sequence[ChatMessage], text: str) -> BrainstormTurn:
        """One exchange of the free-form brainstorm chat (not tied to an idea).

        Provider failures and a missing configuration become a system
        message in the returned history.

        Raises:
            ValueError: If text is empty
        """
        text = text.strip()
        if not text:
            raise ValueError("Message cannot be empty")
        prior = list(history)
        updated = [*prior, ChatMessage(role="user", content=text)]

        if not self._completions.is_configured():
            updated.append(ChatMessage(role="system", content=NOT_CONFIGURED_MESSAGE))
            return BrainstormTurn(updated)

        try:
            raw = await self._completions.complete(prompts.brainstorm_prompt(prior, text))
        except ProviderError as e:
            logger.warning("Brainstorm reply failed: %s", e)
            updated.append(ChatMessage(role="system", content=f"Error: {e.message}"))
            return BrainstormTurn(updated)

        create = prompts.CREATE_IDEA_MARKER in raw
        content = raw.replace(prompts.CREATE_IDEA_MARKER, "").strip()
        updated.append(ChatMessage(role="assistant", content=content))
        return BrainstormTurn(updated, create_idea=create)

    async def summarize_chat(self, history: Sequence[ChatMessage]) -> GeneratedIdea:
        """Condense a brainstorm chat into a title and details.

        Never fails on a bad completion: falls back to a placeholder built
        from the last user message.

        Raises:
            ValueError: If history is empty
        """
        if not history:
            raise ValueError("Nothing to summarize")
        prompt = prompts.SUMMARIZE_TEMPLATE.format(transcript=prompts.transcript(list(history)))
        try:
            data = await self._completions.complete_json_object(prompt)
            return GeneratedIdea.model_validate(data)
        except (ProviderError, ValidationError) as e:
            logger.warning("Chat summary failed, using placeholder: %s", e)
            return GeneratedIdea(title=FALLBACK_CHAT_TITLE, details=_last_user_message(history))

    async def idea_from_chat(self, history: Sequence[ChatMessage]) -> IdeaSession:
        """Open a transient draft from a brainstorm chat.

        The draft carries the chat and, when extraction succeeds, keywords.
        It is stored on its first edit or save.
        """
        summary = await self.summarize_chat(history)
        keywords: list[str] = []
        try:
            probe = Idea(title=summary.title, details=summary.details)
            keywords = parse_keywords(
                await self._completions.complete(prompts.keywords_prompt(probe))
            )
        except ProviderError as e:
            logger.warning("Keyword extraction for chat draft failed: %s", e)

        return self._ideas.create_draft(
            title=summary.title,
            details=summary.details,
            keywords=keywords,
            chat_history=list(history),
        )

    async def save_generated(self, generated: GeneratedIdea) -> Idea:
        """Store a generated idea as a new draft-status idea."""
        return await self._ideas.create(title=generated.title, details=generated.details)
