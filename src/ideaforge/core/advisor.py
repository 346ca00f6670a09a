"""Per-idea AI operations: advisor chat, keywords, plans and MVP prompts."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ideaforge.core.ideas import IdeaEngine
from ideaforge.exceptions import ProviderError
from ideaforge.llm import prompts
from ideaforge.llm.parsing import parse_keywords
from ideaforge.llm.service import CompletionService
from ideaforge.models.idea import ChatMessage, Idea

logger = logging.getLogger(__name__)

PLAN_PREFIX = "Here is a detailed plan for your idea:\n\n"


@dataclass
class ChatTurn:
    """The idea after a chat operation and the message that operation added.

    ``reply`` is None when the reply was dropped because its turn was undone.
    """

    idea: Idea
    reply: ChatMessage | None


def _insert_reply(history: list[ChatMessage], user_id: str, reply: ChatMessage) -> list[ChatMessage] | None:
    """Place ``reply`` directly after the user message it answers.

    Returns None if that user message is gone (the turn was undone).
    """
    for index, msg in enumerate(history):
        if msg.id == user_id:
            return [*history[: index + 1], reply, *history[index + 1 :]]
    return None


def undo_turn(history: list[ChatMessage]) -> list[ChatMessage]:
    """Drop the trailing reply and the user message before it."""
    history = list(history)
    if history and history[-1].role != "user":
        history.pop()
    if history and history[-1].role == "user":
        history.pop()
    return history


class IdeaAdvisor:
    """AI operations scoped to one idea.

    Each operation merges its result through ``IdeaEngine.update`` and
    touches only the field it owns, so operations running concurrently on
    the same idea never overwrite each other.
    """

    def __init__(self, ideas: IdeaEngine, completions: CompletionService) -> None:
        self._ideas = ideas
        self._completions = completions

    async def send_message(self, idea_id: str, text: str) -> ChatTurn:
        """Send a chat message to the advisor and record its reply.

        The user message is recorded before the completion is requested.
        Exactly one reply follows it: an assistant message, or a system
        message carrying the provider error.

        Raises:
            ValueError: If text is empty
            NotFoundError: If the idea does not exist
        """
        text = text.strip()
        if not text:
            raise ValueError("Message cannot be empty")

        user_msg = ChatMessage(role="user", content=text)
        idea = await self._ideas.update(
            idea_id,
            lambda current: current.model_copy(
                update={"chat_history": [*current.chat_history, user_msg]}
            ),
        )
        prior = [m for m in idea.chat_history if m.id != user_msg.id]

        try:
            answer = await self._completions.complete(prompts.advisor_prompt(idea, prior, text))
            reply = ChatMessage(role="assistant", content=answer)
        except ProviderError as e:
            logger.warning("Advisor reply for idea %s failed: %s", idea_id, e)
            reply = ChatMessage(role="system", content=f"Error: {e.message}")

        inserted = False

        def _with_reply(current: Idea) -> Idea:
            nonlocal inserted
            history = _insert_reply(current.chat_history, user_msg.id, reply)
            if history is None:
                logger.debug("Dropping reply for undone message in idea %s", idea_id)
                return current
            inserted = True
            return current.model_copy(update={"chat_history": history})

        idea = await self._ideas.update(idea_id, _with_reply)
        return ChatTurn(idea, reply if inserted else None)

    async def undo_last_turn(self, idea_id: str) -> Idea:
        return await self._ideas.update(
            idea_id,
            lambda current: current.model_copy(
                update={"chat_history": undo_turn(current.chat_history)}
            ),
        )

    async def extract_keywords(self, idea_id: str) -> Idea:
        """Replace the idea's keywords with freshly extracted ones.

        Raises:
            ProviderError: If the completion fails
        """
        idea = await self._ideas.require(idea_id)
        keywords = parse_keywords(await self._completions.complete(prompts.keywords_prompt(idea)))
        logger.info("Extracted %d keywords for idea %s", len(keywords), idea_id)
        return await self._ideas.update(
            idea_id, lambda current: current.model_copy(update={"keywords": keywords})
        )

    async def generate_plan(self, idea_id: str) -> ChatTurn:
        """Append an implementation plan to the chat as an assistant message.

        Raises:
            ProviderError: If the completion fails
        """
        idea = await self._ideas.require(idea_id)
        plan = await self._completions.complete(prompts.plan_prompt(idea))
        message = ChatMessage(role="assistant", content=PLAN_PREFIX + plan)
        idea = await self._ideas.update(
            idea_id,
            lambda current: current.model_copy(
                update={"chat_history": [*current.chat_history, message]}
            ),
        )
        return ChatTurn(idea, message)


def build_mvp_prompt(
    idea: Idea,
    *,
    project_name: str | None = None,
    parent_path: str = "../",
    setup_directory: bool = True,
) -> str:
    """Prompt for a coding agent to scaffold a local MVP of ``idea``."""
    steps = ""
    if setup_directory:
        name = project_name or re.sub(r"[^a-z0-9]+", "-", idea.title.lower()).strip("-") or "mvp"
        parent = parent_path if parent_path.endswith("/") else parent_path + "/"
        steps = (
            f"   - Create a new project directory at: {parent}{name}\n"
            "   - Initialize the project (git init, package manager setup)."
        )
    return prompts.MVP_BUILD_TEMPLATE.format(
        title=idea.title,
        details=idea.details,
        keywords=", ".join(idea.keywords) or "none",
        directory_steps=steps,
    )
