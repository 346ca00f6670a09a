"""Concurrent AI operations and edits on one idea must not overwrite each other."""

import asyncio

from ideaforge.core.ideas import IdeaEngine
from ideaforge.core.reports import ReportKind

KEYWORDS_MARKER = "conceptually relevant keywords"
ADVISOR_MARKER = "critical, experienced startup advisor"
VIABILITY_MARKER = "business viability report"


async def _until_called(fake, marker: str) -> None:
    for _ in range(100):
        if any(marker in call["prompt"] for call in fake.calls):
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"no call containing {marker!r}")


async def test_keywords_chat_and_edits_all_survive(ideas, advisor, fake, store, bus):
    fake.route(KEYWORDS_MARKER, "pets, mobility, trust")
    fake.route(ADVISOR_MARKER, "Who pays for the ride?")
    keywords_gate = fake.gate(KEYWORDS_MARKER)
    advisor_gate = fake.gate(ADVISOR_MARKER)

    idea = await ideas.create(title="Pet taxi")
    session = await ideas.open_session(idea.id)

    chat = asyncio.create_task(advisor.send_message(idea.id, "Is this viable?"))
    keywords = asyncio.create_task(advisor.extract_keywords(idea.id))
    await _until_called(fake, ADVISOR_MARKER)
    await _until_called(fake, KEYWORDS_MARKER)

    session.edit(details="Rides for pets while owners work")

    # finish in the opposite order to how they started
    keywords_gate.set()
    await keywords
    advisor_gate.set()
    await chat

    await session.close()
    stored = await IdeaEngine(store, bus).require(idea.id)
    assert stored.details == "Rides for pets while owners work"
    assert stored.keywords == ["pets", "mobility", "trust"]
    assert [(m.role, m.content) for m in stored.chat_history] == [
        ("user", "Is this viable?"),
        ("assistant", "Who pays for the ride?"),
    ]


async def test_two_chat_turns_keep_their_order(ideas, advisor, fake):
    # the first question also appears in the second prompt's transcript
    first_only = "User: first question\n\nReply"
    first_gate = fake.gate(first_only)
    fake.route(first_only, "first answer")
    fake.route("second question", "second answer")

    idea = await ideas.create(title="Pet taxi")
    first = asyncio.create_task(advisor.send_message(idea.id, "first question"))
    await _until_called(fake, first_only)
    second_turn = await advisor.send_message(idea.id, "second question")
    first_gate.set()
    first_turn = await first

    stored = await ideas.require(idea.id)
    assert [m.content for m in stored.chat_history] == [
        "first question",
        "first answer",
        "second question",
        "second answer",
    ]
    # each call reports its own answer, not the newest message
    assert first_turn.reply.content == "first answer"
    assert second_turn.reply.content == "second answer"


async def test_report_finishing_after_close_keeps_later_edits(ideas, reports, fake, store, bus):
    fake.route(VIABILITY_MARKER, "Score: 7/10")
    gate = fake.gate(VIABILITY_MARKER)

    idea = await ideas.create(title="Pet taxi")
    session = await ideas.open_session(idea.id)
    await reports.start(idea.id, ReportKind.VIABILITY)
    await _until_called(fake, VIABILITY_MARKER)

    session.edit(title="Pet taxi co-op")
    await session.close()

    gate.set()
    report = await reports.wait(idea.id, ReportKind.VIABILITY)

    assert report.content == "Score: 7/10"
    stored = await IdeaEngine(store, bus).require(idea.id)
    assert stored.title == "Pet taxi co-op"
    assert stored.analysis == "Score: 7/10"


async def test_reply_for_undone_turn_is_dropped(ideas, advisor, fake):
    gate = fake.gate(ADVISOR_MARKER)
    fake.route(ADVISOR_MARKER, "late answer")

    idea = await ideas.create(title="Pet taxi")
    chat = asyncio.create_task(advisor.send_message(idea.id, "never mind"))
    await _until_called(fake, ADVISOR_MARKER)
    await advisor.undo_last_turn(idea.id)
    gate.set()
    turn = await chat

    assert turn.reply is None
    assert turn.idea.chat_history == []
    assert (await ideas.require(idea.id)).chat_history == []
