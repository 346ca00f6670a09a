"""Tests for background viability and competitor reports."""

import asyncio

import pytest

from ideaforge.core.reports import ReportKind, ReportStatus
from ideaforge.events.types import EventType
from ideaforge.exceptions import NotFoundError, ProviderError


@pytest.fixture
def events(bus):
    seen = []

    async def record(event_type, data):
        seen.append((event_type, data))

    bus.on(EventType.REPORT_READY, record)
    bus.on(EventType.REPORT_FAILED, record)
    return seen


async def test_viability_report_is_stored_as_analysis(ideas, reports, fake, events):
    fake.route("viability", "## Verdict\n7/10")
    idea = await ideas.create(title="Pet taxi", keywords=["pets"])

    started = await reports.start(idea.id, "viability")
    assert started.status == ReportStatus.PENDING
    report = await reports.wait(idea.id, ReportKind.VIABILITY)

    assert report.status == ReportStatus.READY
    assert report.content == "## Verdict\n7/10"
    assert report.finished_at is not None
    assert (await ideas.require(idea.id)).analysis == "## Verdict\n7/10"
    assert events == [(EventType.REPORT_READY, {"idea_id": idea.id, "kind": "viability"})]

    call = fake.calls[0]
    assert call["high_effort"]
    assert "Keywords: pets" in call["prompt"]


async def test_competitor_report_does_not_touch_the_idea(ideas, reports, fake):
    fake.route("competitor analysis", "Rover, Wag")
    idea = await ideas.create(title="Pet taxi")

    await reports.start(idea.id, ReportKind.COMPETITORS)
    report = await reports.wait(idea.id, ReportKind.COMPETITORS)

    assert report.content == "Rover, Wag"
    assert (await ideas.require(idea.id)).analysis is None


async def test_failed_report(ideas, reports, fake, events):
    fake.route("viability", ProviderError("upstream 500"))
    idea = await ideas.create(title="Pet taxi")

    await reports.start(idea.id, ReportKind.VIABILITY)
    report = await reports.wait(idea.id, ReportKind.VIABILITY)

    assert report.status == ReportStatus.FAILED
    assert report.error == "upstream 500"
    assert (await ideas.require(idea.id)).analysis is None
    assert events[0][0] == EventType.REPORT_FAILED


async def test_start_while_running_returns_same_report(ideas, reports, fake):
    gate = fake.gate("viability")
    idea = await ideas.create(title="Pet taxi")

    first = await reports.start(idea.id, ReportKind.VIABILITY)
    second = await reports.start(idea.id, ReportKind.VIABILITY)
    gate.set()
    await reports.wait(idea.id, ReportKind.VIABILITY)

    assert first is second
    assert len(fake.calls) == 1


async def test_both_kinds_run_independently(ideas, reports, fake):
    fake.route("viability", "viable")
    fake.route("competitor analysis", "crowded")
    idea = await ideas.create(title="Pet taxi")

    await reports.start(idea.id, ReportKind.VIABILITY)
    await reports.start(idea.id, ReportKind.COMPETITORS)
    await asyncio.gather(
        reports.wait(idea.id, ReportKind.VIABILITY),
        reports.wait(idea.id, ReportKind.COMPETITORS),
    )

    contents = {r.kind: r.content for r in reports.list_reports(idea.id)}
    assert contents == {ReportKind.VIABILITY: "viable", ReportKind.COMPETITORS: "crowded"}


async def test_start_for_missing_idea(reports):
    with pytest.raises(NotFoundError):
        await reports.start("nope", ReportKind.VIABILITY)


async def test_report_outlives_deleted_idea(ideas, reports, fake):
    gate = fake.gate("viability")
    fake.route("viability", "too late")
    idea = await ideas.create(title="Pet taxi")

    await reports.start(idea.id, ReportKind.VIABILITY)
    await ideas.delete(idea.id, confirmed=True)
    gate.set()
    report = await reports.wait(idea.id, ReportKind.VIABILITY)

    assert report.status == ReportStatus.READY
    assert await ideas.get(idea.id) is None


async def test_reports_of_deleted_idea_are_dropped(ideas, reports, fake):
    gate = fake.gate("viability")
    fake.route("competitor analysis", "Rover, Wag")
    idea = await ideas.create(title="Pet taxi")

    await reports.start(idea.id, ReportKind.COMPETITORS)
    await reports.wait(idea.id, ReportKind.COMPETITORS)
    await reports.start(idea.id, ReportKind.VIABILITY)
    await ideas.delete(idea.id, confirmed=True)

    # finished report goes at once, the running one when it finishes
    assert reports.get(idea.id, ReportKind.COMPETITORS) is None
    assert reports.get(idea.id, ReportKind.VIABILITY) is not None
    gate.set()
    report = await reports.wait(idea.id, ReportKind.VIABILITY)
    assert report.status == ReportStatus.READY
    assert reports.list_reports(idea.id) == []


async def test_get_unknown_report(reports):
    assert reports.get("nope", "competitors") is None


async def test_close_cancels_running_reports(ideas, reports, fake):
    fake.gate("viability")
    idea = await ideas.create(title="Pet taxi")
    report = await reports.start(idea.id, ReportKind.VIABILITY)

    await reports.close()
    assert report.status == ReportStatus.PENDING
