import asyncio
import os

import pytest

from sketchlab.catalog import LIBRARIES
from sketchlab.sandbox.channel import StatusChannel
from sketchlab.sandbox.harness import SandboxHarness, run_sandboxes
from sketchlab.sandbox.registry import CandidateRegistry
from sketchlab.sandbox.runtime import BrowserRuntime, SandboxError, SandboxTimeout
from sketchlab.schemas import Candidate

from helpers import ScriptedRuntime, status_payload


def _harness(candidate, runtime, **kwargs):
    emitted = []
    harness = SandboxHarness(candidate, runtime, emitted.append, **kwargs)
    return harness, emitted


@pytest.mark.asyncio
async def test_clean_run_reports_loading_then_success(candidate):
    harness, emitted = _harness(candidate, ScriptedRuntime())

    status = await harness.run()

    assert status == "success"
    assert harness.history == ["loading", "success"]
    assert [m.status for m in emitted] == ["loading", "success"]
    assert all(m.candidate_id == candidate.id for m in emitted)


@pytest.mark.asyncio
async def test_thrown_error_reports_loading_then_error_with_message(candidate):
    runtime = ScriptedRuntime(script=lambda doc: [
        status_payload(doc.candidate_id, "loading"),
        status_payload(doc.candidate_id, "error", "x is not defined"),
    ])
    harness, emitted = _harness(candidate, runtime)

    status = await harness.run()

    assert status == "error"
    assert [m.status for m in emitted] == ["loading", "error"]
    assert emitted[-1].message == "x is not defined"


@pytest.mark.asyncio
async def test_only_the_first_terminal_status_counts(candidate):
    runtime = ScriptedRuntime(script=lambda doc: [
        status_payload(doc.candidate_id, "loading"),
        status_payload(doc.candidate_id, "loading"),
        status_payload(doc.candidate_id, "success"),
        status_payload(doc.candidate_id, "error", "late async failure"),
        status_payload(doc.candidate_id, "success"),
    ])
    harness, emitted = _harness(candidate, runtime)

    await harness.run()

    assert [m.status for m in emitted] == ["loading", "success"]


@pytest.mark.asyncio
async def test_messages_tagged_for_other_candidates_are_ignored(candidate):
    runtime = ScriptedRuntime(script=lambda doc: [
        status_payload(doc.candidate_id + 1, "success"),
        "console noise from the sketch",
        status_payload(doc.candidate_id, "error", "boom"),
    ])
    harness, emitted = _harness(candidate, runtime)

    status = await harness.run()

    assert status == "error"
    assert [m.status for m in emitted] == ["loading", "error"]


@pytest.mark.asyncio
async def test_runtime_failure_becomes_an_error_status(candidate):
    runtime = ScriptedRuntime(
        script=lambda doc: [status_payload(doc.candidate_id, "loading")],
        raises=lambda doc: SandboxTimeout("Sketch did not finish starting within 20 seconds"),
    )
    harness, emitted = _harness(candidate, runtime)

    status = await harness.run()

    assert status == "error"
    assert [m.status for m in emitted] == ["loading", "error"]
    assert "did not finish" in emitted[-1].message


@pytest.mark.asyncio
async def test_run_without_any_report_ends_in_error(candidate):
    harness, emitted = _harness(candidate, ScriptedRuntime(script=lambda doc: []))

    status = await harness.run()

    assert status == "error"
    assert emitted[-1].message == "Sketch exited without reporting a result."


@pytest.mark.asyncio
async def test_rerun_starts_a_fresh_lifecycle(candidate):
    harness, emitted = _harness(candidate, ScriptedRuntime())

    await harness.run()
    await harness.run()

    assert harness.history == ["loading", "success"]
    assert [m.status for m in emitted] == ["loading", "success", "loading", "success"]


@pytest.mark.asyncio
async def test_runtime_sees_the_current_code_and_addon_snapshot(candidate):
    runtime = ScriptedRuntime()
    selection = [LIBRARIES[0]]
    harness, _ = _harness(candidate, runtime, addons=selection, settle_ms=10)

    selection.append(LIBRARIES[1])
    candidate.edit_source("circle(10, 10, 10);")
    await harness.run()

    [document] = runtime.documents
    assert document.candidate_id == candidate.id
    assert "circle(10, 10, 10);" in document.html
    assert LIBRARIES[0].resource_locator in document.allowed_urls
    assert LIBRARIES[1].resource_locator not in document.allowed_urls


@pytest.mark.asyncio
async def test_concurrent_sandboxes_are_independent():
    good = Candidate(source_code="background(0);", raw_response_text="")
    crashing = Candidate(source_code="explode();", raw_response_text="")
    broken = Candidate(source_code="undefinedThing();", raw_response_text="")
    registry = CandidateRegistry([good, crashing, broken])
    channel = StatusChannel()

    def script(doc):
        if doc.candidate_id == broken.id:
            return [status_payload(doc.candidate_id, "loading"),
                    status_payload(doc.candidate_id, "error", "undefinedThing is not defined")]
        return [status_payload(doc.candidate_id, "loading"), status_payload(doc.candidate_id, "success")]

    def raises(doc):
        if doc.candidate_id == crashing.id:
            return SandboxError("Sandbox page crashed")
        return None

    runtime = ScriptedRuntime(
        script=lambda doc: script(doc)[:1] if doc.candidate_id == crashing.id else script(doc),
        raises=raises,
    )

    results = await run_sandboxes(registry.candidates(), runtime, channel, settle_ms=0)
    channel.drain(registry)

    assert results == {good.id: "success", crashing.id: "error", broken.id: "error"}
    assert registry.statuses() == results
    assert crashing.last_error == "Sandbox page crashed"
    assert broken.last_error == "undefinedThing is not defined"
    assert good.last_error is None


@pytest.mark.asyncio
async def test_cancelling_a_run_propagates(candidate):
    class HangingRuntime(ScriptedRuntime):
        async def run(self, document, deliver, settled, timeout):
            await asyncio.Event().wait()

    harness, emitted = _harness(candidate, HangingRuntime())
    task = asyncio.create_task(harness.run())
    await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert [m.status for m in emitted] == ["loading"]


@pytest.mark.skipif(os.getenv("SKETCHLAB_BROWSER_TESTS") != "1", reason="needs Chromium and network access")
@pytest.mark.asyncio
async def test_browser_runtime_end_to_end():
    ok = Candidate(source_code="background(100);\nellipse(250, 250, 80);", raw_response_text="")
    failing = Candidate(source_code="function setup() { notAFunction(); }", raw_response_text="")
    lexical = Candidate(source_code="const setup = () => { missingHelper(); };", raw_response_text="")
    rejecting = Candidate(
        source_code="function setup() { createCanvas(10, 10); Promise.reject(new Error('late failure')); }",
        raw_response_text="",
    )
    registry = CandidateRegistry([ok, failing, lexical, rejecting])
    channel = StatusChannel()

    async with BrowserRuntime() as runtime:
        results = await run_sandboxes(registry.candidates(), runtime, channel, timeout=30.0)

    channel.drain(registry)
    assert results == {ok.id: "success", failing.id: "error", lexical.id: "error", rejecting.id: "error"}
    assert "notAFunction" in failing.last_error
    # p5 found the const-declared setup and ran it
    assert "missingHelper" in lexical.last_error
    assert rejecting.last_error == "late failure"
