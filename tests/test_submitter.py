import asyncio

import pytest

from conftest import FakeDirectory, RecordingDispatcher
from access_manager.app.entities import ActionIntent
from access_manager.app.errors import InvalidSubmissionState
from access_manager.app.owners import OwnerResolver
from access_manager.app.reconciler import reconcile
from access_manager.app.submitter import RequestSubmitter, SubmissionState


def make_submitter(directory, dispatcher, transitions=None):
    return RequestSubmitter(
        OwnerResolver(directory, timeout=1.0),
        dispatcher,
        on_transition=transitions.append if transitions is not None else None,
    )


@pytest.mark.asyncio
async def test_successful_submission(applicant, group_a, group_b):
    directory = FakeDirectory(owners={"GroupA": "alice@x.com", "GroupB": "bob@x.com"})
    dispatcher = RecordingDispatcher()
    transitions = []
    submitter = make_submitter(directory, dispatcher, transitions)
    assert submitter.state is SubmissionState.IDLE

    lines = reconcile([group_a, group_b], {"groupa"})
    lines[1].requested = True
    outcome = await submitter.submit(applicant, ActionIntent(reason="audit"), lines)

    assert outcome.ok
    assert outcome.recipients == {"alice@x.com", "bob@x.com"}
    assert transitions == [
        SubmissionState.COMPOSING,
        SubmissionState.AWAITING_OWNER_RESOLUTION,
        SubmissionState.READY,
        SubmissionState.DISPATCHED,
    ]
    assert len(dispatcher.sent) == 1
    recipients, subject, body = dispatcher.sent[0]
    assert recipients == {"alice@x.com", "bob@x.com"}
    assert subject == "Access request"
    assert body == outcome.payload.body


@pytest.mark.asyncio
async def test_empty_selection_fails_without_lookups(applicant, group_a):
    directory = FakeDirectory(owners={"GroupA": "alice@x.com"})
    dispatcher = RecordingDispatcher()
    submitter = make_submitter(directory, dispatcher)

    outcome = await submitter.submit(applicant, ActionIntent(), reconcile([group_a], set()))

    assert outcome.state is SubmissionState.FAILED
    assert outcome.reason == "no resources selected"
    assert directory.owner_calls == []
    assert dispatcher.sent == []


@pytest.mark.asyncio
async def test_no_resolvable_owners_then_retry(applicant, group_a):
    directory = FakeDirectory()
    dispatcher = RecordingDispatcher()
    submitter = make_submitter(directory, dispatcher)
    lines = reconcile([group_a], {"groupa"})

    outcome = await submitter.submit(applicant, ActionIntent(), lines)
    assert outcome.state is SubmissionState.FAILED
    assert outcome.reason == "no resolvable owners"
    assert outcome.unresolved == ("GroupA",)
    assert dispatcher.sent == []

    directory.owners["GroupA"] = "alice@x.com"
    outcome = await submitter.submit(applicant, ActionIntent(), lines)
    assert outcome.ok
    assert submitter.failure_reason is None


@pytest.mark.asyncio
async def test_partial_owners_still_dispatch(applicant, group_a, group_b):
    directory = FakeDirectory(owners={"GroupB": "bob@x.com"})
    submitter = make_submitter(directory, RecordingDispatcher())
    outcome = await submitter.submit(
        applicant, ActionIntent(), reconcile([group_a, group_b], {"groupa", "groupb"})
    )
    assert outcome.ok
    assert outcome.recipients == {"bob@x.com"}
    assert outcome.unresolved == ("GroupA",)


@pytest.mark.asyncio
async def test_dispatch_failure_is_retryable(applicant, group_a):
    directory = FakeDirectory(owners={"GroupA": "alice@x.com"})
    dispatcher = RecordingDispatcher(fail=True)
    submitter = make_submitter(directory, dispatcher)
    lines = reconcile([group_a], {"groupa"})

    outcome = await submitter.submit(applicant, ActionIntent(), lines)
    assert outcome.state is SubmissionState.FAILED
    assert "rejected" in outcome.reason
    assert directory.owner_calls == ["GroupA"]

    dispatcher.fail = False
    outcome = await submitter.submit(applicant, ActionIntent(), lines)
    assert outcome.ok
    assert directory.owner_calls == ["GroupA", "GroupA"]


@pytest.mark.asyncio
async def test_dispatched_is_terminal(applicant, group_a):
    submitter = make_submitter(FakeDirectory(owners={"GroupA": "a@x.com"}), RecordingDispatcher())
    lines = reconcile([group_a], {"groupa"})
    assert (await submitter.submit(applicant, ActionIntent(), lines)).ok
    with pytest.raises(InvalidSubmissionState):
        await submitter.submit(applicant, ActionIntent(), lines)


@pytest.mark.asyncio
async def test_abandoned_submission_sends_nothing(applicant, group_a):
    directory = FakeDirectory(owners={"GroupA": "a@x.com"}, delays={"GroupA": 0.5})
    dispatcher = RecordingDispatcher()
    submitter = make_submitter(directory, dispatcher)

    task = asyncio.create_task(
        submitter.submit(applicant, ActionIntent(), reconcile([group_a], {"groupa"}))
    )
    await asyncio.sleep(0.05)
    assert submitter.state is SubmissionState.AWAITING_OWNER_RESOLUTION
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert dispatcher.sent == []
    assert submitter.state is SubmissionState.IDLE


@pytest.mark.asyncio
async def test_abandoned_during_dispatch_can_be_resubmitted(applicant, group_a):
    directory = FakeDirectory(owners={"GroupA": "a@x.com"})
    dispatcher = RecordingDispatcher(delay=1.0)
    submitter = make_submitter(directory, dispatcher)
    lines = reconcile([group_a], {"groupa"})

    task = asyncio.create_task(submitter.submit(applicant, ActionIntent(), lines))
    await asyncio.sleep(0.1)
    assert submitter.state is SubmissionState.READY
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert submitter.state is SubmissionState.IDLE
    assert submitter.payload is None
    assert submitter.recipients == frozenset()
    assert dispatcher.sent == []

    dispatcher.delay = 0.0
    outcome = await submitter.submit(applicant, ActionIntent(), lines)
    assert outcome.ok
    assert len(dispatcher.sent) == 1
