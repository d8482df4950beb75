# tests/test_audition_session.py
import asyncio

import pytest

from audition.application.models import (
    NotificationLevel,
    Outcome,
    Question,
    RecordingState,
    SessionStatus,
)
from audition.application.runner import SessionRunner
from audition.core.exceptions import BackendError, DeviceNotFoundError, SessionStateError
from audition.processors.recorder import RecordingDevice
from conftest import FakeCaptureBackend, advance


class FakeSurveyClient:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def submit_survey(self, submission_id, rating, reason=None, status=None):
        self.calls.append((submission_id, rating, reason, status))
        if self.error is not None:
            raise self.error
        return {"success": True}


async def wait_for_upload(uploader, count=1):
    while len(uploader.calls) < count:
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_start_activates_first_question_and_records(make_controller, capture_backend):
    controller = make_controller()
    await controller.start()

    assert controller.status == SessionStatus.IN_PROGRESS
    assert controller.current_index == 0
    assert controller.active_question.id == "q1"
    assert controller.recording_state == RecordingState.RECORDING
    assert controller.global_timer.is_running
    assert controller.question_timer.remaining == 90
    assert capture_backend.opens == 1

    view = controller.view()
    assert view.question_number == 1
    assert view.question_count == 3
    assert view.global_clock == "30:00"
    assert view.question_clock == "01:30"


@pytest.mark.asyncio
async def test_start_twice_rejected(make_controller):
    controller = make_controller()
    await controller.start()
    with pytest.raises(SessionStateError):
        await controller.start()


@pytest.mark.asyncio
async def test_scenario_manual_timeout_manual(make_controller, uploader):
    controller = make_controller()
    indices = []

    await controller.start()
    indices.append(controller.current_index)

    await advance(controller, 10)
    await controller.stop_recording()
    assert await controller.submit_and_advance() is True
    indices.append(controller.current_index)

    # no manual stop on Q2: the recording that auto-started is submitted on timeout
    await advance(controller, 90)
    indices.append(controller.current_index)

    await advance(controller, 5)
    await controller.stop_recording()
    assert await controller.submit_and_advance() is True
    indices.append(controller.current_index)

    assert uploader.question_ids == ["q1", "q2", "q3"]
    assert controller.status == SessionStatus.COMPLETED
    assert indices == sorted(indices)
    assert max(indices) <= len(controller.questions)
    assert controller.global_timer.remaining == 1800 - 105
    assert [o.outcome for o in controller.record().outcomes] == [Outcome.SUBMITTED] * 3


@pytest.mark.asyncio
async def test_scenario_without_auto_start_skips_untouched_question(make_controller, uploader):
    controller = make_controller(auto_start_recording=False)
    await controller.start()
    assert controller.recording_state == RecordingState.IDLE

    assert await controller.start_recording() is True
    await advance(controller, 10)
    await controller.stop_recording()
    await controller.submit_and_advance()

    await advance(controller, 90)
    assert controller.current_index == 2

    await controller.start_recording()
    await advance(controller, 5)
    await controller.stop_recording()
    await controller.submit_and_advance()

    assert uploader.question_ids == ["q1", "q3"]
    assert controller.status == SessionStatus.COMPLETED
    outcomes = controller.record().outcomes
    assert [o.outcome for o in outcomes] == [Outcome.SUBMITTED, Outcome.SKIPPED, Outcome.SUBMITTED]


@pytest.mark.asyncio
async def test_timeout_while_recording_uploads_exactly_once(make_controller, uploader):
    controller = make_controller()
    await controller.start()
    await advance(controller, 90)

    assert uploader.question_ids == ["q1"]
    assert controller.current_index == 1
    assert controller.recording_state == RecordingState.RECORDING


@pytest.mark.asyncio
async def test_manual_stop_stops_question_clock(make_controller, uploader):
    controller = make_controller()
    await controller.start()
    await advance(controller, 20)
    await controller.stop_recording()

    await advance(controller, 200)
    assert controller.question_timer.remaining == 70
    assert uploader.calls == []
    assert controller.recording_state == RecordingState.CAPTURED


@pytest.mark.asyncio
async def test_advance_without_recording_is_refused(make_controller, uploader, notifier):
    controller = make_controller(auto_start_recording=False)
    await controller.start()

    assert await controller.submit_and_advance() is False
    assert controller.current_index == 0
    assert uploader.calls == []
    assert "No Recording" in notifier.titles()


@pytest.mark.asyncio
async def test_upload_failure_keeps_answer_for_retry(make_controller, uploader, notifier):
    controller = make_controller()
    await controller.start()
    await controller.stop_recording()

    uploader.fail_with = "Backend rejected the answer"
    assert await controller.submit_and_advance() is False
    assert controller.current_index == 0
    assert controller.recording_state == RecordingState.CAPTURED
    failure = notifier.items[-1]
    assert failure.level == NotificationLevel.ERROR
    assert failure.title == "Upload Failed"
    assert failure.message == "Backend rejected the answer"

    uploader.fail_with = None
    assert await controller.submit_and_advance() is True
    assert controller.current_index == 1
    assert uploader.question_ids == ["q1", "q1"]


@pytest.mark.asyncio
async def test_failed_timeout_upload_is_not_retriggered(make_controller, uploader):
    uploader.fail_with = "network down"
    controller = make_controller()
    await controller.start()

    await advance(controller, 90)
    await advance(controller, 30)

    assert uploader.question_ids == ["q1"]
    assert controller.current_index == 0
    assert controller.question_timer.is_expired


@pytest.mark.asyncio
async def test_skip_after_failed_upload_warns_and_records_failure(make_controller, uploader, notifier):
    controller = make_controller()
    await controller.start()
    await controller.stop_recording()
    uploader.fail_with = "network down"
    await controller.submit_and_advance()

    assert await controller.skip_question() is True
    assert controller.current_index == 1
    assert "Answer Not Submitted" in notifier.titles()
    outcome = controller.record().outcomes[0]
    assert outcome.outcome == Outcome.FAILED
    assert outcome.error == "network down"


@pytest.mark.asyncio
async def test_skip_with_held_answer_is_discarded(make_controller, uploader, notifier):
    controller = make_controller()
    await controller.start()

    await controller.skip_question()
    assert controller.record().outcomes[0].outcome == Outcome.DISCARDED
    assert "Answer Not Submitted" in notifier.titles()
    assert uploader.calls == []


@pytest.mark.asyncio
async def test_device_failure_blocks_start_without_fallback(make_controller, notifier):
    backend = FakeCaptureBackend(error=DeviceNotFoundError("No microphone device found"))
    controller = make_controller(recorder=RecordingDevice(backend))

    with pytest.raises(DeviceNotFoundError):
        await controller.start()
    assert controller.status == SessionStatus.NOT_STARTED
    assert notifier.items[0].level == NotificationLevel.ERROR
    assert notifier.items[0].title == "No Microphone Found"


@pytest.mark.asyncio
async def test_device_fallback_skips_every_question(make_controller, uploader, notifier):
    backend = FakeCaptureBackend(error=DeviceNotFoundError("No microphone device found"))
    controller = make_controller(recorder=RecordingDevice(backend), allow_no_device=True)

    await controller.start()
    assert controller.status == SessionStatus.IN_PROGRESS
    assert controller.recording_state == RecordingState.IDLE
    assert notifier.items[0].level == NotificationLevel.WARNING

    await advance(controller, 270)
    assert controller.status == SessionStatus.COMPLETED
    assert uploader.calls == []
    assert all(o.outcome == Outcome.SKIPPED for o in controller.record().outcomes)


@pytest.mark.asyncio
async def test_global_expiry_mid_recording_submits_and_expires(make_controller, uploader,
                                                               notifier, capture_backend):
    controller = make_controller(global_time_limit=5)
    await controller.start()
    await advance(controller, 5)

    assert controller.status == SessionStatus.EXPIRED
    assert uploader.question_ids == ["q1"]
    assert "Time's Up!" in notifier.titles()
    assert capture_backend.stream.closed is True
    assert controller.record().outcomes[0].outcome == Outcome.SUBMITTED

    # nothing touches the device after the session ends
    with pytest.raises(SessionStateError):
        await controller.start_recording()
    await advance(controller, 10)
    assert capture_backend.opens == 1
    assert capture_backend.stream.starts == 1


@pytest.mark.asyncio
async def test_global_expiry_waits_for_inflight_upload(make_controller, uploader, capture_backend):
    uploader.gate = asyncio.Event()
    controller = make_controller(global_time_limit=5)
    await controller.start()
    await controller.stop_recording()

    submit = asyncio.create_task(controller.submit_and_advance())
    await wait_for_upload(uploader)
    assert controller.is_busy
    assert controller.view().is_uploading is True

    # a second trigger while the upload is outstanding does nothing
    assert await controller.submit_and_advance() is False
    assert await controller.stop_recording() is None

    for _ in range(5):
        controller.tick()
    uploader.gate.set()
    assert await submit is True
    await controller.settle()

    assert controller.status == SessionStatus.EXPIRED
    assert uploader.question_ids == ["q1"]
    # the next question was never entered, so no second capture started
    assert capture_backend.stream.starts == 1


@pytest.mark.asyncio
async def test_global_expiry_cancels_stuck_upload_after_grace(make_controller, uploader, notifier):
    uploader.gate = asyncio.Event()
    controller = make_controller(global_time_limit=3, final_upload_grace=0.01)
    await controller.start()
    await controller.stop_recording()

    submit = asyncio.create_task(controller.submit_and_advance())
    await wait_for_upload(uploader)
    for _ in range(3):
        controller.tick()
    await controller.settle()

    assert await submit is False
    assert controller.status == SessionStatus.EXPIRED
    assert controller.record().outcomes[0].outcome == Outcome.FAILED
    assert "Upload Failed" in notifier.titles()


@pytest.mark.asyncio
async def test_overtime_flag_at_warning_threshold(make_controller):
    controller = make_controller(
        questions=[Question(id="q1", text="Why us?", hard_limit_seconds=60)],
        overtime_warning_seconds=30,
    )
    await controller.start()
    await advance(controller, 29)
    assert controller.view().is_overtime is False
    await advance(controller, 1)
    assert controller.view().is_overtime is True
    assert controller.question_timer.is_running


@pytest.mark.asyncio
async def test_close_mid_session_releases_device(make_controller, capture_backend):
    controller = make_controller()
    await controller.start()
    await controller.close()

    assert controller.status == SessionStatus.EXPIRED
    assert capture_backend.stream.closed is True


@pytest.mark.asyncio
async def test_feedback_after_session(make_controller, notifier):
    survey = FakeSurveyClient()
    controller = make_controller(global_time_limit=1, survey_client=survey)

    await controller.start()
    with pytest.raises(SessionStateError):
        await controller.submit_feedback(5)

    await advance(controller, 1)
    assert await controller.submit_feedback(0) is False
    assert "Rating Required" in notifier.titles()

    assert await controller.submit_feedback(4, "Smooth") is True
    assert survey.calls == [("sub-1", 4, "Smooth", "expired")]


@pytest.mark.asyncio
async def test_feedback_backend_failure_is_reported(make_controller, notifier):
    survey = FakeSurveyClient(error=BackendError("Service unavailable", 503))
    controller = make_controller(global_time_limit=1, survey_client=survey)
    await controller.start()
    await advance(controller, 1)

    assert await controller.submit_feedback(3) is False
    assert notifier.items[-1].title == "Submission Failed"


@pytest.mark.asyncio
async def test_runner_completes_session(make_controller, uploader):
    controller = make_controller(
        questions=[
            Question(id="q1", text="One", hard_limit_seconds=3),
            Question(id="q2", text="Two", hard_limit_seconds=2),
        ]
    )
    views = []
    record = await SessionRunner(controller, tick_interval=0, on_tick=views.append).run()

    assert record.status == SessionStatus.COMPLETED
    assert record.submitted_count == 2
    assert uploader.question_ids == ["q1", "q2"]
    assert views


@pytest.mark.asyncio
async def test_runner_cancellation_releases_device(make_controller, capture_backend):
    controller = make_controller()
    task = asyncio.create_task(SessionRunner(controller, tick_interval=1.0).run())
    while controller.status != SessionStatus.IN_PROGRESS:
        await asyncio.sleep(0)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert controller.status == SessionStatus.EXPIRED
    assert capture_backend.stream.closed is True
