"""
Terminal audition runner.

    python -m audition.client --opportunity 1 --user candidate-42

Press Enter to stop recording and submit the answer (or to start recording
when the microphone is idle), type ``s`` + Enter to skip a question.
Reading the keyboard uses ``loop.add_reader`` and therefore needs a POSIX
terminal.
"""

import argparse
import asyncio
import sys
from typing import Optional

import structlog

from audition.application.audition_session import AuditionSessionController
from audition.application.models import Notification, RecordingState, SessionView
from audition.application.runner import SessionRunner
from audition.core.config import Settings, get_settings
from audition.core.exceptions import BackendError, ConflictError, DeviceError
from audition.core.interfaces import Notifier
from audition.core.logging import setup_logging
from audition.managers.backend_client import AuditionBackendClient
from audition.managers.uploader import HttpAnswerUploader
from audition.processors.recorder import RecordingDevice
from audition.processors.sounddevice_backend import SoundDeviceBackend

logger = structlog.get_logger(__name__)


class TerminalNotifier(Notifier):
    def notify(self, notification: Notification) -> None:
        print(f"\n[{notification.level.value.upper()}] {notification.title}: {notification.message}")


def render(view: SessionView) -> None:
    marker = " OVERTIME" if view.is_overtime else ""
    state = "uploading" if view.is_uploading else view.recording_state.value
    line = (f"\rQ{view.question_number}/{view.question_count}  "
            f"question {view.question_clock}{marker}  exam {view.global_clock}  [{state}]   ")
    sys.stdout.write(line)
    sys.stdout.flush()


async def read_commands(controller: AuditionSessionController, queue: "asyncio.Queue[str]") -> None:
    while not controller.status.is_terminal:
        command = (await queue.get()).strip().lower()
        if controller.status.is_terminal:
            break
        if command == "s":
            await controller.skip_question()
        elif controller.recording_state == RecordingState.IDLE:
            await controller.start_recording()
        else:
            await controller.submit_and_advance()
        question = controller.active_question
        if question is not None:
            print(f"\n\n{question.text}")


async def ask(queue: "asyncio.Queue[str]", prompt: str) -> str:
    print(prompt, end="", flush=True)
    return (await queue.get()).strip()


async def collect_feedback(controller: AuditionSessionController,
                           queue: "asyncio.Queue[str]",
                           attempts: int = 3) -> bool:
    """Prompt for the survey. An empty answer skips it."""
    for _ in range(attempts):
        answer = await ask(queue, "How was your experience? Rate 1-5 (Enter to skip): ")
        if not answer:
            return False
        rating = int(answer) if answer.isdigit() else 0
        reason = None
        if 1 <= rating <= 5:
            reason = await ask(queue, "Anything you'd like to add? (optional) ") or None
        if await controller.submit_feedback(rating, reason):
            return True
    print("Feedback could not be submitted. Thank you for completing the audition.")
    return False


async def run_audition(settings: Settings, opportunity_id: str, user_id: str,
                       tick_interval: float = 1.0) -> int:
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[str]" = asyncio.Queue()
    loop.add_reader(sys.stdin, lambda: queue.put_nowait(sys.stdin.readline()))

    try:
        async with AuditionBackendClient(settings.BACKEND_URL,
                                         timeout=settings.UPLOAD_TIMEOUT_SECONDS,
                                         api_prefix=settings.API_PREFIX) as client:
            try:
                questions = await client.fetch_questions(
                    opportunity_id, user_id, settings.DEFAULT_HARD_LIMIT_SECONDS
                )
                session_id = await client.create_session(user_id, opportunity_id)
            except ConflictError as e:
                print(f"Cannot start audition: {e.message}")
                return 1
            except BackendError as e:
                print(f"Backend unavailable: {e.message}")
                return 1

            recorder = RecordingDevice(SoundDeviceBackend(
                sample_rate=settings.AUDIO_SAMPLE_RATE,
                channels=settings.AUDIO_CHANNELS,
                chunk_size=settings.AUDIO_CHUNK_SIZE,
            ))
            controller = AuditionSessionController.from_settings(
                settings,
                session_id=session_id,
                user_id=user_id,
                opportunity_id=opportunity_id,
                questions=questions,
                recorder=recorder,
                uploader=HttpAnswerUploader(client, user_id, opportunity_id),
                notifier=TerminalNotifier(),
                survey_client=client,
            )

            print(f"{len(questions)} questions, {controller.global_timer.formatted} in total.")
            await ask(queue, "Press Enter to start the audition...")
            runner = SessionRunner(controller, tick_interval=tick_interval, on_tick=render)
            commands: Optional[asyncio.Task] = None
            try:
                await controller.start()
            except DeviceError:
                await controller.close()
                return 1
            print(f"\n{questions[0].text}")
            commands = asyncio.create_task(read_commands(controller, queue))
            try:
                record = await runner.run()
            finally:
                commands.cancel()

            print(f"\n\nAudition {record.status.value}: "
                  f"{record.submitted_count} of {len(questions)} answers submitted.")

            await collect_feedback(controller, queue)
            return 0
    finally:
        loop.remove_reader(sys.stdin)


async def list_opportunities(settings: Settings) -> int:
    async with AuditionBackendClient(settings.BACKEND_URL,
                                     timeout=settings.UPLOAD_TIMEOUT_SECONDS,
                                     api_prefix=settings.API_PREFIX) as client:
        try:
            opportunities = await client.list_opportunities()
        except BackendError as e:
            print(f"Backend unavailable: {e.message}")
            return 1
    for opportunity in opportunities:
        print(f"{opportunity['id']:>4}  {opportunity['title']} at {opportunity['company']} "
              f"({opportunity.get('questionCount', '?')} questions)")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Record a timed audition from the terminal.")
    parser.add_argument("--opportunity", help="opportunity id (omit to list open opportunities)")
    parser.add_argument("--user", required=True, help="candidate id")
    parser.add_argument("--backend", help="backend base URL (defaults to BACKEND_URL)")
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.backend:
        settings = settings.model_copy(update={"BACKEND_URL": args.backend})
    setup_logging(settings)
    if args.opportunity is None:
        return asyncio.run(list_opportunities(settings))
    return asyncio.run(run_audition(settings, args.opportunity, args.user))


if __name__ == "__main__":
    sys.exit(main())
