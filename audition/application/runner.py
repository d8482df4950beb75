import asyncio
from typing import Callable, Optional

import structlog

from .audition_session import AuditionSessionController
from .models import SessionRecord, SessionStatus, SessionView

logger = structlog.get_logger(__name__)


class SessionRunner:
    """Drives a controller with one cooperative tick per interval until it ends."""

    def __init__(self,
                 controller: AuditionSessionController,
                 tick_interval: float = 1.0,
                 on_tick: Optional[Callable[[SessionView], None]] = None):
        self.controller = controller
        self.tick_interval = tick_interval
        self.on_tick = on_tick

    async def run(self) -> SessionRecord:
        controller = self.controller
        try:
            if controller.status == SessionStatus.NOT_STARTED:
                await controller.start()
            while not controller.status.is_terminal:
                await asyncio.sleep(self.tick_interval)
                controller.tick()
                if self.on_tick is not None:
                    self.on_tick(controller.view())
            await controller.settle()
        finally:
            # runs on completion, errors and cancellation alike
            await controller.close()
        record = controller.record()
        logger.info("session_record", status=record.status.value, submitted=record.submitted_count)
        return record
