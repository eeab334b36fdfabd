"""Sequences acquire -> convert -> publish for one user request at a time."""
import asyncio
import logging
from typing import Callable, Optional

from shortify.config import SETTLE_DELAY_SECONDS
from shortify.conversion.errors import (
    NO_INPUT_NOTICE,
    PROCESSING_FAILED_NOTICE,
    InputError,
    JobInProgressError,
    ShortifyError,
)
from shortify.conversion.models import JobState, Selection
from shortify.conversion.progress import ProgressReporter
from shortify.conversion.results import ResultSink
from shortify.conversion.runner import JobRunner
from shortify.conversion.source import SourceResolver

logger = logging.getLogger("shortify.orchestrator")

DEFAULT_FILE_LABEL = "Select file"
SUBMIT_LABEL = "Generate short"
BUSY_SUBMIT_LABEL = "Processing..."


class Orchestrator:
    """Single-flight job state machine.

    idle -> acquiring -> converting -> done | failed -> (settle delay) -> idle.
    A submit while acquiring or converting is rejected; nothing is queued.
    Must be driven from a running event loop.
    """

    def __init__(
        self,
        resolver: SourceResolver,
        runner: JobRunner,
        reporter: Optional[ProgressReporter] = None,
        sink: Optional[ResultSink] = None,
        settle_delay: float = SETTLE_DELAY_SECONDS,
        on_state_change: Optional[Callable[[JobState], None]] = None,
    ):
        self.resolver = resolver
        self.runner = runner
        self.reporter = reporter or ProgressReporter()
        self.sink = sink or ResultSink()
        self.settle_delay = settle_delay
        self.on_state_change = on_state_change
        self.state = JobState.IDLE
        self.notice: Optional[str] = None
        self.file_label = DEFAULT_FILE_LABEL
        self.result_visible = False
        self._job: Optional[asyncio.Task] = None
        self._settle_handle: Optional[asyncio.TimerHandle] = None

    @property
    def submit_enabled(self) -> bool:
        return not self.state.busy

    @property
    def submit_label(self) -> str:
        return BUSY_SUBMIT_LABEL if self.state.busy else SUBMIT_LABEL

    def _set_state(self, state: JobState) -> None:
        logger.info("Job state %s -> %s", self.state.value, state.value)
        self.state = state
        if self.on_state_change:
            self.on_state_change(state)

    def submit(self, selection: Selection) -> asyncio.Task:
        """Start a job for selection and return its task."""
        if self.state.busy:
            raise JobInProgressError(f"Submit rejected while {self.state.value}")
        if selection.is_empty:
            self.notice = NO_INPUT_NOTICE
            raise InputError("No file or URL provided", notice=NO_INPUT_NOTICE)
        self._cancel_settle()
        # Progress from a finished job must not show while the next one acquires
        self.reporter.hide()
        self.notice = None
        self.result_visible = False
        self.file_label = selection.file.name if selection.file is not None else DEFAULT_FILE_LABEL
        self._set_state(JobState.ACQUIRING)
        self._job = asyncio.get_running_loop().create_task(self._run(selection))
        return self._job

    async def wait(self) -> None:
        """Wait for the current job, if any, to reach done or failed."""
        if self._job is not None:
            await self._job

    async def _run(self, selection: Selection) -> None:
        loop = asyncio.get_running_loop()

        def on_progress(ratio: float) -> None:
            # Engine reports from a worker thread; hand samples to the loop in order
            loop.call_soon_threadsafe(self.reporter.on_sample, ratio)

        try:
            media = await asyncio.to_thread(self.resolver.resolve, selection)
            self.reporter.start()
            self._set_state(JobState.CONVERTING)
            output = await asyncio.to_thread(self.runner.run_conversion, media, on_progress)
            self.sink.publish(output)
            self.result_visible = True
            self._set_state(JobState.DONE)
        except ShortifyError as e:
            logger.warning("Job failed (%s): %s", type(e).__name__, e.message)
            self._fail(e.notice)
        except Exception as e:
            logger.exception("Job failed: %s", e)
            self._fail(PROCESSING_FAILED_NOTICE)
        finally:
            self._schedule_settle()

    def _fail(self, notice: str) -> None:
        self.notice = notice
        self._set_state(JobState.FAILED)

    def _schedule_settle(self) -> None:
        self._cancel_settle()
        loop = asyncio.get_running_loop()
        self._settle_handle = loop.call_later(self.settle_delay, self._settle)

    def _cancel_settle(self) -> None:
        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None

    def _settle(self) -> None:
        self._settle_handle = None
        if self.state.busy:
            return
        self.reporter.hide()
        self._set_state(JobState.IDLE)
