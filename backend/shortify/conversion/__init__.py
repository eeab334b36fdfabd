from .engine import FfmpegEngine
from .errors import ConversionError, EngineError, InputError, JobInProgressError, ShortifyError
from .models import ConversionRequest, JobState, MediaInput, Selection, SHORT_CLIP_REQUEST
from .orchestrator import Orchestrator
from .progress import ProgressReporter
from .results import ResultSink
from .runner import JobRunner
from .source import SourceResolver

__all__ = [
    "ConversionError",
    "ConversionRequest",
    "EngineError",
    "FfmpegEngine",
    "InputError",
    "JobInProgressError",
    "JobRunner",
    "JobState",
    "MediaInput",
    "Orchestrator",
    "ProgressReporter",
    "ResultSink",
    "SHORT_CLIP_REQUEST",
    "Selection",
    "ShortifyError",
    "SourceResolver",
]
