"""Errors raised by the short-clip pipeline.

Each carries a ``notice``: the text shown to the user, telling them what to
try next. ``message`` holds the technical detail for logs.
"""

NO_INPUT_NOTICE = "Please select a video to process or paste a video link."
FETCH_FAILED_NOTICE = (
    "Unable to fetch video from the provided URL. "
    "Please ensure the link is direct to a video file or try another link."
)
PROCESSING_FAILED_NOTICE = "An error occurred while processing the video. Please try another file."
BUSY_NOTICE = "A video is already being processed. Please wait for it to finish."


class ShortifyError(Exception):
    """Base exception for pipeline errors."""

    notice = PROCESSING_FAILED_NOTICE

    def __init__(self, message, notice=None):
        self.message = message
        if notice is not None:
            self.notice = notice
        super().__init__(self.message)


class InputError(ShortifyError):
    """No input was provided, or the input could not be acquired."""

    notice = FETCH_FAILED_NOTICE


class EngineError(ShortifyError):
    """The transcoding engine could not be initialized."""


class ConversionError(ShortifyError):
    """The engine ran but the conversion failed."""

    def __init__(self, message, notice=None, command=None, output=None):
        super().__init__(message, notice=notice)
        self.command = command
        self.output = output


class JobInProgressError(ShortifyError):
    """A job is already acquiring or converting."""

    notice = BUSY_NOTICE
