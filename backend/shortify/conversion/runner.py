"""Runs the fixed short-clip conversion on the shared engine."""
import logging
from typing import Callable, Optional

from shortify.conversion.errors import ConversionError, EngineError
from shortify.conversion.models import SHORT_CLIP_REQUEST, ConversionRequest, MediaInput

logger = logging.getLogger("shortify.runner")


class JobRunner:
    """Owns engine lifecycle and working storage for one job at a time.

    The engine is any object with ``is_ready``, ``initialize``,
    ``set_progress_handler``, ``stage_input``, ``invoke``, ``retrieve_output``
    and ``discard``.
    """

    def __init__(self, engine, request: ConversionRequest = SHORT_CLIP_REQUEST):
        self.engine = engine
        self.request = request

    def ensure_engine(self) -> None:
        """Initialize the engine on first use."""
        if self.engine.is_ready():
            return
        logger.info("Initializing transcoding engine")
        try:
            self.engine.initialize()
        except EngineError:
            raise
        except Exception as e:
            raise EngineError(f"Engine failed to initialize: {e}") from e

    def run_conversion(
        self,
        media: MediaInput,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> bytes:
        """Convert media and return the output bytes.

        The progress handler is registered only for this call, and both
        working-storage names are discarded on every exit path.
        """
        self.ensure_engine()
        request = self.request
        self.engine.set_progress_handler(on_progress)
        try:
            self.engine.stage_input(request.input_name, media.data)
            logger.info("Converting %s (%s bytes, %s)", media.name, media.size, media.content_type)
            self.engine.invoke(request.to_argv())
            output = self.engine.retrieve_output(request.output_name)
        except (ConversionError, EngineError):
            raise
        except Exception as e:
            logger.exception("Conversion failed for %s: %s", media.name, e)
            raise ConversionError(f"Conversion failed: {e}") from e
        finally:
            self.engine.set_progress_handler(None)
            self.engine.discard(request.input_name)
            self.engine.discard(request.output_name)
        logger.info("Converted %s -> %s bytes", media.name, len(output))
        return output
