"""Published results: the converted clip and its revocable locator."""
import logging
import uuid
from typing import Optional

from shortify.conversion.models import DisplayHandle, ResultArtifact

logger = logging.getLogger("shortify.results")


class ResultSink:
    """Holds at most one live result; publishing a new one revokes the old."""

    def __init__(self, locator_prefix: str = "/api/results"):
        self.locator_prefix = locator_prefix.rstrip("/")
        self._live: Optional[ResultArtifact] = None

    @property
    def live_handle(self) -> Optional[DisplayHandle]:
        live = self._live
        return live.handle if live is not None else None

    def publish(self, data: bytes) -> DisplayHandle:
        if not data:
            raise ValueError("Cannot publish an empty result")
        handle_id = uuid.uuid4().hex
        handle = DisplayHandle(handle_id=handle_id, locator=f"{self.locator_prefix}/{handle_id}")
        artifact = ResultArtifact(data=bytes(data), handle=handle)
        if self._live is not None:
            self.retire(self._live.handle)
        self._live = artifact
        logger.info("Published result %s (%s bytes)", handle_id, artifact.size)
        return handle

    def retire(self, handle: DisplayHandle) -> None:
        """Revoke handle. Unknown or already retired handles are ignored."""
        if self._live is not None and self._live.handle.handle_id == handle.handle_id:
            self._live = None
            logger.info("Retired result %s", handle.handle_id)

    def get(self, handle_id: str) -> Optional[ResultArtifact]:
        # Single read so the id check and the returned artifact agree
        live = self._live
        if live is not None and live.handle.handle_id == handle_id:
            return live
        return None
