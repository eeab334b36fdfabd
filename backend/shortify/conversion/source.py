"""Acquire input media from a selected file or a pasted URL."""
import http.client
import logging
from urllib.error import HTTPError, URLError
from urllib.parse import unquote, urlparse
from urllib.request import Request, urlopen

from shortify.config import MAX_VIDEO_SIZE_BYTES, URL_DOWNLOAD_TIMEOUT
from shortify.conversion.errors import NO_INPUT_NOTICE, InputError
from shortify.conversion.models import (
    DEFAULT_CONTENT_TYPE,
    DEFAULT_INPUT_NAME,
    DEFAULT_MEDIA_EXTENSION,
    MediaInput,
    Selection,
)

logger = logging.getLogger("shortify.source")

CHUNK_SIZE = 1024 * 1024


def media_name_from_url(url: str) -> str:
    """Last path segment of url, with a default name and extension when missing."""
    path = urlparse(url).path or ""
    name = unquote(path.split("/")[-1]).strip()
    if not name:
        name = DEFAULT_INPUT_NAME
    if "." not in name:
        name = f"{name}{DEFAULT_MEDIA_EXTENSION}"
    return name


def content_type_from_header(value) -> str:
    mime = (value or "").split(";", 1)[0].strip().lower()
    return mime or DEFAULT_CONTENT_TYPE


class SourceResolver:
    """Turns a Selection into MediaInput. A selected file wins over a URL."""

    def __init__(self, timeout: int = URL_DOWNLOAD_TIMEOUT, max_bytes: int = MAX_VIDEO_SIZE_BYTES):
        self.timeout = timeout
        self.max_bytes = max_bytes

    def resolve(self, selection: Selection) -> MediaInput:
        if selection.file is not None:
            logger.info("Using selected file %s (%s bytes)", selection.file.name, selection.file.size)
            return selection.file
        url = selection.url_text
        if not url:
            raise InputError("No file or URL provided", notice=NO_INPUT_NOTICE)
        return self.fetch(url)

    def fetch(self, url: str) -> MediaInput:
        """Download url into memory. Raises InputError on any failure."""
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InputError(f"Only http and https URLs are supported: {url}")
        req = Request(url, headers={"User-Agent": "Shortify/1.0"})
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                status = getattr(resp, "status", 200)
                if not 200 <= status < 300:
                    raise InputError(f"URL returned status {status}")
                content_type = content_type_from_header(resp.headers.get("Content-Type"))
                chunks: list[bytes] = []
                total = 0
                while True:
                    chunk = resp.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    total += len(chunk)
                    if total > self.max_bytes:
                        raise InputError(f"Download exceeds {self.max_bytes // (1024 * 1024)} MB")
                    chunks.append(chunk)
        except InputError:
            raise
        except HTTPError as e:
            raise InputError(f"URL returned status {e.code}") from e
        except (URLError, http.client.HTTPException, OSError, ValueError) as e:
            logger.warning("URL download failed for %s: %s", url, e)
            raise InputError(f"Failed to download URL: {e!s}") from e
        name = media_name_from_url(url)
        logger.info("Fetched %s as %s (%s bytes, %s)", url, name, total, content_type)
        return MediaInput(name=name, data=b"".join(chunks), content_type=content_type)
