"""Test helpers shared across modules."""

import io
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

CONTAINER = "testcontainer"
PATH_FORMAT = "testpath/{0}.txt"
START = datetime(2015, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class RecordingStore:
    """Delegates to a real store and records every call by name."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    def __getattr__(self, name):
        attr = getattr(self.inner, name)
        if not callable(attr):
            return attr

        def record(*args, **kwargs):
            self.calls.append(name)
            return attr(*args, **kwargs)

        return record

    def called(self, name: str) -> int:
        return self.calls.count(name)


def read_url(url: str) -> bytes:
    """Read the content behind a file:// URL returned by the fs store."""
    return Path(url2pathname(urlparse(url).path)).read_bytes()


def stream_of(content: str) -> io.BytesIO:
    return io.BytesIO(content.encode("utf-8"))
