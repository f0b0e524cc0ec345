"""
Pytest configuration and shared fixtures.

The engine, composer and importer only talk to the generative API through
GeminiGateway, so tests swap in FakeGateway: it records every call, returns
deterministic bytes and can be told to fail on a given call.
"""
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

# keep the app logger out of the working tree when frameflow.main is imported
os.environ.setdefault("LOG_DIR", str(Path(tempfile.gettempdir()) / "frameflow-test-logs"))

from frameflow.core.config import Settings  # noqa: E402
from frameflow.services.engine import ContinuityEngine  # noqa: E402
from frameflow.services.gemini import AnimationStatus  # noqa: E402
from frameflow.services.store import BoardStore  # noqa: E402
from frameflow.utils.media import to_data_url  # noqa: E402


class FakeGateway:
    """Stands in for GeminiGateway; same coroutine signatures."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.errors: Dict[str, List[Optional[Exception]]] = {}
        self.text_reply = "composed prompt"
        self.extraction_text = "[]"
        self.polls_before_done: Optional[int] = 1
        self.observer: Optional[Callable[[str], Any]] = None
        self._counters: Dict[str, int] = {}
        self._polls = 0

    def fail(self, method: str, *errors: Optional[Exception]) -> None:
        """Queue one outcome per upcoming call: an exception to raise, or None to succeed."""
        self.errors.setdefault(method, []).extend(errors)

    def calls_to(self, method: str) -> List[tuple]:
        return [c[1:] for c in self.calls if c[0] == method]

    def _enter(self, method: str, *args) -> int:
        self.calls.append((method, *args))
        if self.observer:
            self.observer(method)
        queued = self.errors.get(method)
        if queued:
            err = queued.pop(0)
            if err is not None:
                raise err
        n = self._counters.get(method, 0) + 1
        self._counters[method] = n
        return n

    async def generate_text(self, prompt, reference_image=None):
        self._enter("generate_text", prompt, reference_image)
        return self.text_reply

    async def synthesize_image(self, prompt, aspect_ratio=None, image_size=None):
        n = self._enter("synthesize_image", prompt, aspect_ratio, image_size)
        return f"image-{n}".encode()

    async def synthesize_interpolated_image(self, image_a, image_b, guidance, progress):
        n = self._enter("synthesize_interpolated_image", image_a, image_b, guidance, progress)
        return f"mid-{n}".encode()

    async def edit_image(self, image, instruction):
        n = self._enter("edit_image", image, instruction)
        return f"edited-{n}".encode()

    async def animate_image(self, image, prompt):
        n = self._enter("animate_image", image, prompt)
        self._polls = 0
        return f"operation-{n}"

    async def poll_animation(self, handle):
        self._enter("poll_animation", handle)
        self._polls += 1
        if self.polls_before_done is None or self._polls < self.polls_before_done:
            return AnimationStatus(done=False, handle=handle)
        return AnimationStatus(done=True, video_uri=f"https://videos.test/{handle}", handle=handle)

    async def download_video(self, uri):
        self._enter("download_video", uri)
        return b"mp4-bytes"

    async def extract_shots(self, document, media_type, instruction):
        self._enter("extract_shots", document, media_type, instruction)
        return self.extraction_text


class RecordingSleep:
    def __init__(self):
        self.intervals: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.intervals.append(seconds)


def image_url(name: str) -> str:
    return to_data_url(name.encode())


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        GEMINI_API_KEY="test-key",
        ANIMATION_POLL_SEC=0.0,
        ANIMATION_TIMEOUT_SEC=60.0,
    )


@pytest.fixture
def store() -> BoardStore:
    return BoardStore(has_api_key=True)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def engine(store, gateway, settings, sleep) -> ContinuityEngine:
    return ContinuityEngine(store, gateway, settings, sleep=sleep)

