import base64
import hashlib
import os
import threading
import uuid
from typing import Dict, List, Optional

from photoshoot.config.settings import settings
from photoshoot.core.errors import BackendError, TransientBackendError
from photoshoot.core.models import OperationHandle
from photoshoot.engine.segments import first_text, image_segments, to_data_url
from photoshoot.generators.base import BackendGateway
from photoshoot.utils.logger import get_logger

logger = get_logger("PhotoshootEngine")

# 1x1 transparent PNG; a per-seed digest is appended after IEND so every fake
# image is distinct while still opening as a PNG.
TINY_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)

# Valid 1-second H.264 MP4 (black frame)
MOCK_MP4_B64 = "AAAAIGZ0eXBpc29tAAACAGlzb21pc28yYXZjMW1wNDEAAAAIZnJlZQAAAsptZGF0AAACrgYF//+//7fcP2TMuEAAAAAnZGlmZgH/gAAAAAAAAAAABgAAAAAsZGMgH/4AAAAAAAAGAAAAACxhY3AgH/4AAAAAAAAGAAAAABZkY3AgH/4AAAAAAAAGAAAAABZkY3AgH/4AAAAAAAAGAAAAABZkY3AgH/4AAAAAAAAGAAAAABhjbXAgH/4AAQAAAAAAABhjbXAgH/4AAQAAAAAAABhjbXAgH/4AAQAAAAAAABhjbXAgH/4AAQAAAAAAABhjbXAgH/4AAQAAAAAAABhjbXAgH/4AAQAAAAAAACBhY3AgH/4AAQAAAAAAAEG1lZGlhIGRhdGEgbmV0AAAAXuBtb292AAAAbG12aGQAAAAAAAAAAAAAAAAAAAPoAAAD6AABAAABAAAAAAAAAAAAAAAAAQAAAAAAAAAAAAAAAAAAAAEAAAAAAAAAAAAAAAAAAEAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAACAAABWHRyYWsAAABcdGtoZAAAAAMAAAAAAAAAAAAAAAEAAAAAAAAD6AAAAAAAAAAAAAAAAAAAAAAAAQAAAAAAAAAAAAAAAAAAAAEAAAAAAAAAAAAAAAAAAEAAAAAAQAAAAEAAAAAAACRlZHRzAAAAHGVsc3QAAAAAAAAAAQAAA+gAAAAAAAEAAAAAAABibWRpYQAAACBtZGhkAAAAAAAAAAAAAAAAAAD6AAAA+gAA1gAAAAAAHaWhZGxyAAAAAAAAAAB2aWRlAAAAAAAAAAAAAAAAVmlkZW9IYW5kbGVyAAAAATFtaW5mAAAAFHZtaGQAAAARAAAAAAAAAAAAAAApJGRpbmYAAAAcZHJlZgAAAAAAAAABAAAADHVybCAAAAABAAABM3N0YmwAAACxc3RzZAAAAAAAAAABAAAAhWF2YzEAAAAAAAAAAQAAAAAAAAAAAAAAAAAAAAABAABIaAAAAEgAAAAAAAAAAQAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAABj//wAAAFxhdmNDAWQAJf/hABlnZAAlrYy+F/LwYBAAZo6OMAQAAwAAAwB4kR7ADyQAAAMAAAMAd5EewA8kRUF0AAAAAElzdHQAAAAAAAAAAQAAAAEAAA1zdHNjAAAAAAAAAAEAAAABAAAAAQAAAAEAAAAcc3RzegAAAAAAAAAQAAAAAQAAAAEAAAAAAAAAFHN0Y28AAAAAAAAAAQAAAIAAAAAYc3RzcwAAAAAAAAABAAAAAQ=="


def fake_image(seed: str) -> str:
    digest = hashlib.md5(seed.encode("utf-8")).digest()
    return to_data_url(TINY_PNG + digest, "image/png")


class MockGateway(BackendGateway):
    """
    Deterministic in-process backend used for tests and local runs.

    Failure injection:
        transient_failures: the first N calls to any method raise
            TransientBackendError (503).
        fail_on_image_call: the Nth `generate_image` call (1-based) raises
            `failure` (BackendError by default).
        after_images: with `fail_on_image_call`, how many images that call
            delivers before failing.
    """

    name = "mock"

    def __init__(
        self,
        blob_dir: Optional[str] = None,
        polls_until_done: int = 1,
        transient_failures: int = 0,
        fail_on_image_call: Optional[int] = None,
        failure: Optional[Exception] = None,
        after_images: int = 0,
        omit_video_uri: bool = False,
        out_of_order: bool = False,
    ):
        self.blob_dir = blob_dir or settings.blob_dir
        self.polls_until_done = polls_until_done
        self.transient_failures = transient_failures
        self.fail_on_image_call = fail_on_image_call
        self.failure = failure
        self.after_images = after_images
        self.omit_video_uri = omit_video_uri
        self.out_of_order = out_of_order

        self.image_calls: List[Dict] = []
        self.edit_calls: List[Dict] = []
        self.video_calls: List[Dict] = []
        self.text_calls: List[Dict] = []
        self.poll_counts: Dict[str, int] = {}
        self.fetched: List[str] = []
        self.released: List[str] = []
        self._lock = threading.Lock()

    def _maybe_busy(self) -> None:
        with self._lock:
            if self.transient_failures <= 0:
                return
            self.transient_failures -= 1
        raise TransientBackendError("503 UNAVAILABLE: model is overloaded", status_code=503)

    def generate_image(self, segments, aspect_ratio, count, negative_prompt=None, on_image=None):
        self._maybe_busy()
        with self._lock:
            self.image_calls.append({
                "segments": list(segments),
                "aspect_ratio": aspect_ratio,
                "count": count,
                "negative_prompt": negative_prompt,
            })
            call_number = len(self.image_calls)

        prompt = first_text(segments)
        logger.info(f"🎨 [mock] Generating {count} image(s) from {len(image_segments(segments))} reference(s)")
        failing = self.fail_on_image_call == call_number
        indices = list(range(count))
        if self.out_of_order:
            indices.reverse()
        for delivered, index in enumerate(indices):
            if failing and delivered >= self.after_images:
                raise self.failure or BackendError("Mock backend rejected the request.")
            if on_image is not None:
                on_image(fake_image(f"{call_number}:{index}:{prompt}"), index)
        if failing:
            raise self.failure or BackendError("Mock backend rejected the request.")

    def generative_edit(self, original, mask, prompt, apparel_reference=None):
        self._maybe_busy()
        with self._lock:
            self.edit_calls.append({
                "original": original,
                "mask": mask,
                "prompt": prompt,
                "apparel_reference": apparel_reference,
            })
        return fake_image(f"edit:{prompt}:{original}")

    def generate_video(self, prompt, reference_image):
        self._maybe_busy()
        with self._lock:
            self.video_calls.append({"prompt": prompt, "reference_image": reference_image})
            name = f"operations/mock-video-{len(self.video_calls)}"
            self.poll_counts[name] = 0
        return self._handle(name)

    def poll_operation(self, handle: OperationHandle) -> OperationHandle:
        self._maybe_busy()
        with self._lock:
            self.poll_counts[handle.name] = self.poll_counts.get(handle.name, 0) + 1
        return self._handle(handle.name)

    def _handle(self, name: str) -> OperationHandle:
        done = self.poll_counts.get(name, 0) >= self.polls_until_done
        uri = None if (not done or self.omit_video_uri) else f"mock://{name}.mp4"
        return OperationHandle(name=name, done=done, uri=uri)

    def fetch_as_local_blob(self, uri: str) -> str:
        self._maybe_busy()
        os.makedirs(self.blob_dir, exist_ok=True)
        path = os.path.join(self.blob_dir, f"{uuid.uuid4().hex}.mp4")
        with open(path, "wb") as f:
            f.write(base64.b64decode(MOCK_MP4_B64))
        with self._lock:
            self.fetched.append(path)
        return path

    def release_blob(self, ref: str) -> None:
        if os.path.exists(ref):
            os.remove(ref)
        with self._lock:
            self.released.append(ref)

    def generate_from_text(self, prompt, aspect_ratio):
        self._maybe_busy()
        with self._lock:
            self.text_calls.append({"prompt": prompt, "aspect_ratio": aspect_ratio})
        return fake_image(f"text:{prompt}:{aspect_ratio}")

    @property
    def prompts(self) -> List[str]:
        return [first_text(call["segments"]) for call in self.image_calls]

