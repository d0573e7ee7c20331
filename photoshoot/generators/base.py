import asyncio
from typing import Callable, List, Optional

from photoshoot.core.models import OperationHandle
from photoshoot.engine.segments import Segment

ImageCallback = Callable[[str, int], None]


class BackendGateway:
    """
    Abstract binding to the generative service.
    Any new backend integration must inherit from this class.

    Every image crossing this boundary is a `data:<mime>;base64,<payload>`
    URL. Sync methods do the work; the `*_async` wrappers run them in a
    worker thread so the orchestrator can await them.

    Implementations raise TransientBackendError (or another ConnectionError /
    TimeoutError) for busy and rate-limited responses, which the shared retry
    policy retries, and BackendError for everything that must not be retried.
    """

    name: str = "abstract"

    def generate_image(
        self,
        segments: List[Segment],
        aspect_ratio: str,
        count: int,
        negative_prompt: Optional[str] = None,
        on_image: Optional[ImageCallback] = None,
    ) -> None:
        """
        Generates `count` images from the compiled segments.

        Args:
            segments: Ordered text and image segments from the compiler.
            aspect_ratio: Desired output ratio (e.g., "3:4", "16:9").
            count: Number of images; `on_image` must fire exactly this many times.
            negative_prompt: Things to keep out of the image.
            on_image: Receives `(data_url, index)` with a 0-based index, in any order.
        """
        raise NotImplementedError("Subclasses must implement generate_image()")

    def generative_edit(
        self,
        original: str,
        mask: str,
        prompt: str,
        apparel_reference: Optional[str] = None,
    ) -> str:
        """Inpaints the masked area of `original`. Returns the edited image."""
        raise NotImplementedError("Subclasses must implement generative_edit()")

    def generate_video(self, prompt: str, reference_image: str) -> OperationHandle:
        """Submits an image-to-video job and returns its operation handle."""
        raise NotImplementedError("Subclasses must implement generate_video()")

    def poll_operation(self, handle: OperationHandle) -> OperationHandle:
        raise NotImplementedError("Subclasses must implement poll_operation()")

    def fetch_as_local_blob(self, uri: str) -> str:
        """Downloads a finished result and returns a locally addressable reference."""
        raise NotImplementedError("Subclasses must implement fetch_as_local_blob()")

    def release_blob(self, ref: str) -> None:
        raise NotImplementedError("Subclasses must implement release_blob()")

    def generate_from_text(self, prompt: str, aspect_ratio: str) -> str:
        """Text-to-image, used for AI backgrounds. Returns one image."""
        raise NotImplementedError("Subclasses must implement generate_from_text()")

    # =========================
    # ASYNC WRAPPERS
    # =========================

    async def generate_image_async(
        self,
        segments: List[Segment],
        aspect_ratio: str,
        count: int,
        negative_prompt: Optional[str] = None,
        on_image: Optional[ImageCallback] = None,
    ) -> None:
        return await asyncio.to_thread(
            self.generate_image,
            segments,
            aspect_ratio,
            count,
            negative_prompt=negative_prompt,
            on_image=on_image,
        )

    async def generative_edit_async(
        self,
        original: str,
        mask: str,
        prompt: str,
        apparel_reference: Optional[str] = None,
    ) -> str:
        return await asyncio.to_thread(
            self.generative_edit, original, mask, prompt, apparel_reference=apparel_reference
        )

    async def generate_video_async(self, prompt: str, reference_image: str) -> OperationHandle:
        return await asyncio.to_thread(self.generate_video, prompt, reference_image)

    async def poll_operation_async(self, handle: OperationHandle) -> OperationHandle:
        return await asyncio.to_thread(self.poll_operation, handle)

    async def fetch_as_local_blob_async(self, uri: str) -> str:
        return await asyncio.to_thread(self.fetch_as_local_blob, uri)

    async def release_blob_async(self, ref: str) -> None:
        return await asyncio.to_thread(self.release_blob, ref)

    async def generate_from_text_async(self, prompt: str, aspect_ratio: str) -> str:
        return await asyncio.to_thread(self.generate_from_text, prompt, aspect_ratio)
