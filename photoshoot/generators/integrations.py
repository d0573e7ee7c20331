import logging
import os
import uuid
from typing import List, Optional

import requests
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from photoshoot.config.settings import settings
from photoshoot.core.errors import BackendError, TransientBackendError
from photoshoot.core.models import OperationHandle
from photoshoot.engine.segments import ImageSegment, Segment, TextSegment, parse_data_url, to_data_url
from photoshoot.generators.base import BackendGateway
from photoshoot.generators.mock import MockGateway

logger = logging.getLogger("PhotoshootEngine")

TRANSIENT_STATUS_CODES = (429, 500, 503, 504)
TRANSIENT_MARKERS = ("RESOURCE_EXHAUSTED", "UNAVAILABLE", "DEADLINE_EXCEEDED")
PERMISSION_STATUS_CODES = (401, 403)


def classify_backend_error(e: Exception) -> Exception:
    """Maps an SDK or transport failure onto the engine's error taxonomy."""
    code = getattr(e, "code", None)
    text = str(e)
    if code in TRANSIENT_STATUS_CODES or any(marker in text for marker in TRANSIENT_MARKERS):
        return TransientBackendError(f"Backend busy ({code or 'unavailable'}): {text}", status_code=code)
    if code in PERMISSION_STATUS_CODES:
        return BackendError(f"Backend rejected the credentials ({code}): {text}")
    return BackendError(f"Backend request failed: {text}")


def to_parts(segments: List[Segment]) -> List[types.Part]:
    parts = []
    for segment in segments:
        if isinstance(segment, TextSegment):
            parts.append(types.Part.from_text(text=segment.text))
        elif isinstance(segment, ImageSegment):
            parts.append(types.Part.from_bytes(data=segment.data, mime_type=segment.mime_type))
    return parts


def first_inline_image(response) -> Optional[str]:
    """Returns the first image part of a generate_content response as a data URL."""
    for candidate in response.candidates or []:
        if candidate.content is None:
            continue
        for part in candidate.content.parts or []:
            if part.inline_data and (part.inline_data.mime_type or "").startswith("image/"):
                return to_data_url(part.inline_data.data, part.inline_data.mime_type)
    return None


class GeminiGateway(BackendGateway):
    """
    Google GenAI backend: Gemini image model for generation and edits, Veo
    for image-to-video, Imagen for text-to-image backgrounds.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        image_model: Optional[str] = None,
        video_model: Optional[str] = None,
        background_model: Optional[str] = None,
        blob_dir: Optional[str] = None,
    ):
        self.api_key = api_key or settings.gemini_api_key
        if not self.api_key:
            raise ValueError("Missing Gemini API key (set GEMINI_API_KEY)")
        self.client = genai.Client(api_key=self.api_key)
        self.image_model = image_model or settings.image_model
        self.video_model = video_model or settings.video_model
        self.background_model = background_model or settings.background_model
        self.blob_dir = blob_dir or settings.blob_dir

    def _image_request(self, parts: List[types.Part], aspect_ratio: Optional[str]) -> str:
        config = types.GenerateContentConfig(
            response_modalities=["IMAGE", "TEXT"],
            image_config=types.ImageConfig(aspect_ratio=aspect_ratio) if aspect_ratio else None,
        )
        try:
            response = self.client.models.generate_content(
                model=self.image_model,
                contents=[types.Content(role="user", parts=parts)],
                config=config,
            )
        except genai_errors.APIError as e:
            raise classify_backend_error(e) from e

        image = first_inline_image(response)
        if image is None:
            raise BackendError("The model did not return an image. Try adjusting the prompt.")
        return image

    def generate_image(self, segments, aspect_ratio, count, negative_prompt=None, on_image=None):
        parts = to_parts(segments)
        if negative_prompt and negative_prompt.strip():
            parts.append(types.Part.from_text(
                text=f"**NEGATIVE PROMPT:** Avoid the following in the final image: {negative_prompt.strip()}."
            ))
        # The image model returns one image per request.
        for index in range(count):
            logger.info(f"🎨 Requesting image {index + 1}/{count} from {self.image_model}")
            image = self._image_request(parts, aspect_ratio)
            if on_image is not None:
                on_image(image, index)

    def generative_edit(self, original, mask, prompt, apparel_reference=None):
        segments: List[Segment] = [
            TextSegment(
                "**GENERATIVE EDIT:** You are given an image (FIRST IMAGE) and a black-and-white mask (SECOND IMAGE). "
                "Edit ONLY the white area of the mask according to the instruction below. Everything outside the "
                "mask must remain pixel-identical.\n"
                + (
                    "The THIRD IMAGE is an apparel reference; use it as the definitive source for the garment placed "
                    "in the masked area.\n"
                    if apparel_reference else ""
                )
                + f"**INSTRUCTION:** {prompt}"
            ),
            parse_data_url(original),
            parse_data_url(mask),
        ]
        if apparel_reference:
            segments.append(parse_data_url(apparel_reference))
        return self._image_request(to_parts(segments), aspect_ratio=None)

    def generate_video(self, prompt, reference_image):
        image = parse_data_url(reference_image)
        logger.info(f"🎬 Submitting video job to {self.video_model} (Prompt: {prompt[:30]}...)")
        try:
            operation = self.client.models.generate_videos(
                model=self.video_model,
                prompt=prompt,
                image=types.Image(image_bytes=image.data, mime_type=image.mime_type),
                config=types.GenerateVideosConfig(number_of_videos=1),
            )
        except genai_errors.APIError as e:
            raise classify_backend_error(e) from e
        return self._to_handle(operation)

    def poll_operation(self, handle: OperationHandle) -> OperationHandle:
        try:
            operation = self.client.operations.get(handle.raw)
        except genai_errors.APIError as e:
            raise classify_backend_error(e) from e
        return self._to_handle(operation)

    @staticmethod
    def _to_handle(operation) -> OperationHandle:
        uri = None
        error = None
        if operation.done:
            if operation.error:
                error = str(operation.error.get("message", operation.error))
            elif operation.response and operation.response.generated_videos:
                video = operation.response.generated_videos[0].video
                uri = video.uri if video else None
        return OperationHandle(name=operation.name, done=bool(operation.done), uri=uri, error=error, raw=operation)

    def fetch_as_local_blob(self, uri: str) -> str:
        try:
            resp = requests.get(uri, params={"key": self.api_key}, timeout=120)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientBackendError(f"Video download failed: {e}") from e
        if resp.status_code in TRANSIENT_STATUS_CODES:
            raise TransientBackendError(f"Video download busy ({resp.status_code})", status_code=resp.status_code)
        if resp.status_code != 200:
            raise BackendError(f"Failed to fetch video: {resp.status_code} {resp.text[:200]}")

        os.makedirs(self.blob_dir, exist_ok=True)
        path = os.path.join(self.blob_dir, f"{uuid.uuid4().hex}.mp4")
        with open(path, "wb") as f:
            f.write(resp.content)
        logger.info(f"📥 Video saved to {path}")
        return path

    def release_blob(self, ref: str) -> None:
        if os.path.exists(ref):
            os.remove(ref)
            logger.debug(f"🧹 Released video blob {ref}")

    def generate_from_text(self, prompt, aspect_ratio):
        try:
            response = self.client.models.generate_images(
                model=self.background_model,
                prompt=prompt,
                config=types.GenerateImagesConfig(number_of_images=1, aspect_ratio=aspect_ratio),
            )
        except genai_errors.APIError as e:
            raise classify_backend_error(e) from e

        if not response.generated_images:
            raise BackendError("The background model did not return an image.")
        image = response.generated_images[0].image
        return to_data_url(image.image_bytes, image.mime_type or "image/png")


def build_gateway(backend: Optional[str] = None) -> BackendGateway:
    """Instantiates the gateway named by `backend` (default: settings.backend)."""
    backend = (backend or settings.backend).lower()
    if backend == "gemini":
        return GeminiGateway()
    if backend == "mock":
        return MockGateway()
    raise ValueError(f"Unknown backend '{backend}'. Expected 'mock' or 'gemini'.")
