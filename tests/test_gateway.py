import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from photoshoot.config.settings import Settings
from photoshoot.core.errors import BackendError, TransientBackendError
from photoshoot.engine.segments import ImageSegment, TextSegment
from photoshoot.generators import integrations
from photoshoot.generators.integrations import (
    GeminiGateway,
    build_gateway,
    classify_backend_error,
    first_inline_image,
    to_parts,
)
from photoshoot.generators.mock import MockGateway
from photoshoot.utils.decorators import with_retry


class FakeApiError(Exception):
    def __init__(self, code, message):
        super().__init__(message)
        self.code = code


@pytest.mark.parametrize("code,message", [
    (429, "quota"),
    (503, "overloaded"),
    (None, "RESOURCE_EXHAUSTED: try later"),
])
def test_busy_responses_are_transient(code, message):
    error = classify_backend_error(FakeApiError(code, message))
    assert isinstance(error, TransientBackendError)
    assert isinstance(error, ConnectionError)
    assert error.status_code == code


@pytest.mark.parametrize("code", [400, 401, 403])
def test_other_responses_are_permanent(code):
    error = classify_backend_error(FakeApiError(code, "nope"))
    assert isinstance(error, BackendError)
    assert not isinstance(error, ConnectionError)


def test_to_parts_keeps_segment_order():
    parts = to_parts([TextSegment("hello"), ImageSegment(b"\x89PNG", "image/png")])
    assert parts[0].text == "hello"
    assert parts[1].inline_data.data == b"\x89PNG"
    assert parts[1].inline_data.mime_type == "image/png"


def test_first_inline_image_skips_text_parts():
    text_part = SimpleNamespace(inline_data=None)
    image_part = SimpleNamespace(inline_data=SimpleNamespace(mime_type="image/png", data=b"img"))
    response = SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[text_part, image_part]))])

    assert first_inline_image(response) == "data:image/png;base64,aW1n"
    assert first_inline_image(SimpleNamespace(candidates=None)) is None


def test_gemini_gateway_requires_api_key(monkeypatch):
    monkeypatch.setattr(integrations.settings, "gemini_api_key", None)
    with pytest.raises(ValueError, match="GEMINI_API_KEY"):
        GeminiGateway()


def test_gemini_gateway_requests_one_image_per_slot():
    with patch("photoshoot.generators.integrations.genai.Client") as client_cls:
        client = client_cls.return_value
        image_part = SimpleNamespace(inline_data=SimpleNamespace(mime_type="image/png", data=b"img"))
        client.models.generate_content.return_value = SimpleNamespace(
            candidates=[SimpleNamespace(content=SimpleNamespace(parts=[image_part]))]
        )
        gateway = GeminiGateway(api_key="test-key")
        on_image = MagicMock()

        gateway.generate_image([TextSegment("prompt")], "3:4", 2, negative_prompt="blur", on_image=on_image)

    assert client.models.generate_content.call_count == 2
    assert [c.args[1] for c in on_image.call_args_list] == [0, 1]
    parts = client.models.generate_content.call_args.kwargs["contents"][0].parts
    assert "Avoid the following in the final image: blur." in parts[-1].text


def test_build_gateway_selects_backend():
    assert isinstance(build_gateway("mock"), MockGateway)
    with pytest.raises(ValueError):
        build_gateway("dalle")


def test_settings_load_from_environment(monkeypatch):
    monkeypatch.setenv("PHOTOSHOOT_BACKEND", "gemini")
    monkeypatch.setenv("PHOTOSHOOT_VIDEO_POLL_INTERVAL", "2.5")
    monkeypatch.setenv("PHOTOSHOOT_API_RELOAD", "yes")
    monkeypatch.setenv("PHOTOSHOOT_RETRY_MAX_ATTEMPTS", "many")

    loaded = Settings.load()

    assert loaded.backend == "gemini"
    assert loaded.video_poll_interval == 2.5
    assert loaded.api_reload is True
    assert loaded.retry_max_attempts == 3


def test_video_download_is_retried_only_by_the_shared_policy(tmp_path):
    with patch("photoshoot.generators.integrations.genai.Client"):
        gateway = GeminiGateway(api_key="test-key", blob_dir=str(tmp_path))

    with patch("photoshoot.generators.integrations.requests.get") as get:
        get.side_effect = requests.ConnectionError("reset by peer")

        with pytest.raises(TransientBackendError):
            gateway.fetch_as_local_blob("https://videos.example/clip.mp4")
        assert get.call_count == 1

        with pytest.raises(TransientBackendError, match="busy"):
            asyncio.run(with_retry(gateway.fetch_as_local_blob_async, "https://videos.example/clip.mp4", base_delay=0))
        assert get.call_count == 4
