import asyncio
import os
from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from photoshoot.core.catalogs import ANIMATION_STYLES
from photoshoot.core.errors import BackendError
from photoshoot.core.models import ApparelItem, GenerationMode, OperationHandle
from photoshoot.generators.mock import MockGateway
from photoshoot.pipeline.cancellation import CancellationToken
from photoshoot.pipeline.manager import NO_VIDEO_REFERENCE, StudioOrchestrator
from photoshoot.pipeline.polling import NO_VIDEO_URL_MESSAGE, JobState, VideoJob


class CancellingGateway(MockGateway):
    """Cancels the running workflow while the finished video is being fetched."""

    studio = None

    def fetch_as_local_blob(self, uri):
        path = super().fetch_as_local_blob(uri)
        self.studio.cancel_current_process()
        return path


def shoot(studio, image):
    """Generates one still so there is an image to animate."""
    studio.update_inputs(uploaded_model_image=image("model"), apparel=(ApparelItem(image("tee"), "white tee"),))
    asyncio.run(studio.generate_asset())
    return studio.state.selected_image


def test_video_is_polled_then_fetched(tmp_path, image):
    gateway = MockGateway(blob_dir=str(tmp_path), polls_until_done=3)
    studio = StudioOrchestrator(gateway, poll_interval=0, retry_base_delay=0)
    reference = shoot(studio, image)
    on_complete = MagicMock()
    messages = []
    studio.store.subscribe(lambda s: messages.append(s.loading_message))

    asyncio.run(studio.generate_video_from_image(ANIMATION_STYLES[2], on_complete=on_complete))

    state = studio.state
    assert gateway.poll_counts["operations/mock-video-1"] == 3
    assert state.generated_video_url == gateway.fetched[0]
    assert os.path.exists(state.generated_video_url)
    assert state.video_source_image == reference
    assert state.active_image_index is None
    assert state.error is None
    assert state.is_generating is False
    assert "Fetching final video..." in messages
    assert ANIMATION_STYLES[2].description in gateway.video_calls[0]["prompt"]
    assert gateway.video_calls[0]["reference_image"] == reference
    on_complete.assert_called_once_with(1)
    # Video passes are not counted as generations
    assert state.generation_count == 1


def test_custom_animation_prompt_overrides_preset(studio, gateway, image):
    shoot(studio, image)
    studio.store.apply(lambda s: {
        "apparel_controls": replace(s.apparel_controls, custom_animation_prompt="the model twirls once"),
    })

    asyncio.run(studio.generate_video_from_image(ANIMATION_STYLES[0]))

    prompt = gateway.video_calls[0]["prompt"]
    assert "the model twirls once" in prompt
    assert ANIMATION_STYLES[0].description not in prompt


def test_cancel_before_first_poll(studio, gateway, image):
    shoot(studio, image)

    def cancel_once_submitted(state):
        if state.loading_message.startswith("Video is processing"):
            studio.cancel_current_process()

    studio.store.subscribe(cancel_once_submitted)
    asyncio.run(studio.generate_video_from_image(ANIMATION_STYLES[0]))

    state = studio.state
    assert len(gateway.video_calls) == 1
    assert gateway.poll_counts["operations/mock-video-1"] == 0
    assert gateway.fetched == []
    assert state.generated_video_url is None
    assert state.error is None
    assert state.is_generating is False


def test_late_cancel_releases_fetched_blob(tmp_path, image):
    gateway = CancellingGateway(blob_dir=str(tmp_path))
    studio = StudioOrchestrator(gateway, poll_interval=0, retry_base_delay=0)
    gateway.studio = studio
    shoot(studio, image)

    asyncio.run(studio.generate_video_from_image(ANIMATION_STYLES[0]))

    assert len(gateway.fetched) == 1
    assert gateway.released == gateway.fetched
    assert not os.path.exists(gateway.fetched[0])
    assert studio.state.generated_video_url is None
    assert studio.state.error is None


def test_missing_video_uri_is_an_error(tmp_path, image):
    gateway = MockGateway(blob_dir=str(tmp_path), omit_video_uri=True)
    studio = StudioOrchestrator(gateway, poll_interval=0, retry_base_delay=0)
    shoot(studio, image)

    asyncio.run(studio.generate_video_from_image(ANIMATION_STYLES[0]))

    assert studio.state.error == NO_VIDEO_URL_MESSAGE
    assert studio.state.generated_video_url is None
    assert gateway.fetched == []


def test_video_needs_a_selected_image(studio, gateway):
    asyncio.run(studio.generate_video_from_image(ANIMATION_STYLES[0]))

    assert studio.state.error == NO_VIDEO_REFERENCE
    assert gateway.video_calls == []


def test_video_not_available_in_design_mode(studio, gateway, image):
    studio.set_mode(GenerationMode.DESIGN)
    studio.update_inputs(generated_images=(image("mockup-shot"),), active_image_index=0)

    asyncio.run(studio.generate_video_from_image(ANIMATION_STYLES[0]))

    assert studio.state.error == "Video generation is not supported in this mode."
    assert gateway.video_calls == []


def test_video_job_reports_backend_failure(gateway):
    handle = OperationHandle(name="operations/failed", done=True, error="safety filter")
    states = []
    job = VideoJob(gateway, handle, CancellationToken(), poll_interval=0, on_state=states.append)

    with pytest.raises(BackendError, match="safety filter"):
        asyncio.run(job.run())

    assert job.state == JobState.FAILED
    assert states == [JobState.POLLING, JobState.FAILED]
