import asyncio
from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from photoshoot.core.catalogs import CAMERA_ANGLES_PRODUCT, SHOT_TYPES
from photoshoot.core.models import (
    CUSTOM_BACKGROUND_ID,
    ApparelItem,
    BackgroundType,
    GenerationMode,
    StagedAsset,
    User,
)
from photoshoot.core.errors import ValidationError
from photoshoot.engine.segments import parse_data_url
from photoshoot.generators.mock import MockGateway
from photoshoot.pipeline.manager import (
    NO_APPAREL_PACK,
    NO_PACK_REFERENCE,
    PRODUCT_PACK_NEEDS_MODEL,
    StudioOrchestrator,
)
from photoshoot.pipeline.ratelimit import RateWindow
from photoshoot.pipeline.state import StateStore, StudioState


def dress(studio, image, count=1):
    studio.update_inputs(uploaded_model_image=image("model"), apparel=(ApparelItem(image("tee"), "white tee"),))
    studio.set_number_of_images(count)


def record_messages(studio):
    messages = []
    studio.store.subscribe(lambda s: messages.append(s.loading_message))
    return messages


# =========================
# SINGLE PASS
# =========================

def test_generate_asset_fills_every_slot(studio, gateway, image):
    dress(studio, image, count=3)
    on_complete = MagicMock()

    asyncio.run(studio.generate_asset(User(id="u1"), on_complete=on_complete))

    state = studio.state
    assert len(gateway.image_calls) == 1
    assert gateway.image_calls[0]["count"] == 3
    assert gateway.image_calls[0]["aspect_ratio"] == "3:4"
    assert len(state.generated_images) == 3
    assert all(state.generated_images)
    assert len(set(state.generated_images)) == 3
    on_complete.assert_called_once_with(3)
    assert state.error is None
    assert state.is_generating is False
    assert state.loading_message == ""
    assert state.active_image_index == 0
    assert state.generation_count == 1


def test_out_of_order_images_land_in_their_slots(tmp_path, image):
    gateway = MockGateway(blob_dir=str(tmp_path), out_of_order=True)
    studio = StudioOrchestrator(gateway, poll_interval=0, retry_base_delay=0)
    dress(studio, image, count=2)

    asyncio.run(studio.generate_asset())

    assert all(studio.state.generated_images)


def test_usage_hooks_accept_coroutines(tmp_path, image):
    reported = []

    async def on_generation_complete(count):
        reported.append(count)

    studio = StudioOrchestrator(
        MockGateway(blob_dir=str(tmp_path)),
        retry_base_delay=0,
        on_generation_complete=on_generation_complete,
    )
    dress(studio, image, count=2)

    asyncio.run(studio.generate_asset())

    assert reported == [2]


def test_failure_keeps_partial_results(tmp_path, image):
    gateway = MockGateway(blob_dir=str(tmp_path), fail_on_image_call=1, after_images=1)
    studio = StudioOrchestrator(gateway, retry_base_delay=0)
    dress(studio, image, count=3)
    on_complete = MagicMock()

    asyncio.run(studio.generate_asset(on_complete=on_complete))

    state = studio.state
    assert state.generated_images[0] is not None
    assert state.generated_images[1:] == (None, None)
    assert state.error == "Mock backend rejected the request."
    assert state.is_generating is False
    assert state.generation_count == 1
    on_complete.assert_not_called()


def test_non_engine_errors_get_a_generic_message(tmp_path, image):
    gateway = MockGateway(blob_dir=str(tmp_path), fail_on_image_call=1, failure=KeyError("candidates"))
    studio = StudioOrchestrator(gateway, retry_base_delay=0)
    dress(studio, image)

    asyncio.run(studio.generate_asset())

    assert studio.state.error == "An unknown error occurred during generation."


def test_validation_error_makes_no_backend_call(studio, gateway):
    asyncio.run(studio.generate_asset())

    assert gateway.image_calls == []
    assert studio.state.error == "At least one apparel item is required."


def test_transient_errors_surface_retry_progress(tmp_path, image):
    gateway = MockGateway(blob_dir=str(tmp_path), transient_failures=1)
    studio = StudioOrchestrator(gateway, retry_base_delay=0)
    dress(studio, image)
    messages = record_messages(studio)

    asyncio.run(studio.generate_asset())

    assert "API is busy. Retrying in 0s... (Attempt 1)" in messages
    assert studio.state.error is None
    assert all(studio.state.generated_images)


def test_retry_exhaustion_reports_busy_service(tmp_path, image):
    gateway = MockGateway(blob_dir=str(tmp_path), transient_failures=10)
    studio = StudioOrchestrator(gateway, retry_attempts=2, retry_base_delay=0)
    dress(studio, image)

    asyncio.run(studio.generate_asset())

    assert "busy" in studio.state.error


def test_negative_prompt_is_forwarded(studio, gateway, image):
    dress(studio, image)
    studio.store.apply(lambda s: {
        "apparel_controls": replace(s.apparel_controls, negative_prompt="  blurry, extra fingers  "),
    })

    asyncio.run(studio.generate_asset())

    assert gateway.image_calls[0]["negative_prompt"] == "blurry, extra fingers"


# =========================
# PACKS
# =========================

def test_product_pack_runs_every_shot_in_order(studio, gateway, image):
    studio.set_mode(GenerationMode.PRODUCT)
    studio.update_inputs(
        prompted_model_description="a marathon runner",
        product_image=image("bottle"),
        ecommerce_pack="studio5",
    )
    messages = record_messages(studio)
    on_complete = MagicMock()

    asyncio.run(studio.generate_asset(on_complete=on_complete))

    assert len(gateway.image_calls) == 5
    assert all(call["count"] == 1 for call in gateway.image_calls)
    progress = list(dict.fromkeys(m for m in messages if m.startswith("Generating Complete E-commerce Pack")))
    assert progress == [f"Generating Complete E-commerce Pack... ({i}/5)" for i in range(1, 6)]
    for prompt, shot in zip(gateway.prompts, SHOT_TYPES[:5]):
        assert shot.description in prompt
    assert len(studio.state.generated_images) == 5
    assert all(studio.state.generated_images)
    on_complete.assert_called_once_with(5)


def test_product_only_pack_overrides_camera(studio, gateway, image):
    studio.set_mode(GenerationMode.PRODUCT)
    studio.update_inputs(
        staged_assets=(StagedAsset("product", image("p"), 50, 50, 60, 1),),
        product_ecommerce_pack="product4",
    )

    asyncio.run(studio.generate_asset())

    assert len(gateway.image_calls) == 4
    assert CAMERA_ANGLES_PRODUCT[0].description in gateway.prompts[0]
    assert CAMERA_ANGLES_PRODUCT[4].description in gateway.prompts[3]


def test_pack_compile_error_makes_no_backend_call(studio, gateway):
    studio.set_mode(GenerationMode.PRODUCT)
    studio.update_inputs(prompted_model_description="a runner", ecommerce_pack="studio3")

    asyncio.run(studio.generate_asset())

    assert gateway.image_calls == []
    assert studio.state.error == "Product image is required for an on-model shot."


def test_cancel_mid_pack_keeps_finished_shots(studio, gateway, image):
    studio.set_mode(GenerationMode.PRODUCT)
    studio.update_inputs(prompted_model_description="a runner", product_image=image("p"), ecommerce_pack="studio5")
    on_complete = MagicMock()

    def cancel_on_second_shot(state):
        if state.loading_message.endswith("(2/5)"):
            studio.cancel_current_process()

    studio.store.subscribe(cancel_on_second_shot)
    asyncio.run(studio.generate_asset(on_complete=on_complete))

    state = studio.state
    assert len(gateway.image_calls) == 1
    assert state.generated_images[0] is not None
    assert state.generated_images[1:] == (None,) * 4
    assert state.error is None
    assert state.is_generating is False
    on_complete.assert_not_called()


def test_pack_from_reference_reposes_selected_image(studio, gateway, image):
    dress(studio, image)
    asyncio.run(studio.generate_asset())
    reference = studio.state.selected_image
    studio.update_inputs(ecommerce_pack="studio3")
    on_complete = MagicMock()

    asyncio.run(studio.generate_pack_from_reference(on_complete=on_complete))

    pack_calls = gateway.image_calls[1:]
    assert len(pack_calls) == 3
    for call in pack_calls:
        assert call["segments"][0].text.startswith("**APPAREL RE-POSE DIRECTIVE**")
        assert call["segments"][1] == parse_data_url(reference)
    on_complete.assert_called_once_with(3)
    assert studio.state.generation_count == 2


def test_pack_from_reference_needs_a_selection(studio, gateway):
    asyncio.run(studio.generate_pack_from_reference())

    assert studio.state.error == NO_PACK_REFERENCE
    assert studio.state.generation_count == 0
    assert gateway.image_calls == []


def test_pack_from_reference_needs_a_pack(studio, gateway, image):
    dress(studio, image, count=3)
    asyncio.run(studio.generate_asset())
    studio.set_active_image_index(2)
    before = studio.state
    requests_before = len(studio.rate_window)

    asyncio.run(studio.generate_pack_from_reference())

    state = studio.state
    assert state.error == NO_APPAREL_PACK
    assert state.generated_images == before.generated_images
    assert state.active_image_index == 2
    assert state.generation_count == before.generation_count
    assert state.is_generating is False
    assert len(studio.rate_window) == requests_before
    assert len(gateway.image_calls) == 1


def test_pack_from_reference_rejected_in_design_mode_keeps_gallery(studio, gateway, image):
    gallery = (image("look-a"), image("look-b"))
    studio.set_mode(GenerationMode.DESIGN)
    studio.update_inputs(generated_images=gallery, active_image_index=1, ecommerce_pack="studio3")

    asyncio.run(studio.generate_pack_from_reference())

    state = studio.state
    assert state.error == "Pack generation is not available in this mode."
    assert state.generated_images == gallery
    assert state.active_image_index == 1
    assert state.generation_count == 0
    assert gateway.image_calls == []


def test_product_pack_from_reference_explains_on_model_requirement(studio, image):
    studio.set_mode(GenerationMode.PRODUCT)
    studio.update_inputs(
        generated_images=(image("shot"),),
        active_image_index=0,
        product_ecommerce_pack="product4",
    )

    asyncio.run(studio.generate_pack_from_reference())

    assert studio.state.error == PRODUCT_PACK_NEEDS_MODEL


# =========================
# EDITING
# =========================

def test_edit_then_cancel_restores_original(studio, gateway, image):
    dress(studio, image, count=2)
    asyncio.run(studio.generate_asset())
    original = studio.state.generated_images[1]

    studio.start_editing(1)
    asyncio.run(studio.apply_generative_edit(image("mask"), "make the tee red"))

    edited = studio.state.generated_images[1]
    assert edited != original
    assert gateway.edit_calls[0]["original"] == original
    assert studio.state.generation_count == 2
    assert studio.state.is_applying_edit is False

    studio.cancel_editing()

    assert studio.state.generated_images[1] == original
    assert studio.state.is_editing is False
    assert studio.state.edit_session is None


def test_revert_keeps_session_and_counts(studio, image):
    dress(studio, image)
    asyncio.run(studio.generate_asset())
    original = studio.state.generated_images[0]

    studio.start_editing(0)
    asyncio.run(studio.apply_generative_edit(image("mask"), "add a pocket"))
    asyncio.run(studio.apply_generative_edit(image("mask"), "add sleeves"))
    studio.revert_edit()

    state = studio.state
    assert state.generated_images[0] == original
    assert state.is_editing is True
    assert state.edit_session.original == original
    assert state.generation_count == 4


def test_cancel_editing_without_session_clears_flag(studio):
    studio.store.update(is_editing=True)

    studio.cancel_editing()

    assert studio.state.is_editing is False
    assert studio.state.edit_session is None


def test_start_editing_rejects_empty_slot(studio):
    studio.start_editing(0)

    assert studio.state.is_editing is False
    assert studio.state.error == "There is no image at that position to edit."


# =========================
# BACKGROUND & SETTERS
# =========================

def test_ai_background_installs_custom_image(studio, gateway):
    studio.select_aspect_ratio("9:16")

    asyncio.run(studio.generate_ai_background("sunlit greenhouse with hanging ferns"))

    background = studio.state.scene.background
    assert background.id == CUSTOM_BACKGROUND_ID
    assert background.type == BackgroundType.IMAGE
    assert background.name == "AI: sunlit greenhouse wi..."
    assert background.is_custom_image
    assert gateway.text_calls[0]["aspect_ratio"] == "16:9"
    assert studio.state.is_generating_background is False


def test_ai_background_requires_prompt(studio, gateway):
    asyncio.run(studio.generate_ai_background("   "))

    assert studio.state.error.startswith("Failed to generate AI background.")
    assert gateway.text_calls == []


def test_number_of_images_is_clamped(studio):
    studio.set_number_of_images(0)
    assert studio.state.number_of_images == 1
    studio.set_number_of_images(9)
    assert studio.state.number_of_images == 4


def test_unknown_aspect_ratio_is_rejected(studio):
    with pytest.raises(ValidationError):
        studio.select_aspect_ratio("5:7")
    studio.select_aspect_ratio("16:9")
    assert studio.state.aspect_ratio == "16:9"


def test_selecting_an_image_clears_video(studio, image):
    studio.update_inputs(generated_images=(image("a"), image("b")), generated_video_url="blob.mp4")
    studio.set_active_image_index(1)
    assert studio.state.selected_image == image("b")
    assert studio.state.generated_video_url is None


def test_sync_run_wrapper_returns_final_state(studio, image):
    dress(studio, image, count=2)
    state = studio.run(studio.generate_asset)
    assert len(state.generated_images) == 2


# =========================
# STATE & RATE WINDOW
# =========================

def test_state_store_subscribe_and_unsubscribe():
    store = StateStore()
    seen = []
    unsubscribe = store.subscribe(lambda s: seen.append(s.aspect_ratio))

    store.update(aspect_ratio="1:1")
    unsubscribe()
    store.update(aspect_ratio="9:16")

    assert seen == ["1:1"]
    assert store.snapshot().aspect_ratio == "9:16"


def test_state_store_rejects_unknown_fields():
    store = StateStore()
    with pytest.raises(ValueError):
        store.update(not_a_field=1)
    assert store.snapshot() == StudioState()


def test_rate_window_prunes_old_requests():
    now = iter([0.0, 30.0, 61.0, 95.0])
    window = RateWindow(60, clock=lambda: next(now))

    assert [window.record() for _ in range(4)] == [1, 2, 2, 2]
    assert window.timestamps == (61.0, 95.0)


def test_every_pass_is_recorded_in_rate_window(studio, image):
    dress(studio, image)
    asyncio.run(studio.generate_asset())
    asyncio.run(studio.generate_asset())

    assert len(studio.rate_window) == 2
