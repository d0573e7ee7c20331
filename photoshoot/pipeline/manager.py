import asyncio
import inspect
from dataclasses import replace
from functools import partial
from typing import Awaitable, Callable, Dict, Optional, Set, Union

from photoshoot.config.settings import settings
from photoshoot.core.catalogs import (
    ASPECT_RATIOS,
    CAMERA_ANGLES,
    CAMERA_ANGLES_PRODUCT,
    ECOMMERCE_PACKS,
    EXPRESSIONS,
    FOCAL_LENGTHS,
    PRODUCT_ECOMMERCE_PACKS,
    SHOT_TYPES,
    find_option,
)
from photoshoot.core.errors import (
    GenerationCancelled,
    PhotoshootError,
    UnsupportedOperationError,
    ValidationError,
)
from photoshoot.core.models import (
    CUSTOM_BACKGROUND_ID,
    NO_PACK,
    Animation,
    ApparelParams,
    Background,
    BackgroundType,
    CreativeControls,
    DesignParams,
    EditSession,
    GenerationMode,
    MediaKind,
    Pack,
    PackShot,
    ProductParams,
    ReimagineParams,
    User,
)
from photoshoot.engine.compiler import CompilerParams, PromptCompiler
from photoshoot.engine.segments import first_text
from photoshoot.generators.base import BackendGateway
from photoshoot.pipeline.cancellation import CancellationToken
from photoshoot.pipeline.polling import JobState, VideoJob
from photoshoot.pipeline.ratelimit import RateWindow
from photoshoot.pipeline.results import ResultBuffer
from photoshoot.pipeline.state import StateStore, StudioState
from photoshoot.utils.decorators import retry_message, with_retry
from photoshoot.utils.logger import get_logger

logger = get_logger()

UsageHook = Callable[[int], Union[None, Awaitable[None]]]

STYLE_REFERENCE_DESCRIPTION = "User provided style reference"
MIN_IMAGES, MAX_IMAGES = 1, 4

GENERATION_FAILED = "An unknown error occurred during generation."
PACK_FAILED = "An unknown error occurred during pack generation."
VIDEO_FAILED = "An unknown error occurred during video generation."
EDIT_FAILED = "Generative edit failed."
BACKGROUND_FAILED = "Failed to generate AI background."
BACKGROUND_ASPECT_RATIO = "16:9"

NO_PACK_REFERENCE = "No reference image selected to generate a pack."
NO_VIDEO_REFERENCE = "No reference image selected to generate a video from."
NO_APPAREL_PACK = "No e-commerce pack is selected in the settings."
PRODUCT_PACK_NEEDS_MODEL = (
    "Generating a pack from a reference image is for on-model shots. Please select a model and choose a pack "
    "from the 'E-commerce Pack' options."
)
NO_PRODUCT_PACK = "Select an E-commerce Pack in Settings for on-model pack generation."


def _message(e: Exception, fallback: str) -> str:
    """User-facing text: engine errors verbatim, anything else generic."""
    if isinstance(e, PhotoshootError) and str(e):
        return str(e)
    return fallback


class StudioOrchestrator:
    """
    Drives each user action end to end: compile, call the backend with
    retries, stream results into the state store, and report usage.

    Every public workflow catches its own errors into `state.error`, keeps
    partial results, and treats cancellation as a silent return.
    """

    def __init__(
        self,
        gateway: BackendGateway,
        store: Optional[StateStore] = None,
        compiler: Optional[PromptCompiler] = None,
        poll_interval: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        retry_backoff: Optional[float] = None,
        rate_window: Optional[RateWindow] = None,
        on_generation_complete: Optional[UsageHook] = None,
    ):
        self.gateway = gateway
        self.store = store or StateStore()
        self.compiler = compiler or PromptCompiler()
        self.poll_interval = settings.video_poll_interval if poll_interval is None else poll_interval
        self.retry_attempts = retry_attempts or settings.retry_max_attempts
        self.retry_base_delay = settings.retry_base_delay if retry_base_delay is None else retry_base_delay
        self.retry_backoff = retry_backoff or settings.retry_backoff
        self.rate_window = rate_window or RateWindow(settings.rate_limit_window)
        self.on_generation_complete = on_generation_complete
        self._tokens: Set[CancellationToken] = set()

    @property
    def state(self) -> StudioState:
        return self.store.snapshot()

    # =========================
    # PLUMBING
    # =========================

    def _begin(self, token: Optional[CancellationToken]) -> CancellationToken:
        token = token or CancellationToken()
        self._tokens.add(token)
        return token

    def _end(self, token: CancellationToken) -> None:
        self._tokens.discard(token)

    def _set_progress(self, attempt: int, delay: float) -> None:
        self.store.update(loading_message=retry_message(attempt, delay))

    async def _call(self, token: CancellationToken, func, *args, **kwargs):
        return await with_retry(
            func,
            *args,
            on_retry=self._set_progress,
            max_attempts=self.retry_attempts,
            base_delay=self.retry_base_delay,
            backoff=self.retry_backoff,
            token=token,
            **kwargs,
        )

    async def _report_usage(self, on_complete: Optional[UsageHook], count: int) -> None:
        for hook in (on_complete, self.on_generation_complete):
            if hook is None:
                continue
            result = hook(count)
            if inspect.isawaitable(result):
                await result

    def _finish_pass(self) -> None:
        self.store.apply(lambda s: {
            "is_generating": False,
            "loading_message": "",
            "generation_count": s.generation_count + 1,
        })

    def _start_pass(self) -> None:
        self.rate_window.record()
        self.store.update(
            is_generating=True,
            error=None,
            generated_images=None,
            generated_video_url=None,
            video_source_image=None,
            active_image_index=0,
            loading_message="Preparing your vision...",
        )

    def _buffer(self, size: int) -> ResultBuffer:
        self.store.update(generated_images=(None,) * size, active_image_index=0)
        return ResultBuffer(size, on_change=lambda slots: self.store.update(generated_images=slots))

    # =========================
    # PARAMETER ASSEMBLY
    # =========================

    @staticmethod
    def _style_description(state: StudioState) -> Optional[str]:
        return STYLE_REFERENCE_DESCRIPTION if state.style_reference_image else None

    def _apparel_params(self, state: StudioState, **overrides) -> ApparelParams:
        values = dict(
            aspect_ratio=state.aspect_ratio,
            style_description=self._style_description(state),
            scene=state.scene,
            controls=state.apparel_controls,
            apparel=state.apparel,
            uploaded_model_image=state.uploaded_model_image,
            selected_models=state.selected_models,
            prompted_model_description=state.prompted_model_description,
            model_lighting_description=state.model_lighting_description,
        )
        values.update(overrides)
        return ApparelParams(**values)

    def _product_params(self, state: StudioState, **overrides) -> ProductParams:
        values = dict(
            aspect_ratio=state.aspect_ratio,
            style_description=self._style_description(state),
            scene=state.scene,
            controls=state.product_controls,
            product_image=state.product_image,
            staged_assets=state.staged_assets,
            uploaded_model_image=state.uploaded_model_image,
            selected_models=state.selected_models,
            prompted_model_description=state.prompted_model_description,
        )
        values.update(overrides)
        return ProductParams(**values)

    def _params_for_mode(self, state: StudioState) -> CompilerParams:
        if state.mode == GenerationMode.APPAREL:
            return self._apparel_params(state)
        if state.mode == GenerationMode.PRODUCT:
            return self._product_params(state)
        if state.mode == GenerationMode.DESIGN:
            return DesignParams(
                aspect_ratio=state.aspect_ratio,
                style_description=self._style_description(state),
                scene=state.scene,
                placement=state.design_placement,
                mockup_image=state.mockup_image,
                design_image=state.design_image,
                back_design_image=state.back_design_image,
                shot_view=state.shot_view,
            )
        return ReimagineParams(
            aspect_ratio=state.aspect_ratio,
            style_description=self._style_description(state),
            source_photo=state.reimagine_source_photo,
            controls=state.reimagine_controls,
            new_model_photo=state.new_model_photo,
        )

    @staticmethod
    def _negative_prompt(state: StudioState) -> Optional[str]:
        if state.mode == GenerationMode.APPAREL:
            text = state.apparel_controls.negative_prompt
        elif state.mode == GenerationMode.PRODUCT:
            text = state.product_controls.negative_prompt
        elif state.mode == GenerationMode.REIMAGINE:
            text = state.reimagine_controls.negative_prompt
        else:
            text = ""
        return text.strip() or None

    @staticmethod
    def _on_model_shot(controls: CreativeControls, shot: PackShot) -> CreativeControls:
        return replace(
            controls,
            shot_type=find_option(SHOT_TYPES, shot.shot_id, controls.shot_type),
            expression=find_option(EXPRESSIONS, shot.expression_id, controls.expression),
            camera_angle=find_option(CAMERA_ANGLES, shot.camera_angle_id, controls.camera_angle),
        )

    @staticmethod
    def _product_only_shot(controls: CreativeControls, shot: PackShot) -> CreativeControls:
        return replace(
            controls,
            camera_angle=find_option(CAMERA_ANGLES_PRODUCT, shot.camera_angle_id, controls.camera_angle),
            focal_length=find_option(FOCAL_LENGTHS, shot.focal_length_id, controls.focal_length),
        )

    @staticmethod
    def _pack(catalog: Dict[str, Pack], pack_id: str) -> Pack:
        pack = catalog.get(pack_id)
        if pack is None:
            raise ValidationError(f"Unknown e-commerce pack '{pack_id}'.")
        return pack

    # =========================
    # WORKFLOWS
    # =========================

    async def _run_batch(self, state: StudioState, params: CompilerParams, count: int, token) -> int:
        segments = self.compiler.compile(params)
        buffer = self._buffer(count)
        logger.info(f"🎨 Generating {count} image(s) in {params.mode.value} mode")
        await self._call(
            token,
            self.gateway.generate_image_async,
            segments,
            state.aspect_ratio,
            count,
            negative_prompt=self._negative_prompt(state),
            on_image=lambda image, index: buffer.write(index, image),
        )
        token.raise_if_cancelled()
        return buffer.filled

    async def _run_pack(
        self,
        state: StudioState,
        pack: Pack,
        build_params: Callable[[PackShot], CompilerParams],
        token: CancellationToken,
    ) -> int:
        total = len(pack.shots)
        # Compile every shot up front so a validation error makes zero backend calls.
        shot_segments = [self.compiler.compile(build_params(shot)) for shot in pack.shots]
        buffer = self._buffer(total)
        negative_prompt = self._negative_prompt(state)
        logger.info(f"📦 Generating pack '{pack.name}' ({total} shots)")

        for i, segments in enumerate(shot_segments):
            token.raise_if_cancelled()
            self.store.update(loading_message=f"Generating {pack.name}... ({i + 1}/{total})")
            await self._call(
                token,
                self.gateway.generate_image_async,
                segments,
                state.aspect_ratio,
                1,
                negative_prompt=negative_prompt,
                on_image=lambda image, _index, slot=i: buffer.write(slot, image),
            )
        token.raise_if_cancelled()
        return buffer.filled

    async def _dispatch(self, state: StudioState, token: CancellationToken) -> int:
        if state.mode == GenerationMode.PRODUCT:
            params = self._product_params(state)
            if params.is_model_selected and state.ecommerce_pack != NO_PACK:
                pack = self._pack(ECOMMERCE_PACKS, state.ecommerce_pack)
                return await self._run_pack(
                    state,
                    pack,
                    lambda shot: replace(params, controls=self._on_model_shot(params.controls, shot)),
                    token,
                )
            if not params.is_model_selected and state.product_ecommerce_pack != NO_PACK:
                pack = self._pack(PRODUCT_ECOMMERCE_PACKS, state.product_ecommerce_pack)
                return await self._run_pack(
                    state,
                    pack,
                    lambda shot: replace(params, controls=self._product_only_shot(params.controls, shot)),
                    token,
                )
            return await self._run_batch(state, params, state.number_of_images, token)
        return await self._run_batch(state, self._params_for_mode(state), state.number_of_images, token)

    async def generate_asset(
        self,
        user: Optional[User] = None,
        on_complete: Optional[UsageHook] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        """
        Runs one still-image pass for the active mode.

        `on_complete(n)` receives the number of images produced once the pass
        succeeds; it is skipped on failure and on cancellation.
        """
        token = self._begin(token)
        state = self.store.snapshot()
        who = f" for user {user.id}" if user else ""
        logger.info(f"🚀 Starting {state.mode.value} generation{who}")
        self._start_pass()
        try:
            produced = await self._dispatch(state, token)
            await self._report_usage(on_complete, produced)
            logger.info(f"✅ Generation finished: {produced} image(s)")
        except GenerationCancelled:
            logger.info("🛑 Generation cancelled; keeping partial results")
        except Exception as e:
            logger.error(f"❌ Generation failed: {e}", exc_info=True)
            self.store.update(error=_message(e, GENERATION_FAILED))
        finally:
            self._finish_pass()
            self._end(token)

    def _reference_pack(self, state: StudioState, reference: str):
        if state.mode == GenerationMode.APPAREL:
            if state.ecommerce_pack == NO_PACK:
                raise ValidationError(NO_APPAREL_PACK)
            pack = self._pack(ECOMMERCE_PACKS, state.ecommerce_pack)
            return pack, self._apparel_params(state, base_look_image=reference)
        if state.mode == GenerationMode.PRODUCT:
            if state.ecommerce_pack == NO_PACK:
                if state.product_ecommerce_pack != NO_PACK:
                    raise UnsupportedOperationError(PRODUCT_PACK_NEEDS_MODEL)
                raise ValidationError(NO_PRODUCT_PACK)
            pack = self._pack(ECOMMERCE_PACKS, state.ecommerce_pack)
            return pack, self._product_params(state, model_reference_image=reference)
        raise UnsupportedOperationError("Pack generation is not available in this mode.")

    async def generate_pack_from_reference(
        self,
        on_complete: Optional[UsageHook] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        """Re-poses the selected generated image through every shot of the active pack."""
        token = self._begin(token)
        state = self.store.snapshot()
        reference = state.selected_image
        if reference is None:
            self.store.update(error=NO_PACK_REFERENCE)
            self._end(token)
            return

        # Rejected passes leave the current results untouched
        try:
            pack, params = self._reference_pack(state, reference)
        except (ValidationError, UnsupportedOperationError) as e:
            logger.warning(f"⚠️ Pack generation rejected: {e}")
            self.store.update(error=str(e))
            self._end(token)
            return

        self.rate_window.record()
        self.store.update(
            is_generating=True,
            error=None,
            generated_video_url=None,
            video_source_image=None,
            loading_message="Generating asset pack...",
        )
        try:
            produced = await self._run_pack(
                state,
                pack,
                lambda shot: replace(params, controls=self._on_model_shot(params.controls, shot)),
                token,
            )
            await self._report_usage(on_complete, produced)
            logger.info(f"✅ Pack '{pack.name}' finished: {produced} image(s)")
        except GenerationCancelled:
            logger.info("🛑 Pack generation cancelled; keeping partial results")
        except Exception as e:
            logger.error(f"❌ Pack generation failed: {e}", exc_info=True)
            self.store.update(error=_message(e, PACK_FAILED))
        finally:
            self._finish_pass()
            self._end(token)

    async def generate_video_from_image(
        self,
        animation: Optional[Animation] = None,
        on_complete: Optional[UsageHook] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        """
        Animates the selected image: submit, poll every `poll_interval`
        seconds until done, then fetch the video into a local blob.

        Cancellation is honoured at every await; the backend job itself keeps
        running. A blob fetched after a cancel is released.
        """
        token = self._begin(token)
        state = self.store.snapshot()
        reference = state.selected_image
        if reference is None:
            self.store.update(error=NO_VIDEO_REFERENCE)
            self._end(token)
            return

        self.store.update(
            is_generating=True,
            error=None,
            generated_video_url=None,
            video_source_image=reference,
            active_image_index=None,
            loading_message="Animating your image...",
        )
        try:
            if state.mode == GenerationMode.APPAREL:
                controls = state.apparel_controls
                build = self._apparel_params
            elif state.mode == GenerationMode.PRODUCT:
                controls = state.product_controls
                build = self._product_params
            else:
                raise UnsupportedOperationError("Video generation is not supported in this mode.")

            if controls.custom_animation_prompt.strip():
                animation = Animation("custom", "Custom", controls.custom_animation_prompt.strip())
            prompt = first_text(self.compiler.compile(build(state, media=MediaKind.VIDEO, animation=animation)))
            if not prompt.strip():
                raise ValidationError("Could not generate a valid prompt for video generation.")

            token.raise_if_cancelled()
            self.store.update(loading_message="Sending to video model...")
            handle = await self._call(token, self.gateway.generate_video_async, prompt, reference)
            logger.info(f"⏳ Video job {handle.name} submitted. Polling every {self.poll_interval}s...")
            self.store.update(loading_message="Video is processing... This may take a few minutes.")

            def on_state(job_state: JobState) -> None:
                if job_state == JobState.FETCHING:
                    self.store.update(loading_message="Fetching final video...")

            job = VideoJob(
                self.gateway,
                handle,
                token,
                poll_interval=self.poll_interval,
                on_state=on_state,
                invoke=partial(self._call, token),
            )
            blob = await job.run()
            if blob is None:
                return
            self.store.update(generated_video_url=blob)
            await self._report_usage(on_complete, 1)
            logger.info(f"✅ Video ready at {blob}")
        except GenerationCancelled:
            logger.info("🛑 Video generation cancelled")
        except Exception as e:
            logger.error(f"❌ Video generation failed: {e}", exc_info=True)
            self.store.update(error=_message(e, VIDEO_FAILED))
        finally:
            self.store.update(is_generating=False, loading_message="")
            self._end(token)

    # =========================
    # EDITING
    # =========================

    async def apply_generative_edit(
        self,
        mask: str,
        prompt: str,
        apparel_reference: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        token = self._begin(token)
        state = self.store.snapshot()
        index = state.active_image_index
        original = state.selected_image
        if original is None:
            self.store.update(error="Select an image to edit first.")
            self._end(token)
            return

        self.store.update(is_applying_edit=True, error=None, loading_message="Applying generative edit...")
        try:
            edited = await self._call(
                token,
                self.gateway.generative_edit_async,
                original,
                mask,
                prompt,
                apparel_reference=apparel_reference,
            )
            token.raise_if_cancelled()

            def commit(s: StudioState) -> dict:
                images = list(s.generated_images or ())
                if not 0 <= index < len(images):
                    return {}
                images[index] = edited
                session = s.edit_session
                if session is None or session.index != index:
                    session = EditSession(original=original, index=index)
                return {
                    "generated_images": tuple(images),
                    "edit_session": session,
                    "generation_count": s.generation_count + 1,
                }

            self.store.apply(commit)
            logger.info(f"✅ Generative edit applied to image {index}")
        except GenerationCancelled:
            logger.info("🛑 Generative edit cancelled")
        except Exception as e:
            logger.error(f"❌ Generative edit failed: {e}", exc_info=True)
            self.store.update(error=_message(e, EDIT_FAILED))
        finally:
            self.store.update(is_applying_edit=False, loading_message="")
            self._end(token)

    def start_editing(self, index: int) -> None:
        state = self.store.snapshot()
        images = state.generated_images or ()
        if not 0 <= index < len(images) or images[index] is None:
            self.store.update(error="There is no image at that position to edit.")
            return
        self.store.update(
            is_editing=True,
            edit_session=EditSession(original=images[index], index=index),
            active_image_index=index,
            generated_video_url=None,
            video_source_image=None,
            error=None,
        )

    @staticmethod
    def _restore(s: StudioState) -> dict:
        session = s.edit_session
        images = list(s.generated_images or ())
        if 0 <= session.index < len(images):
            images[session.index] = session.original
        return {"generated_images": tuple(images)}

    def cancel_editing(self) -> None:
        def cancel(s: StudioState) -> dict:
            if s.edit_session is None:
                return {"is_editing": False}
            return {**self._restore(s), "is_editing": False, "edit_session": None}

        self.store.apply(cancel)

    def revert_edit(self) -> None:
        def revert(s: StudioState) -> dict:
            if s.edit_session is None:
                return {}
            return {**self._restore(s), "generation_count": s.generation_count + 1}

        self.store.apply(revert)

    # =========================
    # BACKGROUND
    # =========================

    async def generate_ai_background(self, prompt: str, token: Optional[CancellationToken] = None) -> None:
        token = self._begin(token)
        self.store.update(is_generating_background=True, error=None)
        try:
            if not prompt.strip():
                raise ValidationError("Please describe the background you want to generate.")
            image = await self._call(token, self.gateway.generate_from_text_async, prompt, BACKGROUND_ASPECT_RATIO)
            token.raise_if_cancelled()
            background = Background(
                id=CUSTOM_BACKGROUND_ID,
                name=f"AI: {prompt[:20]}...",
                type=BackgroundType.IMAGE,
                value=image,
                category="Custom",
            )
            self.store.apply(lambda s: {"scene": replace(s.scene, background=background)})
            logger.info(f"✅ AI background installed: {background.name}")
        except GenerationCancelled:
            logger.info("🛑 Background generation cancelled")
        except Exception as e:
            logger.error(f"❌ Background generation failed: {e}", exc_info=True)
            reason = _message(e, "")
            self.store.update(error=f"{BACKGROUND_FAILED} {reason}".strip())
        finally:
            self.store.update(is_generating_background=False)
            self._end(token)

    # =========================
    # CONTROL & SETTERS
    # =========================

    def cancel_current_process(self) -> None:
        """Cancels every in-flight workflow. Backend jobs already submitted keep running."""
        tokens = list(self._tokens)
        for token in tokens:
            token.cancel()
        self.store.update(is_generating=False, loading_message="")
        if tokens:
            logger.info(f"🛑 Cancelled {len(tokens)} running workflow(s)")

    def set_active_image_index(self, index: Optional[int]) -> None:
        self.store.update(active_image_index=index, generated_video_url=None, video_source_image=None)

    def set_mode(self, mode: GenerationMode) -> None:
        self.store.update(mode=mode, error=None)

    def update_scene(self, **changes) -> None:
        self.store.apply(lambda s: {"scene": replace(s.scene, **changes)})

    def select_aspect_ratio(self, value: str) -> None:
        if value not in {option.description for option in ASPECT_RATIOS}:
            raise ValidationError(f"Unsupported aspect ratio '{value}'.")
        self.store.update(aspect_ratio=value)

    def set_number_of_images(self, count: int) -> None:
        self.store.update(number_of_images=max(MIN_IMAGES, min(MAX_IMAGES, int(count))))

    def set_style_reference_image(self, image: Optional[str]) -> None:
        self.store.update(style_reference_image=image)

    def clear_error(self) -> None:
        self.store.update(error=None)

    def update_inputs(self, **changes) -> StudioState:
        return self.store.update(**changes)

    def run(self, workflow: Callable[..., Awaitable[None]], *args, **kwargs) -> StudioState:
        """Synchronous entry point: runs one workflow to completion and returns the final state."""
        asyncio.run(workflow(*args, **kwargs))
        return self.store.snapshot()

