import os
from collections import defaultdict
from dataclasses import replace
from typing import Dict, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from api.schemas import (
    BackgroundRequest,
    EditRequest,
    GenerateRequest,
    StateResponse,
    StateUpdateRequest,
    SubmissionResponse,
    VideoRequest,
    WorkflowStatus,
)
from api.security import verify_api_key
from photoshoot.config.settings import settings
from photoshoot.core.catalogs import (
    AI_MODELS,
    ANIMATION_STYLES,
    BACKGROUNDS,
    CAMERA_ANGLES,
    CAMERA_ANGLES_PRODUCT,
    ECOMMERCE_PACKS,
    EXPRESSIONS,
    LIGHTING_PRESETS,
    PRODUCT_ANIMATION_STYLES,
    PRODUCT_ECOMMERCE_PACKS,
    SHOT_TYPES,
    find_option,
)
from photoshoot.core.errors import ValidationError
from photoshoot.core.models import (
    NO_PACK,
    ApparelItem,
    GenerationMode,
    ShotView,
    StagedAsset,
    TimeOfDay,
    User,
)
from photoshoot.engine.segments import to_data_url
from photoshoot.generators.integrations import build_gateway
from photoshoot.pipeline.manager import StudioOrchestrator
from photoshoot.utils.logger import setup_logging

logger = setup_logging(settings.log_level)

# Generations recorded per user id; reset on restart.
usage: Dict[str, int] = defaultdict(int)

ANONYMOUS = "anonymous"


def _record_usage(user_id: str, count: int) -> None:
    usage[user_id] += count
    logger.info(f"📈 Usage for {user_id}: {usage[user_id]} generation(s)")


# Single orchestrator instance
orchestrator = StudioOrchestrator(build_gateway())

app = FastAPI(
    title="Virtual Photoshoot API",
    description="Prompt compilation and generation orchestration for virtual photoshoots",
    version="1.0.0",
)


# Global Error Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error", "detail": str(exc)},
    )


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Downloaded video blobs
os.makedirs(settings.blob_dir, exist_ok=True)
app.mount("/videos", StaticFiles(directory=settings.blob_dir), name="videos")


def _lookup(catalog, option_id: str, label: str):
    option = find_option(catalog, option_id)
    if option is None:
        raise ValidationError(f"Unknown {label} '{option_id}'.")
    return option


def _enum(enum_type, value: str, label: str):
    try:
        return enum_type(value)
    except ValueError:
        raise ValidationError(f"Unknown {label} '{value}'.")


def _apply_update(request: StateUpdateRequest) -> None:
    """
    Translates a partial update into orchestrator setters.
    Everything is resolved before the first write so a bad id changes nothing.
    """
    data = request.model_dump(exclude_unset=True)
    state = orchestrator.state
    mode = _enum(GenerationMode, data["mode"], "mode") if "mode" in data else state.mode

    for key in ("ecommerce_pack", "product_ecommerce_pack"):
        catalog = ECOMMERCE_PACKS if key == "ecommerce_pack" else PRODUCT_ECOMMERCE_PACKS
        if key in data and data[key] != NO_PACK and data[key] not in catalog:
            raise ValidationError(f"Unknown e-commerce pack '{data[key]}'.")

    scene_changes = {}
    if "background_id" in data:
        scene_changes["background"] = _lookup(BACKGROUNDS, data["background_id"], "background")
    if "lighting_id" in data:
        scene_changes["lighting"] = _lookup(LIGHTING_PRESETS, data["lighting_id"], "lighting preset")
    if "time_of_day" in data:
        value = data["time_of_day"]
        scene_changes["time_of_day"] = _enum(TimeOfDay, value, "time of day") if value else None
    for key in ("scene_props", "environmental_effects"):
        if key in data:
            scene_changes[key] = data[key] or ""

    inputs = {}
    if "model_ids" in data:
        inputs["selected_models"] = tuple(_lookup(AI_MODELS, i, "model") for i in data["model_ids"] or ())
    if "apparel" in data:
        inputs["apparel"] = tuple(ApparelItem(**item) for item in data["apparel"] or ())
    if "staged_assets" in data:
        inputs["staged_assets"] = tuple(StagedAsset(**asset) for asset in data["staged_assets"] or ())
    if "shot_view" in data:
        inputs["shot_view"] = _enum(ShotView, data["shot_view"], "shot view")
    for key in (
        "uploaded_model_image",
        "product_image",
        "mockup_image",
        "design_image",
        "back_design_image",
        "reimagine_source_photo",
        "new_model_photo",
    ):
        if key in data:
            inputs[key] = data[key]
    if "prompted_model_description" in data:
        inputs["prompted_model_description"] = data["prompted_model_description"] or ""
    for key in ("ecommerce_pack", "product_ecommerce_pack"):
        if key in data:
            inputs[key] = data[key]

    reimagine = {k: data[k] or "" for k in ("new_model_description", "new_background_description") if k in data}
    if mode == GenerationMode.REIMAGINE and "negative_prompt" in data:
        reimagine["negative_prompt"] = data.pop("negative_prompt") or ""

    control_changes = {}
    if "shot_type_id" in data:
        control_changes["shot_type"] = _lookup(SHOT_TYPES, data["shot_type_id"], "shot type")
    if "expression_id" in data:
        control_changes["expression"] = _lookup(EXPRESSIONS, data["expression_id"], "expression")
    if "camera_angle_id" in data:
        angles = CAMERA_ANGLES_PRODUCT if mode == GenerationMode.PRODUCT else CAMERA_ANGLES
        control_changes["camera_angle"] = _lookup(angles, data["camera_angle_id"], "camera angle")
    for key in ("custom_prompt", "negative_prompt", "custom_animation_prompt"):
        if key in data:
            control_changes[key] = data[key] or ""
    for key in ("style_strength", "cinematic_look", "is_hyper_realism_enabled"):
        if data.get(key) is not None:
            control_changes[key] = data[key]

    if "aspect_ratio" in data:
        orchestrator.select_aspect_ratio(data["aspect_ratio"])
    if "mode" in data:
        orchestrator.set_mode(mode)
    if "number_of_images" in data and data["number_of_images"] is not None:
        orchestrator.set_number_of_images(data["number_of_images"])
    if "style_reference_image" in data:
        orchestrator.set_style_reference_image(data["style_reference_image"])
    if scene_changes:
        orchestrator.update_scene(**scene_changes)
    if inputs:
        orchestrator.update_inputs(**inputs)
    if reimagine:
        orchestrator.store.apply(lambda s: {"reimagine_controls": replace(s.reimagine_controls, **reimagine)})
    if control_changes:
        if mode == GenerationMode.PRODUCT:
            orchestrator.store.apply(lambda s: {"product_controls": replace(s.product_controls, **control_changes)})
        else:
            orchestrator.store.apply(lambda s: {"apparel_controls": replace(s.apparel_controls, **control_changes)})


def _ensure_idle() -> None:
    if orchestrator.state.is_generating:
        raise HTTPException(status_code=409, detail="A generation is already running.")


def _animation_for(animation_id: Optional[str]):
    if animation_id is None:
        return None
    catalog = PRODUCT_ANIMATION_STYLES if orchestrator.state.mode == GenerationMode.PRODUCT else ANIMATION_STYLES
    return _lookup(catalog, animation_id, "animation")


@app.post("/upload", dependencies=[Depends(verify_api_key)])
async def upload_image(file: UploadFile = File(...)):
    """
    Converts an uploaded image into the data URL every image field expects.
    """
    mime_type = file.content_type or ""
    if not mime_type.startswith("image/"):
        raise HTTPException(status_code=400, detail=f"Unsupported upload type '{mime_type}'")
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty upload")
    logger.info(f"📤 Received {file.filename} ({len(content)} bytes)")
    return {"filename": file.filename, "data_url": to_data_url(content, mime_type)}


@app.get("/state", response_model=StateResponse)
async def get_state(user_id: str = ANONYMOUS):
    """
    Current studio state. Public endpoint (read-only).
    """
    return StateResponse.from_state(orchestrator.state, usage=usage[user_id])


@app.patch("/state", response_model=StateResponse, dependencies=[Depends(verify_api_key)])
async def update_state(request: StateUpdateRequest):
    try:
        _apply_update(request)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return StateResponse.from_state(orchestrator.state)


@app.post("/generate", response_model=SubmissionResponse, dependencies=[Depends(verify_api_key)])
async def generate(request: GenerateRequest, background_tasks: BackgroundTasks):
    """
    Start a still-image pass (single batch or e-commerce pack) in the background.
    Poll GET /state for progress and results.
    """
    _ensure_idle()
    user_id = request.user_id or ANONYMOUS
    background_tasks.add_task(
        orchestrator.generate_asset,
        User(id=user_id, daily_generations_used=usage[user_id]),
        lambda n: _record_usage(user_id, n),
    )
    return SubmissionResponse(workflow="generate", status=WorkflowStatus.ACCEPTED)


@app.post("/pack", response_model=SubmissionResponse, dependencies=[Depends(verify_api_key)])
async def generate_pack(request: GenerateRequest, background_tasks: BackgroundTasks):
    """
    Re-pose the selected image through every shot of the active e-commerce pack.
    """
    _ensure_idle()
    user_id = request.user_id or ANONYMOUS
    background_tasks.add_task(orchestrator.generate_pack_from_reference, lambda n: _record_usage(user_id, n))
    return SubmissionResponse(workflow="pack", status=WorkflowStatus.ACCEPTED)


@app.post("/video", response_model=SubmissionResponse, dependencies=[Depends(verify_api_key)])
async def generate_video(request: VideoRequest, background_tasks: BackgroundTasks):
    _ensure_idle()
    try:
        animation = _animation_for(request.animation_id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    background_tasks.add_task(orchestrator.generate_video_from_image, animation)
    return SubmissionResponse(workflow="video", status=WorkflowStatus.ACCEPTED)


@app.post("/edit", response_model=SubmissionResponse, dependencies=[Depends(verify_api_key)])
async def apply_edit(request: EditRequest, background_tasks: BackgroundTasks):
    background_tasks.add_task(
        orchestrator.apply_generative_edit,
        request.mask,
        request.prompt,
        request.apparel_reference,
    )
    return SubmissionResponse(workflow="edit", status=WorkflowStatus.ACCEPTED)


@app.post("/background", response_model=SubmissionResponse, dependencies=[Depends(verify_api_key)])
async def generate_background(request: BackgroundRequest, background_tasks: BackgroundTasks):
    background_tasks.add_task(orchestrator.generate_ai_background, request.prompt)
    return SubmissionResponse(workflow="background", status=WorkflowStatus.ACCEPTED)


@app.post("/cancel", response_model=StateResponse, dependencies=[Depends(verify_api_key)])
async def cancel():
    orchestrator.cancel_current_process()
    return StateResponse.from_state(orchestrator.state)


@app.post("/images/{index}/select", response_model=StateResponse, dependencies=[Depends(verify_api_key)])
async def select_image(index: int):
    images = orchestrator.state.generated_images or ()
    if not 0 <= index < len(images):
        raise HTTPException(status_code=404, detail="Image not found")
    orchestrator.set_active_image_index(index)
    return StateResponse.from_state(orchestrator.state)


@app.post("/edit/start/{index}", response_model=StateResponse, dependencies=[Depends(verify_api_key)])
async def start_editing(index: int):
    orchestrator.start_editing(index)
    return StateResponse.from_state(orchestrator.state)


@app.post("/edit/cancel", response_model=StateResponse, dependencies=[Depends(verify_api_key)])
async def cancel_editing():
    orchestrator.cancel_editing()
    return StateResponse.from_state(orchestrator.state)


@app.post("/edit/revert", response_model=StateResponse, dependencies=[Depends(verify_api_key)])
async def revert_edit():
    orchestrator.revert_edit()
    return StateResponse.from_state(orchestrator.state)


@app.get("/api/health")
def health_check():
    state = orchestrator.state
    return {
        "status": "Photoshoot API is running",
        "backend": orchestrator.gateway.name,
        "is_generating": state.is_generating,
        "requests_last_window": len(orchestrator.rate_window),
    }
