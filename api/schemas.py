from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from photoshoot.pipeline.state import StudioState


class WorkflowStatus(str, Enum):
    ACCEPTED = "accepted"
    DONE = "done"


class ApparelItemIn(BaseModel):
    image: str
    description: str = ""
    back_view: Optional[str] = None
    detail_view: Optional[str] = None


class StagedAssetIn(BaseModel):
    id: str
    image: str
    x: float
    y: float
    scale: float
    z: int = 0


class StateUpdateRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    mode: Optional[str] = None
    aspect_ratio: Optional[str] = None
    number_of_images: Optional[int] = None
    ecommerce_pack: Optional[str] = None
    product_ecommerce_pack: Optional[str] = None

    # Scene
    background_id: Optional[str] = None
    lighting_id: Optional[str] = None
    time_of_day: Optional[str] = None
    scene_props: Optional[str] = None
    environmental_effects: Optional[str] = None

    # Model
    uploaded_model_image: Optional[str] = None
    model_ids: Optional[List[str]] = None
    prompted_model_description: Optional[str] = None

    # Subjects
    apparel: Optional[List[ApparelItemIn]] = None
    product_image: Optional[str] = None
    staged_assets: Optional[List[StagedAssetIn]] = None
    mockup_image: Optional[str] = None
    design_image: Optional[str] = None
    back_design_image: Optional[str] = None
    shot_view: Optional[str] = None
    reimagine_source_photo: Optional[str] = None
    new_model_photo: Optional[str] = None
    new_model_description: Optional[str] = None
    new_background_description: Optional[str] = None
    style_reference_image: Optional[str] = None

    # Controls of the active mode (apparel or product)
    shot_type_id: Optional[str] = None
    expression_id: Optional[str] = None
    camera_angle_id: Optional[str] = None
    custom_prompt: Optional[str] = None
    negative_prompt: Optional[str] = None
    custom_animation_prompt: Optional[str] = None
    style_strength: Optional[int] = Field(default=None, ge=0, le=100)
    cinematic_look: Optional[bool] = None
    is_hyper_realism_enabled: Optional[bool] = None


class GenerateRequest(BaseModel):
    user_id: Optional[str] = None


class VideoRequest(BaseModel):
    animation_id: Optional[str] = None


class EditRequest(BaseModel):
    mask: str
    prompt: str
    apparel_reference: Optional[str] = None


class BackgroundRequest(BaseModel):
    prompt: str


class SubmissionResponse(BaseModel):
    workflow: str
    status: WorkflowStatus


class StateResponse(BaseModel):
    mode: str
    aspect_ratio: str
    number_of_images: int
    ecommerce_pack: str
    product_ecommerce_pack: str
    background_id: str
    background_name: str
    generated_images: Optional[List[Optional[str]]] = None
    active_image_index: Optional[int] = None
    generated_video_url: Optional[str] = None
    video_source_image: Optional[str] = None
    is_generating: bool
    is_applying_edit: bool
    is_generating_background: bool
    loading_message: str
    error: Optional[str] = None
    generation_count: int
    is_editing: bool
    edit_index: Optional[int] = None
    usage: int = 0

    @classmethod
    def from_state(cls, state: StudioState, usage: int = 0) -> "StateResponse":
        return cls(
            mode=state.mode.value,
            aspect_ratio=state.aspect_ratio,
            number_of_images=state.number_of_images,
            ecommerce_pack=state.ecommerce_pack,
            product_ecommerce_pack=state.product_ecommerce_pack,
            background_id=state.scene.background.id,
            background_name=state.scene.background.name,
            generated_images=list(state.generated_images) if state.generated_images is not None else None,
            active_image_index=state.active_image_index,
            generated_video_url=state.generated_video_url,
            video_source_image=state.video_source_image,
            is_generating=state.is_generating,
            is_applying_edit=state.is_applying_edit,
            is_generating_background=state.is_generating_background,
            loading_message=state.loading_message,
            error=state.error,
            generation_count=state.generation_count,
            is_editing=state.is_editing,
            edit_index=state.edit_session.index if state.edit_session else None,
            usage=usage,
        )
