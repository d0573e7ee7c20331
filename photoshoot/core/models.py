from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Tuple

CUSTOM_BACKGROUND_ID = "custom"
CUSTOM_INTERACTION_ID = "custom"
PRODUCT_ASSET_ID = "product"
NO_PACK = "none"


class GenerationMode(Enum):
    APPAREL = "apparel"
    PRODUCT = "product"
    DESIGN = "design"
    REIMAGINE = "reimagine"


class MediaKind(Enum):
    IMAGE = "image"
    VIDEO = "video"


class TimeOfDay(Enum):
    SUNRISE = "Sunrise"
    MIDDAY = "Midday"
    GOLDEN_HOUR = "Golden Hour"
    TWILIGHT = "Twilight"
    NIGHT = "Night"


class BackgroundType(Enum):
    COLOR = "color"
    IMAGE = "image"


class ShotView(Enum):
    FRONT = "front"
    BACK = "back"


@dataclass(frozen=True)
class OptionRecord:
    """A named catalog entry. `description` is the phrase spliced into prompts."""
    id: str
    name: str
    description: str = ""


@dataclass(frozen=True)
class LightingPreset:
    id: str
    name: str
    description: str
    is_dynamic: bool = False


@dataclass(frozen=True)
class Background:
    id: str
    name: str
    type: BackgroundType
    value: str  # hex color, catalog image key, or a data URL for uploads
    category: str = "Studio"

    @property
    def is_custom_image(self) -> bool:
        return self.id == CUSTOM_BACKGROUND_ID and self.type == BackgroundType.IMAGE


@dataclass(frozen=True)
class Scene:
    background: Background
    lighting: LightingPreset
    time_of_day: Optional[TimeOfDay] = None
    scene_props: str = ""
    environmental_effects: str = ""


@dataclass(frozen=True)
class AIModel:
    id: str
    name: str
    description: str


@dataclass(frozen=True)
class ApparelItem:
    image: str
    description: str = ""
    back_view: Optional[str] = None
    detail_view: Optional[str] = None


@dataclass(frozen=True)
class StagedAsset:
    id: str
    image: str
    x: float
    y: float
    scale: float
    z: int


@dataclass(frozen=True)
class Animation:
    id: str
    name: str
    description: str


@dataclass(frozen=True)
class PlacementControls:
    placement: str = "center_chest"
    scale: float = 50.0
    rotation: float = 0.0
    offset_x: float = 0.0
    offset_y: float = 0.0


@dataclass(frozen=True)
class DesignPlacementControls:
    apparel_type: str = "a classic crew-neck t-shirt"
    shirt_color: str = "#FFFFFF"
    fabric_style: str = "cotton"
    mockup_style: str = "flat_lay"
    lighting_style: str = "softbox"
    camera_angle: str = "front"
    print_style: str = "screen"
    fabric_blend: int = 80
    wrinkle_conform: bool = True
    front: PlacementControls = field(default_factory=PlacementControls)
    back: PlacementControls = field(default_factory=lambda: PlacementControls(placement="upper_back"))


# =========================
# CREATIVE CONTROLS
# =========================

@dataclass(frozen=True, kw_only=True)
class CreativeControls:
    shot_type: OptionRecord
    expression: OptionRecord
    camera_angle: OptionRecord
    aperture: OptionRecord
    focal_length: OptionRecord
    color_grade: OptionRecord
    lighting_direction: OptionRecord
    light_quality: OptionRecord
    catchlight_style: OptionRecord
    custom_prompt: str = ""
    negative_prompt: str = ""
    custom_animation_prompt: str = ""
    is_hyper_realism_enabled: bool = False
    cinematic_look: bool = False
    style_strength: int = 75


@dataclass(frozen=True, kw_only=True)
class ApparelControls(CreativeControls):
    fabric: OptionRecord
    hair_style: str = ""
    makeup_style: str = ""
    garment_styling: str = ""


@dataclass(frozen=True, kw_only=True)
class ProductControls(CreativeControls):
    model_interaction_type: OptionRecord
    surface: OptionRecord
    product_material: OptionRecord
    custom_model_interaction: str = ""
    product_shadow: str = "Soft"
    custom_props: str = ""


@dataclass(frozen=True)
class ReimagineControls:
    new_model_description: str = ""
    new_background_description: str = ""
    negative_prompt: str = ""


# =========================
# COMPILER INPUT (one variant per mode)
# =========================

@dataclass(frozen=True, kw_only=True)
class PromptParams:
    mode: ClassVar[GenerationMode]
    aspect_ratio: str
    style_description: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class ApparelParams(PromptParams):
    mode: ClassVar[GenerationMode] = GenerationMode.APPAREL
    scene: Scene
    controls: ApparelControls
    apparel: Tuple[ApparelItem, ...] = ()
    uploaded_model_image: Optional[str] = None
    selected_models: Tuple[AIModel, ...] = ()
    prompted_model_description: str = ""
    model_lighting_description: Optional[str] = None
    media: MediaKind = MediaKind.IMAGE
    animation: Optional[Animation] = None
    base_look_image: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class ProductParams(PromptParams):
    mode: ClassVar[GenerationMode] = GenerationMode.PRODUCT
    scene: Scene
    controls: ProductControls
    product_image: Optional[str] = None
    staged_assets: Tuple[StagedAsset, ...] = ()
    uploaded_model_image: Optional[str] = None
    selected_models: Tuple[AIModel, ...] = ()
    prompted_model_description: str = ""
    media: MediaKind = MediaKind.IMAGE
    animation: Optional[Animation] = None
    model_reference_image: Optional[str] = None

    @property
    def is_model_selected(self) -> bool:
        return bool(
            self.uploaded_model_image
            or self.selected_models
            or self.prompted_model_description.strip()
        )


@dataclass(frozen=True, kw_only=True)
class DesignParams(PromptParams):
    mode: ClassVar[GenerationMode] = GenerationMode.DESIGN
    scene: Scene
    placement: DesignPlacementControls
    mockup_image: Optional[str] = None
    design_image: Optional[str] = None
    back_design_image: Optional[str] = None
    shot_view: ShotView = ShotView.FRONT


@dataclass(frozen=True, kw_only=True)
class ReimagineParams(PromptParams):
    mode: ClassVar[GenerationMode] = GenerationMode.REIMAGINE
    source_photo: Optional[str]
    controls: ReimagineControls = field(default_factory=ReimagineControls)
    new_model_photo: Optional[str] = None


# =========================
# PACKS, JOBS, SESSIONS
# =========================

@dataclass(frozen=True)
class PackShot:
    """Partial override layered onto the current controls for one generation."""
    shot_id: Optional[str] = None
    expression_id: Optional[str] = None
    camera_angle_id: Optional[str] = None
    focal_length_id: Optional[str] = None


@dataclass(frozen=True)
class Pack:
    id: str
    name: str
    shots: Tuple[PackShot, ...]


@dataclass(frozen=True)
class OperationHandle:
    """Backend token for an in-flight video job."""
    name: str
    done: bool = False
    uri: Optional[str] = None
    error: Optional[str] = None
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class EditSession:
    """Holds the pre-edit image by value so cancel/revert restore it exactly."""
    original: str
    index: int


@dataclass(frozen=True)
class User:
    id: str
    plan: str = "free"
    daily_generations_used: int = 0
