"""
Titled text blocks shared by the compiler branches.

Every builder returns a finished block string ending in a newline; optional
lines are only emitted when their field is non-empty or non-default.
"""
import math
from typing import List, Optional

from photoshoot.core.catalogs import (
    DEFAULT_FABRIC_ID,
    DEFAULT_LIGHT_QUALITY_ID,
    DEFAULT_LIGHTING_DIRECTION_ID,
    NO_COLOR_GRADE_ID,
    TIME_OF_DAY_DESCRIPTIONS,
)
from photoshoot.core.models import (
    Animation,
    ApparelControls,
    Background,
    BackgroundType,
    CreativeControls,
    Scene,
)

PHOTOSHOOT_QUALITY = (
    "This is a professional photoshoot. The final output must be an ultra-high-quality, "
    "hyperrealistic, and tack-sharp photograph."
)
PRODUCT_QUALITY = (
    "This is a professional product photoshoot. The final output must be an "
    "ultra-high-quality, hyperrealistic photograph."
)

MODEL_REALISM_DETAIL = "skin pores, fabric weave, and ensure all anatomy is 100% accurate"
ON_MODEL_PRODUCT_REALISM_DETAIL = "skin pores, product textures, and ensure all anatomy is 100% accurate"
PRODUCT_REALISM_DETAIL = "product textures, material finishes, and ensure all reflections are realistic"


def whole(value: float) -> str:
    """Whole-number rendering, halves rounded up."""
    return str(int(math.floor(value + 0.5)))


def signed(value: float) -> str:
    return f"{value:+g}"


def title(number: Optional[int], heading: str, source: Optional[str] = None) -> str:
    prefix = f"{number}. " if number is not None else ""
    suffix = f" (Source: {source})" if source else ""
    return f"**{prefix}{heading}{suffix}**"


def join_block(lines: List[str]) -> str:
    return "\n".join(lines) + "\n"


# =========================
# SCENE & LIGHTING
# =========================

def background_phrase(background: Background, staged: bool = False) -> str:
    if background.is_custom_image:
        return "in the environment depicted in the FINAL image provided"
    if background.type == BackgroundType.IMAGE:
        return f"in a photorealistic {background.name}"
    surface = "on a clean surface " if staged else ""
    return f"{surface}against a simple studio background with a {background.name.lower()} color."


def lighting_phrase(
    scene: Scene,
    controls: CreativeControls,
    subjects: str,
    model_lighting_description: Optional[str] = None,
) -> str:
    """
    A time of day replaces the whole preset description (direction and
    quality included). The catchlight and cohesion sentences always follow.
    """
    if scene.time_of_day is not None:
        lighting = TIME_OF_DAY_DESCRIPTIONS[scene.time_of_day.value]
    else:
        if scene.lighting.is_dynamic and model_lighting_description:
            lighting = (
                "Match the lighting style from the original model's photo, which is described as: "
                f'"{model_lighting_description}".'
            )
        else:
            lighting = f"Apply {scene.lighting.description}."
        if controls.lighting_direction.id != DEFAULT_LIGHTING_DIRECTION_ID:
            lighting += f" The main light source is positioned {controls.lighting_direction.description}."
        if controls.light_quality.id != DEFAULT_LIGHT_QUALITY_ID:
            lighting += f" The light quality is {controls.light_quality.description}."
    lighting += f" The final image should feature {controls.catchlight_style.description}."
    lighting += (
        f" The {subjects} must all be lit from the same light source and direction "
        "to create a cohesive and realistic photograph."
    )
    return lighting


def scene_block(
    number: int,
    scene: Scene,
    lighting: str,
    staged: bool = False,
    extra_lines: Optional[List[str]] = None,
    props: Optional[str] = None,
    lighting_notes: Optional[List[str]] = None,
) -> str:
    heading = "SCENE & ENVIRONMENT" if staged else "SCENE & LIGHTING"
    lines = [title(number, heading, "User Settings")]
    lines.extend(extra_lines or [])
    lines.append(f"- **BACKGROUND:** The scene is set {background_phrase(scene.background, staged)}.")
    lines.append(f"- **LIGHTING (CRITICAL):** {lighting}")
    lines.extend(lighting_notes or [])
    props_text = (scene.scene_props if props is None else props).strip()
    if props_text:
        lines.append(f"- **PROPS:** The scene must include: {props_text}.")
    if scene.environmental_effects.strip():
        lines.append(
            f"- **EFFECTS:** The scene should have these atmospheric effects: {scene.environmental_effects.strip()}."
        )
    return join_block(lines)


# =========================
# POSE, CAMERA, STYLE
# =========================

def pose_block(number: int, controls: CreativeControls, heading: str = "POSE & STYLING", extra_lines=None) -> str:
    lines = [
        title(number, heading, "User Settings"),
        f"- **POSE (Body Language):** The model must be positioned exactly as described: {controls.shot_type.description}.",
        f"- **EXPRESSION:** The model's facial expression must be: {controls.expression.description}.",
    ]
    lines.extend(extra_lines or [])
    if isinstance(controls, ApparelControls):
        if controls.hair_style.strip():
            lines.append(f'- **HAIR:** The model\'s hair is styled as: "{controls.hair_style.strip()}".')
        if controls.makeup_style.strip():
            lines.append(f'- **MAKEUP:** The model\'s makeup is a "{controls.makeup_style.strip()}" look.')
        if controls.garment_styling.strip():
            lines.append(
                f"- **GARMENT STYLING:** The clothing should be styled as follows: {controls.garment_styling.strip()}."
            )
        if controls.fabric.id != DEFAULT_FABRIC_ID:
            lines.append(
                f"- **FABRIC TEXTURE:** The primary garment(s) should have the texture of {controls.fabric.description}"
            )
    return join_block(lines)


def camera_block(number: int, controls: CreativeControls) -> str:
    return join_block([
        title(number, "CAMERA & LENS", "User Settings"),
        f"- **CAMERA ANGLE:** {controls.camera_angle.description}.",
        f"- **APERTURE:** {controls.aperture.description}.",
        f"- **FOCAL LENGTH:** {controls.focal_length.description}.",
    ])


def style_block(
    number: int,
    aspect_ratio: str,
    controls: CreativeControls,
    style_description: Optional[str],
    quality: str = PHOTOSHOOT_QUALITY,
    realism_detail: str = MODEL_REALISM_DETAIL,
    include_strength: bool = True,
    film_grain: bool = False,
) -> str:
    lines = [
        title(number, "FINAL IMAGE STYLE & QUALITY", "User Settings"),
        f"- **ASPECT RATIO (CRITICAL):** The final image output MUST have an aspect ratio of exactly {aspect_ratio}.",
        f"- **QUALITY:** {quality}",
    ]
    if style_description:
        style = f'- **STYLISTIC GOAL:** The final image must match the artistic style described as: "{style_description}".'
        if include_strength:
            style += f" Apply this style with an influence of approximately {controls.style_strength}%."
        lines.append(style)
    if controls.color_grade.id != NO_COLOR_GRADE_ID:
        lines.append(
            f"- **COLOR GRADE:** Apply a professional color grade with the following style: {controls.color_grade.description}"
        )
    if controls.cinematic_look:
        grain = " with fine, realistic film grain" if film_grain else ""
        lines.append(
            "**CINEMATIC LOOK (ENABLED):** The image must have a cinematic quality, "
            f"emulating a still from a high-budget film{grain}."
        )
    if controls.is_hyper_realism_enabled:
        lines.append(f"**HYPER-REALISM MODE (ENABLED):** Pay extreme attention to micro-details like {realism_detail}.")
    return join_block(lines)


def animation_block(number: int, animation: Animation, subject: str) -> str:
    if subject == "product":
        action = (
            f"The product should be animated as follows: {animation.description}. Common product animations "
            "include a slow 360-degree turntable spin or a gentle light sweep across the surface. The animation "
            "should be a seamless, looping 3-second video clip. The background should remain static."
        )
    elif subject == "product-model":
        action = (
            "The model should perform the following subtle animation while interacting with the product: "
            f"{animation.description}. The animation should be a seamless, looping 3-second video clip. "
            "The background should remain mostly static."
        )
    else:
        action = (
            f"The model should perform the following subtle animation: {animation.description}. The animation "
            "should be a seamless, looping 3-second video clip. The background should remain mostly static."
        )
    return join_block([title(number, "ANIMATION", "User Settings"), f"- **ACTION:** {action}"])


def model_identity_block(
    number: int,
    uploaded_model_image: Optional[str],
    model_description: Optional[str],
) -> str:
    """Uploaded photo wins over a description; the caller guarantees one exists."""
    if uploaded_model_image:
        return join_block([
            title(number, "MODEL IDENTITY", "First Image"),
            "- **FACE & BODY (CRITICAL):** Recreate the person from the first image with perfect accuracy.",
            "- **IGNORE:** Ignore any clothing, background, or pose in the reference image.",
        ])
    return join_block([
        title(number, "MODEL IDENTITY", "Text Description"),
        f"- **MISSION:** Generate a model that perfectly and exclusively matches this description: {model_description}.",
    ])
