from typing import List

from photoshoot.core.catalogs import (
    DESIGN_CAMERA_ANGLE_OPTIONS,
    DESIGN_LIGHTING_STYLE_OPTIONS,
    DESIGN_PLACEMENT_OPTIONS,
    FABRIC_STYLE_OPTIONS,
    MOCKUP_STYLE_OPTIONS,
    PRINT_STYLE_OPTIONS,
    find_option,
)
from photoshoot.core.errors import ValidationError
from photoshoot.core.models import BackgroundType, DesignParams, ShotView
from photoshoot.engine.blocks import signed
from photoshoot.engine.segments import Segment, TextSegment, parse_data_url


def _name(catalog, option_id: str, fallback: str) -> str:
    option = find_option(catalog, option_id)
    return option.name if option else fallback


def size_descriptor(scale: float) -> str:
    if scale < 20:
        return "very small, like a tag-sized logo (approx 1-2 inches wide)"
    if scale < 40:
        return "small, like a standard chest logo (approx. 3-4 inches wide)"
    if scale < 70:
        return "medium, as a standard graphic for the front of a t-shirt (approx. 8-10 inches wide)"
    if scale < 100:
        return "large, covering a significant portion of the chest area (approx. 11-12 inches wide)"
    return "extra-large, as an oversized or full-front print covering most of the printable area of the garment"


def compile_design(params: DesignParams) -> List[Segment]:
    """
    Mockup composition: the blank garment is the first image, the active
    design (back print on a back view, when one exists) the second.
    """
    if not params.mockup_image:
        raise ValidationError("A mockup image is required for design generation.")
    if not params.design_image:
        raise ValidationError("A design image is required for design generation.")

    controls = params.placement
    back = params.shot_view == ShotView.BACK
    active_design = params.back_design_image if back and params.back_design_image else params.design_image
    placement = controls.back if back else controls.front

    fabric_style = _name(FABRIC_STYLE_OPTIONS, controls.fabric_style, "standard cotton")
    mockup_style = _name(MOCKUP_STYLE_OPTIONS, controls.mockup_style, "hanging")
    lighting_style = _name(DESIGN_LIGHTING_STYLE_OPTIONS, controls.lighting_style, "studio softbox lighting")
    print_style = _name(PRINT_STYLE_OPTIONS, controls.print_style, "screen printed")
    placement_name = _name(DESIGN_PLACEMENT_OPTIONS, placement.placement, "center")

    if controls.camera_angle == "detail":
        camera = (
            "**CAMERA ANGLE (CRITICAL DETAIL SHOT):** The photograph is an extreme close-up, tightly framed "
            "*only* on the design area. The design should fill most of the frame. Show the intricate details "
            f'of the "{print_style}" print style on the fabric texture.'
        )
    else:
        camera = (
            "The photograph is shot from a "
            f"{_name(DESIGN_CAMERA_ANGLE_OPTIONS, controls.camera_angle, 'eye-level front view')}."
        )
        if back:
            camera += " This is a view of the BACK of the garment."

    mockup_lines = [
        "**MOCKUP & MATERIAL (Based on the FIRST reference image):**",
        f'- **Apparel Style (CRITICAL):** The final image must represent a garment that perfectly matches this '
        f'detailed description: "{controls.apparel_type}". This description defines the complete look, including '
        "the cut, style, and any color patterns (like color blocking).",
        f"- **Base Color:** The garment's primary color should be this hex code: {controls.shirt_color}. However, "
        "the text description above is the priority and overrides this color if specific colors or patterns are mentioned.",
        f"- **Fabric Type:** The garment must look like it's made of {fabric_style}. Pay attention to the texture and weight.",
        f"- **Presentation Style:** The garment should be presented in a professional {mockup_style} style.",
    ]
    if back:
        mockup_lines.append(
            "- **VIEWPOINT (MANDATORY):** You are generating a photograph of the **BACK** of the garment. The "
            "provided MOCKUP image is a reference for the garment's general style, color, and material ONLY. You "
            "must creatively render the back view of this garment based on the front view provided."
        )
    else:
        mockup_lines.append("- The overall shape, fit, and wrinkles should be inspired by the provided MOCKUP image.")

    design_lines = ["**DESIGN & PLACEMENT (Based on the SECOND reference image):**"]
    if back:
        design_lines.append(
            "- **Design Application (CRITICAL BACK VIEW):** The artwork provided in the DESIGN image is the "
            "**BACK PRINT**. You MUST place this design on the **BACK** of the garment you are generating. "
            "Do not place this design on the front."
        )
    else:
        design_lines.append(
            "- **Design Application (FRONT VIEW):** Take the artwork from the DESIGN image and place it on the "
            "**FRONT** of the garment."
        )
    conform = "" if controls.wrinkle_conform else "NOT "
    design_lines.extend([
        f'- **Print Style:** The design should look like it was applied using a "{print_style}" method. It needs '
        "to have the correct texture and finish (e.g., flat for screen print, textured for embroidery).",
        f"- **Placement (CRITICAL):** The design must be placed on the **{params.shot_view.value}** of the garment, "
        f"centered on the **{placement_name}** area.",
        f"- **Size (CRITICAL):** The final printed size of the design on the garment must be "
        f"**{size_descriptor(placement.scale)}**. The provided DESIGN image should be scaled appropriately to achieve this size.",
        "- **Fine-Tuning Adjustments (Apply AFTER placement and sizing):**",
        f"    - **Rotation:** After placing and sizing, rotate the design by exactly {signed(placement.rotation)} degrees.",
        f"    - **Offset:** After rotating, nudge the design horizontally by {signed(placement.offset_x)}% of the "
        f"garment's width and vertically by {signed(placement.offset_y)}% of the garment's height. (A negative "
        "horizontal offset moves it left, a negative vertical offset moves it up).",
        f"- **Realism:** The design must blend realistically with the fabric. It should have a "
        f"{controls.fabric_blend}% blend with the underlying fabric texture. It must {conform}conform to the "
        "fabric's wrinkles, folds, lighting, and shadows.",
    ])

    background = params.scene.background
    if background.type == BackgroundType.IMAGE:
        background_text = (
            f"The garment is photographed within a realistic {background.name.lower()} environment. "
            "**CRITICAL PHOTOGRAPHY STYLE:** The background MUST be artistically blurred (bokeh), creating a "
            "shallow depth-of-field effect. The mockup itself must be the only sharp object in focus."
        )
    else:
        background_text = (
            f"The garment should be set against a clean, simple {background.name.lower()} studio background. "
            "The background color/gradient should be subtle and complement the t-shirt."
        )

    style_lines = [
        "**FINAL IMAGE STYLE & QUALITY:**",
        f"- **Aspect Ratio (CRITICAL):** The final image output MUST have an aspect ratio of exactly {params.aspect_ratio}.",
        "- **Quality:** The final output must be an ultra-high-quality, hyperrealistic, and tack-sharp photograph, "
        "indistinguishable from a real product photo shot for a high-end e-commerce brand.",
    ]
    if params.style_description:
        style_lines.append(
            f'- **Stylistic Goal:** The final image must match the artistic style described as: "{params.style_description}".'
        )

    text = "\n\n".join([
        "**PROFESSIONAL MOCKUP GENERATION**\n"
        "**PRIMARY GOAL:** You are provided with two reference images: a MOCKUP of a blank garment, and a DESIGN "
        "to be placed on it. Your critical mission is to generate a new, ultra-photorealistic product photograph "
        "of the garment with the design applied, based on the following detailed instructions.",
        "\n".join(mockup_lines),
        "\n".join(design_lines),
        "\n".join([
            "**PHOTOGRAPHY & SCENE:**",
            f"- **Lighting:** The scene must be lit with {lighting_style}.",
            f"- **Camera Angle:** {camera}",
            f"- **Background:** {background_text}",
        ]),
        "\n".join(style_lines),
    ]) + "\n"

    return [TextSegment(text), parse_data_url(params.mockup_image), parse_data_url(active_design)]
