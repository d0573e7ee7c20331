"""
Prompt compiler.

Maps one mode-specific parameter record to the ordered list of segments the
generative backend consumes. Pure and deterministic: the same params always
produce identical segments, and nothing here performs I/O.

Branch precedence (first match wins):
    1. Re-imagine
    2. Re-pose from a reference image (apparel base look / product model reference)
    3. Design mockup
    4. Free-text custom prompt
    5. Structured apparel / product directive

Image segments follow the order in which the text refers to them
("first image", "second image", ... "FINAL image"), so the order is part of
the contract with the backend.
"""
import logging
from typing import List, Optional, Union

from photoshoot.core.errors import ValidationError
from photoshoot.core.models import (
    CUSTOM_INTERACTION_ID,
    PRODUCT_ASSET_ID,
    ApparelParams,
    DesignParams,
    MediaKind,
    ProductControls,
    ProductParams,
    ReimagineParams,
    Scene,
)
from photoshoot.engine import blocks
from photoshoot.engine.design import compile_design
from photoshoot.engine.segments import ImageSegment, Segment, TextSegment, parse_data_url

logger = logging.getLogger("PhotoshootEngine")

CompilerParams = Union[ApparelParams, ProductParams, DesignParams, ReimagineParams]

APPAREL_SUBJECTS = "model, apparel, and background"
ON_MODEL_PRODUCT_SUBJECTS = "model, product, and background"
STAGED_PRODUCT_SUBJECTS = "product and background"


class PromptCompiler:
    def compile(self, params: CompilerParams) -> List[Segment]:
        if isinstance(params, ReimagineParams):
            return self._reimagine(params)
        if isinstance(params, ApparelParams) and params.base_look_image:
            return self._apparel_repose(params)
        if isinstance(params, ProductParams) and params.model_reference_image:
            return self._product_repose(params)
        if isinstance(params, DesignParams):
            return compile_design(params)
        if isinstance(params, (ApparelParams, ProductParams)):
            if params.controls.custom_prompt.strip():
                return self._custom_prompt(params)
            if isinstance(params, ApparelParams):
                return self._apparel(params)
            if params.is_model_selected:
                return self._product_on_model(params)
            return self._product_staged(params)
        raise TypeError(f"Unsupported prompt parameters: {type(params).__name__}")

    # =========================
    # HELPERS
    # =========================

    @staticmethod
    def _background_image(scene: Scene) -> List[ImageSegment]:
        if scene.background.is_custom_image:
            return [parse_data_url(scene.background.value)]
        return []

    @staticmethod
    def _interaction(controls: ProductControls, fallback: str) -> str:
        if controls.model_interaction_type.id == CUSTOM_INTERACTION_ID:
            return controls.custom_model_interaction.strip() or fallback
        return controls.model_interaction_type.description or "interacting with the product."

    @staticmethod
    def _model_description(params: Union[ApparelParams, ProductParams]) -> Optional[str]:
        if params.selected_models:
            return params.selected_models[0].description
        if params.prompted_model_description.strip():
            return params.prompted_model_description
        return None

    @staticmethod
    def _wants_animation(params: Union[ApparelParams, ProductParams]) -> bool:
        return params.media == MediaKind.VIDEO and params.animation is not None

    @staticmethod
    def _assemble(header: str, sections: List[str]) -> str:
        return header + "\n" + "\n".join(sections)

    # =========================
    # RE-IMAGINE
    # =========================

    def _reimagine(self, params: ReimagineParams) -> List[Segment]:
        controls = params.controls
        new_model = controls.new_model_description.strip()
        new_background = controls.new_background_description.strip()

        if not params.new_model_photo and not new_model and not new_background:
            raise ValidationError("Please describe or upload a new model, or describe a new background.")
        if not params.source_photo:
            raise ValidationError("A source photo is required to re-imagine.")

        images = [parse_data_url(params.source_photo)]
        analysis = [
            blocks.title(1, "ASSET ANALYSIS (CRITICAL)"),
            "- **FIRST IMAGE (SOURCE PHOTO):** This is the source of truth for the **OUTFIT** and **POSE**.",
        ]
        if params.new_model_photo:
            images.append(parse_data_url(params.new_model_photo))
            analysis.append(
                "- **SECOND IMAGE (NEW MODEL REFERENCE):** This is the source of truth for the new person's "
                "**FACE and IDENTITY**."
            )

        edits = [blocks.title(2, "EDITING INSTRUCTIONS")]
        if params.new_model_photo:
            edits.append(
                "- **MODEL SWAP BY PHOTO (CRITICAL):** Replace the person in the SOURCE PHOTO with the person from "
                "the NEW MODEL REFERENCE. You must transfer the face and identity from the NEW MODEL REFERENCE with "
                "perfect accuracy. The new person MUST be in the exact same pose and be wearing the exact same "
                "outfit as the person in the SOURCE PHOTO."
            )
            if new_model:
                edits.append(
                    "- **MODEL STYLING (GUIDANCE):** After swapping the model, apply this additional styling "
                    f'guidance: "{new_model}".'
                )
        elif new_model:
            edits.append(
                "- **MODEL SWAP BY DESCRIPTION (CRITICAL):** Replace the person in the source image with a new "
                f'person who perfectly matches this description: "{new_model}". The new person MUST be in the exact '
                "same pose and be wearing the exact same outfit as the person in the original image."
            )
        else:
            edits.append("- **MODEL PRESERVATION:** The person from the source image should be preserved with 100% accuracy.")

        if new_background:
            edits.append(
                "- **BACKGROUND SWAP (CRITICAL):** Replace the background of the source image with a new, "
                f'photorealistic scene that perfectly matches this description: "{new_background}". The person, '
                "their pose, and their outfit must be seamlessly integrated into this new background with realistic "
                "lighting and shadows."
            )
        else:
            edits.append("- **BACKGROUND PRESERVATION:** The background from the source image should be preserved.")

        style = [
            blocks.title(3, "FINAL IMAGE STYLE & QUALITY"),
            f"- **ASPECT RATIO (CRITICAL):** The final image output MUST have an aspect ratio of exactly {params.aspect_ratio}.",
            f"- **QUALITY:** {blocks.PHOTOSHOOT_QUALITY}",
        ]
        if params.style_description:
            style.append(
                f'- **STYLISTIC GOAL:** The final image must match the artistic style described as: "{params.style_description}".'
            )

        header = (
            "**PHOTO RE-IMAGINE DIRECTIVE**\n\n"
            "**PRIMARY GOAL:** You are an expert photo editor. You are provided with a source image and other "
            "assets. Your mission is to generate a new, photorealistic image by editing the source image according "
            "to the instructions below.\n\n"
            "**NON-NEGOTIABLE CORE RULE:** You MUST preserve the **exact outfit** (all clothing items, colors, and "
            "styles) and the **exact pose** of the person from the source image. This is the highest priority.\n\n---"
        )
        text = self._assemble(header, [
            blocks.join_block(analysis) + "---",
            blocks.join_block(edits) + "---",
            blocks.join_block(style),
        ])
        return [TextSegment(text), *images]

    # =========================
    # RE-POSE
    # =========================

    def _apparel_repose(self, params: ApparelParams) -> List[Segment]:
        controls = params.controls
        images: List[Segment] = [parse_data_url(params.base_look_image)]
        images.extend(self._background_image(params.scene))

        header = (
            "**APPAREL RE-POSE DIRECTIVE**\n\n"
            "**PRIMARY GOAL:** You are provided with a reference image of a model wearing a complete outfit. Your "
            "critical mission is to generate a new photograph of the *same model* wearing the *exact same outfit*, "
            "but with a new pose and in a new scene as described below.\n\n"
            "**NON-NEGOTIABLE RULES:**\n"
            "1.  **IDENTITY & OUTFIT PRESERVATION:** Replicate the model's identity (face, body, hair) and the entire "
            "outfit (all clothing, colors, textures) from the reference image with 100% accuracy. Do NOT change the clothing.\n"
            "2.  **SETTINGS ARE LAW:** You MUST follow the new POSE, SCENE, and CAMERA instructions below. These "
            "settings override the pose and scene from the reference image.\n\n---"
        )
        sections = [
            blocks.join_block([
                blocks.title(1, "MODEL & OUTFIT", "First Image"),
                "- **MISSION:** Use the provided image as the definitive source for the model's appearance and "
                "their complete wardrobe.",
            ]) + "---",
            blocks.pose_block(2, controls),
            blocks.scene_block(3, params.scene, blocks.lighting_phrase(params.scene, controls, APPAREL_SUBJECTS)),
            blocks.camera_block(4, controls),
            blocks.style_block(5, params.aspect_ratio, controls, params.style_description, film_grain=True),
        ]
        return [TextSegment(self._assemble(header, sections)), *images]

    def _product_repose(self, params: ProductParams) -> List[Segment]:
        controls = params.controls
        images: List[Segment] = [parse_data_url(params.model_reference_image)]
        images.extend(self._background_image(params.scene))
        interaction = self._interaction(controls, "holding the product towards the camera.")

        header = (
            "**ON-MODEL PRODUCT RE-POSE DIRECTIVE**\n\n"
            "**PRIMARY GOAL:** You are provided with a reference image of a model with a product. Your critical "
            "mission is to generate a new photograph of the *same model* with the *exact same product*, but with a "
            "new pose and in a new scene as described below.\n\n"
            "**NON-NEGOTIABLE RULES:**\n"
            "1.  **IDENTITY & PRODUCT PRESERVATION:** Replicate the model's identity (face, body, hair) and the "
            "product (including how it's held/worn) from the reference image with 100% accuracy. Do NOT change the product.\n"
            "2.  **SETTINGS ARE LAW:** You MUST follow the new POSE, SCENE, and CAMERA instructions below. These "
            "settings override the pose and scene from the reference image.\n\n---"
        )
        sections = [
            blocks.join_block([
                blocks.title(1, "MODEL & PRODUCT", "First Image"),
                "- **MISSION:** Use the provided image as the definitive source for the model's appearance and the "
                "product they are holding/wearing.",
            ]) + "---",
            blocks.pose_block(2, controls, heading="POSE & INTERACTION", extra_lines=[
                "- **PRODUCT INTERACTION:** During the new pose, the model's interaction with the product should be "
                f"consistent with this description: {interaction}.",
            ]),
            blocks.scene_block(3, params.scene, blocks.lighting_phrase(params.scene, controls, ON_MODEL_PRODUCT_SUBJECTS)),
            blocks.camera_block(4, controls),
            blocks.style_block(
                5, params.aspect_ratio, controls, params.style_description,
                quality=blocks.PRODUCT_QUALITY,
                realism_detail=blocks.ON_MODEL_PRODUCT_REALISM_DETAIL,
                include_strength=False,
            ),
        ]
        return [TextSegment(self._assemble(header, sections)), *images]

    # =========================
    # CUSTOM PROMPT
    # =========================

    def _custom_prompt(self, params: Union[ApparelParams, ProductParams]) -> List[Segment]:
        text = (
            "**PRIMARY GOAL:** You will receive a text prompt and potentially multiple images (model, product, "
            "apparel, background). Your critical mission is to follow the text prompt to create a photorealistic "
            "image, using the provided images as assets.\n\n"
        )
        if params.selected_models:
            text += (
                "**MODEL CONTEXT:** The person in the final image must be generated to perfectly match this "
                f'description: "{params.selected_models[0].description}". Use the provided model reference image '
                "(if any) to get the facial identity correct.\n\n"
            )
        text += f"**USER PROMPT:**\n{params.controls.custom_prompt}"

        images: List[Segment] = []
        if params.uploaded_model_image:
            images.append(parse_data_url(params.uploaded_model_image))
        if isinstance(params, ProductParams) and params.product_image:
            images.append(parse_data_url(params.product_image))
        if isinstance(params, ApparelParams):
            images.extend(parse_data_url(item.image) for item in params.apparel)
        images.extend(self._background_image(params.scene))
        return [TextSegment(text), *images]

    # =========================
    # STANDARD APPAREL
    # =========================

    def _apparel(self, params: ApparelParams) -> List[Segment]:
        controls = params.controls
        description = self._model_description(params)
        has_model = bool(params.uploaded_model_image or description)

        if params.media == MediaKind.VIDEO and not has_model:
            raise ValidationError("A model must be selected to generate a video.")
        if not params.apparel:
            raise ValidationError("At least one apparel item is required.")
        if not has_model:
            raise ValidationError("No model specified for apparel prompt generation.")

        images: List[Segment] = []
        if params.uploaded_model_image:
            images.append(parse_data_url(params.uploaded_model_image))

        apparel_lines = [
            blocks.title(2, "APPAREL", "Subsequent Images"),
            "- **MISSION:** The model must wear the following item(s) of clothing provided in the subsequent images. "
            "The items are listed from innermost to outermost layer. The AI must accurately represent the style, "
            "color, pattern, and graphics of each item.",
        ]
        for index, item in enumerate(params.apparel, start=1):
            apparel_lines.append(
                f"- **Item {index}:** {item.description or f'Apparel item {index}'}. Use the provided image for this "
                "item as the definitive reference."
            )
            images.append(parse_data_url(item.image))
            if item.back_view:
                apparel_lines.append("  - A back view image is also provided for 360-degree accuracy.")
                images.append(parse_data_url(item.back_view))
            if item.detail_view:
                apparel_lines.append("  - A detail view image is also provided for texture and small features.")
                images.append(parse_data_url(item.detail_view))
        images.extend(self._background_image(params.scene))

        lighting = blocks.lighting_phrase(
            params.scene, controls, APPAREL_SUBJECTS, model_lighting_description=params.model_lighting_description
        )
        sections = [
            blocks.model_identity_block(1, params.uploaded_model_image, description),
            blocks.join_block(apparel_lines),
            blocks.pose_block(3, controls),
            blocks.scene_block(4, params.scene, lighting),
            blocks.camera_block(5, controls),
            blocks.style_block(6, params.aspect_ratio, controls, params.style_description, film_grain=True),
        ]
        if self._wants_animation(params):
            sections.append(blocks.animation_block(7, params.animation, "model"))

        header = (
            "**APPAREL PHOTOSHOOT DIRECTIVE**\n\n"
            "**PRIMARY GOAL:** Create a photorealistic image of a model wearing the provided apparel in a scene, "
            "based on the following detailed instructions.\n\n---"
        )
        return [TextSegment(self._assemble(header, sections)), *images]

    # =========================
    # STANDARD PRODUCT
    # =========================

    def _product_on_model(self, params: ProductParams) -> List[Segment]:
        controls = params.controls
        if not params.product_image:
            raise ValidationError("Product image is required for an on-model shot.")
        description = self._model_description(params)
        if not params.uploaded_model_image and not description:
            raise ValidationError("No model specified for on-model product prompt generation.")

        images: List[Segment] = []
        if params.uploaded_model_image:
            images.append(parse_data_url(params.uploaded_model_image))
        images.append(parse_data_url(params.product_image))
        images.extend(self._background_image(params.scene))

        interaction = self._interaction(controls, "holding the product in their hands, presenting it towards the camera.")
        sections = [
            blocks.model_identity_block(1, params.uploaded_model_image, description),
            blocks.join_block([
                blocks.title(2, "PRODUCT & INTERACTION", "Second Image + User Settings"),
                "- **PRODUCT:** The image features the product from the second image.",
                f"- **INTERACTION (CRITICAL):** The model must be interacting with the product as follows: {interaction}.",
            ]),
            blocks.pose_block(3, controls, heading="POSE"),
            blocks.scene_block(
                4, params.scene, blocks.lighting_phrase(params.scene, controls, ON_MODEL_PRODUCT_SUBJECTS)
            ),
            blocks.camera_block(5, controls),
            blocks.style_block(
                6, params.aspect_ratio, controls, params.style_description,
                quality=blocks.PRODUCT_QUALITY,
                realism_detail=blocks.ON_MODEL_PRODUCT_REALISM_DETAIL,
                include_strength=False,
            ),
        ]
        if self._wants_animation(params):
            sections.append(blocks.animation_block(7, params.animation, "product-model"))

        header = (
            "**ON-MODEL PRODUCT PHOTOSHOOT DIRECTIVE**\n\n"
            "**PRIMARY GOAL:** Create a photorealistic image of a model interacting with a product based on the "
            "provided assets and detailed instructions.\n\n---"
        )
        return [TextSegment(self._assemble(header, sections)), *images]

    def _product_staged(self, params: ProductParams) -> List[Segment]:
        controls = params.controls
        if not params.staged_assets:
            raise ValidationError("No product assets specified for prompt generation.")

        product = [a for a in params.staged_assets if a.id == PRODUCT_ASSET_ID]
        companions = [a for a in params.staged_assets if a.id != PRODUCT_ASSET_ID]

        staging = [blocks.title(1, "PRODUCT & STAGING", "Images + User Settings")]
        if product:
            staging.append(
                "- **PRIMARY PRODUCT:** The main product is shown in the first provided image. It should be rendered "
                f"with a material that looks like {controls.product_material.description}"
            )
        if companions:
            staging.append(
                f"- **COMPANION ASSETS:** The scene also includes {len(companions)} other item(s), provided in "
                "subsequent images."
            )
        composition = " ".join(
            f"Asset '{a.id}' is at (x: {blocks.whole(a.x)}%, y: {blocks.whole(a.y)}%) with a scale of "
            f"{blocks.whole(a.scale)}% and z-index of {a.z}."
            for a in params.staged_assets
        )
        staging.append(
            "- **COMPOSITION:** The assets must be arranged as follows, described by their center coordinates and "
            f"scale relative to the canvas: {composition}"
        )

        shadow_notes = []
        if controls.product_shadow != "None":
            shadow_notes.append(f"- **SHADOW:** The product must cast a {controls.product_shadow.lower()} shadow.")

        sections = [
            blocks.join_block(staging),
            blocks.scene_block(
                2,
                params.scene,
                blocks.lighting_phrase(params.scene, controls, STAGED_PRODUCT_SUBJECTS),
                staged=True,
                extra_lines=[
                    f"- **SURFACE:** The product is placed on a surface that looks like {controls.surface.description}"
                ],
                props=controls.custom_props,
                lighting_notes=shadow_notes,
            ),
            blocks.camera_block(3, controls),
            blocks.style_block(
                4, params.aspect_ratio, controls, params.style_description,
                quality=blocks.PRODUCT_QUALITY,
                realism_detail=blocks.PRODUCT_REALISM_DETAIL,
            ),
        ]
        if self._wants_animation(params):
            sections.append(blocks.animation_block(5, params.animation, "product"))

        images: List[Segment] = [parse_data_url(a.image) for a in product + companions]
        images.extend(self._background_image(params.scene))

        header = (
            "**PRODUCT PHOTOSHOOT DIRECTIVE**\n\n"
            "**PRIMARY GOAL:** Create a photorealistic image of a product staged in a scene, based on the provided "
            "assets and detailed instructions.\n\n---"
        )
        return [TextSegment(self._assemble(header, sections)), *images]


_default_compiler = PromptCompiler()


def compile_prompt(params: CompilerParams) -> List[Segment]:
    segments = _default_compiler.compile(params)
    logger.debug(f"🧩 Compiled {params.mode.value} prompt into {len(segments)} segments")
    return segments
