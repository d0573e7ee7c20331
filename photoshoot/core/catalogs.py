"""
Static option catalogs.

Each catalog is an immutable tuple of records with a machine id and the
phrase the compiler splices into prompts. Ids ending in `1` / `_none` are the
"leave it to the scene" defaults that the compiler omits.
"""
from typing import Dict, Optional, Sequence, TypeVar

from photoshoot.core.models import (
    AIModel,
    Animation,
    ApparelControls,
    Background,
    BackgroundType,
    LightingPreset,
    OptionRecord,
    Pack,
    PackShot,
    ProductControls,
    Scene,
)

DEFAULT_LIGHTING_DIRECTION_ID = "ld1"
DEFAULT_LIGHT_QUALITY_ID = "lq1"
DEFAULT_FABRIC_ID = "fab1"
NO_COLOR_GRADE_ID = "cg_none"

T = TypeVar("T")


def find_option(catalog: Sequence[T], option_id: Optional[str], default: Optional[T] = None) -> Optional[T]:
    """Returns the record whose id matches, or `default`."""
    if option_id is None:
        return default
    for record in catalog:
        if record.id == option_id:
            return record
    return default


# =========================
# MODEL POSE & CAMERA
# =========================

SHOT_TYPES = (
    OptionRecord("st1", "Full Body Front", "a full-body shot, facing the camera directly, standing straight with a relaxed posture"),
    OptionRecord("st2", "Three-Quarter Turn", "a full-body shot, body turned three-quarters to the left, looking back at the camera"),
    OptionRecord("st3", "Back View", "a full-body shot from behind, showing the back of the outfit, head turned slightly over the shoulder"),
    OptionRecord("st4", "Walking", "a mid-stride walking pose towards the camera, natural arm swing"),
    OptionRecord("st5", "Detail Close-Up", "a close-up framing the torso and the key garment details"),
    OptionRecord("st6", "Seated", "seated on a minimal stool, legs crossed, hands resting naturally"),
)

EXPRESSIONS = (
    OptionRecord("ex1", "Neutral", "a calm, neutral expression with a soft gaze"),
    OptionRecord("ex2", "Soft Smile", "a gentle, approachable closed-mouth smile"),
    OptionRecord("ex3", "Confident", "a confident, self-assured look directly into the lens"),
    OptionRecord("ex4", "Joyful", "a bright, genuine laugh"),
)

CAMERA_ANGLES = (
    OptionRecord("ca1", "Eye Level", "shot at eye level for a natural, direct perspective"),
    OptionRecord("ca2", "Low Angle", "shot from a low angle looking up, making the model appear powerful"),
    OptionRecord("ca3", "High Angle", "shot from a slightly high angle looking down"),
    OptionRecord("ca4", "Side Profile", "shot from the side, capturing the model's profile"),
)

CAMERA_ANGLES_PRODUCT = (
    OptionRecord("pca1", "Front", "a straight-on front view of the product"),
    OptionRecord("pca2", "Three-Quarter", "a three-quarter view showing the front and one side of the product"),
    OptionRecord("pca3", "Top Down", "a top-down flat lay view looking straight down at the product"),
    OptionRecord("pca4", "Hero Low Angle", "a low hero angle looking slightly up at the product"),
    OptionRecord("pca5", "Macro Detail", "an extreme close-up on the product's texture and finish"),
)

APERTURES = (
    OptionRecord("ap1", "f/1.8", "a wide f/1.8 aperture for a shallow depth of field and soft bokeh"),
    OptionRecord("ap2", "f/4", "a moderate f/4 aperture keeping the subject sharp with a gently soft background"),
    OptionRecord("ap3", "f/8", "a narrow f/8 aperture for a deep depth of field with everything in focus"),
)

FOCAL_LENGTHS = (
    OptionRecord("fl1", "35mm", "a 35mm lens for a natural, environmental perspective"),
    OptionRecord("fl2", "50mm", "a 50mm lens for a true-to-life perspective"),
    OptionRecord("fl3", "85mm", "an 85mm portrait lens for flattering compression"),
    OptionRecord("fl4", "100mm Macro", "a 100mm macro lens for fine detail"),
)

# =========================
# STYLE
# =========================

FABRICS = (
    OptionRecord(DEFAULT_FABRIC_ID, "As Provided", "the texture shown in the reference images."),
    OptionRecord("fab2", "Silk", "smooth, lustrous silk with soft highlights."),
    OptionRecord("fab3", "Denim", "sturdy, twill-woven denim with visible weave."),
    OptionRecord("fab4", "Wool Knit", "chunky wool knit with visible loops and soft fuzz."),
    OptionRecord("fab5", "Leather", "supple leather with a subtle sheen and natural grain."),
)

COLOR_GRADES = (
    OptionRecord(NO_COLOR_GRADE_ID, "None", ""),
    OptionRecord("cg1", "Warm Film", "warm, nostalgic film tones with lifted blacks and golden highlights."),
    OptionRecord("cg2", "Cool Editorial", "cool, desaturated editorial tones with clean whites."),
    OptionRecord("cg3", "High Contrast B&W", "a high-contrast black-and-white conversion with deep blacks."),
    OptionRecord("cg4", "Pastel", "soft pastel tones with low contrast and airy highlights."),
)

LIGHTING_DIRECTIONS = (
    OptionRecord(DEFAULT_LIGHTING_DIRECTION_ID, "Default", "as dictated by the lighting preset"),
    OptionRecord("ld2", "Left", "to the left of the subject, creating shadows on the right side"),
    OptionRecord("ld3", "Right", "to the right of the subject, creating shadows on the left side"),
    OptionRecord("ld4", "Back", "behind the subject, creating a rim light"),
    OptionRecord("ld5", "Top", "directly above the subject"),
)

LIGHT_QUALITIES = (
    OptionRecord(DEFAULT_LIGHT_QUALITY_ID, "Default", "as dictated by the lighting preset"),
    OptionRecord("lq2", "Soft", "soft and diffused, with gentle shadow transitions"),
    OptionRecord("lq3", "Hard", "hard and direct, with crisp, defined shadows"),
)

CATCHLIGHT_STYLES = (
    OptionRecord("cl1", "Natural", "natural, subtle catchlights in the eyes"),
    OptionRecord("cl2", "Ring", "circular ring-light catchlights in the eyes"),
    OptionRecord("cl3", "Softbox", "rectangular softbox catchlights in the eyes"),
)

LIGHTING_PRESETS = (
    LightingPreset("lp1", "Match Model Photo", "lighting that matches the uploaded model photo", is_dynamic=True),
    LightingPreset("lp2", "Studio Softbox", "soft, even studio softbox lighting"),
    LightingPreset("lp3", "Dramatic Rembrandt", "dramatic Rembrandt lighting with a triangle of light on the cheek"),
    LightingPreset("lp4", "Natural Window", "soft natural window light from the side"),
    LightingPreset("lp5", "Neon Night", "vibrant neon lighting with magenta and cyan color casts"),
)

BACKGROUNDS = (
    Background("bg1", "White", BackgroundType.COLOR, "#FFFFFF"),
    Background("bg2", "Light Gray", BackgroundType.COLOR, "#D4D4D8"),
    Background("bg3", "Beige", BackgroundType.COLOR, "#E7DCC8"),
    Background("bg4", "City Street", BackgroundType.IMAGE, "city_street", category="Outdoor"),
    Background("bg5", "Minimalist Loft", BackgroundType.IMAGE, "minimalist_loft", category="Indoor"),
    Background("bg6", "Beach at Dusk", BackgroundType.IMAGE, "beach_dusk", category="Outdoor"),
)

TIME_OF_DAY_DESCRIPTIONS = {
    "Sunrise": "The lighting should evoke early morning sunrise, with soft, warm, low-angle light creating long, gentle shadows.",
    "Midday": "The lighting should be bright, direct midday sun from high above, creating harsh, defined shadows.",
    "Golden Hour": "The lighting must be warm, golden hour sunlight from the side, creating a beautiful, soft glow.",
    "Twilight": "The scene is lit by the cool, soft, ambient light of twilight (blue hour), with very soft or no distinct shadows.",
    "Night": "The scene is set at night, with dramatic, artificial light sources like streetlights or neon signs, creating high contrast.",
}

# =========================
# PRODUCT
# =========================

MODEL_INTERACTION_TYPES = (
    OptionRecord("mi1", "Holding", "holding the product naturally in one hand at chest height"),
    OptionRecord("mi2", "Presenting", "presenting the product towards the camera with both hands"),
    OptionRecord("mi3", "Wearing", "wearing the product as part of their look"),
    OptionRecord("mi4", "Using", "actively using the product in a natural way"),
    OptionRecord("custom", "Custom", ""),
)

SURFACES = (
    OptionRecord("sf1", "Seamless", "a seamless studio sweep matching the background."),
    OptionRecord("sf2", "Marble", "polished white marble with soft gray veining."),
    OptionRecord("sf3", "Wood", "warm oak wood with a natural grain."),
    OptionRecord("sf4", "Concrete", "raw, textured concrete."),
)

PRODUCT_MATERIALS = (
    OptionRecord("pm1", "As Provided", "the material shown in the product image."),
    OptionRecord("pm2", "Matte", "a soft matte finish with no specular highlights."),
    OptionRecord("pm3", "Glossy", "a high-gloss finish with crisp reflections."),
    OptionRecord("pm4", "Brushed Metal", "brushed metal with fine directional grain."),
)

PRODUCT_SHADOWS = ("None", "Soft", "Hard", "Long")

# =========================
# ANIMATION
# =========================

ANIMATION_STYLES = (
    Animation("an1", "Subtle Sway", "the model gently sways their weight from one foot to the other"),
    Animation("an2", "Hair Flip", "the model turns their head and lets their hair move naturally"),
    Animation("an3", "Fabric Flow", "a light breeze makes the garment fabric ripple softly"),
    Animation("an4", "Slow Turn", "the model slowly turns to show the side of the outfit"),
)

PRODUCT_ANIMATION_STYLES = (
    Animation("pan1", "Turntable", "a slow 360-degree turntable spin"),
    Animation("pan2", "Light Sweep", "a gentle light sweep across the product surface"),
    Animation("pan3", "Push In", "a slow camera push-in towards the product"),
)

ASPECT_RATIOS = (
    OptionRecord("ar1", "Portrait", "3:4"),
    OptionRecord("ar2", "Square", "1:1"),
    OptionRecord("ar3", "Story", "9:16"),
    OptionRecord("ar4", "Landscape", "16:9"),
    OptionRecord("ar5", "Classic", "4:3"),
)

# =========================
# DESIGN MOCKUPS
# =========================

FABRIC_STYLE_OPTIONS = (
    OptionRecord("cotton", "standard cotton"),
    OptionRecord("heavy_cotton", "heavyweight cotton"),
    OptionRecord("tri_blend", "soft tri-blend"),
    OptionRecord("fleece", "brushed fleece"),
)

MOCKUP_STYLE_OPTIONS = (
    OptionRecord("hanging", "hanging"),
    OptionRecord("flat_lay", "flat lay"),
    OptionRecord("ghost", "ghost mannequin"),
    OptionRecord("folded", "folded"),
)

DESIGN_LIGHTING_STYLE_OPTIONS = (
    OptionRecord("softbox", "studio softbox lighting"),
    OptionRecord("natural", "soft natural daylight"),
    OptionRecord("dramatic", "dramatic side lighting"),
)

DESIGN_CAMERA_ANGLE_OPTIONS = (
    OptionRecord("front", "eye-level front view"),
    OptionRecord("angled", "slightly angled three-quarter view"),
    OptionRecord("top", "top-down view"),
    OptionRecord("detail", "detail close-up"),
)

PRINT_STYLE_OPTIONS = (
    OptionRecord("screen", "screen printed"),
    OptionRecord("dtg", "direct-to-garment printed"),
    OptionRecord("embroidery", "embroidered"),
    OptionRecord("vinyl", "heat-transfer vinyl"),
)

DESIGN_PLACEMENT_OPTIONS = (
    OptionRecord("center_chest", "center chest"),
    OptionRecord("left_chest", "left chest"),
    OptionRecord("full_front", "full front"),
    OptionRecord("upper_back", "upper back"),
    OptionRecord("full_back", "full back"),
)

# =========================
# MODELS
# =========================

AI_MODELS = (
    AIModel("m1", "Ava", "a woman in her late twenties with shoulder-length dark brown hair, warm olive skin and a slim athletic build"),
    AIModel("m2", "Marcus", "a man in his early thirties with short black curly hair, deep brown skin and a tall broad-shouldered build"),
    AIModel("m3", "Lena", "a woman in her early twenties with long straight blonde hair, fair freckled skin and a petite build"),
    AIModel("m4", "Kenji", "a man in his mid twenties with a short textured undercut, light skin and a lean build"),
)

# =========================
# PACKS
# =========================

ECOMMERCE_PACKS: Dict[str, Pack] = {
    "studio3": Pack(
        id="studio3",
        name="Essential E-commerce Pack",
        shots=(
            PackShot(shot_id="st1", expression_id="ex1", camera_angle_id="ca1"),
            PackShot(shot_id="st2", expression_id="ex2", camera_angle_id="ca1"),
            PackShot(shot_id="st3", expression_id="ex1", camera_angle_id="ca1"),
        ),
    ),
    "studio5": Pack(
        id="studio5",
        name="Complete E-commerce Pack",
        shots=(
            PackShot(shot_id="st1", expression_id="ex1", camera_angle_id="ca1"),
            PackShot(shot_id="st2", expression_id="ex2", camera_angle_id="ca1"),
            PackShot(shot_id="st3", expression_id="ex1", camera_angle_id="ca1"),
            PackShot(shot_id="st4", expression_id="ex3", camera_angle_id="ca2"),
            PackShot(shot_id="st5", expression_id="ex2", camera_angle_id="ca3"),
        ),
    ),
    "social4": Pack(
        id="social4",
        name="Social Media Pack",
        shots=(
            PackShot(shot_id="st4", expression_id="ex4", camera_angle_id="ca2"),
            PackShot(shot_id="st6", expression_id="ex2", camera_angle_id="ca1"),
            PackShot(shot_id="st2", expression_id="ex3", camera_angle_id="ca4"),
            PackShot(shot_id="st5", expression_id="ex4", camera_angle_id="ca3"),
        ),
    ),
}

PRODUCT_ECOMMERCE_PACKS: Dict[str, Pack] = {
    "product4": Pack(
        id="product4",
        name="Product Essentials Pack",
        shots=(
            PackShot(camera_angle_id="pca1", focal_length_id="fl2"),
            PackShot(camera_angle_id="pca2", focal_length_id="fl2"),
            PackShot(camera_angle_id="pca3", focal_length_id="fl1"),
            PackShot(camera_angle_id="pca5", focal_length_id="fl4"),
        ),
    ),
    "hero2": Pack(
        id="hero2",
        name="Hero Shot Pack",
        shots=(
            PackShot(camera_angle_id="pca4", focal_length_id="fl3"),
            PackShot(camera_angle_id="pca2", focal_length_id="fl3"),
        ),
    ),
}


# =========================
# DEFAULT CONTROLS
# =========================

def default_apparel_controls() -> ApparelControls:
    return ApparelControls(
        shot_type=SHOT_TYPES[0],
        expression=EXPRESSIONS[0],
        camera_angle=CAMERA_ANGLES[0],
        aperture=APERTURES[1],
        focal_length=FOCAL_LENGTHS[2],
        color_grade=COLOR_GRADES[0],
        lighting_direction=LIGHTING_DIRECTIONS[0],
        light_quality=LIGHT_QUALITIES[0],
        catchlight_style=CATCHLIGHT_STYLES[0],
        fabric=FABRICS[0],
    )


def default_product_controls() -> ProductControls:
    return ProductControls(
        shot_type=SHOT_TYPES[0],
        expression=EXPRESSIONS[1],
        camera_angle=CAMERA_ANGLES_PRODUCT[0],
        aperture=APERTURES[2],
        focal_length=FOCAL_LENGTHS[1],
        color_grade=COLOR_GRADES[0],
        lighting_direction=LIGHTING_DIRECTIONS[0],
        light_quality=LIGHT_QUALITIES[0],
        catchlight_style=CATCHLIGHT_STYLES[0],
        model_interaction_type=MODEL_INTERACTION_TYPES[0],
        surface=SURFACES[0],
        product_material=PRODUCT_MATERIALS[0],
    )


def default_scene() -> Scene:
    return Scene(background=BACKGROUNDS[0], lighting=LIGHTING_PRESETS[1])
