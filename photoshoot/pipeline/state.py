import logging
import threading
from dataclasses import dataclass, field, fields, replace
from typing import Callable, List, Optional, Tuple

from photoshoot.core.catalogs import default_apparel_controls, default_product_controls, default_scene
from photoshoot.core.models import (
    NO_PACK,
    AIModel,
    ApparelControls,
    ApparelItem,
    DesignPlacementControls,
    EditSession,
    GenerationMode,
    ProductControls,
    ReimagineControls,
    Scene,
    ShotView,
    StagedAsset,
)

logger = logging.getLogger("PhotoshootEngine")


@dataclass(frozen=True)
class StudioState:
    """
    Everything the orchestrator reads and writes. Replaced as a whole on every
    change, never mutated in place.
    """

    mode: GenerationMode = GenerationMode.APPAREL
    scene: Scene = field(default_factory=default_scene)
    apparel_controls: ApparelControls = field(default_factory=default_apparel_controls)
    product_controls: ProductControls = field(default_factory=default_product_controls)
    reimagine_controls: ReimagineControls = field(default_factory=ReimagineControls)
    design_placement: DesignPlacementControls = field(default_factory=DesignPlacementControls)

    # Model
    uploaded_model_image: Optional[str] = None
    selected_models: Tuple[AIModel, ...] = ()
    prompted_model_description: str = ""
    model_lighting_description: Optional[str] = None

    # Subjects
    apparel: Tuple[ApparelItem, ...] = ()
    product_image: Optional[str] = None
    staged_assets: Tuple[StagedAsset, ...] = ()
    mockup_image: Optional[str] = None
    design_image: Optional[str] = None
    back_design_image: Optional[str] = None
    shot_view: ShotView = ShotView.FRONT
    reimagine_source_photo: Optional[str] = None
    new_model_photo: Optional[str] = None

    # Output settings
    style_reference_image: Optional[str] = None
    aspect_ratio: str = "3:4"
    number_of_images: int = 1
    ecommerce_pack: str = NO_PACK
    product_ecommerce_pack: str = NO_PACK

    # Results
    generated_images: Optional[Tuple[Optional[str], ...]] = None
    active_image_index: Optional[int] = None
    generated_video_url: Optional[str] = None
    video_source_image: Optional[str] = None

    # Status
    is_generating: bool = False
    is_applying_edit: bool = False
    is_generating_background: bool = False
    loading_message: str = ""
    error: Optional[str] = None
    generation_count: int = 0

    # Editing
    is_editing: bool = False
    edit_session: Optional[EditSession] = None

    @property
    def selected_image(self) -> Optional[str]:
        if self.generated_images is None or self.active_image_index is None:
            return None
        if not 0 <= self.active_image_index < len(self.generated_images):
            return None
        return self.generated_images[self.active_image_index]


STATE_FIELDS = frozenset(f.name for f in fields(StudioState))

Listener = Callable[[StudioState], None]


class StateStore:
    """
    Serialized single write path for StudioState.

    Every update swaps in a new frozen state under one lock and notifies
    subscribers in write order. Safe to call from backend worker threads.
    """

    def __init__(self, initial: Optional[StudioState] = None):
        self._state = initial or StudioState()
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []

    def snapshot(self) -> StudioState:
        with self._lock:
            return self._state

    def update(self, **changes) -> StudioState:
        return self.apply(lambda _state: changes)

    def apply(self, mutate: Callable[[StudioState], dict]) -> StudioState:
        """Atomic read-modify-write: `mutate` maps the current state to field changes."""
        with self._lock:
            changes = mutate(self._state)
            unknown = set(changes) - STATE_FIELDS
            if unknown:
                raise ValueError(f"Unknown state fields: {', '.join(sorted(unknown))}")
            self._state = replace(self._state, **changes)
            state = self._state
            for listener in list(self._listeners):
                try:
                    listener(state)
                except Exception as e:
                    logger.error(f"⚠️ State listener failed: {e}")
            return state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registers `listener`; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
