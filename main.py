import asyncio

from photoshoot.config.settings import settings
from photoshoot.core.catalogs import AI_MODELS, ANIMATION_STYLES, BACKGROUNDS
from photoshoot.core.models import ApparelItem, TimeOfDay
from photoshoot.generators.integrations import build_gateway
from photoshoot.generators.mock import fake_image
from photoshoot.pipeline.manager import StudioOrchestrator
from photoshoot.utils.logger import setup_logging

# Configure Logging
logger = setup_logging(settings.log_level)


async def main():
    """
    Main entry point: one apparel shoot, an e-commerce pack from the best
    frame, then a short animation of it.
    """
    # 1. Initialize
    # Backend is picked from settings (PHOTOSHOOT_BACKEND), mock by default
    studio = StudioOrchestrator(build_gateway())

    # 2. Inputs (Simulating the studio UI)
    studio.update_inputs(
        selected_models=(AI_MODELS[0],),
        apparel=(
            ApparelItem(image=fake_image("sweater"), description="oversized cream knit sweater"),
            ApparelItem(image=fake_image("trousers"), description="wide-leg charcoal trousers"),
        ),
        ecommerce_pack="studio3",
    )
    studio.update_scene(background=BACKGROUNDS[4], time_of_day=TimeOfDay.GOLDEN_HOUR)
    studio.set_number_of_images(2)

    # 3. Execute
    try:
        logger.info("🚀 Starting Photoshoot Main Loop...")
        await studio.generate_asset(on_complete=lambda n: logger.info(f"🧾 {n} image(s) billed"))
        if studio.state.error:
            raise RuntimeError(studio.state.error)

        await studio.generate_pack_from_reference()
        await studio.generate_video_from_image(ANIMATION_STYLES[0])

        state = studio.state
        logger.info("🏆 FINAL STATE:")
        logger.info(f"Images: {sum(1 for image in state.generated_images or () if image)}")
        logger.info(f"Video: {state.generated_video_url or state.error}")

    except Exception as e:
        logger.critical(f"🔥 Critical Failure: {e}", exc_info=True)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Captured KeyboardInterrupt. Exiting...")
