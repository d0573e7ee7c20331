import pytest

from photoshoot.core.catalogs import default_apparel_controls, default_product_controls, default_scene
from photoshoot.generators.mock import MockGateway, fake_image
from photoshoot.pipeline.manager import StudioOrchestrator


@pytest.fixture
def image():
    """Factory for distinct, valid PNG data URLs."""
    return fake_image


@pytest.fixture
def scene():
    return default_scene()


@pytest.fixture
def apparel_controls():
    return default_apparel_controls()


@pytest.fixture
def product_controls():
    return default_product_controls()


@pytest.fixture
def gateway(tmp_path):
    return MockGateway(blob_dir=str(tmp_path))


@pytest.fixture
def studio(gateway):
    # No waits between polls or retries
    return StudioOrchestrator(gateway, poll_interval=0, retry_base_delay=0)
