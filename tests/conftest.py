import pytest

from src.pipeline_config import PipelineConfig


@pytest.fixture
def config() -> PipelineConfig:
    """Config with no pacing, suitable for fast tests."""
    return PipelineConfig(api_key="test-key", base_url="https://llm.test/v1", max_retries=3)
