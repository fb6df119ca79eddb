"""
Pytest fixtures and configuration for the detaug test suite.

This module provides shared fixtures for testing the transform engine,
including synthetic images, samples and helper assertions.
"""

import pytest
import torch
from torch import Tensor

from detaug.data import Annotation, Sample


# ============================================================================
# Device Fixtures
# ============================================================================

@pytest.fixture
def device() -> torch.device:
    """Get available device (CUDA if available, else CPU)."""
    return torch.device("cuda" if torch.cuda.is_available() else "cpu")


@pytest.fixture
def cpu_device() -> torch.device:
    """Get CPU device for deterministic tests."""
    return torch.device("cpu")


# ============================================================================
# Image Fixtures
# ============================================================================

def _make_image(channels: int = 3, height: int = 240, width: int = 300) -> Tensor:
    values = torch.arange(channels * height * width) % 251
    return values.to(torch.uint8).view(channels, height, width)


@pytest.fixture
def make_image():
    """
    Factory for uint8 images whose neighbouring pixels all differ.
    
    Returns:
        Callable (channels, height, width) -> Tensor of that shape.
    """
    return _make_image


@pytest.fixture
def image_size() -> tuple:
    """Default image size (height, width)."""
    return (240, 300)


@pytest.fixture
def dummy_image(image_size: tuple) -> Tensor:
    """
    Create a random uint8 RGB image.
    
    Returns:
        Tensor of shape (3, height, width) with values in [0, 255].
    """
    generator = torch.Generator().manual_seed(0)
    height, width = image_size
    return torch.randint(0, 256, (3, height, width), dtype=torch.uint8, generator=generator)


@pytest.fixture
def dummy_annotations() -> list:
    """Annotations spread over the image, one of them marked difficult."""
    return [
        Annotation(0.1, 0.1, 0.5, 0.5, label=1),
        Annotation(0.4, 0.3, 0.9, 0.8, label=2, difficult=True, instance_id=3),
        Annotation(0.0, 0.7, 0.2, 1.0, label=5),
    ]


@pytest.fixture
def dummy_sample(dummy_image: Tensor, dummy_annotations: list) -> Sample:
    """Sample combining the dummy image and annotations."""
    return Sample(dummy_image, dummy_annotations, label=7)


# ============================================================================
# Helper Fixtures
# ============================================================================

def _assert_annotations_valid(annotations: list):
    for anno in annotations:
        assert 0.0 <= anno.xmin < anno.xmax <= 1.0, anno
        assert 0.0 <= anno.ymin < anno.ymax <= 1.0, anno


@pytest.fixture
def assert_annotations_valid():
    """Assert every annotation is a non-degenerate box inside [0, 1]."""
    return _assert_annotations_valid
