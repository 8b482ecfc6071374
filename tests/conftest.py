from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

# Ensure project root is on sys.path when running without an install
sys.path.append(str(Path(__file__).resolve().parents[1]))

from helpers_images import BLOB_CENTER, TEXTURE_BLOBS, render_blobs  # noqa: E402


@pytest.fixture
def rng():
    return np.random.default_rng(0)


@pytest.fixture(scope="session")
def bright_blob_image():
    """64x64 flat background with one soft bright square in the middle."""
    return render_blobs((64, 64), [(*BLOB_CENTER, 5, 1.0)], background=0.0, sigma=1.2)


@pytest.fixture(scope="session")
def dark_blob_image(bright_blob_image):
    return 1.0 - bright_blob_image


@pytest.fixture(scope="session")
def blank_image():
    return np.zeros((64, 64), dtype=np.float64)


@pytest.fixture(scope="session")
def textured_image():
    """192x192 integer-valued image with bright and dark blobs of several sizes."""
    return render_blobs(
        (192, 192), TEXTURE_BLOBS, background=100.0, sigma=2.0, integer=True
    )


@pytest.fixture(scope="session")
def shifted_textured_image():
    return render_blobs(
        (192, 192),
        TEXTURE_BLOBS,
        background=100.0,
        sigma=2.0,
        shift=(6, 4),
        integer=True,
    )
