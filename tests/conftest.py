"""
pytest configuration for the fpverify tests.

- Puts sw/ on sys.path so `fpverify` and `Verify` import without installing
- Registers Hypothesis profiles (HYPOTHESIS_PROFILE=ci|dev|default)
- Registers the `slow` marker for the full random-pair backend runs
"""

import os
import sys
from pathlib import Path

import pytest
from hypothesis import Phase, settings

sys.path.insert(0, str(Path(__file__).parent.parent / "sw"))

from fpverify.Format import FORMATS, EncodingPolicy, FloatFormat, FormatDescriptor, NegativeZero  # noqa: E402

settings.register_profile(
    "default",
    max_examples=100,
    deadline=None,
)
settings.register_profile(
    "ci",
    max_examples=500,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)
settings.register_profile(
    "dev",
    max_examples=10,
    deadline=None,
)
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "default"))


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture
def binary16():
    return FORMATS["binary16"]


@pytest.fixture
def binary32():
    return FORMATS["binary32"]


@pytest.fixture
def extfloat80():
    return FORMATS["extfloat80"]


@pytest.fixture
def rbj32():
    return FORMATS["rbj32"]


@pytest.fixture
def unsigned8():
    """E5M3 with no sign field: bias 15, 1.0 is 0x78, +Inf is 0xF8."""
    return FloatFormat("unsigned8", FormatDescriptor(0, 0, 5, 3, 3, 0, 8),
                       EncodingPolicy(negative_zero=NegativeZero.DOES_NOT_EXIST))
