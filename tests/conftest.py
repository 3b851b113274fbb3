from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

_START = Path(__file__).resolve().parent
_repo_root = _START
while _repo_root != _repo_root.parent and not (_repo_root / "graphcalc" / "__init__.py").exists():
    _repo_root = _repo_root.parent

sys.path.insert(0, str(_repo_root))


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded generator so ``rnd`` draws are reproducible."""
    return np.random.default_rng(12345)
