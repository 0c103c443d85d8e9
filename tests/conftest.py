"""Shared pytest fixtures for schemac tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from dotenv import load_dotenv
from hypothesis import settings

from schemac.core.config import SchemacConfig

# Load environment variables from .env file
load_dotenv()

# Configure hypothesis for property-based testing
settings.register_profile("ci", max_examples=100, deadline=None)
settings.register_profile("dev", max_examples=20, deadline=None)
settings.load_profile("dev")

FIXTURES = Path(__file__).parent / "fixtures"

ModelWriter = Callable[[dict[str, str]], Path]


@pytest.fixture
def models_root() -> Path:
    """The sample microblog model tree."""
    return FIXTURES / "models"


@pytest.fixture
def config() -> SchemacConfig:
    """Default settings, isolated from any local .env file."""
    return SchemacConfig(_env_file=None)


@pytest.fixture
def write_models(tmp_path: Path) -> ModelWriter:
    """Write ``{relative_path: source}`` into a fresh model root and return it."""

    def _write(files: dict[str, str]) -> Path:
        root = tmp_path / "models"
        for relative, source in files.items():
            target = root / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(source, encoding="utf-8")
        root.mkdir(exist_ok=True)
        return root

    return _write
