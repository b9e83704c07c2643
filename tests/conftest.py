from __future__ import annotations

import pytest
from image_fixtures import png_bytes_minimal

import imagemeta.registry as registry_module
from imagemeta.registry import DecoderRegistry


@pytest.fixture
def png_1x1() -> bytes:
    return png_bytes_minimal()


@pytest.fixture
def isolated_registry(monkeypatch: pytest.MonkeyPatch) -> DecoderRegistry:
    """Swap the process-wide registry for a copy the test may mutate."""
    registry = registry_module.default_registry.copy()
    monkeypatch.setattr(registry_module, "default_registry", registry)
    return registry
