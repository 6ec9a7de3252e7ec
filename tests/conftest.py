"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from dnacomposer.core.services.catalog import ModuleCatalog
from dnacomposer.core.services.event_bus import EventBus


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def bus() -> EventBus:
    """A private, synchronous event bus."""
    return EventBus()


@pytest.fixture
def events(bus: EventBus) -> list[dict]:
    """Every event published on ``bus``, in order."""
    seen: list[dict] = []
    bus.subscribe(seen.append)
    return seen


@pytest.fixture
def catalog(bus: EventBus) -> ModuleCatalog:
    """An empty catalog wired to the private bus."""
    return ModuleCatalog(event_bus=bus)


@pytest.fixture
def modules_dir(tmp_path: Path) -> Path:
    """A directory with two module definition files: core and auth."""
    d = tmp_path / "modules"
    d.mkdir()
    (d / "core.yml").write_text(
        "metadata:\n"
        "  id: core\n"
        "  name: Core\n"
        "  version: 1.0.0\n"
        "  category: security\n"
        "frameworks:\n"
        "  - framework: nextjs\n",
        encoding="utf-8",
    )
    (d / "auth.json").write_text(
        '{"metadata": {"id": "auth", "name": "Auth", "version": "1.0.0",'
        ' "category": "authentication", "keywords": ["login", "oauth"]},'
        ' "dependencies": [{"module_id": "core"}],'
        ' "frameworks": [{"framework": "nextjs"}],'
        ' "config": {"defaults": {"provider": "email"}}}',
        encoding="utf-8",
    )
    return d
