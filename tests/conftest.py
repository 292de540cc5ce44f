"""Pytest configuration providing shared stores, ledgers and markup builders."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable

import pytest

from gallery_ledger.config import ConfigLocator, ConfigRepository, GlobalConfig
from gallery_ledger.engine import (
    CatalogExtractor,
    Deduplicator,
    EngagementLedger,
    ProbeResult,
    UserDirectory,
)
from gallery_ledger.engine.models import entry_from_raw, entry_to_raw, user_from_raw, user_to_raw
from gallery_ledger.infra import JsonFileStore
from gallery_ledger.orchestrator import CatalogReconciler


class StubProber:
    """Answer probes from a fixed table; unknown URLs are unreachable."""

    def __init__(self, reachable: Iterable[str] = ()) -> None:
        self.reachable = set(reachable)
        self.calls: list[str] = []

    def probe(self, url: str, timeout: float | None = None) -> ProbeResult:
        self.calls.append(url)
        if url in self.reachable:
            return ProbeResult(url=url, ok=True, status=200, content_type="image/jpeg")
        return ProbeResult(url=url, ok=False)


@pytest.fixture
def ledger_path(tmp_path: Path) -> Path:
    return tmp_path / "views.json"


@pytest.fixture
def users_path(tmp_path: Path) -> Path:
    return tmp_path / "users.json"


@pytest.fixture
def users(users_path: Path) -> UserDirectory:
    store = JsonFileStore(users_path, user_from_raw, user_to_raw)
    directory = UserDirectory(store)
    directory.register("alice", "alice@example.com", "pw-a")
    directory.register("bob", "bob@example.com", "pw-b")
    return directory


@pytest.fixture
def ledger(ledger_path: Path, users: UserDirectory) -> EngagementLedger:
    store = JsonFileStore(ledger_path, entry_from_raw, entry_to_raw)
    return EngagementLedger(store, users)


@pytest.fixture
def stub_prober() -> StubProber:
    return StubProber()


@pytest.fixture
def reconciler(ledger: EngagementLedger, stub_prober: StubProber) -> CatalogReconciler:
    return CatalogReconciler(ledger, CatalogExtractor(), Deduplicator(stub_prober))


@pytest.fixture
def block_html() -> Callable[..., str]:
    def _builder(item_id: str, src: str | None = None, css_class: str = "image-container") -> str:
        image = f'<img src="{src}" alt="{item_id}">' if src is not None else ""
        return (
            f'<div class="{css_class}" data-id="{item_id}">'
            f'<div class="frame">{image}</div>'
            f'<div class="counters"><span class="views">0</span></div>'
            f"</div>"
        )

    return _builder


@pytest.fixture
def gallery_markup(block_html) -> Callable[..., str]:
    def _builder(*blocks: str) -> str:
        body = "\n".join(blocks)
        return (
            "<html><head><title>Pandas</title></head><body>\n"
            '<header><div class="nav">Menu</div></header>\n'
            f'<section class="gallery">\n{body}\n</section>\n'
            "<footer>bye</footer></body></html>\n"
        )

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigRepository:
    monkeypatch.setenv("GALLERY_LEDGER_HOME", str(tmp_path))
    return ConfigRepository(ConfigLocator(project_root=tmp_path))


@pytest.fixture
def sample_global_config(tmp_path: Path) -> GlobalConfig:
    return GlobalConfig(
        ledger_path=tmp_path / "data" / "views.json",
        users_path=tmp_path / "data" / "users.json",
        catalog_path=tmp_path / "public" / "index.html",
        default_ids=["a", "b"],
    )
