"""
Root pytest configuration and shared fixtures.

Provides an in-memory provider double, a manual clock for driving the
polling timers deterministically, and a fully wired run controller backed by
a temporary vault.
"""

import asyncio
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple, Union

import pytest

from note_researcher.config import ResearchConfig
from note_researcher.core.controller import RunController
from note_researcher.core.models import ResearchStatus
from note_researcher.core.notifier import MemoryNotifier
from note_researcher.core.providers.base import DeepResearchProvider
from note_researcher.core.run_log import LOG_FILENAME, RunLog
from note_researcher.core.run_store import RunStore
from note_researcher.core.vault import NoteVault, ReportSink

PROMPT_PATH = "Templates/DeepResearchPrompt.md"
PROMPT_TEXT = "Research the topic of this note in depth."
NOTE_TEXT = "# Note A\n\nSolid-state batteries."


# =============================================================================
# Test doubles
# =============================================================================


class FakeProvider(DeepResearchProvider):
    """Scriptable provider: statuses are served in order, then RUNNING."""

    def __init__(self, interaction_id: str = "int_1") -> None:
        self.interaction_id = interaction_id
        self.statuses: List[Union[ResearchStatus, Exception]] = []
        self.report: str = "# Fetched report"
        self.report_error: Optional[Exception] = None
        self.start_error: Optional[Exception] = None
        self.started: List[Tuple[str, str]] = []
        self.checked: List[str] = []
        self.report_requests: List[str] = []
        # Runs inside start() before the interaction id is returned
        self.on_start: Optional[Callable[[], None]] = None
        # When set, status and report calls block until the event fires
        self.gate: Optional[asyncio.Event] = None

    def get_provider_name(self) -> str:
        return "fake"

    async def start(self, context: str, prompt: str) -> str:
        self.started.append((context, prompt))
        if self.start_error is not None:
            raise self.start_error
        if self.on_start is not None:
            self.on_start()
        return self.interaction_id

    async def check_status(self, interaction_id: str) -> ResearchStatus:
        self.checked.append(interaction_id)
        if self.gate is not None:
            await self.gate.wait()
        item = self.statuses.pop(0) if self.statuses else ResearchStatus.running()
        if isinstance(item, Exception):
            raise item
        return item

    async def get_report(self, interaction_id: str) -> str:
        self.report_requests.append(interaction_id)
        if self.gate is not None:
            await self.gate.wait()
        if self.report_error is not None:
            raise self.report_error
        return self.report


class ManualClock:
    """Replacement for ``asyncio.sleep`` whose time only moves on ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self._sleepers: List[Tuple[float, "asyncio.Future[None]"]] = []

    async def sleep(self, delay: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.now + delay, future))
        await future

    @property
    def pending(self) -> int:
        """Number of timers currently waiting on this clock."""
        return sum(1 for _, future in self._sleepers if not future.done())

    async def advance(self, seconds: float) -> None:
        """Move time forward, waking every sleeper that falls due in order."""
        # timers armed just before this call must register their sleep first
        await self.settle()
        target = self.now + seconds
        while True:
            due = [entry for entry in self._sleepers if entry[0] <= target]
            if not due:
                break
            wake_at = min(entry[0] for entry in due)
            self.now = wake_at
            for entry in [e for e in self._sleepers if e[0] == wake_at]:
                self._sleepers.remove(entry)
                if not entry[1].done():
                    entry[1].set_result(None)
            await self.settle()
        self.now = target
        await self.settle()

    @staticmethod
    async def settle(rounds: int = 20) -> None:
        """Let ready tasks run until the loop is quiet."""
        for _ in range(rounds):
            await asyncio.sleep(0)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def vault_root(tmp_path: Path) -> Path:
    """A vault with one note and a prompt file."""
    root = tmp_path / "vault"
    (root / "Templates").mkdir(parents=True)
    (root / PROMPT_PATH).write_text(PROMPT_TEXT, encoding="utf-8")
    (root / "noteA.md").write_text(NOTE_TEXT, encoding="utf-8")
    return root


@pytest.fixture
def env_file(tmp_path: Path) -> Path:
    path = tmp_path / "secrets" / ".env"
    path.parent.mkdir()
    path.write_text("LLM_PROVIDER=gemini\nGEMINI_API_KEY=test-key\n", encoding="utf-8")
    return path


@pytest.fixture
def research_config(vault_root: Path, env_file: Path) -> ResearchConfig:
    return ResearchConfig(
        enabled=True,
        prompt_path=PROMPT_PATH,
        env_file_path=str(env_file),
        vault_root=vault_root,
        state_dir=vault_root / ".note-researcher",
    )


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def notifier() -> MemoryNotifier:
    return MemoryNotifier()


@pytest.fixture
def make_controller(
    research_config: ResearchConfig,
    fake_provider: FakeProvider,
    notifier: MemoryNotifier,
    manual_clock: ManualClock,
):
    """Factory for controllers sharing the test's vault, notifier and clock."""
    created: List[RunController] = []

    def _make(
        config: Optional[ResearchConfig] = None,
        provider_factory: Optional[Callable[[str], Any]] = None,
    ) -> RunController:
        cfg = config or research_config
        state_dir = cfg.get_state_dir()
        controller = RunController(
            config=cfg,
            store=RunStore(state_dir),
            vault=NoteVault(cfg.vault_root),
            sink=ReportSink(cfg.vault_root),
            notifier=notifier,
            run_log=RunLog(state_dir / LOG_FILENAME),
            provider_factory=provider_factory or (lambda _path: fake_provider),
            sleep=manual_clock.sleep,
        )
        created.append(controller)
        return controller

    yield _make

    for controller in created:
        controller.run_log.close()


@pytest.fixture
def controller(make_controller) -> RunController:
    return make_controller()


@pytest.fixture
def read_run_log(research_config: ResearchConfig) -> Callable[[], str]:
    """Returns a reader for the test run log."""

    def _read() -> str:
        path = research_config.get_state_dir() / LOG_FILENAME
        return path.read_text(encoding="utf-8") if path.exists() else ""

    return _read


# Check if pytest-asyncio is available
try:
    import pytest_asyncio  # noqa: F401

    HAS_PYTEST_ASYNCIO = True
except ImportError:
    HAS_PYTEST_ASYNCIO = False


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "asyncio: mark test as async (requires pytest-asyncio)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip async tests when pytest-asyncio is not installed."""
    skip_asyncio = pytest.mark.skip(reason="pytest-asyncio not installed")
    for item in items:
        if not HAS_PYTEST_ASYNCIO and item.get_closest_marker("asyncio"):
            item.add_marker(skip_asyncio)
