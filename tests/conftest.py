"""Shared test fixtures for the Concierge test suite."""

from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

import pytest

from concierge.config.loader import load_app_config
from concierge.config.provider import ConfigProvider
from concierge.config.schema import AppConfig
from concierge.core.models import Booking, Property
from concierge.engine.processor import RequestProcessor
from concierge.providers.base import (
    CompletionProvider,
    CompletionResult,
    ProviderConfig,
    Turn,
)
from concierge.safety.gate import SafetyGate
from concierge.storage.repository import Repository
from concierge.tools.executor import ToolExecutor
from concierge.workflow.approvals import ApprovalWorkflow

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


class ScriptedProvider(CompletionProvider):
    """Completion provider that replays a fixed script.

    Each step is a CompletionResult to return, an exception to raise, or
    an async callable producing a result. Every request is recorded.
    """

    def __init__(self, *script, timeout_seconds: float = 5.0):
        super().__init__(
            ProviderConfig(
                model="scripted",
                max_retries=1,
                retry_base_delay=0.0,
                timeout_seconds=timeout_seconds,
            )
        )
        self._script = list(script)
        self.calls: list[dict] = []

    async def _create_completion_impl(
        self,
        turns: Sequence[Turn],
        *,
        tools=None,
        tool_choice=None,
        temperature=0.3,
        max_tokens=1000,
    ) -> CompletionResult:
        self.calls.append({
            "turns": list(turns),
            "tools": tools,
            "tool_choice": tool_choice,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        step = self._script.pop(0)
        if isinstance(step, BaseException):
            raise step
        if callable(step):
            return await step()
        return step


@pytest.fixture
def app_config() -> AppConfig:
    return load_app_config(CONFIG_DIR)


@pytest.fixture
def config_provider(app_config) -> ConfigProvider:
    return ConfigProvider.from_config(app_config)


@pytest.fixture
def harbour_view() -> Property:
    return Property(
        property_id="prop-harbour-view",
        name="Harbour View Cottage",
        address="12 Wharf Road",
        wifi_ssid="HarbourView",
        wifi_password="sunset-4821",
        parking_instructions="Two car parks at the top of the driveway",
        access_instructions_public="The lockbox is beside the front door",
        access_instructions_secure="Lockbox code 4821",
        house_rules="No parties. Quiet after 10pm.",
    )


@pytest.fixture
def ann_booking() -> Booking:
    return Booking(
        booking_id="bk-1001",
        guest_name="Ann Taylor",
        guest_email="ann@example.com",
        guest_phone="+64215550101",
        property_id="prop-harbour-view",
        arrival_date=datetime(2026, 12, 20, 15, 0, tzinfo=UTC),
        departure_date=datetime(2026, 12, 27, 10, 0, tzinfo=UTC),
        num_guests=2,
    )


@pytest.fixture
def repository(harbour_view, ann_booking) -> Repository:
    repo = Repository(":memory:")
    repo.save_property(harbour_view)
    repo.save_booking(ann_booking)
    yield repo
    repo.close()


@pytest.fixture
def workflow(repository) -> ApprovalWorkflow:
    return ApprovalWorkflow(repository)


@pytest.fixture
def executor(repository, workflow, config_provider) -> ToolExecutor:
    return ToolExecutor(repository, workflow, config_provider)


@pytest.fixture
def make_provider():
    return ScriptedProvider


@pytest.fixture
def make_processor(executor, config_provider):
    def _make(provider: CompletionProvider, config: ConfigProvider | None = None) -> RequestProcessor:
        cfg = config or config_provider
        return RequestProcessor(provider, SafetyGate(cfg), executor, cfg)
    return _make
