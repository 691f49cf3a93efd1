"""Pytest configuration and fixtures."""

import os

import pytest

# Set environment variables before imports
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["METRICS_BACKEND"] = "memory"
os.environ.pop("FAULT_INJECTION", None)

from aicore.execution.circuit_breaker import CircuitBreakerRegistry  # noqa: E402
from aicore.execution.fault_injection import disable_fault_injection  # noqa: E402
from aicore.execution.retry_policy import RetryEngine  # noqa: E402
from aicore.observability.metrics import InMemoryMetricsSink, set_metrics_sink  # noqa: E402
from aicore.providers.base import ModelProvider  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


class RecordingSleep:
    """Async sleep stand-in that records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class ScriptedProvider(ModelProvider):
    """Provider whose generate() replays a script of texts and exceptions."""

    name = "scripted"

    def __init__(self, script=None, default="A short summary."):
        super().__init__(api_key="test-key", model="scripted-model")
        self.script = list(script or [])
        self.default = default
        self.calls: list[tuple[str, str, bool]] = []

    async def generate(self, system_prompt, user_prompt, *, json_output=False):
        self.calls.append((system_prompt, user_prompt, json_output))
        step = self.script.pop(0) if self.script else self.default
        if isinstance(step, BaseException):
            raise step
        return step


@pytest.fixture(autouse=True)
def reset_fault_flags():
    """Clear process-wide fault flags around every test."""
    disable_fault_injection()
    yield
    disable_fault_injection()


@pytest.fixture
def metrics():
    """In-memory metrics sink installed as the process sink."""
    sink = InMemoryMetricsSink()
    set_metrics_sink(sink)
    yield sink
    set_metrics_sink(None)


@pytest.fixture
def clock():
    """Fake monotonic clock."""
    return FakeClock()


@pytest.fixture
def registry(metrics, clock):
    """Isolated circuit breaker registry."""
    return CircuitBreakerRegistry(metrics=metrics, clock=clock)


@pytest.fixture
def sleep():
    """Recording async sleep."""
    return RecordingSleep()


@pytest.fixture
def retry_engine(sleep):
    """Retry engine that never sleeps for real."""
    return RetryEngine(sleep=sleep)


@pytest.fixture
def provider_factory():
    """Build ScriptedProvider instances."""
    return ScriptedProvider


@pytest.fixture
def long_text():
    """Source text comfortably above the summarizer minimum."""
    return (
        "The city council approved a new transit plan on Monday. "
        "The plan adds three bus routes and extends light rail service. "
        "Construction is expected to begin next spring. "
        "Officials said the project will be funded by a regional sales tax."
    )
