import httpx
import pytest

from contentgen.config import Settings
from contentgen.generation import GenerationService
from contentgen.providers.openai import OpenAIProvider

from .helpers import BASE_URL, ListRecorder, SleepLog


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key="sk-test", base_url=BASE_URL)


@pytest.fixture
def sleep_log() -> SleepLog:
    return SleepLog()


@pytest.fixture
def recorder() -> ListRecorder:
    return ListRecorder()


@pytest.fixture
def make_service(settings, sleep_log, recorder):
    def _make(handler, **overrides) -> GenerationService:
        provider = OpenAIProvider(
            settings.api_key, BASE_URL, settings.attempt_timeout_s,
            transport=httpx.MockTransport(handler),
        )
        return GenerationService(
            overrides.pop("settings", settings),
            provider=overrides.pop("provider", provider),
            sleep=overrides.pop("sleep", sleep_log),
            recorder=overrides.pop("recorder", recorder),
            **overrides,
        )

    return _make
