"""
Shared test fixtures for reply-eval.

Provides a scripted in-memory provider, guideline sets, and CSV factories.
"""

import asyncio
import json
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import pytest

from reply_eval.providers.base import (
    BaseProvider,
    GenerationConfig,
    GenerationResponse,
    Message,
    ProviderConfig,
    ProviderType,
)
from reply_eval.scoring.guidelines import Guideline

Reply = Union[str, BaseException, GenerationResponse]


class FakeProvider(BaseProvider):
    """Provider returning scripted replies and recording concurrency.

    Each call consumes the next entry of `script`; once exhausted,
    `responder(messages, config)` or `default` is used. An exception entry is
    raised, a GenerationResponse entry is returned as-is. `delay` may be a
    callable of the messages, to make some calls finish later than others.
    """

    def __init__(
        self,
        script: Optional[Sequence[Reply]] = None,
        default: Reply = "",
        responder: Optional[Callable[[List[Message], GenerationConfig], Reply]] = None,
        delay: Union[float, Callable[[List[Message]], float]] = 0.0,
    ):
        super().__init__(ProviderConfig(api_key=None, model_id="fake-model"))
        self.script = list(script or [])
        self.default = default
        self.responder = responder
        self.delay = delay
        self.calls: List[tuple] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.OPENAI

    async def generate_chat(
        self, messages: List[Message], config: Optional[GenerationConfig] = None
    ) -> GenerationResponse:
        config = config or GenerationConfig()
        self.calls.append((list(messages), config))
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            delay = self.delay(messages) if callable(self.delay) else self.delay
            if delay:
                await asyncio.sleep(delay)
            if self.script:
                reply = self.script.pop(0)
            elif self.responder is not None:
                reply = self.responder(messages, config)
            else:
                reply = self.default
        finally:
            self.in_flight -= 1

        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, GenerationResponse):
            return reply
        return GenerationResponse(text=reply, model=self.model, provider=self.provider_type)

    def error_response(self, message: str) -> GenerationResponse:
        return GenerationResponse(
            text="", model=self.model, provider=self.provider_type, error=message
        )


def single_json(score: float, reasons: Sequence[str] = ("ok",)) -> str:
    return json.dumps({"score": score, "reasons": list(reasons)})


def multi_json(items: Sequence[tuple]) -> str:
    """items: (title, score) pairs."""
    return json.dumps(
        {"results": [{"title": t, "score": s, "reasons": [f"{t} reason"]} for t, s in items]}
    )


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def guidelines() -> List[Guideline]:
    return [
        Guideline(title="Tone", instruction="Use a polite, formal register."),
        Guideline(title="No emoji", instruction="Do not use emoji."),
        Guideline(title="Length", instruction="Keep replies between 125 and 357 characters."),
    ]


@pytest.fixture
def sample_reply() -> str:
    return (
        "Thank you very much for staying with us. We are delighted you enjoyed "
        "your room. We look forward to welcoming you again."
    )


@pytest.fixture
def review_csv(tmp_path: Path) -> Path:
    """A small review export with replies."""
    f = tmp_path / "reviews.csv"
    f.write_text(
        "brand_name,store_name,review_title,review_comment,locale,rating,reply\n"
        'Oriental,Rokujo,Great,"Clean room, kind staff.",English,5,"Thank you for staying! 😊"\n'
        "Oriental,Rokujo,Noisy,The AC was loud.,,2,We apologize for the noise.\n"
        "Oriental,Rokujo,,No comment,,,\n",
        encoding="utf-8",
    )
    return f


@pytest.fixture
def mock_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Environment variables pointing to temporary directories."""
    monkeypatch.setenv("REPLY_EVAL_STATE_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    return tmp_path
