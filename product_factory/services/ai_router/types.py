"""Domain types for the AI invocation router."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Protocol

AITier = Literal["fast", "quality"]

DEFAULT_MODEL = "gemini-2.0-flash"


@dataclass(slots=True)
class ProviderCandidate:
    """One usable credential from the provider key pool."""

    key_id: str
    provider: str
    api_key: str
    base_url: str | None = None
    allowed_models: list[str] = field(default_factory=list)
    error_count: int = 0

    @property
    def model(self) -> str:
        """First allowed model is the one used for this credential."""
        for name in self.allowed_models:
            if name and name.strip():
                return name.strip()
        return DEFAULT_MODEL


@dataclass(slots=True)
class GenerationResult:
    """Text produced by one successful attempt, with token usage."""

    text: str
    provider: str
    model: str
    tokens_in: int = 0
    tokens_out: int = 0


class TextGenerator(Protocol):
    """Performs a single completion against one candidate."""

    async def generate(
        self,
        candidate: ProviderCandidate,
        prompt: str,
        *,
        system: str | None,
        temperature: float,
    ) -> GenerationResult: ...


class KeyPool(Protocol):
    """Provider key storage used by the router."""

    async def list_candidates(self) -> list[ProviderCandidate]: ...

    async def record_success(self, key_id: str) -> None: ...

    async def record_failure(self, key_id: str, message: str) -> None: ...


class CostRecorder(Protocol):
    """Sink for per-attempt usage."""

    async def record_cost(self, stage: str, model: str, tokens_in: int, tokens_out: int) -> float: ...
