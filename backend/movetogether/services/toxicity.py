from __future__ import annotations
from dataclasses import dataclass, field
from typing import Protocol

import httpx
import structlog

from movetogether.config import Settings, settings
from movetogether.errors import UpstreamFailure

log = structlog.get_logger()

OPENAI_MODERATION_URL = "https://api.openai.com/v1/moderations"
PERSPECTIVE_URL = "https://commentanalyzer.googleapis.com/v1alpha1/comments:analyze"
PERSPECTIVE_ATTRIBUTES = ("TOXICITY", "SEVERE_TOXICITY", "INSULT", "THREAT", "PROFANITY")


@dataclass
class ToxicityResult:
    score: float
    categories: dict[str, float] = field(default_factory=dict)


class ToxicityClassifier(Protocol):
    name: str

    async def classify(self, text: str) -> ToxicityResult: ...


class NullClassifier:
    """Used when no provider is configured: every message scores 0."""
    name = "none"

    async def classify(self, text: str) -> ToxicityResult:
        return ToxicityResult(score=0.0)


class _HttpClassifier:
    name = "http"

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 5.0):
        self._client = client
        self._timeout = timeout

    async def _post(self, url: str, **kwargs) -> dict:
        try:
            if self._client is not None:
                r = await self._client.post(url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    r = await client.post(url, **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamFailure(f"{self.name} moderation request failed: {e}") from e
        if r.status_code >= 400:
            raise UpstreamFailure(f"{self.name} moderation returned {r.status_code}")
        try:
            return r.json()
        except ValueError as e:
            raise UpstreamFailure(f"{self.name} moderation returned invalid JSON") from e


class OpenAIModerationClassifier(_HttpClassifier):
    name = "openai"

    def __init__(self, api_key: str, model: str = "omni-moderation-latest", **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.model = model

    async def classify(self, text: str) -> ToxicityResult:
        data = await self._post(
            OPENAI_MODERATION_URL,
            json={"input": text, "model": self.model},
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        results = data.get("results") or []
        if not results:
            raise UpstreamFailure("openai moderation returned no results")
        raw = results[0].get("category_scores") or {}
        categories = {k: float(v) for k, v in raw.items() if isinstance(v, (int, float))}
        return ToxicityResult(score=max(categories.values(), default=0.0), categories=categories)


class PerspectiveClassifier(_HttpClassifier):
    name = "perspective"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    async def classify(self, text: str) -> ToxicityResult:
        data = await self._post(
            PERSPECTIVE_URL,
            params={"key": self.api_key},
            json={
                "comment": {"text": text},
                "languages": ["en"],
                "requestedAttributes": {attr: {} for attr in PERSPECTIVE_ATTRIBUTES},
            },
        )
        categories: dict[str, float] = {}
        for attr, value in (data.get("attributeScores") or {}).items():
            categories[attr.lower()] = float(((value or {}).get("summaryScore") or {}).get("value") or 0.0)
        score = categories.get("toxicity") or categories.get("severe_toxicity") or max(categories.values(), default=0.0)
        # Severe toxicity alone is enough to block
        score = max(score, categories.get("severe_toxicity", 0.0))
        return ToxicityResult(score=score, categories=categories)


def build_classifier(cfg: Settings = settings, client: httpx.AsyncClient | None = None) -> ToxicityClassifier:
    """
    Provider selection is configuration only:
      auto        => OpenAI if its key is set, else Perspective if its key is set, else none
      openai|perspective|none => forced
    """
    provider = (cfg.toxicity_provider or "auto").lower()
    if provider == "auto":
        provider = "openai" if cfg.openai_api_key else ("perspective" if cfg.perspective_api_key else "none")
    if provider == "openai" and cfg.openai_api_key:
        return OpenAIModerationClassifier(
            cfg.openai_api_key, model=cfg.openai_moderation_model, client=client, timeout=cfg.toxicity_timeout_seconds,
        )
    if provider == "perspective" and cfg.perspective_api_key:
        return PerspectiveClassifier(cfg.perspective_api_key, client=client, timeout=cfg.toxicity_timeout_seconds)
    if provider != "none":
        log.warning("toxicity_provider_unconfigured", provider=provider)
    return NullClassifier()


def get_toxicity_classifier() -> ToxicityClassifier:
    return build_classifier(settings)
