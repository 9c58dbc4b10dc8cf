# recess_poc/adapters/engine/client.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx
from pydantic import ValidationError

from recess_poc.config import settings
from recess_poc.core.logging import get_logger
from recess_poc.schemas import FamilyProfile, LightweightRecommendationResult, RecommendationFilters

log = get_logger("engine")


class EngineError(RuntimeError):
    pass


@dataclass
class EngineHealth:
    vector_search: bool = False
    collection: bool = False
    local_embeddings: bool = False
    ai: bool = False

    @property
    def overall(self) -> bool:
        return self.vector_search and self.collection and self.local_embeddings and self.ai

    def describe(self) -> str:
        ok = lambda b, up="OK", down="Failed": up if b else down  # noqa: E731
        return (
            f"Vector search: {ok(self.vector_search)}, Collection: {ok(self.collection)}, "
            f"Local embeddings: {ok(self.local_embeddings)}, OpenAI: {ok(self.ai)}"
        )


class RecommendationEngine(ABC):
    """
    Matching/vector-search engine. Lives outside this service; only its
    input/output contract is known here.
    """

    @abstractmethod
    def health_check(self) -> EngineHealth: ...

    @abstractmethod
    def generate(
        self,
        profile: FamilyProfile,
        *,
        limit: int,
        include_scores: bool,
        diversity_weight: float,
        filters: RecommendationFilters,
        use_cache: bool,
    ) -> LightweightRecommendationResult: ...


class HttpRecommendationEngine(RecommendationEngine):
    def __init__(self, base_url: Optional[str], client: Optional[httpx.Client] = None):
        self.base_url = (base_url or "").rstrip("/")
        self._client = client

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(base_url=self.base_url)
        return self._client

    def health_check(self) -> EngineHealth:
        ai = bool(settings.openrouter_api_key)
        if not self.base_url:
            return EngineHealth(ai=ai)
        try:
            resp = self._http().get("/health")
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError):
            log.warning("engine_health_failed", extra={"url": self.base_url})
            return EngineHealth(ai=ai)
        return EngineHealth(
            vector_search=bool(data.get("qdrant", data.get("vectorSearch"))),
            collection=bool(data.get("collection")),
            local_embeddings=bool(data.get("localEmbeddings")),
            ai=ai,
        )

    def generate(self, profile, *, limit, include_scores, diversity_weight, filters, use_cache):
        if not self.base_url:
            raise EngineError("Recommendation engine unavailable: RECOMMENDATION_ENGINE_URL is not set")
        payload = {
            "familyProfile": profile.model_dump(mode="json", by_alias=True, exclude_none=True),
            "options": {
                "limit": limit,
                "includeScore": include_scores,
                "diversityWeight": diversity_weight,
                "filters": filters.model_dump(mode="json", by_alias=True, exclude_none=True),
                "cacheResults": use_cache,
            },
        }
        try:
            resp = self._http().post("/recommendations", json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise EngineError(f"Recommendation engine unavailable: {e}") from e
        try:
            return LightweightRecommendationResult.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise EngineError(f"Recommendation engine returned an invalid result: {e}") from e


_engine: Optional[RecommendationEngine] = None


def get_engine() -> RecommendationEngine:
    """Process-wide engine; routers depend on this so tests can override it."""
    global _engine
    if _engine is None:
        _engine = HttpRecommendationEngine(settings.recommendation_engine_url)
    return _engine
