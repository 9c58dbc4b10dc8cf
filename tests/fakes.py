import json
from typing import List, Optional

from recess_poc.adapters.engine.client import EngineHealth, RecommendationEngine
from recess_poc.core.llm import Completion, Usage
from recess_poc.schemas import LightweightRecommendationResult


def lightweight(provider_id, program_id=None, event_id=None, score=0.7, **ranking) -> dict:
    r = {"overall": score, "age": 0.8, "interests": 0.7, "location": 0.7,
         "schedule": 0.7, "budget": 0.7, "quality": 0.7}
    r.update(ranking)
    return {
        "providerId": str(provider_id),
        "programId": None if program_id is None else str(program_id),
        "eventId": None if event_id is None else str(event_id),
        "vectorSimilarity": score,
        "practicalScore": score,
        "matchScore": score,
        "matchReasons": ["Close to home", "Matches interest in soccer"],
        "concerns": [],
        "ranking": r,
    }


def engine_result(recs: List[dict], cache_hit: bool = False) -> LightweightRecommendationResult:
    return LightweightRecommendationResult.model_validate({
        "recommendations": recs,
        "searchMetadata": {
            "totalMatches": len(recs),
            "vectorSearchResults": len(recs),
            "filtersApplied": [],
            "searchQuery": "family profile",
        },
        "performance": {"vectorSearchMs": 12, "scoringMs": 3, "totalMs": 15, "cacheHit": cache_hit},
    })


class FakeEngine(RecommendationEngine):
    def __init__(self, result: Optional[LightweightRecommendationResult] = None, healthy: bool = True):
        self.result = result or engine_result([])
        self.healthy = healthy
        self.calls: List[dict] = []

    def health_check(self) -> EngineHealth:
        return EngineHealth(self.healthy, self.healthy, self.healthy, True)

    def generate(self, profile, **kwargs):
        self.calls.append({"profile": profile, **kwargs})
        return self.result


class FakeLLM:
    """Stands in for core.llm.chat_complete; replies are queued JSON payloads or raw strings."""

    def __init__(self):
        self.replies: List[object] = []
        self.calls: List[dict] = []

    def __call__(self, system, user, **kwargs) -> Completion:
        self.calls.append({"system": system, "user": user, **kwargs})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        content = reply if isinstance(reply, str) else json.dumps(reply)
        return Completion(
            content=content,
            model=kwargs.get("model", "gpt-4o-mini"),
            usage=Usage(prompt_tokens=100, completion_tokens=50, total_tokens=150, estimated_cost=0.0001),
        )


