import pytest

from recess_poc.adapters.engine.client import EngineError
from recess_poc.domain.services.recommendation import (
    EMPTY_SUMMARY,
    VECTOR_SUMMARY,
    _fit_prompt,
    candidate_limit,
    dedupe_lightweight,
    recommendation_type,
    to_fallback_recommendation,
)
from recess_poc.schemas import FamilyProfile, LightweightRecommendation, RecommendationFilters

from tests.fakes import FakeEngine, engine_result, lightweight

URL = "/api/v1/ai/recommendations"

AI_REPLY = {
    "recommendations": [{
        "providerId": "2",
        "programId": "20",
        "matchScore": 0.9,
        "matchReasons": ["Teen-focused dance program close to home"],
        "recommendationType": "perfect_match",
        "ageAppropriate": True,
        "interests": ["dance"],
        "logisticalFit": {"location": True, "schedule": True, "budget": True, "transportation": True},
    }],
    "searchSummary": "Dance first, then soccer.",
}


def _lw(*args, **kwargs) -> LightweightRecommendation:
    return LightweightRecommendation.model_validate(lightweight(*args, **kwargs))


class BrokenEngine(FakeEngine):
    def generate(self, profile, **kwargs):
        raise EngineError("Recommendation engine unavailable: connection refused")


# --- units ---

def test_dedupe_keeps_first_occurrence_in_order():
    recs = [_lw(1, 10, score=0.9), _lw(2, 20), _lw(1, 10, score=0.3), _lw(1, 10, 5)]
    out = dedupe_lightweight(recs)
    assert [r.identity() for r in out] == [("1", "10", None), ("2", "20", None), ("1", "10", "5")]
    assert out[0].match_score == 0.9


@pytest.mark.parametrize("score,expected", [
    (0.8, "perfect_match"),
    (0.79, "good_fit"),
    (0.65, "good_fit"),
    (0.64, "worth_exploring"),
    (0.45, "worth_exploring"),
    (0.44, "backup_option"),
])
def test_recommendation_type_thresholds(score, expected):
    assert recommendation_type(score) == expected


def test_candidate_limit():
    assert candidate_limit(10, True) == 20
    assert candidate_limit(10, False) == 12
    assert candidate_limit(3, False) == 4


def test_fallback_conversion(seeded):
    from recess_poc.repositories.activities import SqlActivityRepository

    activity = SqlActivityRepository(seeded).get_many([("1", "10", None)])[("1", "10", None)]
    rec = _lw(1, 10, score=0.66, age=0.69, location=0.7, schedule=0.59, budget=0.6)

    out = to_fallback_recommendation(rec, activity, RecommendationFilters())
    assert out.recommendation_type == "good_fit"
    assert out.age_appropriate is False
    assert out.interests == ["soccer", "teamwork"]
    fit = out.logistical_fit
    assert (fit.location, fit.schedule, fit.budget, fit.transportation) == (True, False, True, True)

    strict = to_fallback_recommendation(rec, activity, RecommendationFilters(transportationRequired=True))
    assert strict.logistical_fit.transportation is False


def test_prompt_halved_when_too_large(profile_json):
    profile = FamilyProfile.model_validate(profile_json)
    candidates = [{"providerId": str(i), "metadata": {"description": "x" * 400}} for i in range(100)]
    system, user = _fit_prompt(profile, candidates, 10)
    assert len(system) + len(user) <= 30000
    assert '"providerId": "49"' in user
    assert '"providerId": "50"' not in user


def test_prompt_gives_up_when_still_too_large(profile_json):
    profile = FamilyProfile.model_validate(profile_json)
    candidates = [{"providerId": str(i), "metadata": {"description": "x" * 15000}} for i in range(4)]
    assert _fit_prompt(profile, candidates, 10) is None


# --- API ---

def test_unhealthy_engine_returns_503(client, fake_engine, profile_json):
    fake_engine.healthy = False
    r = client.post(URL, json={"familyProfile": profile_json})
    assert r.status_code == 503
    body = r.json()
    assert body["error"] == "Recommendation service is currently unavailable"
    assert "Vector search: Failed" in body["details"]
    assert fake_engine.calls == []


def test_vector_only_recommendations(client, seeded, fake_engine, profile_json):
    fake_engine.result = engine_result([
        lightweight(1, 10, score=0.85),
        lightweight(1, 10, score=0.2),
        lightweight(2, 20, score=0.5),
        lightweight(99, score=0.9),
    ])
    r = client.post(URL, json={"familyProfile": profile_json, "options": {"includeExplanations": False}})
    assert r.status_code == 200
    body = r.json()
    assert fake_engine.calls[0]["limit"] == 12
    assert body["searchSummary"] == VECTOR_SUMMARY
    recs = body["recommendations"]
    assert [(x["providerId"], x["programId"]) for x in recs] == [("1", "10"), ("2", "20")]
    assert recs[0]["recommendationType"] == "perfect_match"
    assert recs[0]["interests"] == ["soccer", "teamwork"]
    assert recs[1]["recommendationType"] == "worth_exploring"
    assert recs[1]["metadata"]["ageRange"] == {"min": 13, "max": 18}
    assert body["performance"]["aiProcessingMs"] == 0
    assert "usage" not in body


def test_limit_caps_fallback(client, seeded, fake_engine, profile_json):
    fake_engine.result = engine_result([lightweight(1, 10), lightweight(2, 20)])
    r = client.post(URL, json={"familyProfile": profile_json,
                               "options": {"includeExplanations": False, "limit": 1}})
    assert len(r.json()["recommendations"]) == 1


def test_empty_result(client, seeded, fake_engine, profile_json):
    r = client.post(URL, json={"familyProfile": profile_json})
    assert r.status_code == 200
    body = r.json()
    assert body["recommendations"] == []
    assert body["totalMatches"] == 0
    assert body["searchSummary"] == EMPTY_SUMMARY


def test_unresolvable_results_count_as_empty(client, seeded, fake_engine, profile_json):
    fake_engine.result = engine_result([lightweight(404), lightweight(405)])
    r = client.post(URL, json={"familyProfile": profile_json})
    assert r.json()["searchSummary"] == EMPTY_SUMMARY


def test_ai_enhanced_recommendations(client, seeded, fake_engine, llm, profile_json):
    fake_engine.result = engine_result([lightweight(1, 10, score=0.7), lightweight(2, 20, score=0.6)])
    llm.replies.append(AI_REPLY)
    r = client.post(URL, json={"familyProfile": profile_json, "options": {"includeMetrics": True}})
    assert r.status_code == 200
    body = r.json()
    assert fake_engine.calls[0]["limit"] == 20
    assert body["searchSummary"] == "Dance first, then soccer."
    assert body["recommendations"][0]["providerId"] == "2"
    assert body["recommendations"][0]["metadata"]["name"] == "Dance Discovery - Evolution: Teens"
    assert body["usage"] == {"tokensUsed": 150, "estimatedCost": 0.0001, "model": "gpt-4o-mini"}

    call = llm.calls[0]
    assert (call["temperature"], call["max_tokens"]) == (0.3, 2500)
    assert ("Footwork and games. " * 10) + "..." in call["user"]
    assert ("Footwork and games. " * 11) not in call["user"]


def test_ai_invalid_reply_falls_back(client, seeded, fake_engine, llm, profile_json):
    fake_engine.result = engine_result([lightweight(1, 10, score=0.7)])
    llm.replies.append({"recommendations": "none"})
    r = client.post(URL, json={"familyProfile": profile_json})
    assert r.status_code == 200
    body = r.json()
    assert body["searchSummary"] == VECTOR_SUMMARY
    assert body["recommendations"][0]["recommendationType"] == "good_fit"


def test_ai_result_cached(client, seeded, fake_engine, llm, profile_json, memory_cache):
    fake_engine.result = engine_result([lightweight(2, 20)])
    llm.replies.append(AI_REPLY)
    first = client.post(URL, json={"familyProfile": profile_json})
    second = client.post(URL, json={"familyProfile": profile_json})
    assert len(llm.calls) == 1
    assert len(memory_cache) == 1
    assert first.json()["performance"]["cacheHit"] is False
    assert second.json()["performance"]["cacheHit"] is True
    assert second.json()["searchSummary"] == AI_REPLY["searchSummary"]


def test_ai_cache_skipped_when_disabled(client, seeded, fake_engine, llm, profile_json, memory_cache):
    fake_engine.result = engine_result([lightweight(2, 20)])
    llm.replies.extend([AI_REPLY, AI_REPLY])
    for _ in range(2):
        client.post(URL, json={"familyProfile": profile_json, "options": {"useCache": False}})
    assert len(llm.calls) == 2
    assert memory_cache == {}


def test_query_is_parsed_first(client, seeded, fake_engine, llm, profile_json):
    fake_engine.result = engine_result([lightweight(1, 10)])
    llm.replies.append(profile_json)
    r = client.post(URL, json={
        "query": "Sarah here, Emma is 7 and loves soccer",
        "options": {"includeExplanations": False, "includeMetrics": True},
    })
    assert r.status_code == 200
    assert fake_engine.calls[0]["profile"].children[0].name == "Emma"
    assert r.json()["usage"]["tokensUsed"] == 150


def test_engine_failure_returns_503(client, seeded, profile_json):
    from recess_poc.adapters.engine.client import get_engine
    from recess_poc.main import app

    app.dependency_overrides[get_engine] = lambda: BrokenEngine()
    r = client.post(URL, json={"familyProfile": profile_json})
    assert r.status_code == 503
    assert r.json()["error"] == "Recommendation service is temporarily unavailable"


def test_requires_profile_or_query(client):
    r = client.post(URL, json={})
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Invalid request parameters"
    assert any("Either 'familyProfile' or 'query'" in d["message"] for d in body["details"])


def test_health_endpoint(client, fake_engine):
    r = client.get(URL)
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"
    assert r.json()["services"]["vectorSearch"] == "up"

    fake_engine.healthy = False
    r = client.get(URL)
    assert r.status_code == 503
    assert r.json()["status"] == "degraded"
    assert r.json()["services"]["vectorCollection"] == "unavailable"


def test_same_event_under_different_ids_listed_once(client, seeded, fake_engine, profile_json):
    fake_engine.result = engine_result([
        lightweight(1, 10, score=0.9),
        lightweight(1, None, 10, score=0.8),
        lightweight(1, score=0.7),
        lightweight(2, 20, score=0.6),
    ])
    r = client.post(URL, json={"familyProfile": profile_json, "options": {"includeExplanations": False}})
    assert r.status_code == 200
    recs = r.json()["recommendations"]
    assert [x["metadata"]["name"] for x in recs] == ["Teen Soccer Skills", "Dance Discovery - Evolution: Teens"]
    assert recs[0]["matchScore"] == 0.9


def test_adult_age_bounds_do_not_fail_request(client, seeded, fake_engine, profile_json):
    from recess_poc.db.models import Event

    seeded.add(Event(id=50, provider_id=5, name="Family Swim", min_age=0, max_age=99))
    seeded.commit()
    fake_engine.result = engine_result([lightweight(5, 50)])
    r = client.post(URL, json={"familyProfile": profile_json, "options": {"includeExplanations": False}})
    assert r.status_code == 200
    rec = r.json()["recommendations"][0]
    assert rec["metadata"]["name"] == "Family Swim"
    assert rec["metadata"]["ageRange"] == {"min": 0, "max": 18}
