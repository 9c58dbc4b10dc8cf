import json
import math
import time
from typing import Any, Dict, List, Optional, Tuple

from openai import OpenAIError
from pydantic import ValidationError

from recess_poc.adapters.engine.client import RecommendationEngine
from recess_poc.api.v1.schemas import (
    FamilyParsingRequest,
    ParsingOptions,
    RecommendationPerformance,
    RecommendationRequest,
    RecommendationResponse,
    RecommendationUsage,
)
from recess_poc.cache import cache_get, cache_key, cache_set
from recess_poc.config import settings
from recess_poc.core.llm import LLMNotConfigured, Usage, chat_complete
from recess_poc.core.logging import get_logger
from recess_poc.domain.prompts import recommendation_prompt
from recess_poc.domain.services.family_parsing import parse_family
from recess_poc.repositories.activities import ActivityRepository
from recess_poc.schemas import (
    ActivityMetadata,
    ActivityRecommendationSet,
    FamilyProfile,
    LightweightRecommendation,
    LogisticalFit,
    Recommendation,
    RecommendationFilters,
)

log = get_logger("recommendation")

MAX_PROMPT_CHARS = 30000
AI_CACHE_TTL = 1800
SLOW_REQUEST_MS = 5000
EMPTY_SUMMARY = (
    "No activities found matching your criteria. "
    "Try expanding your search filters or location range."
)
VECTOR_SUMMARY = "Recommendations generated using vector similarity search"


def _ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def candidate_limit(limit: int, include_explanations: bool) -> int:
    # over-fetch so dedup and AI re-ranking still have enough to choose from
    return limit * 2 if include_explanations else math.ceil(limit * 1.2)


def dedupe_lightweight(recs: List[LightweightRecommendation]) -> List[LightweightRecommendation]:
    """First occurrence of each (providerId, programId, eventId) wins; engine order is kept."""
    seen = set()
    out: List[LightweightRecommendation] = []
    for rec in recs:
        key = rec.identity()
        if key in seen:
            continue
        seen.add(key)
        out.append(rec)
    return out


def dedupe_resolved(
    pairs: List[Tuple[LightweightRecommendation, ActivityMetadata]],
) -> List[Tuple[LightweightRecommendation, ActivityMetadata]]:
    """Different engine ids can land on the same events row; keep the first."""
    seen = set()
    out = []
    for rec, activity in pairs:
        key = (activity.provider_id, activity.program_id)
        if key in seen:
            continue
        seen.add(key)
        out.append((rec, activity))
    return out


def recommendation_type(score: float) -> str:
    if score >= 0.8:
        return "perfect_match"
    if score >= 0.65:
        return "good_fit"
    if score >= 0.45:
        return "worth_exploring"
    return "backup_option"


def to_fallback_recommendation(
    rec: LightweightRecommendation,
    activity: ActivityMetadata,
    filters: RecommendationFilters,
) -> Recommendation:
    r = rec.ranking
    return Recommendation(
        provider_id=rec.provider_id,
        program_id=rec.program_id,
        match_score=rec.match_score,
        match_reasons=list(rec.match_reasons),
        recommendation_type=recommendation_type(rec.match_score),
        age_appropriate=r.age >= 0.7,
        interests=list(activity.interests),
        logistical_fit=LogisticalFit(
            location=r.location >= 0.6,
            schedule=r.schedule >= 0.6,
            budget=r.budget >= 0.6,
            transportation=not filters.transportation_required or r.location >= 0.8,
        ),
        metadata=activity.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


def _price_label(activity: ActivityMetadata) -> str:
    p = activity.pricing
    if p.amount:
        return f"${p.amount:g}/{p.type.replace('_', ' ', 1)}"
    return "Free" if p.type == "free" else "Price varies"


def compact_candidate(rec: LightweightRecommendation, activity: ActivityMetadata) -> Dict[str, Any]:
    desc = activity.description
    if len(desc) > 200:
        desc = desc[:200] + "..."
    loc = activity.location
    return {
        "providerId": rec.provider_id,
        "programId": rec.program_id,
        "score": rec.vector_similarity,
        "metadata": {
            "name": activity.name,
            "description": desc,
            "ageRange": f"{activity.age_range.min}-{activity.age_range.max}",
            "location": f"{loc.neighborhood or ''} {loc.city or ''}".strip(),
            "priceRange": _price_label(activity),
            "schedule": ", ".join(activity.schedule.days),
            "interests": activity.interests[:5],
        },
    }


def _fit_prompt(profile: FamilyProfile, candidates: List[Dict[str, Any]], limit: int) -> Optional[Tuple[str, str]]:
    system, user = recommendation_prompt(profile, candidates, limit)
    size = len(system) + len(user)
    if size <= MAX_PROMPT_CHARS:
        return system, user

    log.warning(f"AI prompt too large ({size} chars), truncating candidates")
    trimmed = candidates[: max(3, len(candidates) // 2)]
    system, user = recommendation_prompt(profile, trimmed, limit)
    new_size = len(system) + len(user)
    if new_size > MAX_PROMPT_CHARS:
        log.warning(f"Truncated prompt still too large ({new_size} chars), using fallback")
        return None
    return system, user


def enhance_with_ai(
    profile: FamilyProfile,
    candidates: List[Dict[str, Any]],
    *,
    limit: int,
    model: str,
    use_cache: bool,
) -> Tuple[Optional[ActivityRecommendationSet], Usage, bool]:
    """
    Ask the LLM to re-rank and explain the candidates.
    Returns (result or None for fallback, usage, cache_hit).
    """
    usage = Usage()
    prompt = _fit_prompt(profile, candidates, limit)
    if prompt is None:
        return None, usage, False

    key = None
    if use_cache:
        key = cache_key("rec-ai", {
            "profile": profile.model_dump(mode="json", by_alias=True),
            "candidates": candidates,
            "limit": limit,
            "model": model,
        })
        hit = cache_get(key)
        if hit is not None:
            try:
                return ActivityRecommendationSet.model_validate(hit), usage, True
            except ValidationError:
                log.warning("rec_ai_cache_entry_invalid", extra={"key": key})

    system, user = prompt
    try:
        completion = chat_complete(
            system, user,
            model=model, temperature=0.3, max_tokens=2500, operation="recommendations",
        )
    except (OpenAIError, LLMNotConfigured) as e:
        log.warning(f"AI enhancement failed, using vector-only results: {e}")
        return None, usage, False

    usage = completion.usage
    try:
        result = ActivityRecommendationSet.model_validate(json.loads(completion.content))
    except (ValueError, ValidationError) as e:
        log.warning(f"Failed to parse AI recommendations, using fallback: {e}")
        return None, usage, False

    if key:
        cache_set(key, result.model_dump(mode="json", by_alias=True), ttl_seconds=AI_CACHE_TTL)
    return result, usage, False


def resolve_profile(req: RecommendationRequest) -> Tuple[FamilyProfile, Usage]:
    """Use the given profile, or parse the free-text query into one."""
    if req.family_profile is not None:
        return req.family_profile, Usage()

    parsed = parse_family(
        FamilyParsingRequest(
            description=req.query,
            options=ParsingOptions(model=req.options.model, include_metrics=True),
        ),
        demo=settings.demo_mode,
    )
    usage = Usage()
    if parsed.usage:
        usage.total_tokens = parsed.usage.tokens_used
        usage.estimated_cost = parsed.usage.estimated_cost
    return parsed.family_profile, usage


def recommend(
    req: RecommendationRequest,
    *,
    engine: RecommendationEngine,
    repo: ActivityRepository,
) -> RecommendationResponse:
    start = time.perf_counter()
    opts = req.options

    profile, parse_usage = resolve_profile(req)
    tokens, cost = parse_usage.total_tokens, parse_usage.estimated_cost

    vector_start = time.perf_counter()
    result = engine.generate(
        profile,
        limit=candidate_limit(opts.limit, opts.include_explanations),
        include_scores=opts.include_scores,
        diversity_weight=opts.diversity_weight,
        filters=req.filters,
        use_cache=opts.use_cache,
    )
    unique = dedupe_lightweight(result.recommendations)
    activities = repo.get_many([r.identity() for r in unique])
    resolved = dedupe_resolved(
        [(r, activities[r.identity()]) for r in unique if r.identity() in activities]
    )
    vector_ms = _ms(vector_start)
    log.info(
        f"Vector search completed in {vector_ms}ms: {len(result.recommendations)} results, "
        f"{len(unique)} unique, {len(resolved)} resolved"
    )

    if not resolved:
        return RecommendationResponse(
            success=True,
            recommendations=[],
            search_summary=EMPTY_SUMMARY,
            total_matches=0,
            performance=RecommendationPerformance(
                vector_search_ms=vector_ms,
                ai_processing_ms=0,
                total_ms=_ms(start),
                cache_hit=result.performance.cache_hit,
            ),
        )

    def fallback() -> List[Recommendation]:
        return [to_fallback_recommendation(r, a, req.filters) for r, a in resolved[: opts.limit]]

    summary = VECTOR_SUMMARY
    ai_ms = 0
    cache_hit = result.performance.cache_hit
    if opts.include_explanations:
        ai_start = time.perf_counter()
        candidates = [compact_candidate(r, a) for r, a in resolved[: opts.limit + 5]]
        enhanced, ai_usage, ai_cache_hit = enhance_with_ai(
            profile, candidates, limit=opts.limit, model=opts.model, use_cache=opts.use_cache,
        )
        tokens += ai_usage.total_tokens
        cost += ai_usage.estimated_cost
        cache_hit = cache_hit or ai_cache_hit
        if enhanced is not None:
            by_key = {(r.provider_id, r.program_id): a for r, a in resolved}
            final = []
            for rec in enhanced.recommendations[: opts.limit]:
                activity = by_key.get((rec.provider_id, rec.program_id))
                if activity is not None and rec.metadata is None:
                    rec.metadata = activity.model_dump(mode="json", by_alias=True, exclude_none=True)
                final.append(rec)
            summary = enhanced.search_summary
        else:
            final = fallback()
        ai_ms = _ms(ai_start)
    else:
        final = fallback()

    total_ms = _ms(start)
    resp = RecommendationResponse(
        success=True,
        recommendations=final,
        search_summary=summary,
        total_matches=result.search_metadata.total_matches,
        performance=RecommendationPerformance(
            vector_search_ms=vector_ms,
            ai_processing_ms=ai_ms,
            total_ms=total_ms,
            cache_hit=cache_hit,
        ),
    )
    if opts.include_metrics:
        resp.usage = RecommendationUsage(tokens_used=tokens, estimated_cost=cost, model=opts.model)

    log.info(f"Recommendations generated: {len(final)} results in {total_ms}ms, {tokens} tokens, ${cost:.4f}")
    if total_ms > SLOW_REQUEST_MS:
        log.warning(f"Slow recommendation request: {total_ms}ms")
    return resp
