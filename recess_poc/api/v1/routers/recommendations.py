# recess_poc/api/v1/routers/recommendations.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from openai import OpenAIError
from sqlmodel import Session

from recess_poc.adapters.engine.client import EngineError, RecommendationEngine, get_engine
from recess_poc.api.v1.schemas import RecommendationRequest, RecommendationResponse
from recess_poc.core.errors import ApiError, ServiceUnavailable, map_upstream_error
from recess_poc.core.llm import LLMNotConfigured
from recess_poc.core.logging import get_logger
from recess_poc.db.core import get_session
from recess_poc.domain.services.family_parsing import ParsingFailed
from recess_poc.domain.services.recommendation import recommend
from recess_poc.repositories.activities import ActivityRepository, SqlActivityRepository

log = get_logger("recommendations")

router = APIRouter(prefix="/ai", tags=["ai"])


def get_activity_repo(db: Session = Depends(get_session)) -> ActivityRepository:
    return SqlActivityRepository(db)


@router.post("/recommendations", response_model=RecommendationResponse, response_model_exclude_none=True)
def recommendations_api(
    req: RecommendationRequest,
    engine: RecommendationEngine = Depends(get_engine),
    repo: ActivityRepository = Depends(get_activity_repo),
):
    health = engine.health_check()
    if not health.overall:
        log.warning(f"Recommendation engine unhealthy: {health.describe()}")
        raise ServiceUnavailable("Recommendation service is currently unavailable", health.describe())

    try:
        return recommend(req, engine=engine, repo=repo)
    except EngineError as e:
        log.error(f"Recommendation engine failed: {e}")
        raise ServiceUnavailable(
            "Recommendation service is temporarily unavailable",
            "Vector search database is not responding. Please try again later.",
        ) from e
    except ParsingFailed as e:
        raise ApiError(
            500,
            "Failed to generate recommendations",
            "Unable to process your request. Please check your input and try again.",
        ) from e
    except (OpenAIError, LLMNotConfigured) as e:
        mapped = map_upstream_error(e)
        if mapped is not None:
            raise mapped from e
        raise ApiError(500, "Failed to generate recommendations", "Internal service error. Please try again later.") from e


@router.get("/recommendations")
def recommendations_health(engine: RecommendationEngine = Depends(get_engine)):
    health = engine.health_check()
    body = {
        "status": "healthy" if health.overall else "degraded",
        "services": {
            "vectorSearch": "up" if health.vector_search else "down",
            "vectorCollection": "available" if health.collection else "unavailable",
            "localEmbeddings": "up" if health.local_embeddings else "down",
            "openAIService": "up" if health.ai else "down",
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return JSONResponse(body, status_code=200 if health.overall else 503)
