# recess_poc/api/v1/routers/parse_family.py
from fastapi import APIRouter, Request
from openai import OpenAIError

from recess_poc.api.v1.schemas import FamilyParsingRequest, FamilyParsingResponse
from recess_poc.config import settings
from recess_poc.core.errors import ApiError, map_upstream_error
from recess_poc.core.llm import LLMNotConfigured
from recess_poc.domain.services.family_parsing import ParsingFailed, parse_family

router = APIRouter(prefix="/ai", tags=["ai"])

GENERIC_FAILURE = "Failed to parse family description. Please try rephrasing your input."


@router.post("/parse-family", response_model=FamilyParsingResponse, response_model_exclude_none=True)
def parse_family_api(req: FamilyParsingRequest, request: Request):
    """
    Free-text family description -> FamilyProfile.
    `?demo` (or DEMO_MODE=true) uses the regex parser instead of the LLM.
    """
    demo = settings.demo_mode or "demo" in request.query_params
    try:
        return parse_family(req, demo=demo)
    except ParsingFailed as e:
        msg = str(e)
        if msg.startswith("AI returned"):
            raise ApiError(500, msg)
        raise ApiError(500, GENERIC_FAILURE, e.issues or None)
    except (OpenAIError, LLMNotConfigured) as e:
        mapped = map_upstream_error(e)
        if mapped is not None:
            raise mapped from e
        raise ApiError(500, GENERIC_FAILURE) from e
