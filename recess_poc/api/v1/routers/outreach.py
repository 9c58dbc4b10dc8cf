# recess_poc/api/v1/routers/outreach.py
from fastapi import APIRouter, Depends
from openai import OpenAIError
from sqlmodel import Session

from recess_poc.api.v1.schemas import (
    EmailParsingRequest,
    EmailParsingResponse,
    OutreachRequest,
    OutreachResponse,
)
from recess_poc.core.errors import ApiError, map_upstream_error
from recess_poc.core.llm import LLMNotConfigured
from recess_poc.db.core import get_session
from recess_poc.domain.services.outreach import EmailParsingFailed, generate_outreach, parse_email_tasks
from recess_poc.repositories.activities import SqlActivityRepository

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/outreach-emails", response_model=OutreachResponse, response_model_exclude_none=True)
def outreach_emails(req: OutreachRequest, db: Session = Depends(get_session)):
    """One templated inquiry email per selected recommendation."""
    contacts = SqlActivityRepository(db).contact_names([r.provider_id for r in req.recommendations])
    out = generate_outreach(req.family_profile, req.recommendations, contacts)
    return OutreachResponse(emails=out["emails"], total_cost=out["total_cost"])


@router.post("/parse-email-tasks", response_model=EmailParsingResponse, response_model_exclude_none=True)
def parse_email_tasks_api(req: EmailParsingRequest):
    try:
        return parse_email_tasks(req)
    except EmailParsingFailed as e:
        raise ApiError(500, str(e))
    except (OpenAIError, LLMNotConfigured) as e:
        mapped = map_upstream_error(e)
        if mapped is not None:
            raise mapped from e
        raise ApiError(500, "Failed to parse email") from e
