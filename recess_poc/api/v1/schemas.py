# recess_poc/api/v1/schemas.py
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import EmailStr, Field, field_validator, model_validator

from recess_poc.schemas import (
    CamelModel,
    FamilyProfile,
    GeneratedEmail,
    ParsedEmailTasks,
    Recommendation,
    RecommendationFilters,
)

ModelName = Literal["gpt-4o-mini", "gpt-4o"]

# --- Auth gate ---
class LoginReq(CamelModel):
    password: str

# --- Family parsing ---
class ParsingOptions(CamelModel):
    use_cache: bool = True
    model: ModelName = "gpt-4o-mini"
    include_metrics: bool = False

class FamilyParsingRequest(CamelModel):
    description: str = Field(min_length=10, max_length=5000)
    options: ParsingOptions = Field(default_factory=ParsingOptions)

    @field_validator("description")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Family description cannot be empty or only whitespace")
        return v

class ParsingUsage(CamelModel):
    tokens_used: int = Field(ge=0)
    estimated_cost: float = Field(ge=0)
    model: str
    cached: bool

class FamilyParsingResponse(CamelModel):
    success: bool
    family_profile: Optional[FamilyProfile] = None
    confidence: Optional[float] = Field(default=None, ge=0, le=1)
    warnings: Optional[List[str]] = None
    usage: Optional[ParsingUsage] = None
    error: Optional[str] = None

# --- Recommendations ---
class RecommendationOptions(CamelModel):
    limit: int = Field(default=10, ge=1, le=50)
    include_explanations: bool = True
    include_scores: bool = False
    diversity_weight: float = Field(default=0.3, ge=0, le=1)
    use_cache: bool = True
    model: ModelName = "gpt-4o-mini"
    include_metrics: bool = False

class RecommendationRequest(CamelModel):
    family_profile: Optional[FamilyProfile] = None
    query: Optional[str] = Field(default=None, min_length=10, max_length=2000)
    filters: RecommendationFilters = Field(default_factory=RecommendationFilters)
    options: RecommendationOptions = Field(default_factory=RecommendationOptions)

    @model_validator(mode="after")
    def _profile_or_query(self) -> "RecommendationRequest":
        if self.family_profile is None and not self.query:
            raise ValueError("Either 'familyProfile' or 'query' must be provided")
        return self

class RecommendationPerformance(CamelModel):
    vector_search_ms: int = Field(ge=0)
    ai_processing_ms: int = Field(ge=0)
    total_ms: int = Field(ge=0)
    cache_hit: bool

class RecommendationUsage(CamelModel):
    tokens_used: int = Field(ge=0)
    estimated_cost: float = Field(ge=0)
    model: str

class RecommendationResponse(CamelModel):
    success: bool
    recommendations: Optional[List[Recommendation]] = None
    search_summary: Optional[str] = None
    total_matches: Optional[int] = Field(default=None, ge=0)
    performance: Optional[RecommendationPerformance] = None
    usage: Optional[RecommendationUsage] = None
    error: Optional[str] = None

# --- Outreach / cost summary ---
class OutreachRequest(CamelModel):
    family_profile: FamilyProfile
    recommendations: List[Recommendation] = Field(min_length=1, max_length=10)

class OutreachResponse(CamelModel):
    success: bool = True
    emails: List[GeneratedEmail]
    total_cost: float = Field(ge=0)

class SenderInfo(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[Literal["provider", "instructor", "admin", "parent", "other"]] = None

class EmailParsingOptions(CamelModel):
    extract_metadata: bool = True
    use_cache: bool = True
    model: ModelName = "gpt-4o-mini"

class EmailParsingRequest(CamelModel):
    email_content: str = Field(min_length=10, max_length=10000)
    email_subject: Optional[str] = Field(default=None, max_length=200)
    sender_info: Optional[SenderInfo] = None
    options: EmailParsingOptions = Field(default_factory=EmailParsingOptions)

class EmailParsingResponse(CamelModel):
    success: bool = True
    tasks: ParsedEmailTasks
    usage: ParsingUsage

class CostSummaryRequest(CamelModel):
    total_cost: float = Field(default=0.0, ge=0)
    recommendations: List[Recommendation] = []
    emails: List[GeneratedEmail] = []

# --- Errors ---
class ErrorResponse(CamelModel):
    success: Literal[False] = False
    error: str
    details: Optional[Union[str, Dict[str, Any], List[Any]]] = None
    timestamp: Optional[str] = None
    request_id: Optional[str] = None


def extract_error_message(error: Any) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        return str(error)
    return "Unknown error occurred"


def create_error_response(
    message: str,
    details: Any = None,
    request_id: Optional[str] = None,
) -> ErrorResponse:
    return ErrorResponse(
        error=message,
        details=details,
        timestamp=datetime.now(timezone.utc).isoformat(),
        request_id=request_id,
    )
