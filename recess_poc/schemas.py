# recess_poc/schemas.py
from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire; both accepted on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


TimeSlot = Literal[
    "weekday_morning", "weekday_afternoon", "weekday_evening",
    "weekend_morning", "weekend_afternoon", "weekend_evening",
]
TIME_SLOTS: tuple = get_args(TimeSlot)

RecommendationType = Literal["perfect_match", "good_fit", "worth_exploring", "backup_option"]
Priority = Literal["low", "medium", "high"]

# strict: "0.5" and True are rejected, ints are accepted
Score01 = Annotated[float, Field(ge=0, le=1, strict=True)]

# =========================
# Family profile
# =========================

class Adult(CamelModel):
    name: str = Field(min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    role: Literal["parent", "guardian", "caregiver"] = "parent"

class Child(CamelModel):
    name: str = Field(min_length=1, max_length=50)
    age: int = Field(ge=0, le=18, strict=True)
    interests: List[str] = Field(max_length=15)
    special_needs: Optional[str] = None
    allergies: List[str] = Field(max_length=10)

class Location(CamelModel):
    neighborhood: Optional[str] = None
    zip_code: Optional[str] = None
    city: Optional[str] = None
    transportation_needs: bool = False

class SpecificTimes(CamelModel):
    earliest_start: Optional[str] = None  # "9:00 AM"
    latest_end: Optional[str] = None      # "5:00 PM"
    preferred_duration: Optional[float] = None  # minutes

class ScheduleConstraint(CamelModel):
    time_slots: List[TimeSlot]
    specific_times: Optional[SpecificTimes] = None
    restrictions: Optional[List[str]] = None  # ["no weekday mornings", "must end before 11am"]
    flexibility: Literal["strict", "somewhat_flexible", "very_flexible"] = "somewhat_flexible"

class Budget(CamelModel):
    min: Optional[float] = None
    max: Optional[float] = None
    currency: str = "USD"

class Preferences(CamelModel):
    budget: Optional[Budget] = None
    schedule: Optional[List[TimeSlot]] = None
    schedule_constraints: Optional[ScheduleConstraint] = None
    activity_types: List[str] = Field(max_length=20)
    languages: List[str] = Field(max_length=5)

class FamilyProfile(CamelModel):
    adults: List[Adult] = Field(min_length=1, max_length=4)
    children: List[Child] = Field(min_length=1, max_length=8)
    location: Location
    preferences: Preferences
    notes: Optional[str] = None


# =========================
# Activities / recommendations
# =========================

class AgeRange(CamelModel):
    min: int = Field(ge=0, le=18)
    max: int = Field(ge=0, le=18)

class Coordinates(CamelModel):
    lat: float
    lng: float

class ActivityLocation(CamelModel):
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None

class ActivitySchedule(CamelModel):
    days: List[str]
    times: List[str]
    recurring: Optional[bool] = None
    flexibility: Optional[Literal["fixed", "flexible", "very_flexible"]] = None

class PriceRange(CamelModel):
    min: float
    max: float

class Pricing(CamelModel):
    type: Literal["per_session", "per_month", "per_program", "free"]
    amount: Optional[float] = None
    currency: Optional[str] = None
    range: Optional[PriceRange] = None

class ProviderInfo(CamelModel):
    name: str
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    review_count: Optional[int] = Field(default=None, ge=0)
    verified: Optional[bool] = None
    experience: Optional[int] = Field(default=None, ge=0)  # years

class Capacity(CamelModel):
    max_students: Optional[int] = Field(default=None, gt=0)
    current_enrollment: Optional[int] = Field(default=None, ge=0)
    waitlist: Optional[bool] = None

class Requirements(CamelModel):
    experience: Optional[str] = None
    equipment: Optional[List[str]] = None
    parent_participation: Optional[bool] = None

class ActivityMetadata(CamelModel):
    provider_id: int = Field(gt=0)
    program_id: Optional[int] = Field(default=None, gt=0)
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(max_length=2000)
    category: str
    subcategory: Optional[str] = None
    interests: List[str]
    age_range: AgeRange
    location: ActivityLocation
    schedule: ActivitySchedule
    pricing: Pricing
    provider: ProviderInfo
    capacity: Capacity
    requirements: Optional[Requirements] = None
    tags: List[str]
    created_at: datetime
    updated_at: datetime

class LogisticalFit(CamelModel):
    location: bool
    schedule: bool
    budget: bool
    transportation: bool

class Recommendation(CamelModel):
    provider_id: str
    program_id: Optional[str] = None
    match_score: Score01
    match_reasons: List[str]
    recommendation_type: RecommendationType
    age_appropriate: bool
    interests: List[str]
    logistical_fit: LogisticalFit
    metadata: Optional[Any] = None

class ActivityRecommendationSet(CamelModel):
    """Shape the LLM must return when it re-ranks and explains candidates."""
    recommendations: List[Recommendation]
    search_summary: str

class BudgetRangeFilter(CamelModel):
    min: Optional[float] = Field(default=None, ge=0)
    max: Optional[float] = Field(default=None, ge=0)

class RecommendationFilters(CamelModel):
    max_distance: Optional[float] = Field(default=None, gt=0, le=50)
    budget_range: Optional[BudgetRangeFilter] = None
    schedule: Optional[List[TimeSlot]] = None
    age_ranges: Optional[List[AgeRange]] = None
    interests: Optional[List[str]] = Field(default=None, max_length=20)
    categories: Optional[List[str]] = Field(default=None, max_length=10)
    languages: Optional[List[str]] = Field(default=None, max_length=5)
    special_needs: Optional[List[str]] = Field(default=None, max_length=10)
    transportation_required: Optional[bool] = None

    def applied(self) -> List[str]:
        """Wire names of the filters that are actually set."""
        return [
            to_camel(k) for k, v in self.model_dump().items()
            if v is not None and v != []
        ]


# =========================
# Lightweight engine output
# =========================

class Ranking(CamelModel):
    overall: Score01
    age: Score01
    interests: Score01
    location: Score01
    schedule: Score01
    budget: Score01
    quality: Score01

class LightweightRecommendation(CamelModel):
    provider_id: str
    program_id: Optional[str] = None
    event_id: Optional[str] = None
    vector_similarity: Score01
    practical_score: Score01
    match_score: Score01
    match_reasons: List[str]
    concerns: List[str]
    ranking: Ranking

    def identity(self) -> tuple:
        return (self.provider_id, self.program_id, self.event_id)

class SearchMetadata(CamelModel):
    total_matches: int = Field(ge=0)
    vector_search_results: int = Field(ge=0)
    filters_applied: List[str]
    search_query: str
    embedding: Optional[List[float]] = None

class EnginePerformance(CamelModel):
    vector_search_ms: int = Field(ge=0)
    scoring_ms: int = Field(ge=0)
    total_ms: int = Field(ge=0)
    cache_hit: bool

class LightweightRecommendationResult(CamelModel):
    """
    Ordered engine output. IDs may repeat: callers dedupe before
    resolving full ActivityMetadata.
    """
    recommendations: List[LightweightRecommendation]
    search_metadata: SearchMetadata
    performance: EnginePerformance


# =========================
# Email / auxiliary AI outputs
# =========================

class EmailMetadata(CamelModel):
    tone: Literal["professional", "casual", "urgent"]
    priority: Priority
    expected_response: Literal["none", "acknowledgment", "action_required"]
    word_count: int = Field(gt=0)
    estimated_read_time: int = Field(gt=0)  # minutes

class GeneratedEmail(CamelModel):
    subject: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1, max_length=5000)
    html_body: Optional[str] = None
    metadata: EmailMetadata

class ExtractedTask(CamelModel):
    id: str
    description: str
    priority: Priority
    due_date: Optional[str] = None
    category: Optional[str] = None
    status: Literal["pending", "in_progress", "completed"] = "pending"

class TaskExtraction(CamelModel):
    tasks: List[ExtractedTask]
    summary: str
    urgent_items: Optional[List[str]] = None

class ExtractedAmount(CamelModel):
    value: float
    currency: str = "USD"
    context: str

class ExtractedContact(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None

class EmailExtractedMetadata(CamelModel):
    dates: List[str] = []
    amounts: List[ExtractedAmount] = []
    contacts: List[ExtractedContact] = []
    locations: List[str] = []
    links: List[str] = []

class ParsedEmailTasks(TaskExtraction):
    extracted_metadata: Optional[EmailExtractedMetadata] = None
