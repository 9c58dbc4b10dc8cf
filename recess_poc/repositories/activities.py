# recess_poc/repositories/activities.py
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError
from sqlmodel import Session, select

from recess_poc.core.logging import get_logger
from recess_poc.db.models import Event, Provider
from recess_poc.schemas import ActivityMetadata

log = get_logger("activities")

PRICING_TYPES = ("per_session", "per_month", "per_program", "free")


class ActivityRepository(ABC):
    @abstractmethod
    def get_many(self, keys: List[Tuple[str, Optional[str], Optional[str]]]) -> Dict[tuple, ActivityMetadata]:
        """Resolve (providerId, programId, eventId) keys; unknown keys are absent from the result."""
        ...


def parse_age_range(ages: Optional[str]) -> Tuple[int, int]:
    """
    Best-effort age bounds from free text: "7-12", "Ages 5 to 8", "13+",
    "Teens". Anything unrecognised means all ages.
    """
    text = (ages or "").lower()
    nums = [int(n) for n in re.findall(r"\d+", text)]
    if len(nums) >= 2:
        lo, hi = sorted(nums[:2])
    elif len(nums) == 1 and "+" in text:
        lo, hi = nums[0], 18
    elif len(nums) == 1:
        lo = hi = nums[0]
    elif "teen" in text:
        lo, hi = 13, 18
    else:
        lo, hi = 0, 18
    return clamp_ages(lo, hi)


def clamp_ages(lo: int, hi: int) -> Tuple[int, int]:
    """Children's programs only: bounds are pinned to 0-18 and ordered."""
    lo, hi = sorted((max(0, min(18, lo)), max(0, min(18, hi))))
    return lo, hi


def _pricing(ev: Event) -> dict:
    if ev.is_free or ev.price == 0:
        return {"type": "free"}
    kind = ev.pricing_type if ev.pricing_type in PRICING_TYPES else "per_session"
    out = {"type": kind, "currency": ev.currency or "USD"}
    if ev.price is not None:
        out["amount"] = ev.price
    return out


def to_activity(ev: Event, provider: Optional[Provider]) -> ActivityMetadata:
    if ev.min_age is not None and ev.max_age is not None:
        lo, hi = clamp_ages(ev.min_age, ev.max_age)
    else:
        lo, hi = parse_age_range(ev.ages)

    coords = None
    if ev.latitude is not None and ev.longitude is not None:
        coords = {"lat": ev.latitude, "lng": ev.longitude}

    return ActivityMetadata(
        provider_id=ev.provider_id or (provider.id if provider else ev.id),
        program_id=ev.id,
        name=ev.name[:200],
        description=(ev.description or "")[:2000],
        category=ev.category or "general",
        subcategory=ev.subcategory,
        interests=list(ev.interests or []),
        age_range={"min": lo, "max": hi},
        location={
            "neighborhood": ev.neighborhood or (provider.neighborhood if provider else None),
            "city": ev.city or (provider.city if provider else None),
            "zip_code": ev.zip_code or (provider.zip_code if provider else None),
            "address": ev.address or ev.location,
            "coordinates": coords,
        },
        schedule={
            "days": list(ev.days or []),
            "times": list(ev.times or []),
            "recurring": ev.recurring,
        },
        pricing=_pricing(ev),
        provider={
            "name": provider.name if provider else ev.name,
            "rating": provider.rating if provider else None,
            "review_count": provider.review_count if provider else None,
            "verified": provider.verified if provider else None,
            "experience": provider.experience_years if provider else None,
        },
        capacity={
            "max_students": ev.max_students,
            "current_enrollment": ev.current_enrollment,
            "waitlist": ev.waitlist,
        },
        tags=list(ev.tags or []),
        created_at=ev.created_at,
        updated_at=ev.updated_at,
    )


def _as_int(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


class SqlActivityRepository(ActivityRepository):
    """Resolves engine ids against the `events` / `providers` tables."""

    def __init__(self, db: Session):
        self.db = db

    def get_many(self, keys):
        event_ids = {_as_int(e or p) for (_pid, p, e) in keys} - {None}
        provider_ids = {_as_int(pid) for (pid, _p, _e) in keys} - {None}

        events: Dict[int, Event] = {}
        if event_ids:
            for ev in self.db.exec(select(Event).where(Event.id.in_(event_ids))).all():
                events[ev.id] = ev
        first_by_provider: Dict[int, Event] = {}
        if provider_ids:
            rows = self.db.exec(
                select(Event).where(Event.provider_id.in_(provider_ids)).order_by(Event.id)
            ).all()
            for ev in rows:
                first_by_provider.setdefault(ev.provider_id, ev)
        providers: Dict[int, Provider] = {}
        wanted = provider_ids | {ev.provider_id for ev in events.values() if ev.provider_id}
        if wanted:
            for pr in self.db.exec(select(Provider).where(Provider.id.in_(wanted))).all():
                providers[pr.id] = pr

        out: Dict[tuple, ActivityMetadata] = {}
        for key in keys:
            pid, prog, evid = key
            ev = events.get(_as_int(evid or prog)) or first_by_provider.get(_as_int(pid))
            if ev is None:
                continue
            try:
                out[key] = to_activity(ev, providers.get(ev.provider_id))
            except ValidationError as e:
                log.warning("skipping event %s: %d invalid field(s)", ev.id, e.error_count())
        return out

    def contact_names(self, provider_ids: List[str]) -> Dict[str, str]:
        ids = {_as_int(p) for p in provider_ids} - {None}
        if not ids:
            return {}
        rows = self.db.exec(select(Provider).where(Provider.id.in_(ids))).all()
        return {str(p.id): p.contact_name for p in rows if p.contact_name}
