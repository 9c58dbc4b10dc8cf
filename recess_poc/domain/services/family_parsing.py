import copy
import json
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from recess_poc.api.v1.schemas import FamilyParsingRequest, FamilyParsingResponse, ParsingUsage
from recess_poc.core.llm import chat_complete
from recess_poc.core.logging import get_logger
from recess_poc.domain.prompts import family_parsing_prompt
from recess_poc.schemas import FamilyProfile

log = get_logger("family_parsing")

LOW_CONFIDENCE = 0.7
DEMO_WARNING = "Demo mode: Parsed using simple string matching (not AI)"
FIXED_WARNING = "Some profile data was automatically corrected for consistency"
LOW_CONFIDENCE_WARNING = "Parsing confidence is low. Please review and edit the extracted information."


class ParsingFailed(Exception):
    """The description could not be turned into a valid FamilyProfile."""

    def __init__(self, message: str, issues: Optional[List[str]] = None):
        super().__init__(message)
        self.issues = issues or []


# =========================
# Demo (no-LLM) parser
# =========================

PARENT_PATTERNS = [
    re.compile(r"(?:i'm|i am|my name is|i'm called)\s+([a-zA-Z]+)", re.I),
    re.compile(r"^([a-zA-Z]+)\s+(?:here|with|and)", re.I),
    re.compile(r"^hi,?\s*i'm\s+([a-zA-Z]+)", re.I),
]
CHILD_PAREN = re.compile(r"([a-zA-Z]+)\s*\((\d+)(?:\s*years?\s*old)?\)", re.I)
CHILD_AGE = re.compile(r"([a-zA-Z]+)(?:\s+(?:age|is|who is|who's))\s+(\d+)", re.I)
CHILD_MY = re.compile(r"(?:my|our)\s+(\d+)[-\s]*year[-\s]*old\s+([a-zA-Z]+)", re.I)

INTEREST_KEYWORDS = ["loves", "likes", "enjoys", "plays", "does", "interested in", "passionate about"]
CLAUSE_END = r"(?:\s+(?:and|we|my|our|\.|!|\?)|$)"
NOT_INTERESTS = [
    re.compile(r"\d+\s+years?\s+old"),
    re.compile(r"\bis\s+\d+"),
    re.compile(r"age\s+\d+"),
    re.compile(r"^\d+$"),
]

# (keywords seen after the child's name, interest)
SENTENCE_INTERESTS = [
    (("art", "drawing", "paint"), "art"),
    (("music", "piano", "guitar"), "music"),
    (("dance", "ballet"), "dance"),
    (("swim",), "swimming"),
    (("basketball",), "basketball"),
    (("tennis",), "tennis"),
    (("reading", "books"), "reading"),
    (("science", "stem"), "science"),
    (("math",), "math"),
]

CITY_PATTERNS = [
    re.compile(r"(?:we live in|in|from|live in|located in)\s+([a-zA-Z\s]+?)(?:\s*(?:and|,|$|\.|!|\?))", re.I),
    re.compile(r"([a-zA-Z\s]+)\s+area", re.I),
]
COMMON_CITIES = ["austin", "brooklyn", "manhattan", "seattle", "portland", "denver",
                 "chicago", "boston", "atlanta", "dallas", "houston"]
COMMON_NEIGHBORHOODS = ["heights", "downtown", "midtown", "uptown", "westside", "eastside", "north", "south"]

BUDGET_PATTERNS = [
    re.compile(r"\$(\d+)(?:\s*[-to]+\s*\$?(\d+))?", re.I),
    re.compile(r"budget\s+of\s+\$?(\d+)(?:\s*[-to]+\s*\$?(\d+))?", re.I),
    re.compile(r"(\d+)[-to]+(\d+)(?:\s+(?:dollars?|per month|monthly))", re.I),
    re.compile(r"\$?(\d+)\s*[-to]+\s*\$?(\d+)", re.I),
]

ACTIVITY_TYPES = [
    ({"soccer", "basketball", "tennis", "swimming"}, "sports"),
    ({"art", "drawing", "painting"}, "arts"),
    ({"music", "piano", "guitar"}, "music"),
    ({"dance", "ballet"}, "dance"),
    ({"science", "math", "reading"}, "educational"),
]


def _cap(word: str) -> str:
    return word[:1].upper() + word[1:]


def _is_interest(candidate: str, children: List[Dict[str, Any]]) -> bool:
    if not candidate or len(candidate) >= 20:
        return False
    if any(p.search(candidate) for p in NOT_INTERESTS):
        return False
    return not any(c["name"].lower() == candidate.lower() for c in children)


def _split_interests(raw: str, children: List[Dict[str, Any]]) -> List[str]:
    parts = [p.strip() for p in re.split(r"\s+(?:and|,)\s+", raw.strip())]
    return [p for p in parts if _is_interest(p, children)]


def _sentence_interests(text: str, name: str) -> List[str]:
    found: List[str] = []
    for sentence in re.split(r"[.!?]", text.lower()):
        if name not in sentence:
            continue
        at = sentence.index(name)
        before, after = sentence[:at], sentence[at:]
        if "soccer" in after or "football" in after:
            found.append("soccer")
        elif ("soccer" in before or "football" in before) and not re.search(
            r"\w+\s+(?:who|loves|likes|plays|enjoys)\s.*?(?:soccer|football)", before
        ):
            # only when the sport is not already claimed by an earlier child
            found.append("soccer")
        for words, interest in SENTENCE_INTERESTS:
            if any(w in after for w in words):
                found.append(interest)
    return list(dict.fromkeys(found))[:3]


def _find_children(description: str) -> List[Dict[str, Any]]:
    children: List[Dict[str, Any]] = []

    def add(name: str, age: int) -> None:
        if not 0 <= age <= 18:
            return
        name = _cap(name)[:50]
        if any(c["name"].lower() == name.lower() for c in children):
            return
        children.append({"name": name, "age": age, "interests": [], "allergies": []})

    for m in CHILD_PAREN.finditer(description):
        add(m.group(1), int(m.group(2)))
    for m in CHILD_AGE.finditer(description):
        add(m.group(1), int(m.group(2)))
    for m in CHILD_MY.finditer(description):
        add(m.group(2), int(m.group(1)))

    if not children:
        children.append({"name": "Child", "age": 8, "interests": [], "allergies": []})
    return children


def _find_location(description: str) -> Dict[str, Any]:
    location: Dict[str, Any] = {"transportationNeeds": False}
    for pattern in CITY_PATTERNS:
        m = pattern.search(description)
        if not m:
            continue
        text = m.group(1).strip()
        lower = text.lower()
        city = next((c for c in COMMON_CITIES if c in lower), None)
        if city:
            location["city"] = _cap(city)
            if city == "brooklyn" and "heights" in lower:
                location["neighborhood"] = text
        if "neighborhood" not in location and any(n in lower for n in COMMON_NEIGHBORHOODS):
            location["neighborhood"] = text
        if "city" not in location and "neighborhood" not in location:
            location["neighborhood"] = text
        break
    return location


def _find_budget(description: str) -> Optional[Dict[str, Any]]:
    for pattern in BUDGET_PATTERNS:
        m = pattern.search(description)
        if m:
            return {
                "min": int(m.group(1)),
                "max": int(m.group(2)) if m.group(2) else None,
                "currency": "USD",
            }
    return None


def _find_schedule(text: str) -> List[str]:
    slots: List[str] = []
    if "after school" in text or "afternoon" in text:
        slots.append("weekday_afternoon")
    if "weekend" in text or "saturday" in text or "sunday" in text:
        slots.append("weekend_morning")
    if "morning" in text:
        slots.append("weekday_morning")
    if "evening" in text:
        slots.append("weekday_evening")
    return slots or ["weekday_afternoon"]


def parse_demo_profile(description: str) -> FamilyProfile:
    """
    Deterministic regex parse used when no LLM is available. Good enough to
    drive the demo flow; not meant to be accurate.
    """
    text = description.lower()

    parent_name = "Parent"
    for pattern in PARENT_PATTERNS:
        m = pattern.search(description)
        if m:
            parent_name = _cap(m.group(1))[:50]
            break

    children = _find_children(description)
    for child in children:
        name = re.escape(child["name"].lower())
        for keyword in INTEREST_KEYWORDS:
            m = re.search(rf"{name}[^.!?]*?\b{keyword}\s+([^.!?]*?){CLAUSE_END}", description, re.I)
            if m:
                child["interests"].extend(_split_interests(m.group(1), children))
        m = re.search(rf"{name}[^.!?]*?who\s+(loves|likes|enjoys|plays)\s+([^.!?]*?){CLAUSE_END}", description, re.I)
        if m:
            child["interests"].extend(_split_interests(m.group(2), children))

        child["interests"] = list(dict.fromkeys(child["interests"]))[:15]
        if not child["interests"]:
            child["interests"] = _sentence_interests(description, child["name"].lower())

    schedule = _find_schedule(text)

    activity_types: List[str] = []
    for child in children:
        for interest in child["interests"]:
            for group, kind in ACTIVITY_TYPES:
                if interest in group and kind not in activity_types:
                    activity_types.append(kind)
    if not activity_types:
        activity_types = ["educational", "recreational"]

    ellipsis = "..." if len(description) > 100 else ""
    return FamilyProfile.model_validate({
        "adults": [{"name": parent_name, "role": "parent"}],
        "children": children[:8],
        "location": _find_location(description),
        "preferences": {
            "budget": _find_budget(description),
            "schedule": schedule,
            "scheduleConstraints": {"timeSlots": list(schedule), "flexibility": "somewhat_flexible"},
            "activityTypes": activity_types,
            "languages": ["English"],
        },
        "notes": f'Parsed from description: "{description[:100]}{ellipsis}"',
    })


# =========================
# LLM output repair / scoring
# =========================

def attempt_profile_fixes(profile: Any) -> Dict[str, Any]:
    """Patch the common ways LLM output misses the FamilyProfile contract."""
    fixed = copy.deepcopy(profile) if isinstance(profile, dict) else {}

    adults = fixed.get("adults")
    if not isinstance(adults, list) or not adults:
        adults = [{"name": "Parent", "role": "parent"}]
    fixed["adults"] = [
        {**a, "role": a.get("role") if a.get("role") in ("parent", "guardian", "caregiver") else "parent"}
        for a in adults if isinstance(a, dict)
    ] or [{"name": "Parent", "role": "parent"}]

    children = fixed.get("children")
    if not isinstance(children, list):
        children = []
    fixed["children"] = [
        {
            **c,
            "age": c["age"] if isinstance(c.get("age"), (int, float)) and not isinstance(c.get("age"), bool) else 5,
            "interests": c["interests"] if isinstance(c.get("interests"), list) else [],
            "allergies": c["allergies"] if isinstance(c.get("allergies"), list) else [],
        }
        for c in children if isinstance(c, dict)
    ]

    if not isinstance(fixed.get("location"), dict):
        fixed["location"] = {}

    prefs = fixed.get("preferences")
    if not isinstance(prefs, dict):
        prefs = {}
    for key in ("activityTypes", "languages"):
        if not isinstance(prefs.get(key), list):
            prefs[key] = []
    if "schedule" in prefs and not isinstance(prefs["schedule"], list):
        prefs["schedule"] = []
    fixed["preferences"] = prefs
    return fixed


def calculate_confidence(profile: FamilyProfile, original_input: str) -> float:
    score = 0.5

    if profile.adults:
        score += 0.1
        if profile.adults[0].name and profile.adults[0].name.strip() != "Parent":
            score += 0.1

    if profile.children:
        score += 0.1
        total = 0.0
        for child in profile.children:
            child_score = 0.0
            if child.name and child.name.strip():
                child_score += 0.4
            if 0 < child.age <= 18:
                child_score += 0.3
            if child.interests:
                child_score += 0.3
            total += child_score
        score += (total / len(profile.children)) * 0.2

    loc = profile.location
    present = [f for f in (loc.neighborhood, loc.city, loc.zip_code) if f]
    score += (len(present) / 3) * 0.2

    prefs = profile.preferences
    if prefs.activity_types:
        score += 0.1
    if prefs.budget and (prefs.budget.min or prefs.budget.max):
        score += 0.05
    if prefs.schedule:
        score += 0.05

    length = len(original_input.strip())
    if length > 100:
        score += 0.05
    if length > 300:
        score += 0.05

    return min(score, 1.0)


def _issues(err: ValidationError) -> List[str]:
    return [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in err.errors()]


# =========================
# Entry point
# =========================

def parse_family(req: FamilyParsingRequest, *, demo: bool = False) -> FamilyParsingResponse:
    if demo:
        log.info("family_parsing_demo_mode")
        return FamilyParsingResponse(
            success=True,
            family_profile=parse_demo_profile(req.description),
            confidence=0.95,
            warnings=[DEMO_WARNING],
            usage=ParsingUsage(tokens_used=0, estimated_cost=0, model="demo-parser", cached=False),
        )

    opts = req.options
    system, user = family_parsing_prompt(req.description)
    completion = chat_complete(
        system, user,
        model=opts.model, temperature=0.1, max_tokens=2000, operation="parse_family",
    )

    try:
        raw = json.loads(completion.content)
    except ValueError:
        log.error("family_parsing_invalid_json", extra={"chars": len(completion.content)})
        raise ParsingFailed("AI returned invalid JSON response. Please try again.")

    warnings: List[str] = []
    try:
        profile = FamilyProfile.model_validate(raw)
    except ValidationError as first:
        issues = _issues(first)
        log.warning("family_profile_validation_issues", extra={"issues": issues})
        try:
            profile = FamilyProfile.model_validate(attempt_profile_fixes(raw))
        except ValidationError:
            raise ParsingFailed(f"Unable to parse family profile: {'; '.join(issues[:3])}", issues[:3])
        warnings.append(FIXED_WARNING)

    confidence = calculate_confidence(profile, req.description)
    if confidence < LOW_CONFIDENCE:
        warnings.append(LOW_CONFIDENCE_WARNING)

    resp = FamilyParsingResponse(
        success=True,
        family_profile=profile,
        confidence=confidence,
        warnings=warnings or None,
    )
    if opts.include_metrics:
        resp.usage = ParsingUsage(
            tokens_used=completion.usage.total_tokens,
            estimated_cost=completion.usage.estimated_cost,
            model=opts.model,
            cached=False,
        )

    # counts only: family descriptions are personal data
    log.info(
        f"Family parsing successful: {completion.usage.total_tokens} tokens, "
        f"${completion.usage.estimated_cost:.4f} cost, {confidence:.2f} confidence"
    )
    return resp
