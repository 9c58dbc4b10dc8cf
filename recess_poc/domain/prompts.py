# recess_poc/domain/prompts.py
import json
from typing import Any, Dict, List, Optional, Tuple

from recess_poc.schemas import FamilyProfile, TIME_SLOTS

FAMILY_PROFILE_SHAPE = """{
  "adults": [{"name": "string", "email": "string?", "phone": "string?", "role": "parent|guardian|caregiver"}],
  "children": [{"name": "string", "age": 0-18, "interests": ["string"], "specialNeeds": "string?", "allergies": ["string"]}],
  "location": {"neighborhood": "string?", "zipCode": "string?", "city": "string?", "transportationNeeds": false},
  "preferences": {
    "budget": {"min": number?, "max": number?, "currency": "USD"}?,
    "schedule": ["<time slot>"]?,
    "scheduleConstraints": {
      "timeSlots": ["<time slot>"],
      "specificTimes": {"earliestStart": "9:00 AM"?, "latestEnd": "5:00 PM"?, "preferredDuration": minutes?}?,
      "restrictions": ["string"]?,
      "flexibility": "strict|somewhat_flexible|very_flexible"
    }?,
    "activityTypes": ["string"],
    "languages": ["string"]
  },
  "notes": "string?"
}"""


def family_parsing_prompt(description: str) -> Tuple[str, str]:
    system = (
        "You extract structured family profiles for a kids' activity matching service. "
        "Read the parent's description and return STRICT JSON only, matching the schema exactly. "
        "Never invent people, ages or contact details; omit optional fields you cannot find."
    )
    user = f"""Family description:
\"\"\"{description}\"\"\"

Return JSON with this shape (no markdown, no commentary):
{FAMILY_PROFILE_SHAPE}

Rules:
- Time slots must be one of: {", ".join(TIME_SLOTS)}.
- 1-4 adults, 1-8 children; if no adult is named use {{"name": "Parent", "role": "parent"}}.
- At most 15 interests and 10 allergies per child, 20 activity types, 5 languages.
- "after school" means weekday_afternoon.
"""
    return system, user


def recommendation_prompt(
    profile: FamilyProfile,
    candidates: List[Dict[str, Any]],
    limit: int,
) -> Tuple[str, str]:
    system = (
        "You are an expert at matching families with children's activities. "
        "Rank the candidate programs for this family and explain each match in plain language. "
        "Only choose from the candidates. Output STRICT JSON only."
    )
    family = profile.model_dump(mode="json", by_alias=True, exclude_none=True)
    user = f"""Family profile (JSON):
{json.dumps(family, ensure_ascii=False)}

Candidate programs (JSON list):
{json.dumps(candidates, ensure_ascii=False)}

Return STRICT JSON with this schema:
{{
  "recommendations": [
    {{
      "providerId": "string (copy from candidate)",
      "programId": "string?",
      "matchScore": 0.0-1.0,
      "matchReasons": ["short sentence"],
      "recommendationType": "perfect_match|good_fit|worth_exploring|backup_option",
      "ageAppropriate": true,
      "interests": ["string"],
      "logisticalFit": {{"location": true, "schedule": true, "budget": true, "transportation": true}}
    }}
  ],
  "searchSummary": "one or two sentences"
}}

Rules:
- At most {limit} recommendations, best first.
- Favour variety across categories when scores are close.
"""
    return system, user


def email_tasks_prompt(
    content: str,
    subject: Optional[str] = None,
    sender_name: Optional[str] = None,
    sender_role: Optional[str] = None,
) -> Tuple[str, str]:
    system = (
        "You read emails that activity providers send to parents and pull out what the parent has to do: "
        "confirm attendance, pay, bring materials, update the calendar, answer a question, fill in a survey. "
        "Priority is high for anything due within 48 hours or overdue, medium within a week, low otherwise. "
        "Output STRICT JSON only."
    )
    header = []
    if subject:
        header.append(f"SUBJECT: {subject}")
    if sender_name:
        header.append(f"FROM: {sender_name}" + (f" ({sender_role})" if sender_role else ""))
    user = "\n".join(header) + f"""
EMAIL CONTENT:
\"\"\"{content}\"\"\"

Return STRICT JSON with this schema:
{{
  "tasks": [
    {{
      "id": "task-1",
      "description": "what the parent must do",
      "priority": "low|medium|high",
      "dueDate": "string?",
      "category": "booking_confirmation|schedule_change|payment_reminder|activity_info|contact_request|feedback_request|other",
      "status": "pending"
    }}
  ],
  "summary": "one or two sentences",
  "urgentItems": ["string"]?
}}

Extract every actionable item, even small ones.
"""
    return system, user
