import json
import math
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from recess_poc.api.v1.schemas import EmailParsingRequest, EmailParsingResponse, ParsingUsage
from recess_poc.cache import cache_get, cache_key, cache_set
from recess_poc.core.llm import chat_complete
from recess_poc.core.logging import get_logger
from recess_poc.domain.prompts import email_tasks_prompt
from recess_poc.schemas import (
    EmailExtractedMetadata,
    EmailMetadata,
    ExtractedAmount,
    ExtractedContact,
    FamilyProfile,
    GeneratedEmail,
    ParsedEmailTasks,
    Recommendation,
    TaskExtraction,
)

log = get_logger("outreach")

EMAIL_COST = 0.02  # simulated, per generated email
QUESTIONS = [
    "Available time slots and scheduling flexibility",
    "Program structure and curriculum",
    "Enrollment process and availability",
    "Tuition and any additional fees",
]


def _program_name(rec: Recommendation) -> Optional[str]:
    meta = rec.metadata if isinstance(rec.metadata, dict) else {}
    return meta.get("name")


def build_email(
    profile: FamilyProfile,
    rec: Recommendation,
    contact_name: Optional[str] = None,
) -> GeneratedEmail:
    adult = profile.adults[0]
    child = profile.children[0]
    interests = ", ".join(child.interests) or "various activities"
    program = _program_name(rec)
    where = profile.location.neighborhood or profile.location.city or "Brooklyn"
    reasons = "\n".join(f"• {r}" for r in rec.match_reasons[:2])
    questions = "\n".join(f"- {q}" for q in QUESTIONS)

    signature = [adult.name]
    if adult.email:
        signature.append(str(adult.email))
    if adult.phone:
        signature.append(adult.phone)

    body = f"""Dear {contact_name or 'Program Director'},

I hope this message finds you well. I'm {adult.name}, and I'm reaching out regarding your {program or 'program'} for my {child.age}-year-old {child.name}.

Based on our family's needs and {child.name}'s interests in {interests}, your program appears to be an excellent fit. I'm particularly drawn to your program because:

{reasons}

I'd love to learn more about:
{questions}

{child.name} is {child.age} years old and has shown great enthusiasm for {interests}. We're located in {where}, and I believe your location would work well for our family.

Would it be possible to schedule a brief conversation or visit to discuss the program further? I'm happy to work around your schedule.

Thank you for your time and for creating such wonderful opportunities for children in our community. I look forward to hearing from you.

Best regards,
""" + "\n".join(signature)

    words = len(body.split())
    return GeneratedEmail(
        subject=f"Inquiry about {program or 'Program'} for {child.name}"[:200],
        body=body[:5000],
        metadata=EmailMetadata(
            tone="professional",
            priority="medium",
            expected_response="action_required",
            word_count=words,
            estimated_read_time=math.ceil(words / 200),
        ),
    )


def generate_outreach(
    profile: FamilyProfile,
    recommendations: List[Recommendation],
    contacts: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    contacts = contacts or {}
    emails = [build_email(profile, r, contacts.get(r.provider_id)) for r in recommendations]
    return {"emails": emails, "total_cost": round(EMAIL_COST * len(emails), 4)}


# =========================
# Provider replies -> parent tasks
# =========================

EMAIL_PARSE_TTL = 7200
UNPARSEABLE_EMAIL = "Unable to parse email content. Please check the email format and try again."

_MONTHS = "January|February|March|April|May|June|July|August|September|October|November|December"
DATE_PATTERNS = [
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
    re.compile(r"\b\d{1,2}-\d{1,2}-\d{4}\b"),
    re.compile(rf"\b(?:{_MONTHS})\s+\d{{1,2}},?\s+\d{{4}}\b"),
]
AMOUNT_RE = re.compile(r"\$(\d+(?:,\d{3})*(?:\.\d{2})?)")
EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b")
PHONE_RE = re.compile(r"\b(?:\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4})\b")
URL_RE = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+")
LOCATION_PATTERNS = [
    re.compile(r"\b\d+\s+[A-Za-z\s]+(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Lane|Ln|Drive|Dr)\b"),
    re.compile(r"\b[A-Za-z\s]+,\s*[A-Z]{2}\s*\d{5}\b"),
]


class EmailParsingFailed(Exception):
    pass


def _unique(items: List[str]) -> List[str]:
    return list(dict.fromkeys(items))


def extract_email_metadata(content: str, subject: Optional[str] = None) -> EmailExtractedMetadata:
    """Dates, dollar amounts, contacts, links and street addresses found by pattern."""
    text = f"{subject or ''} {content}"

    dates = [m.group(0) for p in DATE_PATTERNS for m in p.finditer(text)]
    amounts = [
        ExtractedAmount(
            value=float(m.group(1).replace(",", "")),
            currency="USD",
            context=text[max(0, m.start() - 20): m.start() + 20].strip(),
        )
        for m in AMOUNT_RE.finditer(text)
    ]
    contacts = [ExtractedContact(email=e) for e in EMAIL_RE.findall(text)]
    contacts += [ExtractedContact(phone=p) for p in PHONE_RE.findall(text)]
    locations = [m.group(0) for p in LOCATION_PATTERNS for m in p.finditer(text)]

    return EmailExtractedMetadata(
        dates=_unique(dates),
        amounts=amounts,
        contacts=contacts,
        locations=_unique(locations),
        links=_unique(URL_RE.findall(text)),
    )


def parse_email_tasks(req: EmailParsingRequest) -> EmailParsingResponse:
    opts = req.options
    key = None
    extraction = None
    usage = ParsingUsage(tokens_used=0, estimated_cost=0, model=opts.model, cached=False)

    if opts.use_cache:
        key = cache_key("email-parse", {
            "content": req.email_content[:500],
            "subject": req.email_subject,
            "model": opts.model,
        })
        hit = cache_get(key)
        if hit is not None:
            try:
                extraction = TaskExtraction.model_validate(hit)
                usage.cached = True
            except ValidationError:
                log.warning("email_parse_cache_entry_invalid", extra={"key": key})

    if extraction is None:
        sender = req.sender_info
        system, user = email_tasks_prompt(
            req.email_content,
            req.email_subject,
            sender.name if sender else None,
            sender.role if sender else None,
        )
        completion = chat_complete(
            system, user,
            model=opts.model, temperature=0.2, max_tokens=2000, operation="parse_email_tasks",
        )
        try:
            extraction = TaskExtraction.model_validate(json.loads(completion.content))
        except (ValueError, ValidationError) as e:
            log.error(f"Email parsing validation failed: {e}")
            raise EmailParsingFailed(UNPARSEABLE_EMAIL) from e
        usage.tokens_used = completion.usage.total_tokens
        usage.estimated_cost = completion.usage.estimated_cost
        if key:
            cache_set(key, extraction.model_dump(mode="json", by_alias=True), ttl_seconds=EMAIL_PARSE_TTL)

    tasks = ParsedEmailTasks(**extraction.model_dump())
    if opts.extract_metadata:
        tasks.extracted_metadata = extract_email_metadata(req.email_content, req.email_subject)

    log.info(f"Parsed email: {len(tasks.tasks)} tasks extracted, {usage.tokens_used} tokens")
    return EmailParsingResponse(tasks=tasks, usage=usage)
