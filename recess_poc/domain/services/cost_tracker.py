from typing import Any, Dict, List

from recess_poc.schemas import GeneratedEmail, Recommendation

# minutes per provider when a parent does it by hand
MANUAL_RESEARCH_MIN = 15
MANUAL_EMAIL_MIN = 20
AI_PROCESSING_MIN = 5
PARENT_HOURLY_VALUE = 35.0


def _hours(minutes: float) -> float:
    return round(minutes / 60, 1)


def cost_summary(
    total_cost: float,
    recommendations: List[Recommendation],
    emails: List[GeneratedEmail],
) -> Dict[str, Any]:
    """Time and money saved versus doing the same matching manually."""
    n = len(recommendations)
    avg_score = sum(r.match_score for r in recommendations) / n if n else 0.0

    manual_min = n * (MANUAL_RESEARCH_MIN + MANUAL_EMAIL_MIN)
    time_saved = manual_min - AI_PROCESSING_MIN
    manual_cost = manual_min / 60 * PARENT_HOURLY_VALUE
    savings = manual_cost - total_cost
    roi = savings / total_cost * 100 if total_cost > 0 else 0.0

    return {
        "processing": {
            "totalProviders": n,
            "avgMatchScore": avg_score,
            "recommendationsGenerated": n,
            "emailsGenerated": len(emails),
            "totalWords": sum(e.metadata.word_count for e in emails),
            "totalReadTime": sum(e.metadata.estimated_read_time for e in emails),
        },
        "performance": {
            "aiProcessingTime": AI_PROCESSING_MIN,
            "manualTimeEstimate": manual_min,
            "manualTimeHours": _hours(manual_min),
            "timeSaved": time_saved,
            "timeSavedHours": _hours(time_saved),
        },
        "cost": {
            "aiCost": total_cost,
            "manualCost": manual_cost,
            "costSavings": savings,
            "roiPercentage": roi,
        },
    }
