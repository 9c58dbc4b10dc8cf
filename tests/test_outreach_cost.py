import math

import pytest

from recess_poc.domain.services.cost_tracker import cost_summary
from recess_poc.domain.services.outreach import build_email
from recess_poc.schemas import FamilyProfile, Recommendation


def _rec(provider_id="1", score=0.8, name=None) -> dict:
    rec = {
        "providerId": provider_id,
        "programId": "10",
        "matchScore": score,
        "matchReasons": ["Close to home", "Great coaches", "Small groups"],
        "recommendationType": "perfect_match",
        "ageAppropriate": True,
        "interests": ["soccer"],
        "logisticalFit": {"location": True, "schedule": True, "budget": True, "transportation": True},
    }
    if name:
        rec["metadata"] = {"name": name}
    return rec


def test_build_email_template(profile_json):
    profile = FamilyProfile.model_validate(profile_json)
    email = build_email(profile, Recommendation.model_validate(_rec(name="Teen Soccer Skills")), "Coach Dana")
    assert email.subject == "Inquiry about Teen Soccer Skills for Emma"
    assert email.body.startswith("Dear Coach Dana,")
    assert "• Close to home\n• Great coaches" in email.body
    assert "Small groups" not in email.body
    assert "- Tuition and any additional fees" in email.body
    assert "We're located in Park Slope" in email.body
    assert email.body.endswith("Best regards,\nSarah\nsarah@example.com")
    words = len(email.body.split())
    assert email.metadata.word_count == words
    assert email.metadata.estimated_read_time == math.ceil(words / 200)
    assert (email.metadata.tone, email.metadata.priority, email.metadata.expected_response) == (
        "professional", "medium", "action_required")


def test_build_email_defaults(profile_json):
    profile_json["location"] = {}
    profile_json["children"][0]["interests"] = []
    profile = FamilyProfile.model_validate(profile_json)
    email = build_email(profile, Recommendation.model_validate(_rec()))
    assert email.subject == "Inquiry about Program for Emma"
    assert email.body.startswith("Dear Program Director,")
    assert "interests in various activities" in email.body
    assert "We're located in Brooklyn" in email.body


def test_outreach_endpoint(client, seeded, profile_json):
    r = client.post("/api/v1/ai/outreach-emails", json={
        "familyProfile": profile_json,
        "recommendations": [_rec("1", name="Teen Soccer Skills"), _rec("2")],
    })
    assert r.status_code == 200
    body = r.json()
    assert len(body["emails"]) == 2
    assert body["emails"][0]["body"].startswith("Dear Coach Dana,")
    assert body["emails"][1]["body"].startswith("Dear Program Director,")
    assert body["totalCost"] == pytest.approx(0.04)


def test_outreach_requires_recommendations(client, profile_json):
    r = client.post("/api/v1/ai/outreach-emails", json={"familyProfile": profile_json, "recommendations": []})
    assert r.status_code == 400


def test_cost_summary_math(profile_json):
    profile = FamilyProfile.model_validate(profile_json)
    recs = [Recommendation.model_validate(_rec(score=s)) for s in (0.9, 0.7)]
    emails = [build_email(profile, r) for r in recs]
    out = cost_summary(0.05, recs, emails)

    assert out["performance"]["manualTimeEstimate"] == 70
    assert out["performance"]["timeSaved"] == 65
    assert out["performance"]["timeSavedHours"] == 1.1
    assert out["cost"]["manualCost"] == pytest.approx(70 / 60 * 35)
    assert out["cost"]["costSavings"] == pytest.approx(70 / 60 * 35 - 0.05)
    assert out["cost"]["roiPercentage"] == pytest.approx((70 / 60 * 35 - 0.05) / 0.05 * 100)
    assert out["processing"]["avgMatchScore"] == pytest.approx(0.8)
    assert out["processing"]["totalWords"] == sum(e.metadata.word_count for e in emails)


def test_cost_summary_zero_cost():
    out = cost_summary(0, [], [])
    assert out["cost"]["roiPercentage"] == 0
    assert out["processing"]["avgMatchScore"] == 0
    assert out["performance"]["timeSaved"] == -5


def test_cost_summary_endpoint(client):
    r = client.post("/api/v1/demo/cost-summary", json={"totalCost": 0.02, "recommendations": [_rec()]})
    assert r.status_code == 200
    assert r.json()["performance"]["manualTimeEstimate"] == 35
