# recess_poc/api/v1/routers/demo.py
from fastapi import APIRouter

from recess_poc.api.v1.schemas import CostSummaryRequest
from recess_poc.domain.services.cost_tracker import cost_summary

# page payloads live under /demo (behind the gate); computations under /api/v1/demo
router = APIRouter(prefix="/demo", tags=["demo"])
api_router = APIRouter(prefix="/demo", tags=["demo"])

PHASES = [
    ("input", "Family Input", "Natural language description parsing with AI"),
    ("review", "Profile Review", "Edit and validate extracted family data"),
    ("recommendations", "AI Recommendations", "Vector search + personalized activity matching"),
    ("email", "Provider Outreach", "Auto-generated personalized communication"),
    ("metrics", "Cost & Performance", "Real-time AI usage and ROI analytics"),
]


@router.get("/poc1")
def poc1():
    phases = [
        {"id": pid, "title": title, "subtitle": subtitle, "status": "active" if i == 0 else "pending"}
        for i, (pid, title, subtitle) in enumerate(PHASES)
    ]
    return {"currentPhase": "input", "phases": phases}


@api_router.post("/cost-summary")
def cost_summary_api(req: CostSummaryRequest):
    return cost_summary(req.total_cost, req.recommendations, req.emails)
