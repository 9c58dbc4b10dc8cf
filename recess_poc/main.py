# recess_poc/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recess_poc.config import settings
from recess_poc.core.errors import register_error_handlers
from recess_poc.core.observability import ObservabilityMiddleware, metrics_router
from recess_poc.core.security import DemoGateMiddleware
from recess_poc.db.core import init_db
from recess_poc.api.v1.routers import auth, debug, demo, outreach, parse_family, recommendations

app = FastAPI(title="Recess Activity Matcher POC")

# CORS: set CORS_ORIGINS (comma-separated)
origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if not origins:
    origins = ["http://localhost:3000"]  # dev default

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(DemoGateMiddleware)
app.add_middleware(ObservabilityMiddleware)

register_error_handlers(app)
app.include_router(metrics_router)

@app.on_event("startup")
def on_startup():
    init_db()

# Routers
app.include_router(auth.router,            prefix="/api")
app.include_router(debug.router,           prefix="/api")
app.include_router(parse_family.router,    prefix="/api/v1")
app.include_router(recommendations.router, prefix="/api/v1")
app.include_router(outreach.router,        prefix="/api/v1")
app.include_router(demo.api_router,        prefix="/api/v1")
app.include_router(demo.router)

@app.get("/")
def index():
    return {"ok": True, "demo": "/demo/poc1", "login": "/api/auth/login"}
