"""
Home-visit nursing care-plan API.

Patient records, monthly care plans, plan-completeness tracking and the
AI-assisted plan creation wizard.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import auth, care_plans, dashboard, patients, settings as settings_api, wizard
from .core.config import settings
from .core.exceptions import NotFoundError, ValidationFailed, WizardStateError
from .models.base import Base, engine
from .models import care_plan, patient, user  # noqa: F401  registers the mappers
from .seed_demo import seed_demo_data

logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

# Seed demo staff accounts (idempotent, skipped offline)
seed_demo_data()

if settings.offline_mode:
    logger.info("Running fully offline: demo login only, fixture patient/plan data")
elif settings.partial_demo_mode:
    logger.info("Running in partial demo mode: real sign-in, fixture patient/plan data")

app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Care-plan management for home-visit nursing: patient directory, "
        "monthly plan tracking and AI-assisted plan drafting."
    ),
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationFailed)
async def validation_failed_handler(request: Request, exc: ValidationFailed):
    return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.errors})


@app.exception_handler(WizardStateError)
async def wizard_state_handler(request: Request, exc: WizardStateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


app.include_router(auth.router, prefix="/api/v1")
app.include_router(patients.router, prefix="/api/v1")
app.include_router(care_plans.router, prefix="/api/v1")
app.include_router(wizard.router, prefix="/api/v1")
app.include_router(dashboard.router, prefix="/api/v1")
app.include_router(settings_api.router, prefix="/api/v1")


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": settings.APP_NAME, "version": settings.VERSION}
