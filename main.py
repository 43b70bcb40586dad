import secrets
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
import structlog

import crud
import logic
import schemas
from auth import Authenticator, get_authenticator, get_current_user
from database import create_db_and_tables, get_db
from errors import InvalidToken, register_exception_handlers
from llm_interaction import CompletionProvider, get_completion_provider
from mailer import Mailer, get_mailer
from observability import init_observability
from reminders import dispatch_reminders, today_utc
from request_id_middleware import RequestIdMiddleware
from settings import Settings, get_settings


# Initialise observability before creating app
init_observability()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fail fast on missing secrets, then make sure tables exist
    get_settings()
    create_db_and_tables()
    logger.info("Job tracker started")
    yield


app = FastAPI(
    title="Job Tracker",
    description="Backend API for tracking job applications, deadlines and AI resume suggestions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestIdMiddleware)

register_exception_handlers(app)


@app.get("/health", tags=["Ops"])
def health():
    return {"status": "ok"}


# --- Auth Endpoints ---
@app.post("/register", response_class=PlainTextResponse, tags=["Auth"])
def register_endpoint(
    credentials: schemas.Credentials,
    db: Session = Depends(get_db),
    authenticator: Authenticator = Depends(get_authenticator),
):
    authenticator.register(db, credentials.email, credentials.password)
    return "Registered"


@app.post("/login", response_model=schemas.TokenResponse, tags=["Auth"])
def login_endpoint(
    credentials: schemas.Credentials,
    db: Session = Depends(get_db),
    authenticator: Authenticator = Depends(get_authenticator),
):
    token = authenticator.login(db, credentials.email, credentials.password)
    return {"token": token}


# --- Job Endpoints ---
@app.post("/jobs", response_class=PlainTextResponse, tags=["Jobs"])
def create_job_endpoint(
    job: schemas.JobCreate,
    current_user: schemas.Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    db_job = crud.create_job(db, owner=current_user.email, job=job)
    logger.info("Job added", job_id=db_job.id, owner=current_user.email)
    return "Job added"


@app.get("/jobs", response_model=List[schemas.Job], tags=["Jobs"])
def get_jobs_endpoint(
    search: str = "",
    current_user: schemas.Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return crud.get_jobs_for_user(db, owner=current_user.email, search=search)


@app.delete("/jobs/{job_id}", response_class=PlainTextResponse, tags=["Jobs"])
def delete_job_endpoint(
    job_id: int,
    current_user: schemas.Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    deleted = crud.delete_job(db, owner=current_user.email, job_id=job_id)
    logger.info("Job delete requested", job_id=job_id, owner=current_user.email, deleted=deleted)
    return "Job deleted"


# --- Suggestion Endpoints ---
@app.post("/suggest", response_model=schemas.SuggestionResponse, tags=["LLM Features"])
async def suggest_endpoint(
    request: schemas.SuggestionRequest,
    current_user: schemas.Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: CompletionProvider = Depends(get_completion_provider),
):
    suggestion = await logic.generate_suggestion(
        db,
        provider,
        owner=current_user.email,
        resume=request.resume,
        job_description=request.job,
    )
    return {"suggestion": suggestion}


@app.get("/ai/history", response_model=List[schemas.AILogEntry], tags=["LLM Features"])
def ai_history_endpoint(
    current_user: schemas.Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return logic.get_suggestion_history(db, owner=current_user.email)


# --- Reminder Trigger ---
def require_operator(
    x_operator_token: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    expected = settings.reminder_trigger_token
    if not expected:
        # No operator credential configured: trigger is open
        return
    if not x_operator_token or not secrets.compare_digest(x_operator_token, expected):
        raise InvalidToken("operator token rejected")


@app.get(
    "/reminders/send",
    response_class=PlainTextResponse,
    status_code=status.HTTP_200_OK,
    tags=["Reminders"],
    dependencies=[Depends(require_operator)],
)
async def send_reminders_endpoint(
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    await dispatch_reminders(db, mailer, today_utc())
    return "Reminders sent"


# --- Main execution --- (for running with uvicorn)
def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
