import logging
import os

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config
from .auth.security import get_password_hash
from .database import ensure_indexes, get_db, utcnow
from .routes import auth as auth_routes
from .routes import backgrounds as background_routes
from .routes import certificates as certificate_routes
from .routes import cms as cms_routes
from .routes import courses as course_routes
from .routes import dashboard as dashboard_routes
from .routes import enquiries as enquiry_routes
from .routes import exam_applications as application_routes
from .routes import exam_papers as paper_routes
from .routes import exam_sessions as session_routes
from .routes import gallery as gallery_routes
from .routes import legal_documents as legal_routes
from .routes import public as public_routes
from .routes import questions as question_routes
from .routes import students as student_routes
from .routes import subcenters as subcenter_routes
from .routes import subjects as subject_routes
from .routes import team as team_routes
from .routes import template_config as template_config_routes
from .routes import users as user_routes
from .schemas.core import Envelope, fail, ok

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, max-age=0, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

app = FastAPI(title="Institute Portal")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def no_cache_for_reads(request: Request, call_next):
    response = await call_next(request)
    if request.method == "GET":
        response.headers.update(NO_CACHE_HEADERS)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=fail(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    fields = sorted({".".join(str(p) for p in e["loc"][1:]) for e in errors if e.get("loc")})
    message = "Invalid request" + (f": {', '.join(fields)}" if fields else "")
    return JSONResponse(status_code=422, content=fail(message, errors))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=fail("Internal server error"))


@app.on_event("startup")
def prepare_database():
    """
    Create indexes and make sure there is at least one admin for initial login.
    Credentials come from DEFAULT_ADMIN_USERNAME / DEFAULT_ADMIN_PASSWORD.
    """
    db = get_db()
    ensure_indexes(db)
    if db["users"].find_one({"role": "admin"}):
        return
    doc = {
        "username": config.DEFAULT_ADMIN_USERNAME,
        "email": config.DEFAULT_ADMIN_EMAIL,
        "full_name": "Administrator",
        "role": "admin",
        "hashed_password": get_password_hash(config.DEFAULT_ADMIN_PASSWORD),
        "is_active": True,
        "created_at": utcnow(),
    }
    db["users"].insert_one(doc)
    logger.warning("Created default admin user %s; change its password", config.DEFAULT_ADMIN_USERNAME)


@app.get("/api/health", response_model=Envelope[dict])
def health_check():
    return ok({"status": "ok"})


os.makedirs(config.UPLOAD_DIR, exist_ok=True)
app.mount(config.UPLOAD_URL_PREFIX, StaticFiles(directory=config.UPLOAD_DIR), name="uploads")

app.include_router(auth_routes.router, prefix="/api/auth", tags=["auth"])
app.include_router(course_routes.router, prefix="/api/courses", tags=["courses"])
app.include_router(subject_routes.router, prefix="/api/subjects", tags=["subjects"])
app.include_router(student_routes.router, prefix="/api/students", tags=["students"])
app.include_router(subcenter_routes.router, prefix="/api/subcenters", tags=["subcenters"])
app.include_router(background_routes.router, prefix="/api/backgrounds", tags=["backgrounds"])
app.include_router(template_config_routes.router, prefix="/api/template-config", tags=["certificates"])
app.include_router(certificate_routes.router, prefix="/api/certificates", tags=["certificates"])
app.include_router(paper_routes.router, prefix="/api/exam-papers", tags=["exams"])
app.include_router(question_routes.router, prefix="/api/questions", tags=["exams"])
app.include_router(application_routes.router, prefix="/api/exam-applications", tags=["exams"])
app.include_router(session_routes.router, prefix="/api/exam-sessions", tags=["exams"])
app.include_router(user_routes.router, prefix="/api/users", tags=["users"])
app.include_router(cms_routes.router, prefix="/api/cms", tags=["cms"])
app.include_router(gallery_routes.router, prefix="/api/gallery", tags=["cms"])
app.include_router(legal_routes.router, prefix="/api/legal-documents", tags=["cms"])
app.include_router(team_routes.router, prefix="/api/team", tags=["cms"])
app.include_router(enquiry_routes.router, prefix="/api/enquiries", tags=["enquiries"])
app.include_router(public_routes.router, prefix="/api/public", tags=["public"])
app.include_router(dashboard_routes.router, prefix="/api/dashboard", tags=["dashboard"])
