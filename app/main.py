import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core import models  # noqa: F401  registers every table on Base.metadata
from app.api.v1.academic_years.router import router as academic_years_router
from app.api.v1.assessments.router import router as assessments_router
from app.api.v1.class_subjects.router import router as class_subjects_router
from app.api.v1.classes.classes_router import router as classes_router
from app.api.v1.enrollments.router import router as enrollments_router
from app.api.v1.grades.router import router as grades_router
from app.api.v1.subjects.router import router as subjects_router
from app.core.config import settings

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Gradebook Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    # Routers
    app.include_router(academic_years_router)
    app.include_router(subjects_router)
    app.include_router(classes_router)
    app.include_router(enrollments_router)
    app.include_router(class_subjects_router)
    app.include_router(assessments_router)
    app.include_router(grades_router)

    return app


app = create_app()
