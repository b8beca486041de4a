from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.academic_years.router import router as academic_years_router
from app.api.v1.classes.classes_router import router as classes_router
from app.api.v1.enrollments.router import router as enrollments_router
from app.api.v1.fee_structures.router import router as fee_structures_router
from app.api.v1.fee_templates.router import router as fee_templates_router
from app.api.v1.payments.router import router as payments_router
from app.api.v1.reports.router import router as reports_router
from app.api.v1.scholarship_templates.router import router as scholarship_templates_router
from app.api.v1.students.router import router as students_router
from app.core.config import settings
from app.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="School Fees Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(academic_years_router)
    app.include_router(classes_router)
    app.include_router(students_router)
    app.include_router(fee_templates_router)
    app.include_router(scholarship_templates_router)
    app.include_router(fee_structures_router)
    app.include_router(enrollments_router)
    app.include_router(payments_router)
    app.include_router(reports_router)

    return app


app = create_app()
