import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.auth.router import router as auth_router
from app.api.v1.billing.router import router as billing_router
from app.api.v1.classes.classes_router import router as classes_router
from app.api.v1.parents.router import router as parents_router
from app.api.v1.schools.router import router as schools_router
from app.api.v1.students.router import router as students_router
from app.core.config import settings


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="School Directory Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(auth_router)
    app.include_router(schools_router)
    app.include_router(students_router)
    app.include_router(classes_router)
    app.include_router(parents_router)
    app.include_router(billing_router)

    return app


app = create_app()
