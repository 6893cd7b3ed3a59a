from __future__ import annotations

from dotenv import load_dotenv
from fastapi import FastAPI

from src.application.dtos.common_dto import HealthResponse, RootResponse
from src.infrastructure.api.middlewares import add_default_middlewares
from src.infrastructure.api.routes.edit_session_routes import router as edit_session_router
from src.infrastructure.api.routes.reference_routes import router as reference_router
from src.infrastructure.api.routes.spare_part_routes import router as spare_part_router
from src.infrastructure.logging_config import configure_logging


def create_app() -> FastAPI:
    load_dotenv()
    configure_logging()
    app = FastAPI(
        title="Spare Parts Backend",
        version="0.1.0",
        description="""
        ## Spare Parts Backend API

        Listing editor for the spare-parts section of the marketplace, backed by
        Supabase for auth, database, and storage.

        ### Features
        - **Edit sessions**: Open a listing, change its fields and images, then save
        - **Cascading dropdowns**: Country -> city and brand -> model lists reload on change
        - **Image management**: Add, remove and reorder images with exactly one primary image
        - **Reference data**: Cached brand, model, category, country and city lookups

        ### Authentication
        All endpoints (except root and health) require authentication via Bearer token
        in the Authorization header:
        ```
        Authorization: Bearer your-jwt-token
        ```

        ### Error Responses
        - **400 Bad Request**: Invalid field value or image
        - **401 Unauthorized**: Missing or invalid authentication token
        - **404 Not Found**: Listing or session does not exist or user doesn't have access
        - **409 Conflict**: Session is being saved or already closed
        - **422 Unprocessable Entity**: Validation error in request body
        - **502 Bad Gateway**: The backend rejected or failed a write
        """,
    )
    add_default_middlewares(app)

    @app.get("/", response_model=RootResponse, summary="API Root")
    def root():
        """Get API root information."""
        return {"status": "ok", "service": "spareparts-backend", "version": app.version}

    @app.get("/health", response_model=HealthResponse, summary="Health Check")
    def health():
        """Check API health status."""
        return {"status": "healthy"}

    app.include_router(spare_part_router)
    app.include_router(edit_session_router)
    app.include_router(reference_router)
    return app


app = create_app()
