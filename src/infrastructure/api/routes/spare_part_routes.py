from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.application.dtos.edit_session_dto import EditSessionResponse
from src.application.dtos.spare_part_dto import SparePartOut
from src.application.use_cases.edit_session import OpenEditSessionUseCase
from src.infrastructure.api.dependencies import (
    get_current_user,
    get_default_country_id,
    get_open_session_use_case,
    get_session_store,
    get_spare_part_repo,
)
from src.infrastructure.database.repositories.spare_part_repository import SparePartRepository
from src.infrastructure.sessions.edit_session_store import EditSessionStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/spare-parts",
    tags=["Spare Parts"],
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        404: {"description": "Not Found - Listing does not exist or user doesn't have access"},
        422: {"description": "Validation Error - Invalid request format"},
    },
)


@router.get(
    "/{spare_part_id}",
    response_model=SparePartOut,
    summary="Get Spare Part",
    description="""
    Retrieve a spare-part listing with its brand, model, category, city,
    country and images. Images are ordered with the primary image first.

    **Authentication required**: Yes (Bearer token)
    """,
    response_description="The listing with all relations",
)
def get_spare_part(
    spare_part_id: str,
    user=Depends(get_current_user),
    spare_parts: SparePartRepository = Depends(get_spare_part_repo),
):
    """Get a listing with its relations."""
    entity = spare_parts.get(spare_part_id)
    if entity is None:
        raise HTTPException(status_code=404, detail="Spare part not found")
    return SparePartOut.from_entity(entity)


@router.post(
    "/{spare_part_id}/edit-sessions",
    response_model=EditSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open Edit Session",
    description="""
    Start editing one of your spare-part listings.

    The session is seeded with the listing's current fields and images, and
    the dropdown lists (brands, models of the listing's brand, categories,
    countries, cities of the listing's country) are loaded. A dropdown that
    fails to load is left empty and reported in `notices`; the others still
    load.

    If the listing has no country, `country_id` (or the service's default
    country) decides which cities are offered.

    **Authentication required**: Yes (Bearer token)
    **Access control**: Only the owner of the listing can edit it
    """,
    response_description="The new edit session",
)
def open_edit_session(
    spare_part_id: str,
    country_id: int | None = Query(None, description="Fallback country for the city list"),
    user=Depends(get_current_user),
    use_case: OpenEditSessionUseCase = Depends(get_open_session_use_case),
    store: EditSessionStore = Depends(get_session_store),
):
    """Open an edit session on a listing."""
    fallback = country_id if country_id is not None else get_default_country_id()
    try:
        session = use_case.execute(user.id, spare_part_id, fallback)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    store.add(session)
    return EditSessionResponse.from_session(session)
