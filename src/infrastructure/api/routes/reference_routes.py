from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from src.application.dtos.reference_dto import ReferenceListResponse, ReferenceOptionOut
from src.application.use_cases.load_reference_data import LoadReferenceDataUseCase
from src.infrastructure.api.dependencies import get_current_user, get_reference_loader

router = APIRouter(
    prefix="/reference",
    tags=["Reference Data"],
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        502: {"description": "Bad Gateway - The backend could not be reached"},
    },
)


def _respond(options, notices: list[str]) -> ReferenceListResponse:
    if notices:
        raise HTTPException(status_code=502, detail=notices[0])
    return ReferenceListResponse(options=[ReferenceOptionOut.from_entity(o) for o in options])


@router.get("/brands", response_model=ReferenceListResponse, summary="List Brands")
def list_brands(
    user=Depends(get_current_user),
    loader: LoadReferenceDataUseCase = Depends(get_reference_loader),
):
    """All vehicle brands, ordered by name."""
    notices: list[str] = []
    return _respond(loader.load_brands(notices), notices)


@router.get("/categories", response_model=ReferenceListResponse, summary="List Part Categories")
def list_categories(
    user=Depends(get_current_user),
    loader: LoadReferenceDataUseCase = Depends(get_reference_loader),
):
    """All spare-part categories, ordered by English name."""
    notices: list[str] = []
    return _respond(loader.load_categories(notices), notices)


@router.get("/countries", response_model=ReferenceListResponse, summary="List Countries")
def list_countries(
    user=Depends(get_current_user),
    loader: LoadReferenceDataUseCase = Depends(get_reference_loader),
):
    """All countries, ordered by name."""
    notices: list[str] = []
    return _respond(loader.load_countries(notices), notices)


@router.get("/models", response_model=ReferenceListResponse, summary="List Models of a Brand")
def list_models(
    brand_id: int = Query(..., description="Brand whose models to list"),
    user=Depends(get_current_user),
    loader: LoadReferenceDataUseCase = Depends(get_reference_loader),
):
    """Models belonging to one brand."""
    notices: list[str] = []
    return _respond(loader.load_models(brand_id, notices), notices)


@router.get("/cities", response_model=ReferenceListResponse, summary="List Cities of a Country")
def list_cities(
    country_id: int = Query(..., description="Country whose cities to list"),
    user=Depends(get_current_user),
    loader: LoadReferenceDataUseCase = Depends(get_reference_loader),
):
    """Cities belonging to one country."""
    notices: list[str] = []
    return _respond(loader.load_cities(country_id, notices), notices)
