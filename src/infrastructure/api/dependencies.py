from __future__ import annotations

import os
from typing import Annotated

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.application.use_cases.edit_session import OpenEditSessionUseCase
from src.application.use_cases.load_reference_data import LoadReferenceDataUseCase
from src.application.use_cases.submit_spare_part_edit import SubmitSparePartEditUseCase
from src.domain.services.image_preparation import ImagePreparationService
from src.infrastructure.cache.reference_cache import ReferenceCache
from src.infrastructure.database.repositories.reference_repository import ReferenceRepository
from src.infrastructure.database.repositories.spare_part_image_repository import (
    SparePartImageRepository,
)
from src.infrastructure.database.repositories.spare_part_repository import SparePartRepository
from src.infrastructure.database.supabase_client import (
    SupabaseAuthAdapter,
    UserInfo,
    get_supabase_client,
)
from src.infrastructure.sessions.edit_session_store import EditSessionStore
from src.infrastructure.storage.supabase_storage import SupabaseStorage

_bearer_scheme = HTTPBearer(auto_error=False)

_REFERENCE_CACHE: ReferenceCache | None = None
_SESSION_STORE: EditSessionStore | None = None


def get_auth_adapter() -> SupabaseAuthAdapter:
    return SupabaseAuthAdapter()


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(_bearer_scheme)] = None,
    auth: Annotated[SupabaseAuthAdapter, Depends(get_auth_adapter)] = None,
) -> UserInfo:
    if not credentials or not credentials.scheme or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = credentials.credentials
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    try:
        return auth.validate_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


def get_storage() -> SupabaseStorage:
    return SupabaseStorage(get_supabase_client())


def get_spare_part_repo() -> SparePartRepository:
    return SparePartRepository(get_supabase_client())


def get_image_repo() -> SparePartImageRepository:
    return SparePartImageRepository(get_supabase_client())


def get_reference_repo() -> ReferenceRepository:
    return ReferenceRepository(get_supabase_client())


def get_reference_cache() -> ReferenceCache:
    global _REFERENCE_CACHE
    if _REFERENCE_CACHE is None:
        _REFERENCE_CACHE = ReferenceCache(
            ttl_seconds=float(os.getenv("REFERENCE_CACHE_TTL_SECONDS", "300"))
        )
    return _REFERENCE_CACHE


def get_session_store() -> EditSessionStore:
    global _SESSION_STORE
    if _SESSION_STORE is None:
        _SESSION_STORE = EditSessionStore(
            ttl_seconds=float(os.getenv("EDIT_SESSION_TTL_SECONDS", "3600"))
        )
    return _SESSION_STORE


def get_reference_loader(
    repo: ReferenceRepository = Depends(get_reference_repo),
    cache: ReferenceCache = Depends(get_reference_cache),
) -> LoadReferenceDataUseCase:
    return LoadReferenceDataUseCase(reference_repo=repo, cache=cache)


def get_open_session_use_case(
    spare_parts: SparePartRepository = Depends(get_spare_part_repo),
    images: SparePartImageRepository = Depends(get_image_repo),
    loader: LoadReferenceDataUseCase = Depends(get_reference_loader),
) -> OpenEditSessionUseCase:
    return OpenEditSessionUseCase(spare_part_repo=spare_parts, image_repo=images, loader=loader)


def get_submit_use_case(
    spare_parts: SparePartRepository = Depends(get_spare_part_repo),
    images: SparePartImageRepository = Depends(get_image_repo),
    storage: SupabaseStorage = Depends(get_storage),
) -> SubmitSparePartEditUseCase:
    return SubmitSparePartEditUseCase(
        spare_part_repo=spare_parts,
        image_repo=images,
        storage=storage,
        upload_concurrency=int(os.getenv("UPLOAD_CONCURRENCY", "4")),
    )


def get_image_preparation() -> ImagePreparationService:
    return ImagePreparationService()


def get_default_country_id() -> int | None:
    value = os.getenv("DEFAULT_COUNTRY_ID")
    return int(value) if value else None
