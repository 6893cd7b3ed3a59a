from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import Response

from src.application.dtos.edit_session_dto import (
    CloseSessionResponse,
    EditSessionResponse,
    SetPrimaryRequest,
    UpdateFieldsRequest,
)
from src.application.dtos.spare_part_dto import SparePartOut, SubmitEditResponse
from src.application.use_cases.edit_session import EditSession, SessionStateError
from src.application.use_cases.submit_spare_part_edit import SubmitError, SubmitSparePartEditUseCase
from src.domain.services.image_collection import PendingFile
from src.domain.services.image_preparation import ImagePreparationService
from src.infrastructure.api.dependencies import (
    get_current_user,
    get_image_preparation,
    get_session_store,
    get_submit_use_case,
)
from src.infrastructure.sessions.edit_session_store import EditSessionStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/edit-sessions",
    tags=["Listing Editor"],
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        404: {"description": "Not Found - Session does not exist or belongs to another user"},
        409: {"description": "Conflict - Session is submitting or already closed"},
        422: {"description": "Validation Error - Invalid request format"},
    },
)


def _load_session(store: EditSessionStore, session_id: str, user) -> EditSession:
    try:
        return store.get(session_id, user.id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _conflict(exc: SessionStateError) -> HTTPException:
    return HTTPException(status_code=409, detail=str(exc))


@router.get(
    "/{session_id}",
    response_model=EditSessionResponse,
    summary="Get Edit Session",
    description="""
    Current state of an edit session: unsaved field values, images in display
    order (primary first after a set-primary), dropdown options and notices.

    **Authentication required**: Yes (Bearer token)
    """,
)
def get_session(
    session_id: str,
    user=Depends(get_current_user),
    store: EditSessionStore = Depends(get_session_store),
):
    """Get an edit session."""
    return EditSessionResponse.from_session(_load_session(store, session_id, user))


@router.patch(
    "/{session_id}/fields",
    response_model=EditSessionResponse,
    summary="Update Fields",
    description="""
    Change one or more listing fields. Changes stay in the session until submit.

    **Cascades:**
    - Changing `country_id` clears the city and reloads the city list; a
      country with exactly one city gets that city selected.
    - Changing `brand_id` clears the model and reloads the model list.
    - `model_id` must belong to the selected brand and `city_id` to the
      selected country.

    **Authentication required**: Yes (Bearer token)
    """,
    responses={400: {"description": "Bad Request - Invalid field value"}},
)
def update_fields(
    session_id: str,
    body: UpdateFieldsRequest,
    user=Depends(get_current_user),
    store: EditSessionStore = Depends(get_session_store),
):
    """Apply field changes to the session."""
    session = _load_session(store, session_id, user)
    try:
        session.update_fields(body.model_dump(exclude_unset=True))
    except SessionStateError as exc:
        raise _conflict(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return EditSessionResponse.from_session(session)


@router.post(
    "/{session_id}/images",
    response_model=EditSessionResponse,
    summary="Add Images",
    description="""
    Add one or more local image files to the session.

    **Supported formats**: JPEG, PNG, WEBP
    **Limits**: at most 10 images per listing; files above ~950 KB are
    compressed, files still above 5 MB are refused.

    Each accepted file gets a temporary key and a local preview; nothing is
    uploaded before submit. Invalid files are skipped and reported in
    `notices`. If the listing had no images, the first added image becomes
    primary.

    **Authentication required**: Yes (Bearer token)
    """,
    responses={400: {"description": "Bad Request - Too many images"}},
)
def add_images(
    session_id: str,
    files: list[UploadFile] = File(..., description="Image files to add"),
    user=Depends(get_current_user),
    store: EditSessionStore = Depends(get_session_store),
    preparation: ImagePreparationService = Depends(get_image_preparation),
):
    """Add local images to the session."""
    session = _load_session(store, session_id, user)
    prepared: list[PendingFile] = []
    for upload in files:
        name = upload.filename or "image"
        try:
            prepared.append(
                preparation.prepare(upload.file.read(), upload.filename, upload.content_type)
            )
        except ValueError as exc:
            logger.warning("Skipping upload %s: %s", name, exc)
            session.add_notice(f"{name}: {exc}")
    try:
        session.add_images(prepared)
    except SessionStateError as exc:
        raise _conflict(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return EditSessionResponse.from_session(session)


@router.get(
    "/{session_id}/images/{key}/preview",
    summary="Preview New Image",
    description="Serve the bytes of an image that has been added but not yet uploaded.",
    responses={200: {"content": {"image/*": {}}, "description": "Image file content"}},
)
def preview_image(
    session_id: str,
    key: str,
    user=Depends(get_current_user),
    store: EditSessionStore = Depends(get_session_store),
):
    """Local preview of a pending image."""
    session = _load_session(store, session_id, user)
    try:
        pending = session.preview(key)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(content=pending.data, media_type=pending.content_type)


@router.delete(
    "/{session_id}/images",
    response_model=EditSessionResponse,
    summary="Remove Image",
    description="""
    Remove an image from the session, by URL or key. Removing the primary
    image promotes the new first image. Images that were already saved are
    deleted from storage and from the database on submit.

    **Authentication required**: Yes (Bearer token)
    """,
)
def remove_image(
    session_id: str,
    ref: str = Query(..., description="URL or key of the image to remove"),
    user=Depends(get_current_user),
    store: EditSessionStore = Depends(get_session_store),
):
    """Remove an image from the session."""
    session = _load_session(store, session_id, user)
    try:
        session.remove_image(ref)
    except SessionStateError as exc:
        raise _conflict(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return EditSessionResponse.from_session(session)


@router.post(
    "/{session_id}/images/primary",
    response_model=EditSessionResponse,
    summary="Set Primary Image",
    description="""
    Make the image at `index` the primary image and move it to the front.

    For an image that is already saved the change is written immediately
    (all primary flags of the listing cleared, then this one set). These are
    two separate writes; a concurrent editor of the same listing can
    interleave, and the next save repairs the flags.

    **Authentication required**: Yes (Bearer token)
    """,
    responses={
        400: {"description": "Bad Request - Index out of range"},
        502: {"description": "Bad Gateway - The primary flag could not be saved"},
    },
)
def set_primary_image(
    session_id: str,
    body: SetPrimaryRequest,
    user=Depends(get_current_user),
    store: EditSessionStore = Depends(get_session_store),
):
    """Set the primary image."""
    session = _load_session(store, session_id, user)
    try:
        session.set_primary(body.index)
    except SessionStateError as exc:
        raise _conflict(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RuntimeError as exc:
        logger.error("Setting primary image in session %s failed: %s", session_id, exc)
        raise HTTPException(status_code=502, detail=f"Error setting primary image: {exc}") from exc
    return EditSessionResponse.from_session(session)


@router.post(
    "/{session_id}/submit",
    response_model=SubmitEditResponse,
    summary="Save Changes",
    description="""
    Persist the session, in order: listing fields, new image uploads and
    rows, primary flags of existing images, deletion of removed images,
    primary-image repair, and a final re-fetch of the listing.

    On success the session is closed and the re-fetched listing is returned
    (images primary first). On failure nothing already written is rolled
    back, the session stays open with all edits and the request can be
    retried.

    **Authentication required**: Yes (Bearer token)
    """,
    responses={502: {"description": "Bad Gateway - Saving failed; the session remains open"}},
)
def submit_session(
    session_id: str,
    user=Depends(get_current_user),
    store: EditSessionStore = Depends(get_session_store),
    use_case: SubmitSparePartEditUseCase = Depends(get_submit_use_case),
):
    """Save the session's changes."""
    session = _load_session(store, session_id, user)
    try:
        entity = use_case.execute(session)
    except SessionStateError as exc:
        raise _conflict(exc) from exc
    except SubmitError as exc:
        raise HTTPException(status_code=502, detail=session.last_error or str(exc)) from exc
    store.discard(session_id)
    return SubmitEditResponse(spare_part=SparePartOut.from_entity(entity))


@router.delete(
    "/{session_id}",
    response_model=CloseSessionResponse,
    summary="Close Edit Session",
    description="Discard the session and its unsaved changes. Nothing is written to the backend.",
)
def close_session(
    session_id: str,
    user=Depends(get_current_user),
    store: EditSessionStore = Depends(get_session_store),
):
    """Discard an edit session."""
    _load_session(store, session_id, user)
    store.discard(session_id)
    return CloseSessionResponse(ok=True)
