from __future__ import annotations

import copy
import logging
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from src.application.use_cases.load_reference_data import LoadReferenceDataUseCase, ReferenceData
from src.domain.entities.reference import CITIES, COUNTRIES, MODELS
from src.domain.entities.spare_part import SparePartEntity
from src.domain.services.image_collection import (
    EditableImage,
    ImageCollection,
    PendingFile,
    SnapshotImage,
    snapshot_from_entities,
    with_primary,
)
from src.domain.services.listing_form import ListingForm
from src.infrastructure.database.repositories.spare_part_image_repository import (
    SparePartImageRepository,
)
from src.infrastructure.database.repositories.spare_part_repository import SparePartRepository

logger = logging.getLogger(__name__)

PREVIEW_SCHEME = "blob:"


class SessionState(str, Enum):
    LOADING = "loading"
    EDITING = "editing"
    SUBMITTING = "submitting"
    CLOSED = "closed"


class SessionStateError(RuntimeError):
    """Operation not allowed in the session's current state."""


@dataclass
class EditSession:
    """
    One user's edit of one spare-part listing.

    Holds the form fields, the live image collection and the snapshot of the
    images as loaded. Nothing is written to the backend until submit, except
    set-primary on an already persisted image.

    States: loading -> editing <-> submitting -> closed.
    """

    id: str
    user_id: str
    spare_part: SparePartEntity
    loader: LoadReferenceDataUseCase
    image_repo: SparePartImageRepository
    form: ListingForm = field(default_factory=ListingForm)
    images: ImageCollection = field(default_factory=ImageCollection)
    original_images: list[SnapshotImage] = field(default_factory=list)
    reference: ReferenceData = field(default_factory=ReferenceData)
    state: SessionState = SessionState.LOADING
    notices: list[str] = field(default_factory=list)
    last_error: str | None = None
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False, compare=False)

    @property
    def spare_part_id(self) -> str:
        return self.spare_part.id

    def open(self, fallback_country_id: int | None = None) -> None:
        self._require(SessionState.LOADING)
        self.form = ListingForm.from_entity(self.spare_part)
        self.images = ImageCollection.from_entities(self.spare_part.images)
        self.original_images = snapshot_from_entities(self.spare_part.images)
        self.reference = self.loader.execute(self.spare_part, fallback_country_id)
        self.notices.extend(self.reference.notices)
        if not self.form.country_id and fallback_country_id is not None:
            self.form.country_id = str(fallback_country_id)
        self.state = SessionState.EDITING

    def preview_url(self, key: str) -> str:
        return f"{PREVIEW_SCHEME}{self.id}/{key}"

    # --- fields -----------------------------------------------------------

    def update_fields(self, changes: Mapping[str, Any]) -> None:
        """Apply field changes; country and brand changes reload their dependent lists.

        Parent references are applied before their children so that a request
        changing both country and city keeps the city. The changes apply as a
        whole: if one is rejected the form and reference lists are left as they were.
        """
        with self._lock:
            self._require(SessionState.EDITING)
            saved = (copy.deepcopy(self.form), copy.deepcopy(self.reference), list(self.notices))
            try:
                self._apply_fields(changes)
            except Exception:
                self.form, self.reference, self.notices = saved
                raise

    def _apply_fields(self, changes: Mapping[str, Any]) -> None:
        ordered = sorted(changes.items(), key=lambda kv: kv[0] not in ("country_id", "brand_id"))
        for name, value in ordered:
            if name == "country_id":
                self._change_country(value)
            elif name == "brand_id":
                self._change_brand(value)
            elif name == "model_id":
                self._select_model(value)
            elif name == "city_id":
                self._select_city(value)
            else:
                self.form.set_field(name, value)

    def _change_country(self, value: Any) -> None:
        text = "" if value is None else str(value)
        if text and not text.isdigit():
            raise ValueError(f"Invalid country_id: {text}")
        country = self.reference.find(COUNTRIES, text)
        self.form.change_country(text, country.currency_code if country else None)
        self.reference.cities = self.loader.load_cities(self.form.country_id, self.notices)
        if self.form.apply_cities(self.reference.cities):
            logger.debug("Session %s auto-selected city %s", self.id, self.form.city_id)

    def _change_brand(self, value: Any) -> None:
        self.form.set_field("brand_id", value)
        self.reference.models = self.loader.load_models(self.form.brand_id, self.notices)

    def _select_model(self, value: Any) -> None:
        if value not in (None, ""):
            model = self.reference.find(MODELS, value)
            if model is None or (
                model.brand_id is not None and str(model.brand_id) != self.form.brand_id
            ):
                raise ValueError("Model does not belong to the selected brand")
        self.form.set_field("model_id", value)

    def _select_city(self, value: Any) -> None:
        if value not in (None, ""):
            city = self.reference.find(CITIES, value)
            if city is None:
                raise ValueError("City does not belong to the selected country")
        self.form.set_field("city_id", value)

    # --- images -----------------------------------------------------------

    def add_images(self, files: Sequence[PendingFile]) -> list[EditableImage]:
        with self._lock:
            self._require(SessionState.EDITING)
            return self.images.add(files, self.preview_url)

    def remove_image(self, ref: str) -> EditableImage:
        """Drop an image from the session. Persisted images are deleted on submit."""
        with self._lock:
            self._require(SessionState.EDITING)
            removed = self.images.remove(ref)
            if removed.file is not None:
                removed.file = None  # release the preview bytes
            return removed

    def set_primary(self, index: int) -> EditableImage:
        """Make the image at ``index`` primary and move it to the front.

        For an already persisted image the backend is updated first; if that
        fails the local order is left untouched.
        """
        with self._lock:
            self._require(SessionState.EDITING)
            if index < 0 or index >= len(self.images):
                raise ValueError("Image index out of range")
            target = self.images.images[index]
            if target.image_id is not None:
                self.image_repo.set_primary(self.spare_part_id, target.image_id)
                self.original_images = with_primary(self.original_images, target.image_id)
            return self.images.set_primary(index)

    def preview(self, key: str) -> PendingFile:
        image = self.images.find(key)
        if image is None or image.file is None:
            raise ValueError("Preview not found")
        return image.file

    def add_notice(self, message: str) -> None:
        with self._lock:
            self.notices.append(message)

    # --- lifecycle --------------------------------------------------------

    def begin_submit(self) -> None:
        """Move to submitting. Only one caller can win; the rest get SessionStateError."""
        with self._lock:
            self._require(SessionState.EDITING)
            self.state = SessionState.SUBMITTING
            self.last_error = None

    def submit_failed(self, message: str) -> None:
        with self._lock:
            self.state = SessionState.EDITING
            self.last_error = message
            self.notices.append(message)

    def submit_succeeded(self) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            for image in self.images.pending_files():
                image.file = None
            self.state = SessionState.CLOSED

    def _require(self, state: SessionState) -> None:
        if self.state != state:
            raise SessionStateError(f"Edit session is {self.state.value}")


@dataclass
class OpenEditSessionUseCase:
    spare_part_repo: SparePartRepository
    image_repo: SparePartImageRepository
    loader: LoadReferenceDataUseCase

    def execute(
        self, user_id: str, spare_part_id: str, fallback_country_id: int | None = None
    ) -> EditSession:
        """
        Load a listing and open an edit session on it.

        Raises:
            ValueError: the listing does not exist or belongs to someone else.
        """
        spare_part = self.spare_part_repo.get(spare_part_id)
        if spare_part is None or spare_part.user_id != user_id:
            raise ValueError("Spare part not found or access denied")
        session = EditSession(
            id=uuid.uuid4().hex,
            user_id=user_id,
            spare_part=spare_part,
            loader=self.loader,
            image_repo=self.image_repo,
        )
        session.open(fallback_country_id)
        logger.info("Opened edit session %s for spare part %s", session.id, spare_part_id)
        return session
