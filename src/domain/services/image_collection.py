"""In-memory image collection for one listing edit session.

The collection keeps the live, user-editable list of images and tracks the
primary image with a single ``primary_key`` pointer rather than relying on
list position. Whenever the collection is non-empty exactly one image is
primary.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Sequence

from src.domain.entities.spare_part import SparePartImageEntity

TEMP_KEY_PREFIX = "new-"
MAX_IMAGES_PER_LISTING = 10


@dataclass(frozen=True)
class PendingFile:
    """A validated local file waiting to be uploaded."""

    data: bytes
    filename: str
    content_type: str
    ext: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class EditableImage:
    key: str  # persisted image id, or a temporary "new-..." key
    url: str  # public URL, or a local preview reference for pending files
    image_id: str | None = None
    storage_path: str | None = None
    file: PendingFile | None = None

    @property
    def is_new(self) -> bool:
        return self.image_id is None


@dataclass(frozen=True)
class SnapshotImage:
    """Image state captured when the session opened (or last persisted)."""

    url: str
    image_id: str | None
    storage_path: str | None
    is_primary: bool


@dataclass(frozen=True)
class ImageDiff:
    new: list[EditableImage] = field(default_factory=list)
    existing: list[EditableImage] = field(default_factory=list)
    removed: list[SnapshotImage] = field(default_factory=list)
    # URLs that were primary in the snapshot
    originally_primary: frozenset[str] = frozenset()

    def was_primary(self, image: EditableImage) -> bool:
        return image.url in self.originally_primary


def new_temp_key() -> str:
    return f"{TEMP_KEY_PREFIX}{uuid.uuid4().hex}"


def snapshot_from_entities(entities: Iterable[SparePartImageEntity]) -> list[SnapshotImage]:
    return [
        SnapshotImage(
            url=e.url, image_id=e.id, storage_path=e.storage_path, is_primary=e.is_primary
        )
        for e in entities
    ]


def with_primary(snapshot: Sequence[SnapshotImage], image_id: str | None) -> list[SnapshotImage]:
    """Return the snapshot with only ``image_id`` flagged primary."""
    return [
        replace(s, is_primary=image_id is not None and s.image_id == image_id) for s in snapshot
    ]


class ImageCollection:
    def __init__(self, images: Iterable[EditableImage] = (), primary_key: str | None = None) -> None:
        self._images: list[EditableImage] = list(images)
        self.primary_key: str | None = primary_key
        self._normalize()

    @classmethod
    def from_entities(cls, entities: Iterable[SparePartImageEntity]) -> ImageCollection:
        entities = list(entities)
        images = [
            EditableImage(key=e.id, url=e.url, image_id=e.id, storage_path=e.storage_path)
            for e in entities
        ]
        primary = next((e.id for e in entities if e.is_primary), None)
        return cls(images, primary_key=primary)

    def _normalize(self) -> None:
        keys = {img.key for img in self._images}
        if self.primary_key not in keys:
            self.primary_key = self._images[0].key if self._images else None

    def __len__(self) -> int:
        return len(self._images)

    def __iter__(self):
        return iter(list(self._images))

    @property
    def images(self) -> tuple[EditableImage, ...]:
        return tuple(self._images)

    @property
    def primary(self) -> EditableImage | None:
        return next((img for img in self._images if img.key == self.primary_key), None)

    def is_primary(self, image: EditableImage) -> bool:
        return image.key == self.primary_key

    def find(self, ref: str) -> EditableImage | None:
        """Look an image up by URL or key."""
        return next((img for img in self._images if ref in (img.url, img.key)), None)

    def add(
        self, files: Sequence[PendingFile], preview_url: Callable[[str], str]
    ) -> list[EditableImage]:
        """Append pending files; the first one becomes primary if the collection was empty."""
        if len(self._images) + len(files) > MAX_IMAGES_PER_LISTING:
            raise ValueError(f"A listing can have at most {MAX_IMAGES_PER_LISTING} images")
        was_empty = not self._images
        added = []
        for f in files:
            key = new_temp_key()
            added.append(EditableImage(key=key, url=preview_url(key), file=f))
        self._images.extend(added)
        if was_empty and added:
            self.primary_key = added[0].key
        return added

    def remove(self, ref: str) -> EditableImage:
        image = self.find(ref)
        if image is None:
            raise ValueError("Image not found")
        was_primary = self.is_primary(image)
        self._images.remove(image)
        if was_primary:
            # promote the new first image
            self.primary_key = self._images[0].key if self._images else None
        return image

    def set_primary(self, index: int) -> EditableImage:
        if index < 0 or index >= len(self._images):
            raise ValueError("Image index out of range")
        image = self._images.pop(index)
        self._images.insert(0, image)
        self.primary_key = image.key
        return image

    def ensure_primary(self) -> bool:
        """Promote the first image when none is primary. Returns True if it changed anything."""
        if self._images and self.primary is None:
            self.primary_key = self._images[0].key
            return True
        return False

    def mark_persisted(self, key: str, image_id: str, url: str, storage_path: str | None) -> None:
        image = self.find(key)
        if image is None:
            raise ValueError("Image not found")
        image.image_id = image_id
        image.url = url
        image.storage_path = storage_path
        image.file = None

    def snapshot(self) -> list[SnapshotImage]:
        """Immutable copy of the current images, primary flags taken from the pointer."""
        return [
            SnapshotImage(
                url=img.url,
                image_id=img.image_id,
                storage_path=img.storage_path,
                is_primary=self.is_primary(img),
            )
            for img in self._images
        ]

    def diff(self, original: Sequence[SnapshotImage]) -> ImageDiff:
        """Partition images into new / existing / removed by URL membership."""
        original_urls = {s.url for s in original}
        current_urls = {img.url for img in self._images}
        return ImageDiff(
            new=[img for img in self._images if img.url not in original_urls],
            existing=[img for img in self._images if img.url in original_urls],
            removed=[s for s in original if s.url not in current_urls],
            originally_primary=frozenset(s.url for s in original if s.is_primary),
        )

    def pending_files(self) -> list[EditableImage]:
        return [img for img in self._images if img.file is not None]
