from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace

from src.application.use_cases.edit_session import EditSession
from src.domain.entities.spare_part import SparePartEntity
from src.domain.services.image_collection import EditableImage, ImageDiff, SnapshotImage, with_primary
from src.infrastructure.database.repositories.spare_part_image_repository import (
    SparePartImageRepository,
)
from src.infrastructure.database.repositories.spare_part_repository import SparePartRepository
from src.infrastructure.storage.supabase_storage import StorageResult, SupabaseStorage

logger = logging.getLogger(__name__)


class SubmitError(RuntimeError):
    """A submit step failed; earlier steps are not rolled back."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(message)
        self.step = step


@dataclass
class SubmitSparePartEditUseCase:
    spare_part_repo: SparePartRepository
    image_repo: SparePartImageRepository
    storage: SupabaseStorage
    upload_concurrency: int = 4

    def execute(self, session: EditSession) -> SparePartEntity:
        """
        Persist an edit session and return the listing as re-fetched from the backend.

        Steps run strictly in order:
        1. update the scalar fields
        2. upload new images and insert their rows
        3. sync primary flags of images that already existed
        4. delete removed images (blob, then row)
        5. repair the "exactly one primary" invariant (best effort)
        6. re-fetch the listing

        A failure in any step except 5 raises SubmitError, leaves whatever was
        already written in place and returns the session to editing with the
        user's changes intact.
        """
        session.begin_submit()
        try:
            result = self._run(session)
        except SubmitError as exc:
            logger.error(
                "Submit of spare part %s failed at %s: %s", session.spare_part_id, exc.step, exc
            )
            session.submit_failed(f"Error saving changes: {exc}")
            raise
        except Exception as exc:
            logger.exception("Submit of spare part %s failed unexpectedly", session.spare_part_id)
            session.submit_failed(f"Error saving changes: {exc}")
            raise SubmitError("unexpected", str(exc)) from exc
        session.submit_succeeded()
        logger.info("Saved spare part %s", session.spare_part_id)
        return result

    def _run(self, session: EditSession) -> SparePartEntity:
        spare_part_id = session.spare_part_id
        session.images.ensure_primary()

        try:
            self.spare_part_repo.update_fields(spare_part_id, session.form.to_update_payload())
        except Exception as exc:
            raise SubmitError("update_fields", str(exc)) from exc

        diff = session.images.diff(session.original_images)
        self._insert_new_images(session, diff.new)
        self._sync_primary_flags(session, diff)
        self._delete_removed_images(session, diff.removed)
        self._repair_primary(session)

        try:
            refreshed = self.spare_part_repo.get(spare_part_id)
        except Exception as exc:
            raise SubmitError("refetch", str(exc)) from exc
        if refreshed is None:
            raise SubmitError("refetch", "Failed to fetch updated spare part data")
        return refreshed

    def _upload(self, spare_part_id: str, image: EditableImage) -> StorageResult:
        f = image.file
        if f is None:
            raise RuntimeError(f"Image {image.key} has no file to upload")
        return self.storage.upload_bytes(spare_part_id, f.data, f.ext, f.content_type)

    def _insert_new_images(self, session: EditSession, new_images: list[EditableImage]) -> None:
        if not new_images:
            return
        spare_part_id = session.spare_part_id
        workers = max(1, min(self.upload_concurrency, len(new_images)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(self._upload, spare_part_id, img) for img in new_images]
            # each row insert waits only for its own upload
            for image, future in zip(new_images, futures):
                is_primary = session.images.is_primary(image)
                try:
                    stored = future.result()
                    if is_primary:
                        self.image_repo.clear_primary(spare_part_id)
                    row = self.image_repo.create(
                        spare_part_id, url=stored.url, is_primary=is_primary, storage_path=stored.path
                    )
                except Exception as exc:
                    raise SubmitError("upload_images", str(exc)) from exc
                session.images.mark_persisted(image.key, row.id, row.url, row.storage_path)
                if is_primary:
                    session.original_images = with_primary(session.original_images, None)
                session.original_images.append(
                    SnapshotImage(
                        url=row.url,
                        image_id=row.id,
                        storage_path=row.storage_path,
                        is_primary=is_primary,
                    )
                )

    def _sync_primary_flags(self, session: EditSession, diff: ImageDiff) -> None:
        spare_part_id = session.spare_part_id
        for image in diff.existing:
            if image.image_id is None:
                continue
            now_primary = session.images.is_primary(image)
            if now_primary == diff.was_primary(image):
                continue
            try:
                if now_primary:
                    self.image_repo.clear_primary(spare_part_id, exclude_image_id=image.image_id)
                self.image_repo.set_primary_flag(image.image_id, now_primary)
            except Exception as exc:
                raise SubmitError("sync_primary", str(exc)) from exc
            if now_primary:
                session.original_images = with_primary(session.original_images, image.image_id)
            else:
                session.original_images = [
                    replace(s, is_primary=False) if s.image_id == image.image_id else s
                    for s in session.original_images
                ]

    def _delete_removed_images(self, session: EditSession, removed: list[SnapshotImage]) -> None:
        for snap in removed:
            path = snap.storage_path or self.storage.path_from_url(snap.url)
            try:
                if path:
                    self.storage.delete(path)
                else:
                    logger.warning("No storage path for removed image %s", snap.url)
                if snap.image_id:
                    self.image_repo.delete(snap.image_id)
            except Exception as exc:
                raise SubmitError("delete_images", str(exc)) from exc
            session.original_images = [s for s in session.original_images if s.url != snap.url]

    def _repair_primary(self, session: EditSession) -> None:
        spare_part_id = session.spare_part_id
        try:
            rows = self.image_repo.list_by_spare_part(spare_part_id)
            if not rows or sum(1 for r in rows if r.is_primary) == 1:
                return
            stored_ids = {r.id for r in rows}
            target = next(
                (img.image_id for img in session.images if img.image_id in stored_ids), rows[0].id
            )
            logger.warning("Repairing primary image of spare part %s -> %s", spare_part_id, target)
            self.image_repo.set_primary(spare_part_id, target)
        except Exception as exc:
            logger.warning("Primary image repair for spare part %s failed: %s", spare_part_id, exc)
