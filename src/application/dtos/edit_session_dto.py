from __future__ import annotations

from pydantic import BaseModel, Field

from src.application.dtos.reference_dto import ReferenceOptionOut
from src.application.use_cases.edit_session import EditSession


class ListingFormOut(BaseModel):
    """Current (unsaved) field values of the listing, as form strings."""
    title: str
    name_ar: str
    description: str
    description_ar: str
    price: str
    currency: str
    condition: str
    part_type: str
    brand_id: str
    model_id: str
    category_id: str
    city_id: str
    country_id: str


class SessionImageOut(BaseModel):
    key: str = Field(..., description="Image id, or a temporary key for images not yet saved")
    url: str = Field(..., description="Public URL, or a local preview reference for new images")
    is_primary: bool = Field(..., description="Exactly one image is primary when any exist")
    is_new: bool = Field(..., description="True until the image is uploaded on submit")
    preview_path: str | None = Field(None, description="API path serving the preview of a new image")


class DropdownOptions(BaseModel):
    brands: list[ReferenceOptionOut] = Field(default_factory=list)
    models: list[ReferenceOptionOut] = Field(default_factory=list)
    categories: list[ReferenceOptionOut] = Field(default_factory=list)
    countries: list[ReferenceOptionOut] = Field(default_factory=list)
    cities: list[ReferenceOptionOut] = Field(default_factory=list)


class EditSessionResponse(BaseModel):
    """Full view of an edit session."""
    id: str = Field(..., description="Edit session identifier")
    spare_part_id: str = Field(..., description="Listing being edited")
    state: str = Field(..., description="loading, editing, submitting or closed", examples=["editing"])
    form: ListingFormOut
    images: list[SessionImageOut]
    options: DropdownOptions
    notices: list[str] = Field(default_factory=list, description="User-facing messages")
    last_error: str | None = Field(None, description="Error of the last failed submit, if any")

    @classmethod
    def from_session(cls, session: EditSession) -> EditSessionResponse:
        ref = session.reference
        return cls(
            id=session.id,
            spare_part_id=session.spare_part_id,
            state=session.state.value,
            form=ListingFormOut(**session.form.as_dict()),
            images=[
                SessionImageOut(
                    key=img.key,
                    url=img.url,
                    is_primary=session.images.is_primary(img),
                    is_new=img.is_new,
                    preview_path=(
                        f"/edit-sessions/{session.id}/images/{img.key}/preview"
                        if img.file is not None
                        else None
                    ),
                )
                for img in session.images
            ],
            options=DropdownOptions(
                brands=[ReferenceOptionOut.from_entity(o) for o in ref.brands],
                models=[ReferenceOptionOut.from_entity(o) for o in ref.models],
                categories=[ReferenceOptionOut.from_entity(o) for o in ref.categories],
                countries=[ReferenceOptionOut.from_entity(o) for o in ref.countries],
                cities=[ReferenceOptionOut.from_entity(o) for o in ref.cities],
            ),
            notices=list(session.notices),
            last_error=session.last_error,
        )


class UpdateFieldsRequest(BaseModel):
    """Field changes; omitted fields are left as they are."""
    title: str | None = Field(None, max_length=200)
    name_ar: str | None = None
    description: str | None = None
    description_ar: str | None = None
    price: str | float | None = None
    currency: str | None = Field(None, max_length=3)
    condition: str | None = Field(None, pattern="^(new|used|refurbished)$")
    part_type: str | None = Field(None, pattern="^(original|aftermarket)$")
    brand_id: int | str | None = None
    model_id: int | str | None = None
    category_id: int | str | None = None
    city_id: int | str | None = None
    country_id: int | str | None = None


class SetPrimaryRequest(BaseModel):
    index: int = Field(..., ge=0, description="Position of the image to make primary", examples=[2])


class CloseSessionResponse(BaseModel):
    ok: bool = Field(True, description="Indicates the session was discarded")
