"""Pydantic models for request payloads."""

from pydantic import BaseModel, ConfigDict, Field


class NoteCreate(BaseModel):
    """Note or folder creation payload."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    parent_id: str | None = Field(default=None, alias="parentId")
    is_folder: bool = Field(default=False, alias="isFolder")
    duplicate_from_id: str | None = Field(default=None, alias="duplicateFromId")


class NoteUpdate(BaseModel):
    """Partial update payload.

    Only ``name``, ``content`` and ``parentId`` are applied; anything else is
    ignored. An explicit ``"parentId": null`` moves the node to the root.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    content: str | None = None
    parent_id: str | None = Field(default=None, alias="parentId")


class NoteMove(BaseModel):
    """Reparent payload; a null ``parentId`` means the root level."""

    model_config = ConfigDict(populate_by_name=True)

    parent_id: str | None = Field(default=None, alias="parentId")
