"""Node model: a tagged variant with a folder case and a leaf (note) case."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    computed_field,
    field_validator,
)

FOLDER_KIND = "folder"
LEAF_KIND = "leaf"


class NodeBase(BaseModel):
    """Fields shared by folders and leaves.

    Instances are immutable; every mutation produces a copy through
    ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    owner: str
    name: str
    parent_id: str | None = None
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    tags: tuple[str, ...] = ()
    collaborators: tuple[str, ...] = ()

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            msg = "name must not be empty"
            raise ValueError(msg)
        return stripped

    @property
    def is_trashed(self) -> bool:
        """Return True when the node sits in the trash."""
        return self.deleted_at is not None

    def to_record(self) -> dict[str, Any]:
        """Serialize the full node for storage or API responses."""
        return self.model_dump(mode="json")

    def summary(self) -> dict[str, Any]:
        """Serialize the node for list views (no content, no tags)."""
        return self.model_dump(mode="json", exclude={"content", "tags"})


class Folder(NodeBase):
    """A node that can hold children and carries no content."""

    kind: Literal["folder"] = FOLDER_KIND

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_folder(self) -> bool:
        """Wire-compatible discriminator flag."""
        return True


class Leaf(NodeBase):
    """A note: never has children, carries a text body."""

    kind: Literal["leaf"] = LEAF_KIND
    content: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_folder(self) -> bool:
        """Wire-compatible discriminator flag."""
        return False


Node = Annotated[Folder | Leaf, Field(discriminator="kind")]

_NODE_ADAPTER: TypeAdapter[Folder | Leaf] = TypeAdapter(Node)


def node_from_record(record: dict[str, Any]) -> Folder | Leaf:
    """Build a node from a stored or transmitted record.

    Records without ``kind`` fall back to the ``is_folder`` flag, which is how
    list views and older payloads describe the variant.

    Args:
        record: Mapping produced by :meth:`NodeBase.to_record` or the API.

    Returns:
        A :class:`Folder` or :class:`Leaf`.

    Raises:
        pydantic.ValidationError: If the record is malformed.

    """
    data = dict(record)
    is_folder = data.pop("is_folder", None)
    if "kind" not in data:
        data["kind"] = FOLDER_KIND if is_folder else LEAF_KIND
    return _NODE_ADAPTER.validate_python(data)

