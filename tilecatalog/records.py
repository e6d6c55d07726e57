"""
Records exchanged between the catalog, the index and the transfer queue.

Coordinates are carried as decimal strings (``"0"``, ``"12"``) because that
is how the catalog stores and serves them; anything that needs ordering
converts to ``int`` at the point of comparison.
"""

import re

from pydantic import BaseModel, ConfigDict, Field, model_validator

SEGMENT_PATTERN = re.compile(r"\d+", re.ASCII)


def is_segment(value: str | None) -> bool:
    return value is not None and SEGMENT_PATTERN.fullmatch(value) is not None


def file_name_for(z: str, x: str, y: str) -> str:
    """
    The derived, unique file name of a tile: ``{z}-{x}-{y}``.
    """
    return f"{z}-{x}-{y}"


class TileRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Opaque identifier assigned by the catalog.")
    file_name: str = Field(
        alias="fileName", description="Derived name, always '{z}-{x}-{y}'."
    )
    z: str
    x: str
    y: str

    @property
    def coordinate(self) -> tuple[str, str, str]:
        return (self.z, self.x, self.y)


class Prefix(BaseModel):
    """
    A coordinate prefix: ``(z)``, ``(z, x)`` or ``(z, x, y)``. Omitted
    trailing segments are unconstrained.
    """

    z: str
    x: str | None = None
    y: str | None = None

    @model_validator(mode="after")
    def check_segments(self) -> "Prefix":
        if self.y is not None and self.x is None:
            raise ValueError("A prefix with y must also specify x")

        for name, value in (("z", self.z), ("x", self.x), ("y", self.y)):
            if value is not None and not is_segment(value):
                raise ValueError(f"Segment {name}={value!r} is not a non-negative integer")

        return self

    @property
    def level(self) -> int:
        if self.x is None:
            return 1
        if self.y is None:
            return 2
        return 3

    @property
    def segments(self) -> tuple[str, ...]:
        return tuple(s for s in (self.z, self.x, self.y) if s is not None)

    def is_ancestor_of(self, other: "Prefix") -> bool:
        """
        True when this prefix is a strict prefix of ``other``.
        """
        mine, theirs = self.segments, other.segments
        return len(mine) < len(theirs) and theirs[: len(mine)] == mine

    def matches(self, record: TileRecord) -> bool:
        return record.coordinate[: self.level] == self.segments

    def __str__(self):
        return "/".join(self.segments)


class DeleteResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    deleted_records: list[TileRecord] = Field(default=[], alias="deletedTiles")
    failed_objects: list[str] = Field(
        default=[],
        alias="failedObjects",
        description="Object store keys whose payload could not be removed.",
    )

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_records)

    def merge(self, other: "DeleteResult") -> "DeleteResult":
        seen = {r.id for r in self.deleted_records}
        return DeleteResult(
            deleted_records=self.deleted_records
            + [r for r in other.deleted_records if r.id not in seen],
            failed_objects=self.failed_objects + other.failed_objects,
        )


class Progress(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_uploading: bool = Field(alias="isUploading")
    percent: int = Field(ge=0, le=100)
