"""
Validation of user supplied files before they become upload tasks.

Two layouts are accepted:

- folder uploads, where each file sits at ``z/x/y.jpg`` relative to the
  chosen folder;
- single uploads into a selected ``z/x`` node of the tree, where each file
  is named ``y.jpg``.

Every coordinate segment must be a non-negative decimal integer and every
file must be a JPEG or PNG image. Files that fail are rejected here and
never reach the transfer queue.
"""

import re
from pathlib import Path, PurePosixPath

import structlog
from pydantic import BaseModel

from . import index
from .index import TreeNode
from .keys import MalformedKey
from .records import is_segment
from .transfer import UploadTask

SUPPORTED_CONTENT_TYPES = ("image/jpeg", "image/png")
EXTENSION_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}
SINGLE_FILE_NAME = re.compile(r"(\d+)\.(jpe?g|png)", re.ASCII | re.IGNORECASE)


class ValidationFailure(Exception):
    """Raised when a file or folder name does not describe a valid tile."""

    pass


class TileFile(BaseModel):
    name: str
    relative_path: str | None = None
    payload: bytes
    content_type: str | None = None


def content_type_for(name: str, declared: str | None = None) -> str:
    if declared in SUPPORTED_CONTENT_TYPES:
        return declared

    suffix = PurePosixPath(name).suffix.lower()
    if suffix in EXTENSION_CONTENT_TYPES:
        return EXTENSION_CONTENT_TYPES[suffix]

    raise ValidationFailure(f"File {name} is not a JPG or PNG image")


def parse_folder_path(relative_path: str) -> tuple[str, str, str]:
    """
    Extract ``(z, x, y)`` from a ``z/x/y.ext`` path.
    """
    if not relative_path.strip():
        raise ValidationFailure("Empty file path")

    path = PurePosixPath(relative_path.replace("\\", "/"))
    try:
        path = path.with_suffix("")
    except ValueError:
        raise ValidationFailure(f"Path {relative_path} has no file name")

    parts = [p for p in path.parts if p.strip() and p != "/"]

    if len(parts) != 3:
        raise ValidationFailure(
            f"Path {relative_path} does not have the z/x/y.jpg structure"
        )

    z, x, y = parts

    if not all(is_segment(s) for s in (z, x, y)):
        raise ValidationFailure(f"Path {relative_path} has non-numeric segments")

    return z, x, y


def parse_single(
    tree: list[TreeNode], selected_key: str | None, file_name: str
) -> tuple[str, str, str]:
    """
    Extract ``(z, x, y)`` for a file uploaded into the selected tree node.
    """
    if selected_key is None:
        raise ValidationFailure("Select a folder to upload into first")

    try:
        path = index.node_path(tree, selected_key)
    except MalformedKey:
        raise ValidationFailure(f"Selected node {selected_key} is not a tile folder")

    if len(path) < 2:
        raise ValidationFailure("Select a folder at least two levels deep (z/x/)")

    match = SINGLE_FILE_NAME.fullmatch(file_name)
    if match is None:
        raise ValidationFailure(f"File {file_name} should be named like 'y.jpg'")

    z, x = path[0], path[1]
    y = match.group(1)

    if not all(is_segment(s) for s in (z, x, y)):
        raise ValidationFailure("Folder names and file names must be numeric")

    return z, x, y


def _task(file: TileFile, coordinate: tuple[str, str, str]) -> UploadTask:
    z, x, y = coordinate
    return UploadTask(
        name=file.name,
        payload=file.payload,
        z=z,
        x=x,
        y=y,
        content_type=content_type_for(file.name, file.content_type),
    )


def prepare_folder(
    files: list[TileFile],
) -> tuple[list[UploadTask], list[tuple[TileFile, ValidationFailure]]]:
    """
    Build upload tasks for a folder upload. Returns the tasks and the
    rejected files with the reason each was rejected.
    """
    tasks, rejected = [], []

    for file in files:
        try:
            if file.relative_path is None:
                raise ValidationFailure("Select a folder rather than a single file")
            content_type_for(file.name, file.content_type)
            tasks.append(_task(file, parse_folder_path(file.relative_path)))
        except ValidationFailure as e:
            rejected.append((file, e))

    return tasks, rejected


def prepare_single(
    tree: list[TreeNode], selected_key: str | None, files: list[TileFile]
) -> tuple[list[UploadTask], list[tuple[TileFile, ValidationFailure]]]:
    tasks, rejected = [], []

    for file in files:
        try:
            content_type_for(file.name, file.content_type)
            tasks.append(_task(file, parse_single(tree, selected_key, file.name)))
        except ValidationFailure as e:
            rejected.append((file, e))

    return tasks, rejected


def scan_folder(root: Path) -> list[TileFile]:
    """
    Read every file below ``root``, with paths relative to it, in sorted
    order.
    """
    log = structlog.get_logger()
    log = log.bind(root=str(root))

    files = []
    for path in sorted(p for p in Path(root).rglob("*") if p.is_file()):
        with path.open("rb") as handle:
            payload = handle.read()

        files.append(
            TileFile(
                name=path.name,
                relative_path=path.relative_to(root).as_posix(),
                payload=payload,
            )
        )

    log.info("uploads.scanned", files=len(files))

    return files
