"""
Tests for pre-submission validation of uploaded files.
"""

import pytest

from tilecatalog import index
from tilecatalog.uploads import (
    TileFile,
    ValidationFailure,
    content_type_for,
    parse_folder_path,
    parse_single,
    prepare_folder,
    prepare_single,
    scan_folder,
)

from .helpers import JPEG, PNG, make_record


def test_parse_folder_path():
    assert parse_folder_path("1/0/2.jpg") == ("1", "0", "2")
    assert parse_folder_path("12\\4095\\17.png") == ("12", "4095", "17")


@pytest.mark.parametrize(
    "path",
    ["", "1/0.jpg", "tiles/1/0/2.jpg", "a/0/2.jpg", "1/0/two.jpg", "1/0/2.5.jpg", "1/-1/2.jpg"],
)
def test_parse_folder_path_rejects(path):
    with pytest.raises(ValidationFailure):
        parse_folder_path(path)


def test_content_type_for():
    assert content_type_for("0.jpg") == "image/jpeg"
    assert content_type_for("0.JPEG") == "image/jpeg"
    assert content_type_for("0.png") == "image/png"
    assert content_type_for("0", "image/png") == "image/png"
    assert content_type_for("0.jpg", "application/octet-stream") == "image/jpeg"

    with pytest.raises(ValidationFailure):
        content_type_for("0.gif", "image/gif")


def test_prepare_folder_splits_valid_and_rejected():
    files = [
        TileFile(name="0.jpg", relative_path="3/1/0.jpg", payload=JPEG),
        TileFile(name="1.png", relative_path="3/1/1.png", payload=PNG),
        TileFile(name="x.jpg", relative_path="3/1/x.jpg", payload=JPEG),
        TileFile(name="2.gif", relative_path="3/1/2.gif", payload=b"GIF89a"),
        TileFile(name="3.jpg", payload=JPEG),
    ]

    tasks, rejected = prepare_folder(files)

    assert [(t.z, t.x, t.y, t.content_type) for t in tasks] == [
        ("3", "1", "0", "image/jpeg"),
        ("3", "1", "1", "image/png"),
    ]
    assert [f.name for f, _ in rejected] == ["x.jpg", "2.gif", "3.jpg"]


def test_parse_single_uses_selected_folder():
    tree = index.build([make_record(3, 5, 1)])

    assert parse_single(tree, "z_3_x_5", "7.jpg") == ("3", "5", "7")
    assert parse_single(tree, "z_3_x_5_y_1", "8.JPG") == ("3", "5", "8")


@pytest.mark.parametrize(
    "key, name",
    [
        (None, "7.jpg"),
        ("z_3", "7.jpg"),
        ("z_4_x_5", "7.jpg"),
        ("z_3_x_5", "seven.jpg"),
        ("z_3_x_5", "7.gif"),
        ("folder_17", "7.jpg"),
    ],
)
def test_parse_single_rejects(key, name):
    tree = index.build([make_record(3, 5, 1)])

    with pytest.raises(ValidationFailure):
        parse_single(tree, key, name)


def test_prepare_single():
    tree = index.build([make_record(3, 5, 1)])
    files = [TileFile(name="2.jpg", payload=JPEG), TileFile(name="b.jpg", payload=JPEG)]

    tasks, rejected = prepare_single(tree, "z_3_x_5", files)

    assert [(t.z, t.x, t.y) for t in tasks] == [("3", "5", "2")]
    assert len(rejected) == 1


def test_scan_folder(tmp_path):
    (tmp_path / "2" / "1").mkdir(parents=True)
    (tmp_path / "2" / "1" / "0.jpg").write_bytes(JPEG)
    (tmp_path / "2" / "1" / "1.jpg").write_bytes(JPEG)

    files = scan_folder(tmp_path)

    assert [f.relative_path for f in files] == ["2/1/0.jpg", "2/1/1.jpg"]
    assert files[0].payload == JPEG
