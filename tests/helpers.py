from tilecatalog.records import TileRecord, file_name_for

JPEG = b"\xff\xd8\xff\xe0" + b"fake-jpeg-body"
PNG = b"\x89PNG\r\n\x1a\n" + b"fake-png-body"


def make_record(z, x, y) -> TileRecord:
    z, x, y = str(z), str(x), str(y)
    return TileRecord(id=f"id-{z}-{x}-{y}", file_name=file_name_for(z, x, y), z=z, x=x, y=y)
