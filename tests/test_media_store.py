import io
import re

import pytest
from starlette.datastructures import UploadFile

from app.errors import MediaStorageError
from app.services.media_store import MediaStore, build_file_name, collect_media_fields


def _upload(name, content=b"data"):
    return UploadFile(file=io.BytesIO(content), filename=name)


def test_file_name_shape():
    name = build_file_name("photo", "IMG_0001.JPG")
    assert re.fullmatch(r"photo_\d+_[0-9a-f]{6}\.jpg", name)


def test_file_name_truncates_long_extension():
    name = build_file_name("voice", "memo.averyveryverylongext")
    assert name.endswith(".averyve")


def test_file_name_without_extension():
    assert re.fullmatch(r"voice_\d+_[0-9a-f]{6}", build_file_name("voice", None))


def test_file_names_do_not_collide():
    names = {build_file_name("photo", "a.png") for _ in range(50)}
    assert len(names) == 50


async def test_save_copies_content_and_returns_public_url(tmp_path):
    store = MediaStore(str(tmp_path / "nested" / "uploads"))
    url = await store.save("voice", _upload("memo.m4a", b"\x00\x01voice-bytes"))

    assert url.startswith("/uploads/voice_")
    assert url.endswith(".m4a")
    saved = tmp_path / "nested" / "uploads" / url.rsplit("/", 1)[1]
    assert saved.read_bytes() == b"\x00\x01voice-bytes"


async def test_save_failure_raises_media_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    store = MediaStore(str(blocker))

    with pytest.raises(MediaStorageError):
        await store.save("photo", _upload("a.jpg"))


def test_collect_media_fields_keeps_first_voice_and_all_photos_in_order():
    voice1, voice2 = _upload("v1.m4a"), _upload("v2.m4a")
    p1, p2, p3 = _upload("1.jpg"), _upload("2.jpg"), _upload("3.jpg")
    items = [
        ("category", "flooding"),
        ("photo2", p2),
        ("voice", voice1),
        ("photo1", p1),
        ("voice", voice2),
        ("attachment", _upload("x.bin")),
        ("photo", p3),
    ]

    voice, photos = collect_media_fields(items)

    assert voice is voice1
    assert photos == [p2, p1, p3]


def test_collect_media_fields_ignores_text_values_under_media_keys():
    voice, photos = collect_media_fields([("voice", "not a file"), ("photo1", "nope")])
    assert voice is None
    assert photos == []
