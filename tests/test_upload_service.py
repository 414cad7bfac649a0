import asyncio
import re

from infra.files import write_stream
from infra.multipart import PayloadTooLarge, UploadPart
from services.credentials import CredentialStore
from services.upload_service import UploadService

JPEG = bytes([0xFF, 0xD8, 0xFF, 0xE0]) + b"\x00" * 100 + bytes([0xFF, 0xD9])


async def _chunks(*chunks):
    for c in chunks:
        yield c


async def _broken(first: bytes):
    yield first
    raise OSError(28, "No space left on device")


async def _parts(*parts):
    for p in parts:
        yield p


class CountingParts:
    """记录被取走了多少个 part"""

    def __init__(self, *parts):
        self.parts = list(parts)
        self.taken = 0

    async def __aiter__(self):
        for p in self.parts:
            self.taken += 1
            yield p


def _service(tmp_path, writer=write_stream):
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    return UploadService(CredentialStore({"abc123": "alice"}), uploads, writer=writer), uploads


def test_single_jpeg_upload(tmp_path):
    service, uploads = _service(tmp_path)
    part = UploadPart(filename="photo.jpg", field_name="file", chunks=_chunks(JPEG[:50], JPEG[50:]))

    result = asyncio.run(service.handle("abc123", _parts(part)))

    assert result.status_code == 200
    assert re.fullmatch(r"[A-Za-z0-9\-_~]{5}\.jpg", result.body)
    assert (uploads / result.body).read_bytes() == JPEG
    assert result.files[0].original_filename == "photo.jpg"
    assert result.files[0].size_bytes == len(JPEG)


def test_wrong_key_is_forbidden_and_reads_nothing(tmp_path):
    service, uploads = _service(tmp_path)
    parts = CountingParts(UploadPart(filename="a.txt", field_name="file", chunks=_chunks(b"a")))

    result = asyncio.run(service.handle("wrong-key", parts.__aiter__()))

    assert result.status_code == 403
    assert result.body == ""
    assert parts.taken == 0
    assert list(uploads.iterdir()) == []


def test_missing_key_is_forbidden(tmp_path):
    service, _ = _service(tmp_path)
    result = asyncio.run(service.handle(None, _parts()))
    assert result.status_code == 403


def test_second_part_failure_keeps_first_file(tmp_path):
    service, uploads = _service(tmp_path)
    parts = CountingParts(
        UploadPart(filename="a.txt", field_name="file", chunks=_chunks(b"alpha")),
        UploadPart(filename="b.txt", field_name="file", chunks=_broken(b"bet")),
        UploadPart(filename="c.txt", field_name="file", chunks=_chunks(b"gamma")),
    )

    result = asyncio.run(service.handle("abc123", parts.__aiter__()))

    assert result.status_code == 500
    assert result.body == ""
    files = list(uploads.iterdir())
    assert len(files) == 1
    assert files[0].name.endswith(".txt")
    assert files[0].read_bytes() == b"alpha"
    # c.txt 没有被处理
    assert parts.taken == 2


def test_name_without_extension(tmp_path):
    service, uploads = _service(tmp_path)
    part = UploadPart(filename="archive", field_name="file", chunks=_chunks(b"data"))

    result = asyncio.run(service.handle("abc123", _parts(part)))

    assert result.status_code == 200
    assert re.fullmatch(r"[A-Za-z0-9\-_~]{6}", result.body)
    assert (uploads / result.body).read_bytes() == b"data"


def test_part_without_filename(tmp_path):
    service, _ = _service(tmp_path)
    part = UploadPart(filename=None, field_name="note", chunks=_chunks(b"hi"))

    result = asyncio.run(service.handle("abc123", _parts(part)))

    assert result.status_code == 200
    assert re.fullmatch(r"[A-Za-z0-9\-_~]{6}", result.body)
    assert result.files[0].original_filename == "<none>"


def test_multiple_parts_joined_by_newline(tmp_path):
    service, uploads = _service(tmp_path)
    parts = _parts(
        UploadPart(filename="a.txt", field_name="file", chunks=_chunks(b"1")),
        UploadPart(filename="b.png", field_name="file", chunks=_chunks(b"2")),
    )

    result = asyncio.run(service.handle("abc123", parts))

    names = result.body.split("\n")
    assert result.status_code == 200
    assert len(names) == 2
    assert names[0].endswith(".txt") and names[1].endswith(".png")
    assert (uploads / names[0]).read_bytes() == b"1"
    assert (uploads / names[1]).read_bytes() == b"2"


def test_no_parts_is_ok_with_empty_body(tmp_path):
    service, _ = _service(tmp_path)
    result = asyncio.run(service.handle("abc123", _parts()))
    assert result.status_code == 200
    assert result.body == ""


def test_reupload_gets_new_name(tmp_path):
    service, _ = _service(tmp_path)

    def once():
        part = UploadPart(filename="photo.jpg", field_name="file", chunks=_chunks(JPEG))
        return asyncio.run(service.handle("abc123", _parts(part))).body

    assert len({once() for _ in range(5)}) > 1


def test_stream_failure_between_parts(tmp_path):
    service, uploads = _service(tmp_path)

    async def parts():
        yield UploadPart(filename="a.txt", field_name="file", chunks=_chunks(b"alpha"))
        raise PayloadTooLarge(10)

    result = asyncio.run(service.handle("abc123", parts()))

    assert result.status_code == 500
    assert len(list(uploads.iterdir())) == 1


def test_parts_written_sequentially(tmp_path):
    events = []

    async def writer(path, chunks):
        events.append(("start", path.name))
        n = 0
        async for c in chunks:
            await asyncio.sleep(0)
            n += len(c)
        events.append(("end", path.name))
        return n

    service, _ = _service(tmp_path, writer=writer)
    parts = _parts(
        UploadPart(filename="a.txt", field_name="file", chunks=_chunks(b"1", b"2")),
        UploadPart(filename="b.txt", field_name="file", chunks=_chunks(b"3")),
    )

    result = asyncio.run(service.handle("abc123", parts))

    assert result.status_code == 200
    assert [e[0] for e in events] == ["start", "end", "start", "end"]
