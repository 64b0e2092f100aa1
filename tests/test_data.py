"""
Unit tests for the loose object database: ids, compression, framing, put/get.
"""

import hashlib
import os
import zlib

import pytest

from minigit import data
from minigit.errors import (
    CorruptObject,
    InvalidIdFormat,
    IoFailure,
    ObjectNotFound,
    ObjectTypeMismatch,
)

HELLO_OID = "b6fc4c620b67d95f953a5c1c1230aaab5db5a1b0"
EMPTY_BLOB_OID = "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"


def test_hello_frame_and_id():
    obj = data.frame("blob", b"hello")
    assert obj == b"blob 5\x00hello"
    assert data.hash_object(b"hello", write=False) == HELLO_OID
    assert HELLO_OID == hashlib.sha1(obj).hexdigest()


def test_empty_blob_id():
    assert data.hash_object(b"", write=False) == EMPTY_BLOB_OID


def test_digest_is_20_bytes():
    raw = data.digest(b"blob 5\x00hello")
    assert len(raw) == 20
    assert data.id_to_hex(raw) == HELLO_OID
    assert data.hex_to_id(HELLO_OID) == raw


def test_hex_to_id_accepts_uppercase():
    assert data.hex_to_id(HELLO_OID.upper()) == data.hex_to_id(HELLO_OID)


@pytest.mark.parametrize(
    "value",
    ["", "abc", "g" * 40, HELLO_OID + "0", HELLO_OID[:-1], " " + HELLO_OID[1:], None],
)
def test_hex_to_id_rejects_bad_ids(value):
    with pytest.raises(InvalidIdFormat):
        data.hex_to_id(value)


def test_invalid_id_is_a_value_error():
    with pytest.raises(ValueError):
        data.object_path("not-an-id")


@pytest.mark.parametrize("payload", [b"", b"hello", bytes(range(256)) * 16])
def test_compress_round_trip(payload):
    assert data.decompress(data.compress(payload)) == payload


def test_decompress_garbage():
    with pytest.raises(CorruptObject):
        data.decompress(b"definitely not zlib")


@pytest.mark.parametrize("type_", data.TYPES)
@pytest.mark.parametrize("payload", [b"", b"a\x00b\x00", b"x" * 1000])
def test_frame_round_trip(type_, payload):
    assert data.parse_frame(data.frame(type_, payload)) == (type_, payload)


def test_frame_rejects_unknown_type():
    with pytest.raises(ValueError):
        data.frame("tag", b"")


@pytest.mark.parametrize(
    "obj",
    [
        b"blob 5hello",  # no NUL
        b"blobx 5\x00hello",
        b"blob five\x00hello",
        b"blob 5 \x00hello",
        b"blob\x00",
        b"blob 4\x00hello",  # length mismatch
        b"blob 6\x00hello",
    ],
)
def test_parse_frame_rejects_malformed(obj):
    with pytest.raises(CorruptObject):
        data.parse_frame(obj)


class TestStore:
    def test_object_path_fans_out(self, repo):
        path = data.object_path(HELLO_OID)
        assert path == f"{repo}/.git/objects/b6/{HELLO_OID[2:]}"

    def test_put_get(self, repo):
        obj = data.frame("blob", b"hello")
        oid = data.put(obj)

        assert oid == HELLO_OID
        assert os.path.isfile(repo / ".git" / "objects" / "b6" / HELLO_OID[2:])
        assert data.get(oid) == obj

    def test_stored_bytes_are_zlib_of_frame(self, repo):
        oid = data.hash_object(b"hello")
        with open(data.object_path(oid), "rb") as f:
            assert zlib.decompress(f.read()) == b"blob 5\x00hello"

    def test_storing_twice_gives_one_file(self, repo):
        first = data.hash_object(b"same bytes")
        second = data.hash_object(b"same bytes")

        assert first == second
        bucket = repo / ".git" / "objects" / first[:2]
        assert os.listdir(bucket) == [first[2:]]

    def test_empty_blob_is_stored(self, repo):
        oid = data.hash_object(b"")
        assert oid == EMPTY_BLOB_OID
        assert data.get_object(oid) == b""

    def test_hash_without_write(self, repo):
        oid = data.hash_object(b"hello", write=False)
        assert not data.object_exists(oid)
        with pytest.raises(ObjectNotFound):
            data.get(oid)

    def test_get_missing(self, repo):
        with pytest.raises(ObjectNotFound) as exc:
            data.get("0" * 40)
        assert exc.value.oid == "0" * 40

    def test_get_accepts_uppercase_id(self, repo):
        oid = data.hash_object(b"hello")
        assert data.get(oid.upper()) == b"blob 5\x00hello"

    def test_truncated_object_is_corrupt(self, repo):
        oid = data.hash_object(b"hello world, truncated")
        path = data.object_path(oid)
        os.chmod(path, 0o644)
        with open(path, "rb") as f:
            raw = f.read()
        with open(path, "wb") as f:
            f.write(raw[:-1])

        with pytest.raises(CorruptObject):
            data.get(oid)

    def test_content_not_matching_id_is_corrupt(self, repo):
        oid = data.hash_object(b"hello")
        path = data.object_path(oid)
        os.chmod(path, 0o644)
        with open(path, "wb") as f:
            f.write(zlib.compress(b"blob 5\x00HELLO"))

        with pytest.raises(CorruptObject):
            data.get(oid)

    def test_bad_header_on_disk_is_corrupt(self, repo):
        oid = data.hash_object(b"hello")
        path = data.object_path(oid)
        os.chmod(path, 0o644)
        with open(path, "wb") as f:
            f.write(zlib.compress(b"blob 7\x00hello"))

        with pytest.raises(CorruptObject):
            data.get(oid)

    def test_get_object_checks_type(self, repo):
        oid = data.hash_object(b"tree-ish?", "blob")
        with pytest.raises(ObjectTypeMismatch) as exc:
            data.get_object(oid, expected="commit")
        assert isinstance(exc.value, CorruptObject)
        assert exc.value.actual == "blob"

    def test_get_object_any_type(self, repo):
        oid = data.hash_object(b"payload", "commit")
        assert data.get_object(oid, expected=None) == b"payload"
        assert data.get_object_type(oid) == "commit"
        assert data.get_object_size(oid) == 7

    def test_existing_bucket_directory_is_fine(self, repo):
        os.makedirs(repo / ".git" / "objects" / "b6")
        assert data.hash_object(b"hello") == HELLO_OID

    def test_bucket_blocked_by_file_is_io_failure(self, repo):
        (repo / ".git" / "objects" / "b6").write_bytes(b"")
        with pytest.raises(IoFailure):
            data.hash_object(b"hello")
        with pytest.raises(IoFailure):
            data.get(HELLO_OID)

    def test_uninitialized_repository_is_io_failure(self, tmp_path):
        with data.change_git_dir(tmp_path):
            with pytest.raises(IoFailure):
                data.hash_object(b"hello")
        assert not (tmp_path / ".git").exists()

    def test_no_temp_files_left_behind(self, repo):
        oid = data.hash_object(b"hello")
        bucket = repo / ".git" / "objects" / oid[:2]
        assert not [name for name in os.listdir(bucket) if name.startswith("tmp_obj_")]


def test_init_layout(repo):
    git_dir = repo / ".git"
    assert (git_dir / "objects").is_dir()
    assert (git_dir / "refs").is_dir()
    assert (git_dir / "HEAD").read_text() == "ref: refs/heads/master\n"


def test_init_twice_fails(repo):
    with pytest.raises(IoFailure):
        data.init()


def test_change_git_dir_restores(tmp_path):
    before = data.GIT_DIR
    with data.change_git_dir(tmp_path):
        assert data.GIT_DIR == f"{tmp_path}/.git"
    assert data.GIT_DIR == before
