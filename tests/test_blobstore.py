import pytest

from app.core.errors import InvalidRequest, StorageFailure
from app.services.blobstore import sanitize_filename


def test_layout_created(store):
    for d in ("tmp", "images", "videos", "docs", "others"):
        assert (store.root / d).is_dir()


def test_write_replaces_and_read(store):
    store.write("tmp", "a.bin", b"first")
    store.write("tmp", "a.bin", b"second")
    assert store.read("tmp", "a.bin") == b"second"
    assert store.list_dir("tmp") == ["a.bin"]


def test_append_and_delete(store):
    store.write("tmp", "x", b"AB")
    store.append("tmp", "x", b"CD")
    assert store.read("tmp", "x") == b"ABCD"
    store.delete("tmp", "x")
    store.delete("tmp", "x")  # missing blob is fine
    assert not store.exists("tmp", "x")


def test_path_cannot_escape_root(store):
    with pytest.raises(InvalidRequest):
        store.path("tmp", "../../etc/passwd")


@pytest.mark.parametrize(
    "raw, clean",
    [
        ("report.pdf", "report.pdf"),
        ("../../etc/passwd", "passwd"),
        ("C:\\Users\\me\\photo.png", "photo.png"),
        ("we?ird<name>.txt", "we_ird_name_.txt"),
        (".hidden", "hidden"),
    ],
)
def test_sanitize_filename(raw, clean):
    assert sanitize_filename(raw) == clean


@pytest.mark.parametrize("raw", ["", "..", "dir/", " . "])
def test_sanitize_filename_rejects_unusable(raw):
    with pytest.raises(InvalidRequest):
        sanitize_filename(raw)


def test_sanitize_caps_utf8_bytes_and_keeps_extension():
    clean = sanitize_filename("é" * 240 + ".pdf")
    assert clean.endswith(".pdf")
    assert len(clean.encode("utf-8")) <= 200
    assert sanitize_filename("a" * 246 + ".PNG").endswith(".PNG")


def test_exists_wraps_os_errors(store):
    with pytest.raises(StorageFailure):
        store.exists("tmp", "x" * 300)
