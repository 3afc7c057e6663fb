import errno
import os
import re

import pytest

from ergon import files
from ergon.errors import ErgonIOError, UniquePathExhaustedError, ValidationError
from ergon.files import (
    generate_unique_file_path,
    load_context_file,
    mime_type_for,
    read_image_file,
    save_file_with_unique_name_if_exists,
)


def test_free_path_is_returned_unchanged(tmp_path):
    target = tmp_path / "out.png"
    assert generate_unique_file_path(target) == str(target)


def test_collision_inserts_four_digit_suffix(tmp_path):
    target = tmp_path / "out.png"
    target.write_bytes(b"x")

    resolved = generate_unique_file_path(target)

    assert resolved != str(target)
    assert re.fullmatch(re.escape(str(tmp_path / "out")) + r"-\d{4}\.png", resolved)
    assert not os.path.exists(resolved)


def test_suffix_goes_before_extension_only(tmp_path):
    target = tmp_path / "archive.tar.gz"
    target.write_bytes(b"x")

    resolved = generate_unique_file_path(target)

    assert re.fullmatch(re.escape(str(tmp_path / "archive.tar")) + r"-\d{4}\.gz", resolved)


def test_exhaustion_reports_attempt_count(tmp_path, monkeypatch):
    target = tmp_path / "out.png"
    target.write_bytes(b"x")
    (tmp_path / "out-0007.png").write_bytes(b"x")
    monkeypatch.setattr(files.random, "randint", lambda a, b: 7)

    with pytest.raises(UniquePathExhaustedError) as excinfo:
        generate_unique_file_path(target, max_retries=5)

    assert excinfo.value.attempts == 5
    assert "5" in str(excinfo.value)


def test_path_without_extension_gets_trailing_suffix(tmp_path):
    target = tmp_path / "name"
    target.write_bytes(b"x")

    resolved = generate_unique_file_path(target)

    assert re.fullmatch(re.escape(str(tmp_path / "name")) + r"-\d{4}", resolved)


def test_directory_at_target_counts_as_taken(tmp_path, monkeypatch):
    (tmp_path / "out.png").mkdir()
    (tmp_path / "out-0001.png").mkdir()
    suffixes = iter([1, 2])
    monkeypatch.setattr(files.random, "randint", lambda a, b: next(suffixes))

    assert generate_unique_file_path(tmp_path / "out.png") == str(tmp_path / "out-0002.png")


def test_every_candidate_is_checked(tmp_path, monkeypatch):
    target = tmp_path / "out.png"
    target.write_bytes(b"x")
    (tmp_path / "out-0001.png").write_bytes(b"x")
    (tmp_path / "out-0002.png").write_bytes(b"x")
    suffixes = iter([1, 2, 3])
    monkeypatch.setattr(files.random, "randint", lambda a, b: next(suffixes))

    assert generate_unique_file_path(target, max_retries=3) == str(tmp_path / "out-0003.png")


def test_stat_errors_other_than_not_found_propagate(tmp_path, monkeypatch):
    def denied(path):
        raise PermissionError(errno.EACCES, "denied", path)

    monkeypatch.setattr(files.os, "stat", denied)

    with pytest.raises(PermissionError):
        generate_unique_file_path(tmp_path / "out.png")


def test_save_twice_keeps_both_files(tmp_path):
    target = tmp_path / "out.png"

    first = save_file_with_unique_name_if_exists(target, b"one")
    second = save_file_with_unique_name_if_exists(target, b"two")

    assert first == str(target)
    assert re.fullmatch(re.escape(str(tmp_path / "out")) + r"-\d{4}\.png", second)
    assert target.read_bytes() == b"one"
    assert open(second, "rb").read() == b"two"


def test_load_context_file_reads_markdown(tmp_path):
    ctx = tmp_path / "notes.md"
    ctx.write_text("# Notes\nsunny day", encoding="utf-8")
    assert load_context_file(str(ctx)) == "# Notes\nsunny day"


def test_load_context_file_passes_literal_text_through():
    assert load_context_file("a rainy street") == "a rainy street"
    assert load_context_file(None) is None


def test_load_context_file_missing_file_is_io_error(tmp_path):
    with pytest.raises(ErgonIOError):
        load_context_file(str(tmp_path / "missing.txt"))


def test_mime_type_for_known_and_unknown_extensions():
    assert mime_type_for("photo.JPG") == "image/jpeg"
    assert mime_type_for("shot.webp") == "image/webp"
    with pytest.raises(ValidationError):
        mime_type_for("doc.pdf")


def test_read_image_file_base64_encodes(tmp_path):
    img = tmp_path / "pixel.png"
    img.write_bytes(b"\x89PNG")

    data = read_image_file(img)

    assert data.mime_type == "image/png"
    assert data.data == "iVBORw=="


def test_read_image_file_missing(tmp_path):
    with pytest.raises(ErgonIOError):
        read_image_file(tmp_path / "nope.png")
