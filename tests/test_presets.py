import json

import pytest

from ergon.errors import ValidationError
from ergon.presets import (
    BUILTIN_PRESETS,
    ImagePreset,
    delete_preset,
    get_preset,
    get_presets_path,
    list_all_presets,
    load_presets,
    save_preset,
)


def test_builtin_presets_are_listed_first(ergon_home):
    save_preset("mine", ImagePreset(format="png"))

    entries = list_all_presets()

    assert [e.name for e in entries[: len(BUILTIN_PRESETS)]] == list(BUILTIN_PRESETS)
    assert all(e.builtin for e in entries[: len(BUILTIN_PRESETS)])
    assert entries[-1].name == "mine" and not entries[-1].builtin


def test_builtin_presets_cannot_be_saved_or_deleted(ergon_home):
    with pytest.raises(ValidationError):
        save_preset("builtin:square", ImagePreset(aspect_ratio="4:3"))
    with pytest.raises(ValidationError):
        delete_preset("builtin:square")

    assert not get_presets_path().exists()
    assert get_preset("builtin:square") == ImagePreset(aspect_ratio="1:1")


def test_builtin_rejection_leaves_existing_file_untouched(ergon_home):
    save_preset("blog", ImagePreset(aspect_ratio="16:9"))
    before = get_presets_path().read_bytes()

    with pytest.raises(ValidationError):
        save_preset("builtin:new", ImagePreset(size="4k"))

    assert get_presets_path().read_bytes() == before


def test_user_preset_round_trip_uses_camel_case_keys(ergon_home):
    save_preset("thumb", ImagePreset(aspect_ratio="1:1", size="small", quality=80))

    raw = json.loads(get_presets_path().read_text(encoding="utf-8"))
    assert raw == {"thumb": {"aspectRatio": "1:1", "size": "small", "quality": 80}}
    assert get_preset("thumb") == ImagePreset(aspect_ratio="1:1", size="small", quality=80)


def test_save_overwrites_and_delete_removes(ergon_home):
    save_preset("a", ImagePreset(format="png"))
    save_preset("a", ImagePreset(format="jpg"))
    assert get_preset("a").format == "jpg"

    assert delete_preset("a") is True
    assert get_preset("a") is None
    assert delete_preset("a") is False


def test_corrupt_presets_file_reads_as_empty(ergon_home):
    path = get_presets_path()
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")

    assert load_presets() == {}


def test_mistyped_preset_values_are_rejected(ergon_home):
    path = get_presets_path()
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"hq": {"quality": "high"}, "ok": {"format": "png"}}), encoding="utf-8")

    assert list(load_presets()) == ["ok"]
    with pytest.raises(ValidationError, match="quality"):
        get_preset("hq")
    with pytest.raises(ValidationError):
        ImagePreset.from_dict({"aspectRatio": 16})


def test_as_options_keeps_unset_fields_as_none():
    options = ImagePreset(engine="imagen4-fast").as_options()
    assert options["engine"] == "imagen4-fast"
    assert options["aspect_ratio"] is None
