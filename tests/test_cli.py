import json
import logging

import pytest
from typer.testing import CliRunner

from ergon import cli
from ergon.config import AppConfig, load_config
from ergon.logs import LogDestination, LoggerRegistry
from ergon.presets import get_preset, get_presets_path
from ergon.tts import SpeechResult

API_KEY = "AIzaSyA-abcdefghijklmnopqrstuv_123"

runner = CliRunner()


class FakeGemini:
    def __init__(self, api_key):
        self.api_key = api_key

    def generate_file_name(self, theme, **kwargs):
        return "hello-world"

    def generate_caption(self, image, *, lang="ja", context=None):
        return f"caption ({lang})"


def _json(result):
    return json.loads(result.stdout)


def test_preset_list_json_includes_builtins(ergon_home):
    result = runner.invoke(cli.app, ["preset", "list", "--json"])

    assert result.exit_code == 0
    payload = _json(result)
    assert payload["success"] is True
    names = [p["name"] for p in payload["result"]]
    assert "builtin:square" in names


def test_preset_save_and_delete(ergon_home):
    result = runner.invoke(cli.app, ["preset", "save", "blog", "-a", "4:3", "-f", "png"])
    assert result.exit_code == 0
    assert get_preset("blog").aspect_ratio == "4:3"

    result = runner.invoke(cli.app, ["preset", "delete", "blog"])
    assert result.exit_code == 0
    assert get_preset("blog") is None


def test_preset_save_rejects_builtin_name(ergon_home):
    result = runner.invoke(cli.app, ["preset", "save", "builtin:square", "-a", "4:3"])
    assert result.exit_code == 1
    assert "Built-in" in result.output


def test_preset_save_rejects_invalid_values(ergon_home):
    result = runner.invoke(cli.app, ["preset", "save", "odd", "-a", "2:1"])
    assert result.exit_code == 1
    assert get_preset("odd") is None


def test_image_gen_dry_run_applies_preset(ergon_home):
    result = runner.invoke(cli.app, ["image", "gen", "a cat", "--preset", "builtin:social", "--dry-run", "--json"])

    assert result.exit_code == 0
    info = _json(result)["result"]
    assert info["dryRun"] is True
    assert (info["aspectRatio"], info["format"], info["size"]) == ("1:1", "webp", "small")
    assert info["engine"] == "imagen4"


def test_image_gen_precedence(ergon_home):
    AppConfig(default_image_format="jpg", default_aspect_ratio="4:3").save()

    result = runner.invoke(
        cli.app,
        ["image", "gen", "a cat", "--preset", "builtin:presentation", "--aspect-ratio", "9:16", "--dry-run", "--json"],
    )

    info = _json(result)["result"]
    assert info["aspectRatio"] == "9:16"  # explicit beats preset
    assert info["format"] == "png"  # preset beats settings

    info = _json(runner.invoke(cli.app, ["image", "gen", "a cat", "--dry-run", "--json"]))["result"]
    assert (info["format"], info["aspectRatio"]) == ("jpg", "4:3")  # settings beat defaults
    assert info["size"] == "fullhd"


def test_image_gen_unknown_preset(ergon_home):
    result = runner.invoke(cli.app, ["image", "gen", "a cat", "--preset", "nope", "--json"])

    assert result.exit_code == 1
    payload = _json(result)
    assert payload["success"] is False
    assert payload["error"]["code"] == "VALIDATION_ERROR"


def test_image_gen_rejects_mistyped_preset_quality(ergon_home):
    path = get_presets_path()
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"hq": {"quality": "high"}}), encoding="utf-8")

    result = runner.invoke(cli.app, ["image", "gen", "x", "--preset", "hq", "--dry-run"])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "Traceback" not in result.output


def test_video_dry_run_validates_duration(ergon_home):
    result = runner.invoke(cli.app, ["video", "waves", "--duration", "12", "--dry-run"])
    assert result.exit_code == 1
    assert "duration" in result.output


def test_narration_dry_run_uses_stored_voice(ergon_home):
    AppConfig(default_audio_voice="Charon").save()

    result = runner.invoke(cli.app, ["narration", "gen", "hello", "--dry-run", "--json"])

    info = _json(result)["result"]
    assert info["voice"] == "Charon"
    assert info["format"] == "mp3"


def test_narration_gen_writes_audio(ergon_home, tmp_path, monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", API_KEY)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "GeminiClient", FakeGemini)

    class FakeTTS:
        def __init__(self, api_key):
            pass

        def generate_speech(self, text, options):
            return SpeechResult(audio=b"RIFF-audio", mime_type="audio/wav", sample_rate=24000)

    monkeypatch.setattr(cli, "TTSClient", FakeTTS)

    result = runner.invoke(cli.app, ["narration", "gen", "hello", "--format", "wav"])
    assert result.exit_code == 0
    assert (tmp_path / "hello-world.wav").read_bytes() == b"RIFF-audio"

    result = runner.invoke(cli.app, ["narration", "gen", "hello", "--format", "wav"])
    assert result.exit_code == 0
    assert len(list(tmp_path.glob("hello-world-*.wav"))) == 1


def test_caption_without_api_key(ergon_home, tmp_path):
    image = tmp_path / "cat.png"
    image.write_bytes(b"\x89PNG")

    result = runner.invoke(cli.app, ["caption", str(image)])

    assert result.exit_code == 1
    assert "GOOGLE_API_KEY" in result.output


def test_caption_uses_stored_default_language(ergon_home, tmp_path, monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", API_KEY)
    monkeypatch.setattr(cli, "GeminiClient", FakeGemini)
    AppConfig(default_language="en").save()
    image = tmp_path / "cat.png"
    image.write_bytes(b"\x89PNG")

    result = runner.invoke(cli.app, ["caption", str(image)])
    assert result.exit_code == 0
    assert "caption (en)" in result.output

    result = runner.invoke(cli.app, ["caption", str(image), "--lang", "fr"])
    assert result.exit_code == 0
    assert "caption (fr)" in result.output


def test_caption_defaults_to_japanese(ergon_home, tmp_path, monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", API_KEY)
    monkeypatch.setattr(cli, "GeminiClient", FakeGemini)
    image = tmp_path / "cat.png"
    image.write_bytes(b"\x89PNG")

    result = runner.invoke(cli.app, ["caption", str(image)])

    assert result.exit_code == 0
    assert "caption (ja)" in result.output


def test_catalog_writes_markdown(ergon_home, tmp_path, monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", API_KEY)
    monkeypatch.setattr(cli, "GeminiClient", FakeGemini)
    photos = tmp_path / "photos"
    photos.mkdir()
    (photos / "a.png").write_bytes(b"a")
    (photos / "b.jpg").write_bytes(b"b")
    out = tmp_path / "catalog.md"

    result = runner.invoke(cli.app, ["catalog", str(photos), "--lang", "en", "-o", str(out)])

    assert result.exit_code == 0
    text = out.read_text(encoding="utf-8")
    assert text.count("caption (en)") == 2
    assert "![](photos/a.png)" in text


def test_configure_stores_key(ergon_home):
    result = runner.invoke(cli.app, ["configure", "--api-key", API_KEY])

    assert result.exit_code == 0
    assert load_config().google_api_key == API_KEY


def test_configure_rejects_bad_key(ergon_home):
    result = runner.invoke(cli.app, ["configure", "--api-key", "short"])
    assert result.exit_code == 1
    assert load_config() is None


def test_log_shows_recent_entries(ergon_home):
    registry = LoggerRegistry(LogDestination.FILE, logging.DEBUG)
    logger = registry.get("catalog")
    logger.info("first")
    logger.error("second")
    registry.close()

    result = runner.invoke(cli.app, ["log", "catalog", "-n", "1"])

    assert result.exit_code == 0
    assert "second" in result.output
    assert "first" not in result.output


@pytest.mark.parametrize("args", [["--help"], ["image", "--help"], ["narration", "gen", "--help"]])
def test_help(args):
    assert runner.invoke(cli.app, args).exit_code == 0
