import base64
from io import BytesIO
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from PIL import Image

from ergon.errors import ApiError, ConfigurationError, ErgonIOError, ValidationError
from ergon.files import ImageData
from ergon.gemini_client import GeminiClient, slugify_file_name
from ergon.imagen import ImageOptions, ImagenClient, convert_image
from ergon.nano_banana import NanoBananaClient
from ergon.tts import TTSClient, TTSOptions, build_prompt
from ergon.video import VideoClient, VideoOptions

API_KEY = "AIzaSyA-abcdefghijklmnopqrstuv_123"


def _png(size=(32, 32), color=(200, 10, 10)):
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def _response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def _inline(data, mime_type):
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type))


def test_empty_api_key_is_rejected():
    with pytest.raises(ConfigurationError):
        GeminiClient("", client=MagicMock())


# -- Gemini text / vision ---------------------------------------------------


def test_generate_caption_sends_image_and_language():
    sdk = MagicMock()
    sdk.models.generate_content.return_value = SimpleNamespace(text="  A red square.  ")
    client = GeminiClient(API_KEY, client=sdk)
    image = ImageData(data=base64.b64encode(b"\x89PNG").decode(), mime_type="image/png")

    caption = client.generate_caption(image, lang="en", context="product shots")

    assert caption == "A red square."
    kwargs = sdk.models.generate_content.call_args.kwargs
    assert "English" in str(kwargs["config"].system_instruction)
    assert "product shots" in str(kwargs["config"].system_instruction)
    assert kwargs["contents"][0].inline_data.data == b"\x89PNG"


def test_caption_rejects_unsupported_mime_type_before_calling():
    sdk = MagicMock()
    client = GeminiClient(API_KEY, client=sdk)

    with pytest.raises(ValidationError):
        client.generate_caption(ImageData(data="AAAA", mime_type="image/bmp"))
    sdk.models.generate_content.assert_not_called()


def test_transport_failure_is_api_error():
    sdk = MagicMock()
    sdk.models.generate_content.side_effect = httpx.ConnectError("connection reset")
    client = GeminiClient(API_KEY, client=sdk)

    with pytest.raises(ApiError, match="ConnectError"):
        client.generate_caption(ImageData(data="AAAA", mime_type="image/png"))


def test_empty_text_response_is_api_error():
    sdk = MagicMock()
    sdk.models.generate_content.return_value = SimpleNamespace(text="")
    client = GeminiClient(API_KEY, client=sdk)

    with pytest.raises(ApiError):
        client.generate_explanation(ImageData(data="AAAA", mime_type="image/png"))


def test_generate_prompt_requires_theme():
    with pytest.raises(ValidationError):
        GeminiClient(API_KEY, client=MagicMock()).generate_prompt("   ")


def test_generate_file_name_slugifies_and_falls_back():
    sdk = MagicMock()
    sdk.models.generate_content.return_value = SimpleNamespace(text="Sunset Over Tokyo Bay.png\n")
    client = GeminiClient(API_KEY, client=sdk)
    assert client.generate_file_name("sunset") == "sunset-over-tokyo-bay"

    sdk.models.generate_content.return_value = SimpleNamespace(text="!!!")
    assert client.generate_file_name("sunset").startswith("ergon-")


def test_slugify_truncates_without_trailing_hyphen():
    assert slugify_file_name("a very long title indeed", max_length=7) == "a-very"


# -- Imagen -------------------------------------------------------------------


def test_imagen_resizes_and_converts():
    sdk = MagicMock()
    sdk.models.generate_images.return_value = SimpleNamespace(
        generated_images=[SimpleNamespace(image=SimpleNamespace(image_bytes=_png((64, 64))))]
    )
    client = ImagenClient(API_KEY, client=sdk)

    data = client.generate_image("a red square", ImageOptions(size="tiny", aspect_ratio="16:9", format="jpg"))

    result = Image.open(BytesIO(data))
    assert result.format == "JPEG"
    assert result.size == (160, 90)
    assert sdk.models.generate_images.call_args.kwargs["model"] == "imagen-4.0-generate-001"


def test_imagen_transport_failure_is_api_error():
    sdk = MagicMock()
    sdk.models.generate_images.side_effect = httpx.ReadTimeout("timed out")

    with pytest.raises(ApiError, match="ReadTimeout"):
        ImagenClient(API_KEY, client=sdk).generate_image("x")


def test_imagen_without_images_is_api_error():
    sdk = MagicMock()
    sdk.models.generate_images.return_value = SimpleNamespace(generated_images=[])

    with pytest.raises(ApiError):
        ImagenClient(API_KEY, client=sdk).generate_image("x")


def test_image_options_validation():
    with pytest.raises(ValidationError):
        ImageOptions(aspect_ratio="2:1").validate()
    with pytest.raises(ValidationError):
        ImageOptions(quality=0).validate()
    with pytest.raises(ValidationError):
        ImageOptions(quality="high").validate()
    with pytest.raises(ValidationError):
        ImageOptions(quality=True).validate()


def test_convert_image_rejects_garbage():
    with pytest.raises(ApiError):
        convert_image(b"not an image", "png")


# -- Nano Banana ----------------------------------------------------------------


def test_nano_banana_returns_first_image_part():
    sdk = MagicMock()
    png = _png()
    sdk.models.generate_content.return_value = _response(
        SimpleNamespace(inline_data=None, text="Here you go"),
        _inline(png, "image/png"),
    )

    image = NanoBananaClient(API_KEY, client=sdk).generate_image("a fox", engine="nano-banana-pro")

    assert image.data == png
    assert image.mime_type == "image/png"
    assert sdk.models.generate_content.call_args.kwargs["model"] == "gemini-3-pro-image-preview"


def test_nano_banana_without_image_is_api_error():
    sdk = MagicMock()
    sdk.models.generate_content.return_value = _response(SimpleNamespace(inline_data=None, text="no"))

    with pytest.raises(ApiError):
        NanoBananaClient(API_KEY, client=sdk).generate_image("a fox")


def test_nano_banana_edit_sends_image_then_instruction(tmp_path):
    source = tmp_path / "in.png"
    source.write_bytes(_png())
    sdk = MagicMock()
    sdk.models.generate_content.return_value = _response(_inline(b"edited", "image/png"))

    result = NanoBananaClient(API_KEY, client=sdk).edit_image(source, "make it blue")

    assert result.data == b"edited"
    content = sdk.models.generate_content.call_args.kwargs["contents"][0]
    assert content.parts[0].inline_data.mime_type == "image/png"
    assert content.parts[1].text == "make it blue"


def test_nano_banana_edit_missing_input(tmp_path):
    with pytest.raises(ErgonIOError):
        NanoBananaClient(API_KEY, client=MagicMock()).edit_image(tmp_path / "gone.png", "x")


def test_nano_banana_edit_rejects_unsupported_input(tmp_path):
    with pytest.raises(ValidationError):
        NanoBananaClient(API_KEY, client=MagicMock()).edit_image(tmp_path / "in.heic", "x")


# -- Veo ------------------------------------------------------------------------


def _finished_operation(uri="https://example.com/v.mp4"):
    return SimpleNamespace(
        name="operations/1",
        done=True,
        error=None,
        response=SimpleNamespace(generated_videos=[SimpleNamespace(video=SimpleNamespace(uri=uri))]),
    )


def test_video_polls_until_done_and_downloads(monkeypatch):
    sdk = MagicMock()
    sdk.models.generate_videos.return_value = SimpleNamespace(name="operations/1", done=False)
    sdk.operations.get.side_effect = [SimpleNamespace(name="operations/1", done=False), _finished_operation()]
    requests_seen = []

    def fake_get(url, headers=None, timeout=None):
        requests_seen.append((url, headers))
        return SimpleNamespace(status_code=200, content=b"mp4 bytes")

    monkeypatch.setattr("ergon.video.requests.get", fake_get)
    sleeps = []
    client = VideoClient(API_KEY, client=sdk, poll_interval=0.5, sleep=sleeps.append)

    video = client.generate_video("waves", VideoOptions(engine="veo-3.1-fast", duration=6))

    assert video.data == b"mp4 bytes"
    assert video.mime_type == "video/mp4"
    assert sleeps == [0.5, 0.5]
    assert requests_seen == [("https://example.com/v.mp4", {"x-goog-api-key": API_KEY})]
    assert sdk.models.generate_videos.call_args.kwargs["model"] == "veo-3.1-fast-generate-preview"


def test_video_download_failure(monkeypatch):
    sdk = MagicMock()
    sdk.models.generate_videos.return_value = _finished_operation()
    monkeypatch.setattr(
        "ergon.video.requests.get",
        lambda url, headers=None, timeout=None: SimpleNamespace(status_code=403, content=b""),
    )

    with pytest.raises(ApiError, match="403"):
        VideoClient(API_KEY, client=sdk, sleep=lambda s: None).generate_video("waves")


def test_video_operation_error():
    sdk = MagicMock()
    op = _finished_operation()
    op.error = {"message": "blocked"}
    sdk.models.generate_videos.return_value = op

    with pytest.raises(ApiError, match="blocked"):
        VideoClient(API_KEY, client=sdk, sleep=lambda s: None).generate_video("waves")


@pytest.mark.parametrize("duration", [4, 9])
def test_video_duration_range(duration):
    sdk = MagicMock()
    with pytest.raises(ValidationError):
        VideoClient(API_KEY, client=sdk).generate_video("x", VideoOptions(duration=duration))
    sdk.models.generate_videos.assert_not_called()


# -- TTS ------------------------------------------------------------------------


def test_tts_frames_pcm_as_wav_with_reported_rate():
    pcm = b"\x01\x00" * 5
    sdk = MagicMock()
    sdk.models.generate_content.return_value = _response(
        _inline(base64.b64encode(pcm).decode(), "audio/L16;codec=pcm;rate=16000")
    )

    result = TTSClient(API_KEY, client=sdk).generate_speech(
        "hello", TTSOptions(format="wav", voice="Puck", model="flash")
    )

    assert result.mime_type == "audio/wav"
    assert result.sample_rate == 16000
    assert len(result.audio) == 54 and result.audio[44:] == pcm
    kwargs = sdk.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "gemini-2.5-flash-preview-tts"
    assert kwargs["config"].speech_config.voice_config.prebuilt_voice_config.voice_name == "Puck"


def test_tts_without_audio_is_api_error():
    sdk = MagicMock()
    sdk.models.generate_content.return_value = _response(SimpleNamespace(inline_data=None, text="sorry"))

    with pytest.raises(ApiError):
        TTSClient(API_KEY, client=sdk).generate_speech("hello")


@pytest.mark.parametrize(
    "options",
    [
        TTSOptions(voice="Nobody"),
        TTSOptions(language="xx"),
        TTSOptions(format="ogg"),
        TTSOptions(speed=0.1),
        TTSOptions(speed=4.5),
    ],
)
def test_tts_validation_happens_before_request(options):
    sdk = MagicMock()
    with pytest.raises(ValidationError):
        TTSClient(API_KEY, client=sdk).generate_speech("hello", options)
    sdk.models.generate_content.assert_not_called()


def test_build_prompt_prefixes_acting_notes():
    assert build_prompt("Hi") == "Hi"
    assert build_prompt("Hi", character="a pirate") == "(In the voice of a pirate) Hi"
    assert build_prompt("Hi", direction="whispering") == "(whispering) Hi"
    assert build_prompt("Hi", "a pirate", "whispering") == "(In the voice of a pirate, whispering) Hi"
