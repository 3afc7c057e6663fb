"""Speech synthesis with Gemini TTS."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from google.genai import types

from .audio import AUDIO_FORMATS, encode_pcm, parse_sample_rate
from .errors import ApiError, ValidationError, require_choice
from .gemini_client import GenAIClient, inline_payload, iter_parts

logger = logging.getLogger(__name__)

TTS_MODEL_IDS = {
    "flash": "gemini-2.5-flash-preview-tts",
    "pro": "gemini-2.5-pro-preview-tts",
}
TTS_VOICES = ("Aoede", "Charon", "Fenrir", "Kore", "Puck")
TTS_LANGUAGES = ("ja", "en", "zh", "ko", "es", "fr", "de", "it", "pt", "ru")
TTS_FORMATS = AUDIO_FORMATS
MIN_SPEED = 0.25
MAX_SPEED = 4.0


@dataclass
class TTSOptions:
    """Options for one speech request.

    ``character`` and ``direction`` are free-text acting notes, e.g.
    ``character="a cheerful five-year-old"``, ``direction="shouting with excitement"``.
    """

    model: str = "pro"
    voice: str = "Kore"
    language: str = "ja"
    format: str = "mp3"
    speed: float = 1.0
    character: Optional[str] = None
    direction: Optional[str] = None

    def validate(self) -> None:
        require_choice("model", self.model, TTS_MODEL_IDS)
        require_choice("voice", self.voice, TTS_VOICES)
        require_choice("language", self.language, TTS_LANGUAGES)
        require_choice("format", self.format, TTS_FORMATS)
        if not MIN_SPEED <= self.speed <= MAX_SPEED:
            raise ValidationError(f"Invalid speed: {self.speed}. Accepted range: {MIN_SPEED}-{MAX_SPEED}")


@dataclass
class SpeechResult:
    audio: bytes
    mime_type: str
    sample_rate: int


def build_prompt(text: str, character: Optional[str] = None, direction: Optional[str] = None) -> str:
    """Prefix ``text`` with a stage direction the model reads as acting notes."""

    if character and direction:
        return f"(In the voice of {character}, {direction}) {text}"
    if character:
        return f"(In the voice of {character}) {text}"
    if direction:
        return f"({direction}) {text}"
    return text


class TTSClient(GenAIClient):
    """Turns text into WAV or MP3 audio."""

    def generate_speech(self, text: str, options: Optional[TTSOptions] = None) -> SpeechResult:
        """Synthesize ``text``.

        The API returns base64 PCM whose MIME type carries the sample rate;
        that PCM is framed as WAV or encoded to MP3 per ``options.format``.

        Raises:
            ValidationError: If an option is outside its accepted set/range.
            ApiError: If the request fails or returns no audio.
        """

        options = options or TTSOptions()
        options.validate()
        model_id = TTS_MODEL_IDS[options.model]

        logger.debug(
            "TTS request: model=%s voice=%s language=%s format=%s speed=%s chars=%d",
            model_id,
            options.voice,
            options.language,
            options.format,
            options.speed,
            len(text),
        )

        response = self._generate_content(
            model=model_id,
            contents=build_prompt(text, options.character, options.direction),
            config=types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=options.voice),
                    ),
                ),
            ),
        )

        for part in iter_parts(response):
            pcm, mime_type = inline_payload(part)
            if pcm:
                break
        else:
            raise ApiError("No audio data found in API response")

        sample_rate = parse_sample_rate(mime_type)
        logger.debug("Response MIME type %s, %d PCM bytes", mime_type, len(pcm))

        audio, out_mime = encode_pcm(pcm, options.format, sample_rate)
        return SpeechResult(audio=audio, mime_type=out_mime, sample_rate=sample_rate)


__all__ = [
    "TTS_MODEL_IDS",
    "TTS_VOICES",
    "TTS_LANGUAGES",
    "TTS_FORMATS",
    "TTSOptions",
    "SpeechResult",
    "TTSClient",
    "build_prompt",
]
