"""Framing of raw PCM speech audio into WAV or MP3 files.

Gemini TTS returns mono, little-endian, 16-bit signed PCM (MIME type
``audio/L16;codec=pcm;rate=24000``). These helpers turn that payload into a
file any media player can open.
"""
from __future__ import annotations

import logging
import re
import struct
import sys
from array import array
from typing import Callable, Optional

import lameenc

from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 24000
CHANNELS = 1
BITS_PER_SAMPLE = 16
MP3_BITRATE_KBPS = 128
MP3_BLOCK_SAMPLES = 1152  # samples per MPEG audio frame

AUDIO_FORMATS = ("wav", "mp3")
MIME_TYPES = {"wav": "audio/wav", "mp3": "audio/mp3"}

_WAV_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")
_RATE_RE = re.compile(r"rate=(\d+)")


def parse_sample_rate(mime_type: Optional[str]) -> int:
    """Read the ``rate=<N>`` parameter of a PCM MIME type (24000 if absent)."""

    match = _RATE_RE.search(mime_type or "")
    if not match:
        return DEFAULT_SAMPLE_RATE
    rate = int(match.group(1))
    return rate if rate > 0 else DEFAULT_SAMPLE_RATE


def pcm_to_wav(pcm: bytes, sample_rate: int = DEFAULT_SAMPLE_RATE) -> bytes:
    """Prefix raw PCM with a 44-byte RIFF/WAVE header.

    Args:
        pcm: Mono little-endian 16-bit PCM samples.
        sample_rate: Samples per second.

    Returns:
        ``44 + len(pcm)`` bytes; the PCM payload is copied unchanged.
    """

    block_align = CHANNELS * BITS_PER_SAMPLE // 8
    byte_rate = sample_rate * block_align
    data_size = len(pcm)

    header = _WAV_HEADER.pack(
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,  # fmt chunk size
        1,  # PCM
        CHANNELS,
        sample_rate,
        byte_rate,
        block_align,
        BITS_PER_SAMPLE,
        b"data",
        data_size,
    )
    return header + bytes(pcm)


def _default_encoder(sample_rate: int):
    encoder = lameenc.Encoder()
    encoder.set_bit_rate(MP3_BITRATE_KBPS)
    encoder.set_in_sample_rate(sample_rate)
    encoder.set_channels(CHANNELS)
    encoder.set_quality(2)
    return encoder


def _pcm_samples(pcm: bytes) -> array:
    samples = array("h")
    # A trailing odd byte is not a whole sample.
    samples.frombytes(bytes(pcm[: len(pcm) - len(pcm) % 2]))
    if sys.byteorder == "big":
        samples.byteswap()
    return samples


def pcm_to_mp3(
    pcm: bytes,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    encoder_factory: Callable[[int], object] = _default_encoder,
) -> bytes:
    """Encode raw PCM to MP3 (mono, 128 kbps) in 1152-sample blocks.

    Each block's encoder output is appended in order, followed by whatever
    the encoder still buffers when flushed. No ID3 tag is written.

    Args:
        pcm: Mono little-endian 16-bit PCM samples.
        sample_rate: Samples per second of ``pcm``.
        encoder_factory: Builds an encoder exposing ``encode`` and ``flush``.
    """

    samples = _pcm_samples(pcm)
    encoder = encoder_factory(sample_rate)
    chunks: list[bytes] = []

    for start in range(0, len(samples), MP3_BLOCK_SAMPLES):
        block = samples[start : start + MP3_BLOCK_SAMPLES]
        encoded = encoder.encode(block.tobytes())
        if encoded:
            chunks.append(bytes(encoded))

    final = encoder.flush()
    if final:
        chunks.append(bytes(final))

    return b"".join(chunks)


def encode_pcm(pcm: bytes, fmt: str, sample_rate: int = DEFAULT_SAMPLE_RATE) -> tuple[bytes, str]:
    """Frame PCM in the requested container.

    Returns:
        ``(audio_bytes, mime_type)``.

    Raises:
        ValidationError: If ``fmt`` is not ``wav`` or ``mp3``.
    """

    if fmt == "mp3":
        data = pcm_to_mp3(pcm, sample_rate)
    elif fmt == "wav":
        data = pcm_to_wav(pcm, sample_rate)
    else:
        raise ValidationError(f"Invalid audio format: {fmt}. Accepted values: {', '.join(AUDIO_FORMATS)}")

    logger.debug("Encoded %d PCM bytes at %d Hz to %d %s bytes", len(pcm), sample_rate, len(data), fmt)
    return data, MIME_TYPES[fmt]


__all__ = [
    "AUDIO_FORMATS",
    "DEFAULT_SAMPLE_RATE",
    "MP3_BLOCK_SAMPLES",
    "parse_sample_rate",
    "pcm_to_wav",
    "pcm_to_mp3",
    "encode_pcm",
]
