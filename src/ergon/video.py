"""Veo 3.1 video generation."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
import requests
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .errors import ApiError, ValidationError, require_choice
from .gemini_client import GenAIClient, describe_api_error, describe_transport_error

logger = logging.getLogger(__name__)

VIDEO_ENGINE_MODEL_IDS = {
    "veo-3.1": "veo-3.1-generate-preview",
    "veo-3.1-fast": "veo-3.1-fast-generate-preview",
}
VIDEO_RESOLUTIONS = ("720p", "1080p")
VIDEO_ASPECT_RATIOS = ("16:9", "9:16")
MIN_DURATION = 5
MAX_DURATION = 8

POLL_INTERVAL_SECONDS = 5.0
DOWNLOAD_TIMEOUT_SECONDS = 300


@dataclass
class VideoOptions:
    engine: str = "veo-3.1"
    duration: int = 8
    resolution: str = "1080p"
    aspect_ratio: str = "16:9"

    def validate(self) -> None:
        require_choice("engine", self.engine, VIDEO_ENGINE_MODEL_IDS)
        require_choice("resolution", self.resolution, VIDEO_RESOLUTIONS)
        require_choice("aspect ratio", self.aspect_ratio, VIDEO_ASPECT_RATIOS)
        if not MIN_DURATION <= self.duration <= MAX_DURATION:
            raise ValidationError(
                f"Invalid duration: {self.duration}. Accepted range: {MIN_DURATION}-{MAX_DURATION} seconds"
            )


@dataclass
class GeneratedVideo:
    data: bytes
    mime_type: str = "video/mp4"


class VideoClient(GenAIClient):
    """Starts a Veo operation, polls it to completion and downloads the result."""

    def __init__(
        self,
        api_key: str,
        client: Optional[genai.Client] = None,
        *,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(api_key, client)
        self.poll_interval = poll_interval
        self._sleep = sleep

    def generate_video(self, prompt: str, options: Optional[VideoOptions] = None) -> GeneratedVideo:
        """Generate a video for ``prompt``.

        This blocks until the operation finishes, which usually takes minutes.

        Raises:
            ValidationError: If an option is out of range.
            ApiError: If the operation fails or the download is not 2xx.
        """

        options = options or VideoOptions()
        options.validate()
        model_id = VIDEO_ENGINE_MODEL_IDS[options.engine]

        logger.debug(
            "Veo request: model=%s duration=%ss resolution=%s aspect_ratio=%s",
            model_id,
            options.duration,
            options.resolution,
            options.aspect_ratio,
        )

        try:
            operation = self.client.models.generate_videos(
                model=model_id,
                prompt=prompt,
                config=types.GenerateVideosConfig(
                    aspect_ratio=options.aspect_ratio,
                    duration_seconds=options.duration,
                    resolution=options.resolution,
                ),
            )
            logger.info("Video generation started; waiting for completion")

            while not operation.done:
                self._sleep(self.poll_interval)
                operation = self.client.operations.get(operation)
                logger.debug("Operation %s done=%s", getattr(operation, "name", "?"), operation.done)
        except genai_errors.APIError as exc:
            raise ApiError(describe_api_error(exc)) from exc
        except httpx.HTTPError as exc:
            raise ApiError(describe_transport_error(exc)) from exc

        if getattr(operation, "error", None):
            raise ApiError(f"Video generation failed: {operation.error}")

        videos = getattr(operation.response, "generated_videos", None) or []
        if not videos:
            raise ApiError("No video found in API response")

        uri = getattr(videos[0].video, "uri", None) if videos[0].video else None
        if not uri:
            raise ApiError("No video URI found in API response")

        return GeneratedVideo(data=self._download(uri))

    def _download(self, uri: str) -> bytes:
        logger.debug("Downloading video from %s", uri)
        try:
            response = requests.get(
                uri,
                headers={"x-goog-api-key": self.api_key},
                timeout=DOWNLOAD_TIMEOUT_SECONDS,
            )
        except requests.exceptions.RequestException as exc:
            raise ApiError(f"Video download failed: {exc}") from exc

        if response.status_code >= 400:
            raise ApiError(f"Video download failed (status {response.status_code})")
        return response.content


__all__ = [
    "VIDEO_ENGINE_MODEL_IDS",
    "VIDEO_RESOLUTIONS",
    "VIDEO_ASPECT_RATIOS",
    "VideoOptions",
    "GeneratedVideo",
    "VideoClient",
]
