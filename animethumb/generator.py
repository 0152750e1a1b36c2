"""OpenRouter-backed image generation."""
from __future__ import annotations

import base64
import io
import json
import logging
import re
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional

import requests
from PIL import Image, UnidentifiedImageError

from animethumb.config import Settings
from animethumb.errors import RemoteError

logger = logging.getLogger("animethumb.generator")

_DATA_URL_PATTERN = re.compile(r"data:image/[^;]+;base64,[A-Za-z0-9+/=]+")
_PIL_FORMATS = {"jpeg": "JPEG", "jpg": "JPEG", "png": "PNG", "webp": "WEBP"}


@dataclass(frozen=True)
class GenerationOptions:
    """Options sent with every generation request."""

    count: int = 1
    output_format: str = "jpeg"
    aspect_ratio: str = "16:9"

    @property
    def mime_type(self) -> str:
        fmt = self.output_format.lower()
        return "image/jpeg" if fmt in ("jpeg", "jpg") else f"image/{fmt}"


def _decode_base64_image_data(value: str) -> bytes:
    """Decode plain base64 strings or full data URLs into binary bytes."""

    data = value.strip()
    if not data:
        raise RemoteError("Empty base64 image data in response")
    if data.startswith("data:image/"):
        try:
            base64_index = data.index(",")
        except ValueError as exc:
            raise RemoteError("Malformed data URL for image") from exc
        data = data[base64_index + 1 :]
    try:
        return base64.b64decode(data)
    except Exception as exc:  # pragma: no cover - defensive parsing
        raise RemoteError("Failed to decode base64 image data") from exc


def _extract_inline_base64(entry: dict) -> Optional[str]:
    inline_data = entry.get("inline_data") or entry.get("inlineData")
    if isinstance(inline_data, dict):
        data_value = inline_data.get("data")
        if isinstance(data_value, str) and data_value.strip():
            mime = inline_data.get("mime_type") or inline_data.get("mimeType")
            if mime and not data_value.startswith("data:"):
                return f"data:{mime};base64,{data_value.strip()}"
            return data_value.strip()
    return None


def _extract_image_url(entry: dict) -> Optional[str]:
    for key in ("image_url", "imageUrl", "url"):
        candidate = entry.get(key)
        if isinstance(candidate, dict):
            url_value = candidate.get("url") or candidate.get("href")
            if isinstance(url_value, str) and url_value.strip():
                return url_value.strip()
        elif isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


def _extract_base64_value(entry: dict) -> Optional[str]:
    for key in ("image_base64", "imageBase64", "b64_json", "b64Json", "data"):
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return _extract_inline_base64(entry)


def _collect_image_entries(message: dict) -> List[dict]:
    entries: List[dict] = []
    raw_images = message.get("images")
    if isinstance(raw_images, dict):
        entries.append(raw_images)
    elif isinstance(raw_images, list):
        entries.extend(entry for entry in raw_images if isinstance(entry, dict))

    content = message.get("content")
    if isinstance(content, dict):
        entries.append(content)
    elif isinstance(content, list):
        entries.extend(part for part in content if isinstance(part, dict))

    return entries


def _extract_error_message(response: requests.Response) -> str:
    """Prefer the provider's ``error.message`` over the raw response body."""

    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message.strip():
                return message.strip()
        elif isinstance(error, str) and error.strip():
            return error.strip()
    return f"OpenRouter API returned status {response.status_code}: {response.text}"


def convert_image_format(content: bytes, output_format: str) -> bytes:
    """Re-encode ``content`` in ``output_format`` unless it already is."""

    target = _PIL_FORMATS.get(output_format.lower())
    if target is None:
        raise ValueError(f"Unsupported output format '{output_format}'")
    try:
        with Image.open(io.BytesIO(content)) as image:
            if image.format == target:
                return content
            if target == "JPEG" and image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            buffer = io.BytesIO()
            image.save(buffer, format=target)
    except UnidentifiedImageError as exc:
        raise RemoteError("OpenRouter returned data that is not a recognizable image") from exc
    return buffer.getvalue()


class ImageGenerator:
    """Submit prompts to OpenRouter on a short-lived background worker.

    ``generate`` returns a future that resolves once, either to the list of
    image payloads (possibly empty) or to a :class:`RemoteError`.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        api_url: str,
        timeout: float,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.timeout = timeout
        self._http = session or requests

    def generate(self, prompt: str, options: GenerationOptions = GenerationOptions()) -> "Future[List[bytes]]":
        logger.debug("Queueing generation model=%s options=%s", self.model, options)
        # The worker exits once this request finishes
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="animethumb")
        try:
            return executor.submit(self.request_images, prompt, options)
        finally:
            executor.shutdown(wait=False)

    def build_payload(self, prompt: str, options: GenerationOptions) -> dict:
        payload: dict = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": prompt,
                }
            ],
            "modalities": ["image", "text"],
            "include_reasoning": False,
            "reasoning": {"exclude": True},
        }
        if options.aspect_ratio:
            payload["image_config"] = {"aspect_ratio": options.aspect_ratio}
        return payload

    def request_images(self, prompt: str, options: GenerationOptions) -> List[bytes]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": "https://github.com/",
            "X-Title": "Anime Thumbnail Generator",
            "Content-Type": "application/json",
        }
        payload = self.build_payload(prompt, options)

        prompt_preview = prompt.strip().replace("\n", " ")[:160]
        logger.debug(
            "Submitting request to model=%s aspect_ratio=%s prompt_preview=%r",
            self.model,
            options.aspect_ratio,
            prompt_preview,
        )
        request_start = time.perf_counter()
        try:
            response = self._http.post(
                self.api_url, headers=headers, json=payload, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise RemoteError(f"Failed to call OpenRouter API: {exc}") from exc
        elapsed = time.perf_counter() - request_start
        logger.debug(
            "Received response for model=%s status=%s in %.2fs",
            self.model,
            response.status_code,
            elapsed,
        )
        if response.status_code >= 400:
            logger.error(
                "OpenRouter API responded with status=%s for model=%s: %s",
                response.status_code,
                self.model,
                response.text[:500],
            )
            raise RemoteError(_extract_error_message(response))
        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteError("Failed to parse OpenRouter response as JSON") from exc

        if not isinstance(data, dict) or "choices" not in data:
            raise RemoteError("OpenRouter response missing 'choices' field")
        choices = data.get("choices") or []
        if not choices or not isinstance(choices, list):
            raise RemoteError("OpenRouter response has no choices")

        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        if not isinstance(message, dict):
            raise RemoteError("OpenRouter response has no message")
        images = self._extract_images(message, limit=options.count)
        if not images:
            self._log_missing_image_details(message)
            return []
        return [convert_image_format(image, options.output_format) for image in images]

    def _extract_images(self, message: dict, *, limit: int) -> List[bytes]:
        images: List[bytes] = []
        for entry in _collect_image_entries(message):
            image_bytes = self._download_or_decode_image_entry(entry)
            if image_bytes:
                images.append(image_bytes)
            if len(images) >= limit:
                return images

        content = message.get("content")
        if isinstance(content, str):
            inline_text = content.strip()
            if inline_text.startswith("data:image/") or inline_text.startswith("http"):
                candidates = [inline_text]
            else:
                candidates = _DATA_URL_PATTERN.findall(inline_text)
            for candidate in candidates:
                image_bytes = self._download_or_decode_image_entry({"image_url": candidate})
                if image_bytes:
                    images.append(image_bytes)
                if len(images) >= limit:
                    break
        return images

    def _download_or_decode_image_entry(self, entry: dict) -> Optional[bytes]:
        url_value = _extract_image_url(entry)
        if url_value:
            if url_value.startswith("data:image/"):
                return _decode_base64_image_data(url_value)
            logger.debug("Downloading image asset for model=%s from %s", self.model, url_value)
            try:
                download = self._http.get(url_value, timeout=self.timeout)
                download.raise_for_status()
            except requests.RequestException as exc:
                raise RemoteError(f"Failed to download generated image: {exc}") from exc
            return download.content

        base64_value = _extract_base64_value(entry)
        if base64_value:
            return _decode_base64_image_data(base64_value)

        return None

    def _log_missing_image_details(self, message: dict) -> None:
        summary = {
            "message_keys": sorted(message.keys()),
            "images_type": type(message.get("images")).__name__,
            "content_type": type(message.get("content")).__name__,
        }
        try:
            serialized = json.dumps(message)
        except (TypeError, ValueError):
            serialized = str(message)
        logger.warning(
            "Provider response for model=%s did not include usable images. summary=%s payload_preview=%s",
            self.model,
            summary,
            serialized[:500],
        )


def create_generator(settings: Settings) -> Optional[ImageGenerator]:
    """Return a generator for ``settings`` or ``None`` without credentials."""

    if not settings.has_credentials:
        logger.warning("No OpenRouter API key configured; generation is unavailable")
        return None
    return ImageGenerator(
        settings.api_key or "",
        model=settings.model,
        api_url=settings.api_url,
        timeout=settings.timeout,
    )
