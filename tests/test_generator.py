"""Tests for the OpenRouter image generator."""

from __future__ import annotations

import base64
import threading
import time
from typing import Any, List, Optional

import pytest
import requests

from animethumb import generator as generator_module
from animethumb.config import Settings
from animethumb.errors import RemoteError
from animethumb.generator import (
    GenerationOptions,
    ImageGenerator,
    convert_image_format,
    create_generator,
)
from tests.conftest import make_image_bytes

OPTIONS = GenerationOptions()


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        json_data: Any = None,
        text: str = "",
        content: bytes = b"",
    ) -> None:
        self.status_code = status_code
        self._json_data = json_data
        self.text = text
        self.content = content

    def json(self) -> Any:
        if self._json_data is None:
            raise ValueError("No JSON object could be decoded")
        return self._json_data

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class RecordingPost:
    def __init__(self, response: FakeResponse) -> None:
        self.response = response
        self.calls: List[dict] = []

    def __call__(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"url": url, **kwargs})
        return self.response


def _message_response(message: dict) -> FakeResponse:
    return FakeResponse(json_data={"choices": [{"message": message}]})


def _data_url(data: bytes, mime: str = "image/jpeg") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


@pytest.fixture
def image_generator() -> ImageGenerator:
    return ImageGenerator(
        "sk-test",
        model="test/model",
        api_url="https://example.test/v1/chat/completions",
        timeout=5.0,
    )


def _install_post(monkeypatch: pytest.MonkeyPatch, response: FakeResponse) -> RecordingPost:
    post = RecordingPost(response)
    monkeypatch.setattr(generator_module.requests, "post", post)
    return post


# ── request payload ─────────────────────────────────────────────────


class TestRequestPayload:
    def test_payload_carries_prompt_and_aspect_ratio(self, image_generator: ImageGenerator) -> None:
        payload = image_generator.build_payload("draw a cat", OPTIONS)
        assert payload["model"] == "test/model"
        assert payload["messages"] == [{"role": "user", "content": "draw a cat"}]
        assert payload["modalities"] == ["image", "text"]
        assert payload["image_config"] == {"aspect_ratio": "16:9"}

    def test_single_post_with_auth(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator, jpeg_bytes: bytes
    ) -> None:
        post = _install_post(
            monkeypatch, _message_response({"images": [{"image_url": {"url": _data_url(jpeg_bytes)}}]})
        )

        image_generator.request_images("draw a cat", OPTIONS)

        assert len(post.calls) == 1
        call = post.calls[0]
        assert call["url"] == "https://example.test/v1/chat/completions"
        assert call["headers"]["Authorization"] == "Bearer sk-test"
        assert call["timeout"] == 5.0
        assert call["json"]["messages"][0]["content"] == "draw a cat"


# ── response parsing ────────────────────────────────────────────────


class TestResponseParsing:
    def test_images_list_with_data_url(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator, jpeg_bytes: bytes
    ) -> None:
        _install_post(
            monkeypatch,
            _message_response({"images": [{"type": "image_url", "image_url": {"url": _data_url(jpeg_bytes)}}]}),
        )
        assert image_generator.request_images("p", OPTIONS) == [jpeg_bytes]

    def test_inline_data_content_part(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator, jpeg_bytes: bytes
    ) -> None:
        encoded = base64.b64encode(jpeg_bytes).decode("ascii")
        _install_post(
            monkeypatch,
            _message_response(
                {"content": [{"inline_data": {"mime_type": "image/jpeg", "data": encoded}}]}
            ),
        )
        assert image_generator.request_images("p", OPTIONS) == [jpeg_bytes]

    def test_data_url_embedded_in_text(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator, jpeg_bytes: bytes
    ) -> None:
        _install_post(
            monkeypatch,
            _message_response({"content": f"Here you go: {_data_url(jpeg_bytes)} enjoy"}),
        )
        assert image_generator.request_images("p", OPTIONS) == [jpeg_bytes]

    def test_remote_url_is_downloaded(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator, jpeg_bytes: bytes
    ) -> None:
        _install_post(
            monkeypatch, _message_response({"images": [{"image_url": "https://cdn.test/a.jpg"}]})
        )
        fetched: List[str] = []

        def fake_get(url: str, **kwargs: Any) -> FakeResponse:
            fetched.append(url)
            return FakeResponse(content=jpeg_bytes)

        monkeypatch.setattr(generator_module.requests, "get", fake_get)

        assert image_generator.request_images("p", OPTIONS) == [jpeg_bytes]
        assert fetched == ["https://cdn.test/a.jpg"]

    def test_result_is_limited_to_count(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator
    ) -> None:
        first = make_image_bytes("JPEG", (8, 8))
        second = make_image_bytes("JPEG", (4, 4))
        _install_post(
            monkeypatch,
            _message_response(
                {"images": [{"image_url": _data_url(first)}, {"image_url": _data_url(second)}]}
            ),
        )
        assert image_generator.request_images("p", OPTIONS) == [first]

    def test_png_is_converted_to_jpeg(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator, png_bytes: bytes
    ) -> None:
        _install_post(
            monkeypatch, _message_response({"images": [{"image_url": _data_url(png_bytes, "image/png")}]})
        )
        [image] = image_generator.request_images("p", OPTIONS)
        assert image.startswith(b"\xff\xd8")

    def test_text_only_response_returns_empty_list(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator
    ) -> None:
        _install_post(monkeypatch, _message_response({"content": "I cannot draw that."}))
        assert image_generator.request_images("p", OPTIONS) == []


# ── failures ────────────────────────────────────────────────────────


class TestFailures:
    def test_provider_error_message_is_used(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator
    ) -> None:
        _install_post(
            monkeypatch,
            FakeResponse(
                status_code=402,
                json_data={"error": {"message": "quota exceeded", "code": 402}},
                text='{"error": {"message": "quota exceeded"}}',
            ),
        )
        with pytest.raises(RemoteError) as excinfo:
            image_generator.request_images("p", OPTIONS)
        assert str(excinfo.value) == "quota exceeded"

    def test_non_json_error_keeps_status_and_body(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator
    ) -> None:
        _install_post(monkeypatch, FakeResponse(status_code=502, text="Bad Gateway"))
        with pytest.raises(RemoteError, match="status 502: Bad Gateway"):
            image_generator.request_images("p", OPTIONS)

    def test_transport_error(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator
    ) -> None:
        def failing_post(url: str, **kwargs: Any) -> FakeResponse:
            raise requests.ConnectionError("connection refused")

        monkeypatch.setattr(generator_module.requests, "post", failing_post)
        with pytest.raises(RemoteError, match="connection refused"):
            image_generator.request_images("p", OPTIONS)

    def test_invalid_json(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator
    ) -> None:
        _install_post(monkeypatch, FakeResponse(status_code=200, text="<html>"))
        with pytest.raises(RemoteError, match="JSON"):
            image_generator.request_images("p", OPTIONS)

    @pytest.mark.parametrize("body", [{}, {"choices": []}])
    def test_missing_choices(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator, body: dict
    ) -> None:
        _install_post(monkeypatch, FakeResponse(json_data=body))
        with pytest.raises(RemoteError, match="choices"):
            image_generator.request_images("p", OPTIONS)

    @pytest.mark.parametrize("choice", [{"message": None}, {"message": "text"}, {}, "oops"])
    def test_choice_without_message_object(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator, choice: Any
    ) -> None:
        _install_post(monkeypatch, FakeResponse(json_data={"choices": [choice]}))
        with pytest.raises(RemoteError, match="has no message"):
            image_generator.request_images("p", OPTIONS)

    def test_unrecognizable_image_data(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator
    ) -> None:
        _install_post(
            monkeypatch, _message_response({"images": [{"image_url": _data_url(b"not an image")}]})
        )
        with pytest.raises(RemoteError, match="recognizable image"):
            image_generator.request_images("p", OPTIONS)


# ── future-based dispatch ───────────────────────────────────────────


class TestGenerate:
    def test_future_resolves_to_payloads(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator, jpeg_bytes: bytes
    ) -> None:
        _install_post(monkeypatch, _message_response({"images": [{"image_url": _data_url(jpeg_bytes)}]}))
        future = image_generator.generate("p", OPTIONS)
        assert future.result(timeout=5) == [jpeg_bytes]

    def test_future_carries_remote_error(
        self, monkeypatch: pytest.MonkeyPatch, image_generator: ImageGenerator
    ) -> None:
        _install_post(
            monkeypatch,
            FakeResponse(status_code=429, json_data={"error": {"message": "rate limited"}}),
        )
        future = image_generator.generate("p", OPTIONS)
        with pytest.raises(RemoteError, match="rate limited"):
            future.result(timeout=5)

    def test_worker_threads_are_released(
        self, monkeypatch: pytest.MonkeyPatch, jpeg_bytes: bytes
    ) -> None:
        _install_post(monkeypatch, _message_response({"images": [{"image_url": _data_url(jpeg_bytes)}]}))

        def workers() -> List[threading.Thread]:
            return [t for t in threading.enumerate() if t.name.startswith("animethumb")]

        for _ in range(5):
            gen = create_generator(Settings(api_key="sk-1"))
            assert gen is not None
            assert gen.generate("p", OPTIONS).result(timeout=5) == [jpeg_bytes]

        deadline = time.monotonic() + 5
        while workers() and time.monotonic() < deadline:
            time.sleep(0.01)
        assert workers() == []


class TestHelpers:
    def test_convert_keeps_matching_format(self, jpeg_bytes: bytes) -> None:
        assert convert_image_format(jpeg_bytes, "jpeg") is jpeg_bytes

    def test_convert_rejects_unknown_format(self, jpeg_bytes: bytes) -> None:
        with pytest.raises(ValueError, match="Unsupported"):
            convert_image_format(jpeg_bytes, "tiff")

    def test_options_mime_type(self) -> None:
        assert GenerationOptions().mime_type == "image/jpeg"
        assert GenerationOptions(output_format="png").mime_type == "image/png"

    def test_create_generator_without_key(self) -> None:
        assert create_generator(Settings(api_key=None)) is None

    def test_create_generator_with_key(self) -> None:
        gen: Optional[ImageGenerator] = create_generator(Settings(api_key="sk-1", model="m", timeout=9.0))
        assert gen is not None
        assert gen.api_key == "sk-1"
        assert gen.model == "m"
        assert gen.timeout == 9.0
