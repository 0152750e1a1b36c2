"""Generation lifecycle and UI state for a single user session.

The transition table and :func:`render_view` are pure; :class:`GenerationSession`
owns the only mutable state and is the sole caller of :func:`transition`.
"""
from __future__ import annotations

import base64
import enum
import logging
import re
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from animethumb.errors import (
    EmptyTitle,
    InvalidStyleKey,
    InvalidTransition,
    MissingCredentials,
    NoImageReturned,
    ThumbnailError,
)
from animethumb.generator import GenerationOptions
from animethumb.prompts import DEFAULT_STYLE, STYLE_CATALOG, build_prompt

logger = logging.getLogger("animethumb.session")

DOWNLOAD_LABEL = "thumbnail"
DOWNLOAD_EXTENSION = ".jpg"
GENERIC_ERROR_MESSAGE = "An error occurred while generating the image."
PLACEHOLDER_MESSAGE = "Your image will appear here."
PROGRESS_MESSAGE = "The AI is generating your image..."
GENERATE_LABEL = "Generate image"
GENERATING_LABEL = "Generating..."

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9]")


class ImageSource(Protocol):
    def generate(self, prompt: str, options: GenerationOptions) -> "Future[List[bytes]]":
        ...


@dataclass(frozen=True)
class GenerationRequest:
    """A validated title and style pair."""

    title: str
    style_key: str

    @classmethod
    def create(cls, title: str, style_key: str) -> "GenerationRequest":
        trimmed = title.strip()
        if not trimmed:
            raise EmptyTitle()
        if style_key not in STYLE_CATALOG:
            raise InvalidStyleKey(style_key)
        return cls(title=trimmed, style_key=style_key)

    @property
    def prompt(self) -> str:
        return build_prompt(self.title, self.style_key)


@dataclass(frozen=True)
class ImageReference:
    data: bytes
    mime_type: str = "image/jpeg"

    @property
    def data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


class Phase(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERRORED = "errored"


class Event(str, enum.Enum):
    START = "start"
    REJECT = "reject"
    SUCCEED = "succeed"
    FAIL = "fail"


@dataclass(frozen=True)
class UIState:
    phase: Phase = Phase.IDLE
    image: Optional[ImageReference] = None
    error: Optional[str] = None

    @classmethod
    def idle(cls) -> "UIState":
        return cls(Phase.IDLE)

    @classmethod
    def loading(cls) -> "UIState":
        return cls(Phase.LOADING)

    @classmethod
    def loaded(cls, image: ImageReference) -> "UIState":
        return cls(Phase.LOADED, image=image)

    @classmethod
    def errored(cls, message: str) -> "UIState":
        return cls(Phase.ERRORED, error=message)


TRANSITIONS: Dict[Tuple[Phase, Event], Phase] = {
    (Phase.IDLE, Event.START): Phase.LOADING,
    (Phase.LOADED, Event.START): Phase.LOADING,
    (Phase.ERRORED, Event.START): Phase.LOADING,
    (Phase.IDLE, Event.REJECT): Phase.ERRORED,
    (Phase.LOADED, Event.REJECT): Phase.ERRORED,
    (Phase.ERRORED, Event.REJECT): Phase.ERRORED,
    (Phase.LOADING, Event.SUCCEED): Phase.LOADED,
    (Phase.LOADING, Event.FAIL): Phase.ERRORED,
}


def transition(
    state: UIState,
    event: Event,
    *,
    image: Optional[ImageReference] = None,
    message: Optional[str] = None,
) -> UIState:
    """Return the state that follows ``state`` on ``event``."""

    target = TRANSITIONS.get((state.phase, event))
    if target is None:
        raise InvalidTransition(f"Cannot apply {event.value} while {state.phase.value}")
    if target is Phase.LOADING:
        return UIState.loading()
    if target is Phase.LOADED:
        if image is None:
            raise InvalidTransition("A loaded state requires an image")
        return UIState.loaded(image)
    return UIState.errored(message or GENERIC_ERROR_MESSAGE)


class Display(str, enum.Enum):
    PLACEHOLDER = "placeholder"
    SPINNER = "spinner"
    IMAGE = "image"
    ERROR = "error"


@dataclass(frozen=True)
class ControlsView:
    """What the renderer should show for a given state and title."""

    title_enabled: bool
    style_enabled: bool
    generate_enabled: bool
    generate_label: str
    download_enabled: bool
    display: Display
    message: Optional[str] = None
    image: Optional[ImageReference] = None


def can_generate(title: str) -> bool:
    return bool(title.strip())


def render_view(state: UIState, title: str) -> ControlsView:
    if state.phase is Phase.LOADING:
        return ControlsView(
            title_enabled=False,
            style_enabled=False,
            generate_enabled=False,
            generate_label=GENERATING_LABEL,
            download_enabled=False,
            display=Display.SPINNER,
            message=PROGRESS_MESSAGE,
        )

    if state.phase is Phase.LOADED:
        display, message = Display.IMAGE, None
    elif state.phase is Phase.ERRORED:
        display, message = Display.ERROR, state.error
    else:
        display, message = Display.PLACEHOLDER, PLACEHOLDER_MESSAGE

    return ControlsView(
        title_enabled=True,
        style_enabled=True,
        generate_enabled=can_generate(title),
        generate_label=GENERATE_LABEL,
        download_enabled=state.phase is Phase.LOADED,
        display=display,
        message=message,
        image=state.image,
    )


def download_filename(title: str) -> str:
    """Build ``thumbnail_<title>.jpg`` with one ``_`` per non-alphanumeric."""

    safe_title = _UNSAFE_FILENAME_CHARS.sub("_", title.strip()).lower()
    return f"{DOWNLOAD_LABEL}_{safe_title or 'image'}{DOWNLOAD_EXTENSION}"


@dataclass(frozen=True)
class DownloadArtifact:
    filename: str
    data: bytes
    mime_type: str = "image/jpeg"


class GenerationSession:
    """Drive one user's generate/download cycle.

    ``generator`` is ``None`` when no credentials are configured. ``saver`` is
    called with every :class:`DownloadArtifact` produced by
    :meth:`handle_download`.
    """

    def __init__(
        self,
        generator: Optional[ImageSource],
        *,
        saver: Optional[Callable[[DownloadArtifact], None]] = None,
        options: GenerationOptions = GenerationOptions(),
    ) -> None:
        self._generator = generator
        self._saver = saver
        self._options = options
        self._state = UIState.idle()
        self._pending: Optional["Future[List[bytes]]"] = None
        self.title = ""
        self.style_key = DEFAULT_STYLE

    @property
    def state(self) -> UIState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state.phase is Phase.LOADING

    @property
    def current_image(self) -> Optional[ImageReference]:
        return self._state.image

    def view(self) -> ControlsView:
        return render_view(self._state, self.title)

    def update_title(self, text: str) -> None:
        if self.is_loading:
            return
        self.title = text

    def select_style(self, style_key: str) -> None:
        if self.is_loading:
            return
        self.style_key = style_key

    def _apply(
        self,
        event: Event,
        *,
        image: Optional[ImageReference] = None,
        message: Optional[str] = None,
    ) -> None:
        previous = self._state.phase
        self._state = transition(self._state, event, image=image, message=message)
        logger.debug("State %s -> %s on %s", previous.value, self._state.phase.value, event.value)

    def _reject(self, exc: ThumbnailError) -> None:
        logger.info("Generation rejected: %s", exc)
        self._apply(Event.REJECT, message=str(exc))

    def handle_generate(self) -> Optional["Future[List[bytes]]"]:
        """Validate input and dispatch one generation request.

        Returns the pending future, or ``None`` when the request was rejected
        or another request is already in flight.
        """

        if self.is_loading:
            logger.warning("Ignoring generate request while another request is in flight")
            return None

        if not can_generate(self.title):
            self._reject(EmptyTitle())
            return None

        if self._generator is None:
            self._reject(MissingCredentials())
            return None

        try:
            request = GenerationRequest.create(self.title, self.style_key)
        except InvalidStyleKey as exc:
            logger.error("Style selector produced an unknown key: %r", exc.style_key)
            self._reject(exc)
            return None

        self._apply(Event.START)
        logger.info("Generating thumbnail title=%r style=%s", request.title, request.style_key)
        try:
            self._pending = self._generator.generate(request.prompt, self._options)
        except Exception as exc:  # pragma: no cover - dispatch failures are rare
            logger.exception("Failed to dispatch generation request")
            self._apply(Event.FAIL, message=str(exc) or GENERIC_ERROR_MESSAGE)
            return None
        return self._pending

    def await_completion(self) -> UIState:
        """Wait for the pending request and apply its outcome."""

        pending = self._pending
        if pending is None:
            return self._state
        try:
            payloads = pending.result()
            if not payloads:
                raise NoImageReturned()
        except Exception as exc:
            message = str(exc).strip() or GENERIC_ERROR_MESSAGE
            logger.error("Image generation failed: %s", message)
            self._apply(Event.FAIL, message=message)
        else:
            image = ImageReference(payloads[0], self._options.mime_type)
            logger.info("Image generated (%d bytes)", len(image.data))
            self._apply(Event.SUCCEED, image=image)
        finally:
            self._pending = None
        return self._state

    def generate(self) -> UIState:
        """Dispatch a request and wait for it."""

        self.handle_generate()
        return self.await_completion()

    def prepare_download(self) -> Optional[DownloadArtifact]:
        image = self._state.image
        if self._state.phase is not Phase.LOADED or image is None:
            return None
        return DownloadArtifact(
            filename=download_filename(self.title),
            data=image.data,
            mime_type=image.mime_type,
        )

    def handle_download(self) -> Optional[DownloadArtifact]:
        """Save the loaded image; does nothing when no image is loaded."""

        artifact = self.prepare_download()
        if artifact is None:
            return None
        logger.info("Saving %s (%d bytes)", artifact.filename, len(artifact.data))
        if self._saver is not None:
            self._saver(artifact)
        return artifact
