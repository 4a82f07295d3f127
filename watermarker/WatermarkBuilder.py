"""
Fluent, staged construction of watermark batches.

    result = (
        WatermarkService(executor)
        .watermark(document)
            .with_text("Top Left Watermark").size(50)
            .position(WatermarkPosition.TOP_LEFT)
        .and_()
            .with_text("Center Watermark").rotation(45).opacity(0.5)
            .position(WatermarkPosition.CENTER)
        .apply()
    )

Each stage only exposes the calls that are legal at that point: styling needs
content first, and spacing or adjustment needs an anchor. The session keeps
the current stage as an explicit tag too, so a stale stage object kept
around after ``and_()`` or ``apply()`` is rejected with BuilderStateError.
"""

import logging
from concurrent.futures import Executor
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from reportlab.lib import colors
from reportlab.pdfbase import pdfmetrics

from .ImageDecoder import ImageSource, decode_image
from .PDFDocument import DocumentSource, PDFDocument
from .PDFProcessor import apply_watermarks
from .WatermarkConfig import (
    BuilderStateError,
    DocumentIOError,
    EmptyWatermarkError,
    ImageDecodeError,
    InvalidDirectoryError,
    InvalidInputError,
    WatermarkConfig,
    WatermarkingError,
    WatermarkingMethod,
    WatermarkPosition,
)

logger = logging.getLogger(__name__)


class BuilderStage(Enum):
    START = "start"
    CONTENT_BOUND = "content_bound"
    POSITION_BOUND = "position_bound"
    APPLIED = "applied"

# ==========================================
# Session
# ==========================================

class _WatermarkSession:
    """
    State shared by the stage objects of one builder chain.

    Owns the in-progress watermark (a plain mutable mapping, frozen into a
    WatermarkConfig on commit) and the accumulated batch.
    """

    def __init__(
        self,
        source: Union[DocumentSource, PDFDocument],
        password: Optional[str],
        executor: Optional[Executor],
        show_progress: bool,
    ):
        self.source = source
        self.password = password
        self.executor = executor
        self.show_progress = show_progress
        self.batch: List[WatermarkConfig] = []
        self.draft: Dict[str, Any] = {}
        self.stage = BuilderStage.START

    def expect(self, *stages: BuilderStage):
        if self.stage not in stages:
            allowed = ", ".join(stage.name for stage in stages)
            raise BuilderStateError(
                f"Call not allowed in stage {self.stage.name} (expected {allowed})."
            )

    def bind_content(self, text: Optional[str] = None, image: Optional[ImageSource] = None):
        """Replaces the draft content; text and image are mutually exclusive."""
        decoded = None
        if image is not None:
            try:
                decoded = decode_image(image)
            except ImageDecodeError as e:
                logger.error("Failed to convert image watermark: %s", e)
                raise WatermarkingError("Error converting the watermark image") from e
        self.draft["text"] = text
        self.draft["image"] = decoded
        if self.stage is BuilderStage.START:
            self.stage = BuilderStage.CONTENT_BOUND

    def commit(self):
        """Validates the draft and appends it to the batch."""
        try:
            config = WatermarkConfig(**self.draft)
        except EmptyWatermarkError:
            logger.error("The watermark content is empty")
            raise
        self.batch.append(config)
        self.draft = {}
        self.stage = BuilderStage.START

    def run(self) -> bytes:
        self.commit()
        # The batch now belongs to the processing run
        self.stage = BuilderStage.APPLIED
        batch, self.batch = self.batch, []

        try:
            if isinstance(self.source, PDFDocument):
                document = self.source
            else:
                document = PDFDocument(self.source, password=self.password)
        except DocumentIOError as e:
            logger.error("Failed to load document: %s", e)
            raise WatermarkingError(f"Error watermarking the file: {e}") from e

        return apply_watermarks(
            batch, document, executor=self.executor, show_progress=self.show_progress
        )

# ==========================================
# Stages
# ==========================================

class _Stage:
    _STAGES = ()

    def __init__(self, session: _WatermarkSession):
        self._session = session

    def _check(self):
        self._session.expect(*self._STAGES)


class DocumentStage(_Stage):
    """Batch level: starts the next watermark."""

    _STAGES = (BuilderStage.START,)

    def with_text(self, text: str) -> "ContentStage":
        self._check()
        self._session.bind_content(text=text)
        return ContentStage(self._session)

    def with_image(self, image: ImageSource) -> "ContentStage":
        """Accepts image bytes, a path, a binary stream or a PIL image."""
        self._check()
        self._session.bind_content(image=image)
        return ContentStage(self._session)


class ContentStage(_Stage):
    """Content is bound: styling, anchoring and finishing calls."""

    _STAGES = (BuilderStage.CONTENT_BOUND, BuilderStage.POSITION_BOUND)

    def _set(self, **values):
        self._check()
        self._session.draft.update(values)
        return self

    def with_text(self, text: str):
        """Replaces the content of the current watermark with text."""
        self._check()
        self._session.bind_content(text=text)
        return self

    def with_image(self, image: ImageSource):
        """Replaces the content of the current watermark with an image."""
        self._check()
        self._session.bind_content(image=image)
        return self

    def color(self, color):
        """Text color: a ReportLab Color, a color name or a hex string."""
        self._check()
        try:
            value = colors.toColor(color)
        except ValueError as e:
            raise InvalidInputError(f"Unknown color: {color!r}") from e
        return self._set(color=value)

    def font(self, font_name: str):
        self._check()
        try:
            pdfmetrics.getFont(font_name)
        except (KeyError, ValueError) as e:
            raise InvalidInputError(f"Unknown font: {font_name}") from e
        return self._set(font_name=font_name)

    def size(self, size: int):
        return self._set(size=size)

    def opacity(self, opacity: float):
        return self._set(opacity=opacity)

    def rotation(self, degrees: float):
        return self._set(rotation=degrees)

    def add_trademark(self):
        return self._set(trademark=True)

    def when(self, condition: bool):
        """Keeps the watermark in the batch, but only draws it if ``condition``."""
        return self._set(enabled=bool(condition))

    def method(self, method: Union[WatermarkingMethod, str]):
        self._check()
        try:
            value = WatermarkingMethod(method)
        except ValueError as e:
            raise InvalidInputError(f"Unknown watermarking method: {method!r}") from e
        return self._set(method=value)

    def dpi(self, dpi: float):
        return self._set(dpi=dpi)

    def position(self, position: Union[WatermarkPosition, str]) -> "PositionStage":
        self._check()
        try:
            value = WatermarkPosition(position)
        except ValueError as e:
            raise InvalidInputError(f"Unknown watermark position: {position!r}") from e
        self._session.draft["position"] = value
        self._session.stage = BuilderStage.POSITION_BOUND
        return PositionStage(self._session)

    def and_(self) -> DocumentStage:
        """Finishes the current watermark and starts the next one."""
        self._check()
        self._session.commit()
        return DocumentStage(self._session)

    def apply(
        self,
        directory_path: Optional[Union[str, Path]] = None,
        file_name: Optional[str] = None,
    ) -> Union[bytes, Path]:
        """
        Finishes the current watermark and applies the whole batch.

        Without arguments the watermarked PDF is returned as bytes. With a
        directory and a file name it is written there and the path is
        returned; the directory is checked before any rendering happens.
        """
        self._check()
        if directory_path is None and file_name is None:
            return self._session.run()
        if directory_path is None or file_name is None:
            raise InvalidInputError("Both directory_path and file_name are required to save the result.")

        directory = Path(directory_path)
        if not directory.is_dir():
            logger.error("Invalid directory: %s", directory_path)
            raise InvalidDirectoryError(f"The directory does not exist or is not a directory: {directory_path}")

        data = self._session.run()
        file_path = directory / file_name
        try:
            file_path.write_bytes(data)
        except OSError as e:
            logger.error("Failed to save watermarked file: %s", e)
            raise WatermarkingError(f"Error saving the watermarked file: {e}") from e

        logger.info("Successfully saved to: %s", file_path)
        return file_path


class PositionStage(ContentStage):
    """An anchor is set: placement refinements become available."""

    _STAGES = (BuilderStage.POSITION_BOUND,)

    def adjust(self, x: float, y: float):
        """Offsets the anchored position, in points."""
        return self._set(adjustment=(x, y))

    def horizontal_spacing(self, spacing: float):
        """Gap between tiled columns, in points."""
        return self._set(horizontal_spacing=spacing)

    def vertical_spacing(self, spacing: float):
        """Gap between tiled rows, in points."""
        return self._set(vertical_spacing=spacing)

# ==========================================
# Entry point
# ==========================================

class WatermarkService:
    """
    Entry point of the fluent API.

    ``executor`` is an optional caller-owned pool used to watermark pages
    concurrently; it is never shut down here.
    """

    def __init__(self, executor: Optional[Executor] = None, show_progress: bool = False):
        self.executor = executor
        self.show_progress = show_progress

    def watermark(
        self,
        document: Union[DocumentSource, PDFDocument],
        password: Optional[str] = None,
    ) -> DocumentStage:
        """Starts a batch for ``document``; it is only read when applying."""
        if document is None:
            raise InvalidInputError("A document is required.")
        return DocumentStage(_WatermarkSession(document, password, self.executor, self.show_progress))
