"""Apply batches of text and image watermarks to every page of a PDF."""

from .ImageDecoder import decode_image
from .PDFDocument import PDFDocument
from .PDFProcessor import PDFProcessor, apply_watermarks
from .PositionResolver import resolve
from .WatermarkBuilder import (
    BuilderStage,
    ContentStage,
    DocumentStage,
    PositionStage,
    WatermarkService,
)
from .WatermarkConfig import (
    BuilderStateError,
    DocumentIOError,
    EmptyWatermarkError,
    ImageDecodeError,
    InvalidDirectoryError,
    InvalidInputError,
    PDFProcessingError,
    RenderError,
    ResourceError,
    WatermarkConfig,
    WatermarkError,
    WatermarkingError,
    WatermarkingMethod,
    WatermarkPosition,
    WatermarkType,
)
from .WatermarkRenderer import WatermarkRenderer, measure_text

__version__ = "1.0.0"

__all__ = [
    "BuilderStage",
    "BuilderStateError",
    "ContentStage",
    "DocumentIOError",
    "DocumentStage",
    "EmptyWatermarkError",
    "ImageDecodeError",
    "InvalidDirectoryError",
    "InvalidInputError",
    "PDFDocument",
    "PDFProcessingError",
    "PDFProcessor",
    "PositionStage",
    "RenderError",
    "ResourceError",
    "WatermarkConfig",
    "WatermarkError",
    "WatermarkRenderer",
    "WatermarkService",
    "WatermarkType",
    "WatermarkingError",
    "WatermarkingMethod",
    "WatermarkPosition",
    "apply_watermarks",
    "decode_image",
    "measure_text",
    "resolve",
]
