"""
PDF Watermarker - Configuration & Infrastructure

This module defines the immutable description of a single watermark and the
shared vocabulary of the package.

Architecture:
1. Configuration: Data classes and Enums to define watermark properties.
2. Positioning: Anchor resolution into page coordinates (PositionResolver).
3. Rendering: ReportLab / PyMuPDF generation of watermark stamps (WatermarkRenderer).
4. Processing: pypdf integration to apply a batch to every page (PDFProcessor).
5. Building: Fluent staged builder producing batches (WatermarkBuilder).

Dependencies:
- reportlab
- pypdf
- PyMuPDF
- Pillow
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

# Check for required libraries at import time
try:
    from reportlab.lib import colors
    from reportlab.lib.colors import Color
    from PIL import Image
except ImportError as e:
    raise ImportError(f"Missing required dependency: {e}. Please install 'reportlab' and 'Pillow'.")

# ==========================================
# Custom Exceptions
# ==========================================

class WatermarkError(Exception):
    """Base exception for all watermarking operations."""
    pass

class InvalidInputError(WatermarkError):
    """Raised when input parameters or files are invalid."""
    pass

class EmptyWatermarkError(InvalidInputError):
    """Raised when a watermark is finalized with neither text nor image."""

    def __init__(self, message: str = "The watermark content is empty: provide a text or an image."):
        super().__init__(message)

class InvalidDirectoryError(InvalidInputError):
    """Raised when the output directory does not exist or is not a directory."""
    pass

class BuilderStateError(WatermarkError):
    """Raised when a builder call is made outside of its stage."""
    pass

class ResourceError(WatermarkError):
    """Raised when external resources (fonts, images) cannot be loaded."""
    pass

class ImageDecodeError(ResourceError):
    """Raised when an image watermark cannot be decoded."""
    pass

class PDFProcessingError(WatermarkError):
    """Raised when the PDF processing/merging fails."""
    pass

class DocumentIOError(PDFProcessingError):
    """Raised when the document cannot be read or serialized."""
    pass

class RenderError(PDFProcessingError):
    """Raised when drawing a watermark onto a page fails."""
    pass

class WatermarkingError(PDFProcessingError):
    """
    The single error kind surfaced by a watermarking run.

    The lower-level failure is kept as ``__cause__``.
    """
    pass

# ==========================================
# Enumerations & Constants
# ==========================================

DEFAULT_FONT_NAME = "Helvetica"
DEFAULT_FONT_SIZE = 40
DEFAULT_IMAGE_SCALE = 100   # Percent of the intrinsic image size
DEFAULT_OPACITY = 0.5
DEFAULT_DPI = 150.0
TRADEMARK_SUFFIX = " ®"

class WatermarkType(Enum):
    """Defines the content kind of a watermark."""
    TEXT = "text"
    IMAGE = "image"

class WatermarkPosition(Enum):
    """
    Defines anchor points for watermark placement.

    TILED repeats the watermark over the whole page instead of anchoring it.
    """
    TOP_LEFT = "top_left"
    TOP_CENTER = "top_center"
    TOP_RIGHT = "top_right"
    CENTER_LEFT = "center_left"
    CENTER = "center"
    CENTER_RIGHT = "center_right"
    BOTTOM_LEFT = "bottom_left"
    BOTTOM_CENTER = "bottom_center"
    BOTTOM_RIGHT = "bottom_right"
    TILED = "tiled"

class WatermarkingMethod(Enum):
    """
    How a watermark is put on the page.

    OVERLAY composes vector content into the page content stream.
    DRAW rasterizes the page at a given DPI and composites into the raster.
    """
    OVERLAY = "overlay"
    DRAW = "draw"

# ==========================================
# Configuration Data Class
# ==========================================

@dataclass(frozen=True, eq=False)
class WatermarkConfig:
    """
    Immutable record holding content, style and geometry of one watermark.

    This class handles validation of inputs immediately upon instantiation,
    so a batch can only ever contain valid watermarks.
    """

    # --- Content (exactly one) ---
    text: Optional[str] = None
    image: Optional[Image.Image] = None

    # --- Appearance ---
    color: Color = field(default_factory=lambda: colors.black)
    font_name: str = DEFAULT_FONT_NAME
    size: Optional[int] = None       # Font size for text, scale percent for images
    opacity: float = DEFAULT_OPACITY # 0.0 (transparent) to 1.0 (solid)
    rotation: float = 0.0            # Degrees (counter-clockwise)
    trademark: bool = False

    # --- Geometry ---
    position: WatermarkPosition = WatermarkPosition.CENTER
    adjustment: Tuple[float, float] = (0.0, 0.0)
    horizontal_spacing: float = 0.0
    vertical_spacing: float = 0.0

    # --- Rendering ---
    enabled: bool = True
    method: WatermarkingMethod = WatermarkingMethod.OVERLAY
    dpi: float = DEFAULT_DPI

    def __post_init__(self):
        """Validates configuration after initialization."""
        self._validate_content()
        self._validate_opacity()
        self._validate_geometry()

    def _validate_content(self):
        """Ensures exactly one kind of content is provided."""
        if self.text is not None and not isinstance(self.text, str):
            raise InvalidInputError(f"Watermark text must be a string, got {type(self.text).__name__}")
        if self.image is not None and not isinstance(self.image, Image.Image):
            raise InvalidInputError(f"Watermark image must be a PIL image, got {type(self.image).__name__}")
        has_text = self.text is not None and self.text.strip() != ""
        has_image = self.image is not None
        if not has_text and not has_image:
            raise EmptyWatermarkError()
        if has_text and has_image:
            raise InvalidInputError("A watermark holds either a text or an image, not both.")

    def _validate_opacity(self):
        """Ensures opacity is within 0.0 to 1.0 range."""
        if not (0.0 <= self.opacity <= 1.0):
            raise InvalidInputError(f"Opacity must be between 0.0 and 1.0, got {self.opacity}")

    def _validate_geometry(self):
        if self.size is not None and self.size <= 0:
            raise InvalidInputError(f"Size must be positive, got {self.size}")
        if self.horizontal_spacing < 0 or self.vertical_spacing < 0:
            raise InvalidInputError(
                f"Spacing must be >= 0, got ({self.horizontal_spacing}, {self.vertical_spacing})"
            )
        if self.dpi <= 0:
            raise InvalidInputError(f"DPI must be positive, got {self.dpi}")

    @property
    def watermark_type(self) -> WatermarkType:
        return WatermarkType.IMAGE if self.image is not None else WatermarkType.TEXT

    @property
    def display_text(self) -> str:
        """Text as drawn, including the trademark sign when requested."""
        return self.text + TRADEMARK_SUFFIX if self.trademark else self.text

    @property
    def font_size(self) -> int:
        return self.size or DEFAULT_FONT_SIZE

    @property
    def image_scale(self) -> float:
        """Scale factor relative to the original image size."""
        return (self.size or DEFAULT_IMAGE_SCALE) / 100.0
