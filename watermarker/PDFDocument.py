import io
import logging
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence, Tuple, Union

from pypdf import PageObject, PasswordType, PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from .WatermarkConfig import DocumentIOError

logger = logging.getLogger(__name__)

DocumentSource = Union[PdfReader, bytes, bytearray, str, Path, BinaryIO]

# ==========================================
# PDF Document
# ==========================================

class PDFDocument:
    """
    Thin document service over pypdf.

    Responsibilities:
    1. Loading from a reader, bytes, a path or a stream.
    2. Handling PDF Encryption.
    3. Handing out independent single-page copies for per-page work.
    4. Reassembling processed pages into the final document bytes.
    """

    def __init__(self, source: DocumentSource, password: Optional[str] = None):
        self.password = password
        self.reader = self._load(source)

    def _load(self, source: DocumentSource) -> PdfReader:
        """Loads the PDF and handles decryption if necessary."""
        if isinstance(source, PdfReader):
            reader = source
        else:
            if isinstance(source, (bytes, bytearray)):
                source = io.BytesIO(bytes(source))
            elif isinstance(source, (str, Path)) and not Path(source).is_file():
                raise DocumentIOError(f"Input file not found: {source}")
            try:
                reader = PdfReader(source)
            except (PyPdfError, OSError, ValueError) as e:
                raise DocumentIOError(f"Failed to load PDF: {e}") from e

        if reader.is_encrypted:
            # An empty password opens many owner-restricted PDFs
            if reader.decrypt(self.password or "") == PasswordType.NOT_DECRYPTED:
                raise DocumentIOError("PDF is encrypted. Please provide a valid password.")

        return reader

    @property
    def page_count(self) -> int:
        try:
            return len(self.reader.pages)
        except PyPdfError as e:
            raise DocumentIOError(f"Failed to read the page tree: {e}") from e

    def page_dimensions(self, index: int) -> Tuple[float, float]:
        """Width and height of the page as displayed, in points."""
        return self.display_size(self.reader.pages[index])

    def page_bytes(self, index: int) -> bytes:
        """Serializes page ``index`` as a standalone one-page PDF."""
        return self.page_to_bytes(self.reader.pages[index])

    def serialize(self, pages: Sequence[bytes]) -> bytes:
        """Assembles one-page PDFs, in the given order, into the output document."""
        writer = PdfWriter()
        try:
            for data in pages:
                writer.add_page(self.load_page(data))

            # Copy over metadata
            if self.reader.metadata:
                writer.add_metadata(self.reader.metadata)

            buffer = io.BytesIO()
            writer.write(buffer)
        except (PyPdfError, OSError, ValueError) as e:
            raise DocumentIOError(f"Failed to serialize output PDF: {e}") from e

        logger.debug("Serialized %d pages", len(pages))
        return buffer.getvalue()

    @staticmethod
    def load_page(data: bytes) -> PageObject:
        """Opens the single page held by a one-page PDF."""
        try:
            return PdfReader(io.BytesIO(data)).pages[0]
        except (PyPdfError, IndexError, ValueError) as e:
            raise DocumentIOError(f"Failed to load page: {e}") from e

    @staticmethod
    def editable_page(data: bytes) -> PageObject:
        """Like ``load_page``, but the page is owned by a writer so it can be merged into."""
        page = PDFDocument.load_page(data)
        return PdfWriter().add_page(page)

    @staticmethod
    def display_size(page: PageObject) -> Tuple[float, float]:
        """Size of the visible area (CropBox), swapped for quarter-turn rotations."""
        box = page.cropbox
        width, height = float(box.width), float(box.height)
        if page.rotation % 180 == 90:
            return height, width
        return width, height

    @staticmethod
    def display_transform(page: PageObject) -> Tuple[float, ...]:
        """
        Matrix mapping displayed page space (origin at the bottom-left of the
        page as shown) onto the page's own user space.
        """
        box = page.cropbox
        left, bottom = float(box.left), float(box.bottom)
        right, top = float(box.right), float(box.top)
        rotation = page.rotation % 360
        if rotation == 90:
            return (0, 1, -1, 0, right, bottom)
        if rotation == 180:
            return (-1, 0, 0, -1, right, top)
        if rotation == 270:
            return (0, -1, 1, 0, left, top)
        return (1, 0, 0, 1, left, bottom)

    @staticmethod
    def page_to_bytes(page: PageObject) -> bytes:
        writer = PdfWriter()
        writer.add_page(page)
        buffer = io.BytesIO()
        writer.write(buffer)
        return buffer.getvalue()

    @staticmethod
    def blank(sizes: List[Tuple[float, float]]) -> "PDFDocument":
        """Creates an in-memory document of blank pages with the given sizes."""
        writer = PdfWriter()
        for width, height in sizes:
            writer.add_blank_page(width=width, height=height)
        buffer = io.BytesIO()
        writer.write(buffer)
        return PDFDocument(buffer.getvalue())
