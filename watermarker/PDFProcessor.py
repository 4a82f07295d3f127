import logging
from concurrent.futures import Executor, Future, as_completed
from typing import Dict, List, Optional, Sequence

from tqdm import tqdm

from .PDFDocument import PDFDocument
from .WatermarkConfig import (
    InvalidInputError,
    WatermarkConfig,
    WatermarkingError,
    WatermarkingMethod,
)
from .WatermarkRenderer import WatermarkRenderer

logger = logging.getLogger(__name__)

# ==========================================
# PDF Processor
# ==========================================

class PDFProcessor:
    """
    Applies a batch of watermarks to every page of a document.

    Responsibilities:
    1. Splitting the document into independent per-page handles.
    2. Drawing the enabled watermarks on each page, in batch order.
    3. Optionally fanning pages out over a caller-owned executor.
    4. Reassembling the pages in their original order and serializing.

    The batch is read-only for the whole run. A processor is single use.
    """

    def __init__(
        self,
        document: PDFDocument,
        batch: Sequence[WatermarkConfig],
        executor: Optional[Executor] = None,
        show_progress: bool = False,
    ):
        if not batch:
            raise InvalidInputError("At least one watermark is required.")
        self.document = document
        self.batch = tuple(batch)
        self.executor = executor
        self.show_progress = show_progress
        self.renderers = [WatermarkRenderer(config) for config in self.batch if config.enabled]

    def process(self) -> bytes:
        """
        Main execution loop.

        Returns the complete document bytes, or raises a WatermarkingError
        describing the first failure; nothing is emitted partially.
        """
        try:
            total_pages = self.document.page_count
            pages = [self.document.page_bytes(i) for i in range(total_pages)]

            logger.info(
                "Watermarking %d pages with %d of %d watermark(s)%s",
                total_pages,
                len(self.renderers),
                len(self.batch),
                " concurrently" if self.executor is not None else "",
            )

            if self.executor is None:
                results = self._process_sequentially(pages)
            else:
                results = self._process_concurrently(pages)

            return self.document.serialize(results)
        except WatermarkingError as e:
            logger.error("Failed to watermark document: %s", e)
            raise
        except Exception as e:
            logger.error("Failed to watermark document: %s", e)
            raise WatermarkingError(f"Error watermarking the document: {e}") from e

    def _process_sequentially(self, pages: List[bytes]) -> List[bytes]:
        return [
            self._watermark_page(index, data)
            for index, data in enumerate(
                tqdm(pages, desc="Watermarking", unit="page", disable=not self.show_progress)
            )
        ]

    def _process_concurrently(self, pages: List[bytes]) -> List[bytes]:
        futures: Dict[Future, int] = {
            self.executor.submit(self._watermark_page, index, data): index
            for index, data in enumerate(pages)
        }
        results: List[Optional[bytes]] = [None] * len(pages)

        try:
            completed = tqdm(
                as_completed(futures),
                total=len(futures),
                desc="Watermarking",
                unit="page",
                disable=not self.show_progress,
            )
            for future in completed:
                # Slot by page index, never by completion order
                results[futures[future]] = future.result()
        except BaseException:
            for future in futures:
                future.cancel()
            raise

        return results

    def _watermark_page(self, index: int, data: bytes) -> bytes:
        """Draws the batch onto one page and returns it as a one-page PDF."""
        try:
            page = PDFDocument.editable_page(data)
            for renderer in self.renderers:
                if renderer.config.method == WatermarkingMethod.OVERLAY:
                    renderer.overlay(page)
                else:
                    drawn = renderer.draw(PDFDocument.page_to_bytes(page))
                    page = PDFDocument.editable_page(drawn)
            return PDFDocument.page_to_bytes(page)
        except Exception as e:
            raise WatermarkingError(f"Failed to watermark page {index + 1}: {e}") from e


def apply_watermarks(
    batch: Sequence[WatermarkConfig],
    document: PDFDocument,
    executor: Optional[Executor] = None,
    show_progress: bool = False,
) -> bytes:
    """Runs one watermarking pass of ``batch`` over ``document``."""
    return PDFProcessor(document, batch, executor=executor, show_progress=show_progress).process()
