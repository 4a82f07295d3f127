import argparse
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Tuple

from .logging_setup import configure_logging
from .WatermarkBuilder import WatermarkService
from .WatermarkConfig import (
    DEFAULT_DPI,
    WatermarkError,
    WatermarkingMethod,
    WatermarkPosition,
)

# ==========================================
# CLI & Execution
# ==========================================

def run_watermark_service(
    input_pdf: str,
    output_pdf: str,
    watermark_text: Optional[str] = None,
    watermark_image: Optional[str] = None,
    position: str = "center",
    opacity: float = 0.5,
    rotation: float = 0.0,
    size: Optional[int] = None,
    color: str = "grey",
    method: str = "overlay",
    dpi: float = DEFAULT_DPI,
    adjust: Tuple[float, float] = (0.0, 0.0),
    spacing: Tuple[float, float] = (0.0, 0.0),
    trademark: bool = False,
    workers: int = 0,
    password: Optional[str] = None,
    show_progress: bool = False,
) -> Path:
    """
    High-level entry point to build a single watermark and run it over a file.
    """
    output = Path(output_pdf)
    executor = ThreadPoolExecutor(max_workers=workers) if workers > 0 else None

    try:
        service = WatermarkService(executor, show_progress=show_progress)
        stage = service.watermark(input_pdf, password=password)

        # 1. Content
        if watermark_image:
            builder = stage.with_image(watermark_image)
        else:
            builder = stage.with_text(watermark_text)
            builder = builder.color(color)
            if trademark:
                builder = builder.add_trademark()

        # 2. Style
        builder = builder.opacity(opacity).rotation(rotation).method(method).dpi(dpi)
        if size:
            builder = builder.size(size)

        # 3. Placement
        builder = (
            builder.position(position)
            .adjust(*adjust)
            .horizontal_spacing(spacing[0])
            .vertical_spacing(spacing[1])
        )

        return builder.apply(output.parent, output.name)
    finally:
        if executor is not None:
            executor.shutdown()

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="PDF Watermarker (Text/Image)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Files
    parser.add_argument("-i", "--input", required=True, help="Path to source PDF")
    parser.add_argument("-o", "--output", required=True, help="Path to save watermarked PDF (directory must exist)")

    # Watermark Content
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("-t", "--text", help="Text to use as watermark")
    group.add_argument("-img", "--image", help="Path to image (PNG/JPG) to use as watermark")

    # Appearance
    parser.add_argument("--pos", default="center",
                        choices=[p.value for p in WatermarkPosition],
                        help="Position on the page")
    parser.add_argument("--opacity", type=float, default=0.3, help="Opacity (0.0 to 1.0)")
    parser.add_argument("--rotate", type=float, default=45.0, help="Rotation in degrees")
    parser.add_argument("--size", type=int, help="Font size (text) or scale in percent (image)")
    parser.add_argument("--color", default="grey", help="Text color name or hex value")
    parser.add_argument("--trademark", action="store_true", help="Append a registered trademark sign")

    # Placement
    parser.add_argument("--dx", type=float, default=0.0, help="Horizontal adjustment in points")
    parser.add_argument("--dy", type=float, default=0.0, help="Vertical adjustment in points")
    parser.add_argument("--hspace", type=float, default=0.0, help="Horizontal gap between tiles")
    parser.add_argument("--vspace", type=float, default=0.0, help="Vertical gap between tiles")

    # Rendering
    parser.add_argument("--method", default="overlay",
                        choices=[m.value for m in WatermarkingMethod],
                        help="overlay (vector) or draw (rasterized)")
    parser.add_argument("--dpi", type=float, default=DEFAULT_DPI, help="Raster resolution for the draw method")
    parser.add_argument("--workers", type=int, default=0, help="Pages watermarked in parallel (0 = sequential)")
    parser.add_argument("--password", help="Password for encrypted PDFs")
    parser.add_argument("--progress", action="store_true", help="Show a progress bar")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        run_watermark_service(
            input_pdf=args.input,
            output_pdf=args.output,
            watermark_text=args.text,
            watermark_image=args.image,
            position=args.pos,
            opacity=args.opacity,
            rotation=args.rotate,
            size=args.size,
            color=args.color,
            method=args.method,
            dpi=args.dpi,
            adjust=(args.dx, args.dy),
            spacing=(args.hspace, args.vspace),
            trademark=args.trademark,
            workers=args.workers,
            password=args.password,
            show_progress=args.progress,
        )
    except WatermarkError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
