import pytest
from reportlab.lib import colors

import watermarker.WatermarkBuilder as builder_module
from conftest import page_content
from watermarker import (
    BuilderStateError,
    ContentStage,
    DocumentStage,
    EmptyWatermarkError,
    ImageDecodeError,
    DocumentIOError,
    InvalidDirectoryError,
    InvalidInputError,
    PositionStage,
    WatermarkingError,
    WatermarkPosition,
    WatermarkService,
)


@pytest.fixture
def stage(blank_pdf) -> DocumentStage:
    return WatermarkService().watermark(blank_pdf)


@pytest.fixture
def no_rendering(monkeypatch):
    def fail(*args, **kwargs):
        pytest.fail("rendering must not start")

    monkeypatch.setattr(builder_module, "apply_watermarks", fail)

# ---------------------------------------------------------------------------
# Stage protocol
# ---------------------------------------------------------------------------

def test_stages_expose_only_legal_calls(stage):
    assert not hasattr(stage, "color")
    assert not hasattr(stage, "apply")

    content = stage.with_text("A")
    assert isinstance(content, ContentStage)
    assert not hasattr(content, "adjust")
    assert not hasattr(content, "horizontal_spacing")

    positioned = content.position(WatermarkPosition.TILED)
    assert isinstance(positioned, PositionStage)
    assert positioned.horizontal_spacing(5).vertical_spacing(5).adjust(1, 2) is positioned


def test_styling_returns_the_same_stage(stage):
    content = stage.with_text("A")
    assert content.color("red").size(12).opacity(0.3).rotation(10).add_trademark().when(True) is content

    positioned = content.position(WatermarkPosition.CENTER)
    assert positioned.color(colors.blue).rotation(45) is positioned


def test_and_returns_to_batch_level(stage):
    next_stage = stage.with_text("A").and_()
    assert isinstance(next_stage, DocumentStage)
    assert isinstance(next_stage.with_text("B"), ContentStage)


def test_stale_stage_is_rejected(stage):
    first = stage.with_text("A")
    first.and_()
    with pytest.raises(BuilderStateError):
        first.size(10)

    stage.with_text("B")
    with pytest.raises(BuilderStateError):
        stage.with_text("C")


def test_position_stage_is_stale_after_and(stage):
    positioned = stage.with_text("A").position(WatermarkPosition.TILED)
    positioned.and_()
    with pytest.raises(BuilderStateError):
        positioned.horizontal_spacing(3)


def test_builder_is_single_use(stage):
    content = stage.with_text("A")
    assert content.apply()
    with pytest.raises(BuilderStateError):
        content.apply()
    with pytest.raises(BuilderStateError):
        content.and_()


def test_invalid_arguments(stage):
    content = stage.with_text("A")
    with pytest.raises(InvalidInputError):
        content.color("not-a-color")
    with pytest.raises(InvalidInputError):
        content.method("stamp")
    with pytest.raises(InvalidInputError):
        content.position("middle")
    with pytest.raises(InvalidInputError):
        content.font("NoSuchFont-Bold")


def test_invalid_values_fail_before_admission(stage, no_rendering):
    with pytest.raises(InvalidInputError):
        stage.with_text("A").opacity(2.0).and_()

# ---------------------------------------------------------------------------
# Content validation
# ---------------------------------------------------------------------------

def test_blank_text_fails_on_apply(stage, no_rendering):
    with pytest.raises(EmptyWatermarkError):
        (
            stage.with_text("   ")
            .size(30)
            .rotation(45)
            .position(WatermarkPosition.TILED)
            .horizontal_spacing(10)
            .apply()
        )


def test_missing_text_fails_on_and(stage):
    with pytest.raises(EmptyWatermarkError):
        stage.with_text(None).color("red").and_()


def test_non_string_text_fails_on_and(stage):
    with pytest.raises(InvalidInputError):
        stage.with_text(123).and_()


def test_missing_image_fails_on_and(stage):
    with pytest.raises(EmptyWatermarkError):
        stage.with_image(None).opacity(0.4).and_()


def test_undecodable_image_is_a_rendering_error(stage):
    with pytest.raises(WatermarkingError) as excinfo:
        stage.with_image(b"not an image")
    assert isinstance(excinfo.value.__cause__, ImageDecodeError)


def test_last_content_call_wins(stage, red_png):
    data = stage.with_text("TEXT").with_image(red_png).apply()
    content = page_content(data)
    assert b"(TEXT) Tj" not in content
    assert b" Do" in content


def test_malformed_document_fails_on_apply():
    stage = WatermarkService().watermark(b"garbage")
    with pytest.raises(WatermarkingError) as excinfo:
        stage.with_text("A").apply()
    assert isinstance(excinfo.value.__cause__, DocumentIOError)

# ---------------------------------------------------------------------------
# Saving
# ---------------------------------------------------------------------------

def test_apply_to_directory(stage, tmp_path):
    path = stage.with_text("A").apply(tmp_path, "out.pdf")
    assert path == tmp_path / "out.pdf"
    assert path.read_bytes().startswith(b"%PDF")


def test_apply_to_missing_directory_fails_fast(stage, tmp_path, no_rendering):
    missing = tmp_path / "missing"
    with pytest.raises(InvalidDirectoryError):
        stage.with_text("A").apply(missing, "out.pdf")
    assert not missing.exists()


def test_apply_to_file_instead_of_directory(stage, tmp_path, no_rendering):
    not_a_dir = tmp_path / "file.txt"
    not_a_dir.write_text("x")
    with pytest.raises(InvalidDirectoryError):
        stage.with_text("A").apply(str(not_a_dir), "out.pdf")
    assert list(tmp_path.iterdir()) == [not_a_dir]


def test_apply_needs_both_path_parts(stage, tmp_path, no_rendering):
    with pytest.raises(InvalidInputError):
        stage.with_text("A").apply(tmp_path)


def test_watermark_requires_document():
    with pytest.raises(InvalidInputError):
        WatermarkService().watermark(None)
