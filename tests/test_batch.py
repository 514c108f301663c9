"""批量转换：穷尽性、回调顺序、会话状态与预检。"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pytest

from conftest import FakeRunner, make_image
from image_variants.core.config import TranscoderConfig
from image_variants.core.exceptions import ConversionInProgressError, DirectoryCreationError, PreflightError
from image_variants.core.models import ConversionJob, ConversionResult, Variant
from image_variants.core.session import ConversionSession
from image_variants.processing.batch import collect_outcomes, convert_many, run_batch, run_image, run_variant
from image_variants.processing.engine import ConversionEngine
from image_variants.processing.transcoder import TranscodeOutput


def _variants(prefix: str, count: int) -> tuple[Variant, ...]:
    return tuple(
        Variant(id=f"{prefix}-v{i}", name=f"{prefix}_{i}", format="png", width=8 * (i + 1), height=8 * (i + 1))
        for i in range(count)
    )


def _jobs(tmp_path: Path, images: int, variants: int) -> list[ConversionJob]:
    return [
        ConversionJob(image_id=f"img{n}", source_path=tmp_path / f"img{n}.png", variants=_variants(f"img{n}", variants))
        for n in range(images)
    ]


def test_convert_many_is_exhaustive_despite_failures(tmp_path: Path) -> None:
    jobs = _jobs(tmp_path, images=3, variants=4)
    runner = FakeRunner(fail_when="img1_2")
    seen: list[tuple[str, str, bool]] = []

    results = convert_many(
        jobs,
        tmp_path / "out",
        lambda image_id, variant_id, result: seen.append((image_id, variant_id, result.success)),
        engine=ConversionEngine(runner=runner),
    )

    assert len(seen) == 12
    assert [(i, v) for i, v, _ in seen] == [(job.image_id, v.id) for job in jobs for v in job.variants]
    assert [len(row) for row in results] == [4, 4, 4]
    assert not results[1][2].success
    assert "cannot encode" in (results[1][2].error_message or "")
    assert sum(1 for row in results for r in row if r.success) == 11


def test_unexpected_engine_exception_only_affects_its_unit(tmp_path: Path) -> None:
    class ExplodingEngine(ConversionEngine):
        def convert(self, source_path: Path, variant: Variant, destination: Path) -> ConversionResult:
            if variant.id == "img0-v0":
                raise RuntimeError("boom")
            return super().convert(source_path, variant, destination)

    results = convert_many(_jobs(tmp_path, 1, 2), tmp_path / "out", engine=ExplodingEngine(runner=FakeRunner()))

    assert not results[0][0].success
    assert "boom" in (results[0][0].error_message or "")
    assert results[0][1].success


def test_output_subdir_override_and_invalid_subdir(tmp_path: Path) -> None:
    jobs = [
        ConversionJob("a", tmp_path / "a.png", _variants("a", 1), output_subdir="icons/a"),
        ConversionJob("b", tmp_path / "b.png", _variants("b", 1), output_subdir="../escape"),
    ]

    results = convert_many(jobs, tmp_path / "out", engine=ConversionEngine(runner=FakeRunner()))

    assert results[0][0].output_path == tmp_path / "out" / "icons" / "a" / "a_0.png"
    assert not results[1][0].success


def test_parallel_images_keep_per_image_order(tmp_path: Path) -> None:
    jobs = _jobs(tmp_path, images=4, variants=5)
    seen: list[tuple[str, str]] = []

    results = convert_many(
        jobs,
        tmp_path / "out",
        lambda image_id, variant_id, result: seen.append((image_id, variant_id)),
        engine=ConversionEngine(runner=FakeRunner()),
        max_workers=3,
    )

    assert len(seen) == 20
    for job in jobs:
        assert [v for i, v in seen if i == job.image_id] == [v.id for v in job.variants]
    assert [len(row) for row in results] == [5, 5, 5, 5]


def test_collect_outcomes_flattens_in_input_order(tmp_path: Path) -> None:
    jobs = _jobs(tmp_path, 2, 2)
    results = convert_many(jobs, tmp_path / "out", engine=ConversionEngine(runner=FakeRunner()))

    outcomes = collect_outcomes(jobs, results)

    assert [o.variant.id for o in outcomes] == ["img0-v0", "img0-v1", "img1-v0", "img1-v1"]
    assert all(o.status == "success" for o in outcomes)


def test_favicon_preset_end_to_end(tmp_path: Path) -> None:
    source = make_image(tmp_path / "input" / "logo.png", (600, 600), "orange")
    destination = tmp_path / "dist"
    session = ConversionSession()
    image = session.add_image(source)
    session.apply_preset(image.id, "favicon")
    events: list[tuple[str, ConversionResult]] = []

    run_batch(
        session,
        destination,
        lambda image_id, variant_id, result: events.append((variant_id, result)),
        engine=ConversionEngine(TranscoderConfig(backend="pillow")),
    )

    expected = [
        "favicon.ico",
        "favicon-16x16.png",
        "favicon-32x32.png",
        "apple-touch-icon.png",
        "android-chrome-192x192.png",
        "android-chrome-512x512.png",
    ]
    variants = session.get_image(image.id).variants
    assert [variant_id for variant_id, _ in events] == [v.id for v in variants]
    assert all(result.success for _, result in events)
    assert [result.output_path.name for _, result in events] == expected
    assert sorted(p.name for p in destination.iterdir()) == sorted(expected)
    assert all(v.status == "success" for v in variants)


def test_size_violation_end_to_end_keeps_file(tmp_path: Path) -> None:
    source = make_image(tmp_path / "logo.png", (64, 64))
    session = ConversionSession()
    image = session.add_image(source)
    variant = session.update_variant(image.id, image.variants[0].id, width=16, height=16, min_size=4096)

    result = run_variant(session, image.id, variant.id, tmp_path / "out", engine=ConversionEngine(TranscoderConfig(backend="pillow")))

    assert not result.success
    assert "min_size" in (result.error_message or "")
    assert (tmp_path / "out" / "output.png").exists()
    stored = session.get_variant(image.id, variant.id)
    assert stored.status == "error"
    assert stored.error_message == result.error_message


def test_preflight_rejects_missing_destination_and_empty_session(tmp_path: Path) -> None:
    session = ConversionSession()
    with pytest.raises(PreflightError):
        run_batch(session, tmp_path / "out")

    session.add_image(tmp_path / "a.png")
    with pytest.raises(PreflightError):
        run_batch(session, None)
    with pytest.raises(PreflightError):
        run_batch(session, "")


def test_preflight_rejects_image_without_variants(tmp_path: Path) -> None:
    session = ConversionSession()
    image = session.add_image(tmp_path / "a.png", with_default_variant=False)

    with pytest.raises(PreflightError):
        run_image(session, image.id, tmp_path / "out")


def test_unwritable_destination_aborts_before_any_conversion(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file")
    session = ConversionSession()
    image = session.add_image(tmp_path / "a.png")
    runner = FakeRunner()

    with pytest.raises(DirectoryCreationError):
        run_batch(session, blocker / "out", engine=ConversionEngine(runner=runner))

    assert runner.calls == []
    assert session.get_image(image.id).variants[0].status == "idle"


def test_session_statuses_follow_results(tmp_path: Path) -> None:
    session = ConversionSession()
    image = session.add_image(tmp_path / "a.png", with_default_variant=False)
    session.replace_variants(image.id, _variants("a", 3))

    results = run_image(session, image.id, tmp_path / "out", engine=ConversionEngine(runner=FakeRunner(fail_when="a_1")))

    statuses = [v.status for v in session.get_image(image.id).variants]
    assert statuses == ["success", "error", "success"]
    assert [r.success for r in results] == [True, False, True]
    assert session.get_variant(image.id, "a-v0").output_path == tmp_path / "out" / "a_0.png"


def test_rerun_passes_through_converting_again(tmp_path: Path) -> None:
    session = ConversionSession()
    image = session.add_image(tmp_path / "a.png")
    variant_id = image.variants[0].id
    observed: list[str] = []

    class ObservingRunner(FakeRunner):
        def __call__(self, args: Sequence[str]) -> TranscodeOutput:
            observed.append(session.get_variant(image.id, variant_id).status)
            return super().__call__(args)

    engine = ConversionEngine(runner=ObservingRunner())
    run_variant(session, image.id, variant_id, tmp_path / "out", engine=engine)
    run_variant(session, image.id, variant_id, tmp_path / "out", engine=engine)

    assert observed == ["converting", "converting"]
    assert session.get_variant(image.id, variant_id).status == "success"


def test_reentrant_run_on_in_flight_variant_is_rejected(tmp_path: Path) -> None:
    session = ConversionSession()
    image = session.add_image(tmp_path / "a.png", with_default_variant=False)
    session.replace_variants(image.id, _variants("a", 2))
    engine = ConversionEngine(runner=FakeRunner())
    rejected: list[str] = []

    def on_unit(image_id: str, variant_id: str, result: ConversionResult) -> None:
        if variant_id == "a-v0":
            with pytest.raises(ConversionInProgressError):
                run_variant(session, image_id, "a-v1", tmp_path / "out", engine=engine)
            rejected.append("a-v1")

    run_batch(session, tmp_path / "out", on_unit, engine=engine)

    assert rejected == ["a-v1"]
    assert session.get_variant(image.id, "a-v1").status == "success"


def test_callback_failure_marks_remaining_variants_as_error(tmp_path: Path) -> None:
    session = ConversionSession()
    image = session.add_image(tmp_path / "a.png", with_default_variant=False)
    session.replace_variants(image.id, _variants("a", 3))

    def on_unit(image_id: str, variant_id: str, result: ConversionResult) -> None:
        raise RuntimeError("sink closed")

    with pytest.raises(RuntimeError, match="sink closed"):
        run_batch(session, tmp_path / "out", on_unit, engine=ConversionEngine(runner=FakeRunner()))

    statuses = [v.status for v in session.get_image(image.id).variants]
    assert statuses == ["success", "error", "error"]
