"""
End-to-end tests for the pipeline controller with a fake engine.
"""

import asyncio
import threading

import numpy as np

from id_card_faces.canvas import Canvas
from id_card_faces.config import AppConfig
from id_card_faces.input_handler import Upload
from id_card_faces.model_loader import AssetLoaders
from id_card_faces.pipeline import RunOutcome
from id_card_faces.session import ModelState, OutcomeKind, RunState
from id_card_faces.status import Severity


def _status(report):
    return report.status.severity, report.status.text


def test_two_faces_rendered(pipeline_factory, fake_engine, recording_surface, upload, detection_factory):
    """A well-formed two-face card ends in success with both overlays drawn."""
    engine = fake_engine([detection_factory(10, 10, 90, 110), detection_factory(110, 10, 190, 110)])
    pipeline = pipeline_factory(engine, surface=recording_surface)

    async def scenario():
        await pipeline.start()
        return await pipeline.handle_upload(upload)

    report = asyncio.run(scenario())

    assert report.outcome is RunOutcome.RENDERED
    assert _status(report) == (Severity.SUCCESS, "Detected 2 face(s) in the ID card")
    assert report.face_count == 2
    assert pipeline.session.run_state is RunState.RENDERED
    assert recording_surface.calls == [
        ("image", "card.png", 200, 120),
        ("image", "card.png", 200, 120),
        ("regions", 1),
        ("landmarks", 68),
        ("regions", 1),
        ("landmarks", 68),
    ]


def test_no_faces_reports_warning_without_overlay(pipeline_factory, fake_engine, recording_surface, upload):
    pipeline = pipeline_factory(fake_engine([]), surface=recording_surface)

    async def scenario():
        await pipeline.start()
        return await pipeline.handle_upload(upload)

    report = asyncio.run(scenario())

    assert report.outcome is RunOutcome.NO_FACES
    assert _status(report) == (Severity.WARNING, "No faces detected in the ID card")
    assert recording_surface.overlay_calls == []
    assert recording_surface.calls == [("image", "card.png", 200, 120)]


def test_upload_before_models_loaded(pipeline_factory, fake_engine, recording_surface, upload):
    """Without start() nothing is decoded or detected."""
    engine = fake_engine([])
    pipeline = pipeline_factory(engine, surface=recording_surface)

    report = asyncio.run(pipeline.handle_upload(upload))

    assert report.outcome is RunOutcome.NOT_READY
    assert _status(report) == (Severity.WARNING, "Please wait for models to load...")
    assert engine.calls == 0
    assert recording_surface.calls == []


def test_upload_while_models_loading(pipeline_factory, fake_engine, upload, detection_factory):
    gate = threading.Event()

    def slow_face_locator(config):
        gate.wait(5)
        return "face-locator"

    engine = fake_engine([detection_factory(10, 10, 90, 110)])
    pipeline = pipeline_factory(
        engine,
        loaders=AssetLoaders(face_locator=slow_face_locator, landmarker=lambda c: "lbf"),
    )

    async def scenario():
        loading = asyncio.create_task(pipeline.start())
        await asyncio.sleep(0)
        assert pipeline.session.model_state is ModelState.LOADING
        early = await pipeline.handle_upload(upload)
        gate.set()
        await loading
        late = await pipeline.handle_upload(upload)
        return early, late

    early, late = asyncio.run(scenario())

    assert early.outcome is RunOutcome.NOT_READY
    assert _status(early) == (Severity.WARNING, "Please wait for models to load...")
    assert late.outcome is RunOutcome.RENDERED
    assert engine.calls == 1


def test_load_failure_is_permanent(pipeline_factory, fake_engine, upload):
    def timeout(config):
        raise TimeoutError("timeout")

    engine = fake_engine([])
    pipeline = pipeline_factory(engine, loaders=AssetLoaders(face_locator=timeout, landmarker=lambda c: "lbf"))

    async def scenario():
        loaded = await pipeline.start()
        status_after_load = pipeline.status
        again = await pipeline.start()
        report = await pipeline.handle_upload(upload)
        return loaded, status_after_load, again, report

    loaded, status_after_load, again, report = asyncio.run(scenario())

    assert loaded.kind is OutcomeKind.FAILED
    assert (status_after_load.severity, status_after_load.text) == (Severity.ERROR, "Error loading models: timeout")
    assert again.kind is OutcomeKind.REJECTED
    assert not pipeline.ready
    assert pipeline.session.model_state is ModelState.LOAD_FAILED
    assert report.outcome is RunOutcome.NOT_READY
    assert engine.calls == 0


def test_decode_failure(pipeline_factory, fake_engine, monkeypatch, upload):
    from id_card_faces import input_handler

    def corrupt(upload):
        raise ValueError("corrupt file")

    monkeypatch.setattr(input_handler, "decode_image", corrupt)
    engine = fake_engine([])
    pipeline = pipeline_factory(engine)

    async def scenario():
        await pipeline.start()
        return await pipeline.handle_upload(upload)

    report = asyncio.run(scenario())

    assert report.outcome is RunOutcome.FAILED
    assert _status(report) == (Severity.ERROR, "Error processing image: corrupt file")
    assert pipeline.ready
    assert engine.calls == 0


def test_detection_failure_keeps_plain_image(pipeline_factory, fake_engine, upload):
    """The card stays visible and readiness survives an engine error."""
    canvas = Canvas(AppConfig().visualization)
    pipeline = pipeline_factory(fake_engine(error=RuntimeError("engine exploded")), surface=canvas)

    async def scenario():
        await pipeline.start()
        return await pipeline.handle_upload(upload)

    report = asyncio.run(scenario())

    assert report.outcome is RunOutcome.FAILED
    assert _status(report) == (Severity.ERROR, "Error processing image: engine exploded")
    assert pipeline.ready
    assert pipeline.session.run_state is RunState.FAILED
    assert np.all(canvas.snapshot() == 200)
    assert (canvas.width, canvas.height) == (200, 120)


def test_success_count_matches_detections(pipeline_factory, fake_engine, upload, detection_factory):
    for count in (1, 3):
        detections = [detection_factory(5 + 60 * i, 5, 55 + 60 * i, 100) for i in range(count)]
        pipeline = pipeline_factory(fake_engine(detections))

        async def scenario():
            await pipeline.start()
            return await pipeline.handle_upload(upload)

        report = asyncio.run(scenario())
        assert _status(report) == (Severity.SUCCESS, f"Detected {count} face(s) in the ID card")


def test_repeat_upload_supersedes_previous_run(pipeline_factory, fake_engine, upload, image_encoder, detection_factory):
    engine = fake_engine([detection_factory(10, 10, 90, 110)])
    canvas = Canvas(AppConfig().visualization)
    pipeline = pipeline_factory(engine, surface=canvas)
    second = Upload(name="second.png", data=image_encoder(80, 60))

    async def scenario():
        await pipeline.start()
        await pipeline.handle_upload(upload)
        engine.detections = []
        return await pipeline.handle_upload(second)

    report = asyncio.run(scenario())

    assert report.outcome is RunOutcome.NO_FACES
    assert pipeline.session.image.name == "second.png"
    assert pipeline.session.detections == []
    assert (canvas.width, canvas.height) == (80, 60)
    assert np.all(canvas.snapshot() == 200)


def test_no_file_selected(pipeline_factory):
    pipeline = pipeline_factory()

    async def scenario():
        await pipeline.start()
        before = pipeline.status
        report = await pipeline.handle_upload(None)
        return before, report

    before, report = asyncio.run(scenario())

    assert report.outcome is RunOutcome.NO_FILE
    assert report.status == before


def test_concurrent_upload_is_rejected(pipeline_factory, upload, image_encoder, detection_factory):
    """A second upload during detection is refused and leaves the first run alone."""
    gate = threading.Event()
    detections = [detection_factory(10, 10, 90, 110)]

    class SlowEngine:
        calls = 0

        def detect_all(self, image):
            SlowEngine.calls += 1
            gate.wait(5)
            return detections

    pipeline = pipeline_factory(SlowEngine())
    intruder = Upload(name="other.png", data=image_encoder(40, 40))

    async def scenario():
        await pipeline.start()
        first = asyncio.create_task(pipeline.handle_upload(upload))
        for _ in range(500):
            if pipeline.session.run_state is RunState.DETECTING:
                break
            await asyncio.sleep(0.01)
        second = await pipeline.handle_upload(intruder)
        status_during = pipeline.status
        gate.set()
        return await first, second, status_during

    first, second, status_during = asyncio.run(scenario())

    assert second.outcome is RunOutcome.BUSY
    assert (status_during.severity, status_during.text) == (Severity.INFO, "Detecting faces...")
    assert first.outcome is RunOutcome.RENDERED
    assert pipeline.session.image.name == "card.png"
    assert SlowEngine.calls == 1


class _BrokenRegionSurface:
    def __init__(self):
        self.calls = []

    def draw_image(self, image):
        self.calls.append(("image", image.name, image.pixel_width, image.pixel_height))

    def draw_regions(self, detections):
        self.calls.append(("regions", len(detections)))
        raise RuntimeError("brush snapped")

    def draw_landmarks(self, detections):
        self.calls.append(("landmarks", len(detections)))


class _FlakyImageSurface(_BrokenRegionSurface):
    """Draws the first image, then fails on every later draw_image()."""

    def draw_image(self, image):
        super().draw_image(image)
        if len(self.calls) > 1:
            raise RuntimeError("surface lost")

    def draw_regions(self, detections):
        self.calls.append(("regions", len(detections)))


def test_overlay_failure_leaves_plain_image(pipeline_factory, fake_engine, upload, image_encoder, detection_factory):
    """A failing region draw ends the run with an error and the plain card on screen."""
    surface = _BrokenRegionSurface()
    engine = fake_engine([detection_factory(10, 10, 90, 110)])
    pipeline = pipeline_factory(engine, surface=surface)

    async def scenario():
        await pipeline.start()
        failed = await pipeline.handle_upload(upload)
        calls = list(surface.calls)
        state = pipeline.session.run_state
        engine.detections = []
        following = await pipeline.handle_upload(Upload(name="next.png", data=image_encoder(80, 60)))
        return failed, calls, state, following

    failed, calls, state, following = asyncio.run(scenario())

    assert failed.outcome is RunOutcome.FAILED
    assert _status(failed) == (Severity.ERROR, "Error processing image: brush snapped")
    assert pipeline.ready
    assert state is RunState.FAILED
    assert calls[-1] == ("image", "card.png", 200, 120)
    assert following.outcome is RunOutcome.NO_FACES


def test_failed_redraw_after_overlay_error_does_not_wedge_run(pipeline_factory, fake_engine, upload, detection_factory):
    """Even when the fallback redraw fails the run ends FAILED and later uploads proceed."""
    surface = _FlakyImageSurface()
    engine = fake_engine([detection_factory(10, 10, 90, 110)])
    pipeline = pipeline_factory(engine, surface=surface)

    async def scenario():
        await pipeline.start()
        failed = await pipeline.handle_upload(upload)
        state = pipeline.session.run_state
        following = await pipeline.handle_upload(upload)
        return failed, state, following

    failed, state, following = asyncio.run(scenario())

    assert failed.outcome is RunOutcome.FAILED
    assert _status(failed) == (Severity.ERROR, "Error processing image: surface lost")
    assert state is RunState.FAILED
    assert not pipeline.session.run_active
    assert following.outcome is not RunOutcome.BUSY
