import asyncio
import base64
from io import BytesIO

from PIL import Image

from backend.job_runner import JobRunner
from backend.model import ErrorEvent, MockupSpec, ProcessingEvent, QueuedEvent, SucceededEvent
from conftest import FIXED_DAY, ReplicateStub, build_client, build_http


def run_job(stub, spec, title="Sunset", collection="Summer"):
    events = []

    async def scenario():
        async with build_http(stub) as http:
            runner = JobRunner(build_client(http), http, poll_interval=0, today=lambda: FIXED_DAY)
            return await runner.run(spec, title, collection, events.append)

    return asyncio.run(scenario()), events


def test_successful_job_emits_queued_progress_succeeded():
    stub = ReplicateStub(steps=1)
    spec = MockupSpec(type="Framed  Wall Art", prompt="A framed print of {artwork_subject}", size=(40, 30))

    result, events = run_job(stub, spec)

    assert [type(e) for e in events] == [QueuedEvent, ProcessingEvent, ProcessingEvent, SucceededEvent]
    assert events[0].id == "p1"
    assert [e.provider_status for e in events[1:3]] == ["processing", "succeeded"]
    assert events[1].logs == "step 1"
    assert events[2].metrics == {"predict_time": 1.5}
    assert all(e.type == "Framed  Wall Art" for e in events)

    assert result.filename == "AG_Summer_Sunset_2024-05-17_MOCKUP_Framed_Wall_Art.png"
    assert events[-1].filename == result.filename
    assert events[-1].preview.startswith("data:image/png;base64,")
    assert base64.b64decode(events[-1].preview.split(",", 1)[1]) == result.data

    with Image.open(BytesIO(result.data)) as img:
        assert img.format == "PNG"
        assert img.size == (40, 30)

    assert stub.predictions["p1"]["prompt"] == "A framed print of Sunset"


def test_failed_prediction_emits_single_error():
    stub = ReplicateStub()
    spec = MockupSpec(type="Mug", prompt="FAIL mug with {artwork_subject}", size=(32, 32))

    result, events = run_job(stub, spec)

    assert result is None
    errors = [e for e in events if isinstance(e, ErrorEvent)]
    assert len(errors) == 1
    assert events[-1] is errors[0]
    assert "failed" in errors[0].error
    assert "NSFW content detected" in errors[0].error
    assert not any(isinstance(e, SucceededEvent) for e in events)


def test_canceled_prediction_is_an_error():
    spec = MockupSpec(type="Mug", prompt="CANCEL {artwork_subject}", size=(32, 32))

    result, events = run_job(ReplicateStub(), spec)

    assert result is None
    assert isinstance(events[-1], ErrorEvent)
    assert "canceled" in events[-1].error


def test_rejected_create_emits_only_the_error():
    spec = MockupSpec(type="Mug", prompt="REJECT {artwork_subject}", size=(32, 32))

    result, events = run_job(ReplicateStub(), spec)

    assert result is None
    assert len(events) == 1
    assert isinstance(events[0], ErrorEvent)
    assert "422" in events[0].error


def test_missing_output_is_an_error():
    spec = MockupSpec(type="Tote Bag", prompt="NOOUT {artwork_subject}", size=(32, 32))

    result, events = run_job(ReplicateStub(), spec)

    assert result is None
    assert events[-1].error == "No output from Replicate for Tote Bag"


def test_unreachable_output_is_an_error():
    spec = MockupSpec(type="Poster", prompt="BROKEN {artwork_subject}", size=(32, 32))

    result, events = run_job(ReplicateStub(), spec)

    assert result is None
    assert events[-1].error.startswith("Image fetch failed: 404")


def test_undecodable_output_is_an_error():
    stub = ReplicateStub(image=b"<html>not an image</html>")
    spec = MockupSpec(type="Poster", prompt="{artwork_subject}", size=(32, 32))

    result, events = run_job(stub, spec)

    assert result is None
    assert isinstance(events[-1], ErrorEvent)
    assert "Could not normalize image to 32x32" in events[-1].error


def test_title_with_path_separator_stays_one_filename():
    spec = MockupSpec(type="Mug", prompt="{artwork_subject}", size=(32, 32))

    result, _ = run_job(ReplicateStub(), spec, title="Night/Day", collection="..\\x")

    assert "/" not in result.filename
    assert "\\" not in result.filename
    assert result.filename == "AG_..-x_Night-Day_2024-05-17_MOCKUP_Mug.png"
