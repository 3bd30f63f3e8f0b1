import asyncio
import json

import httpx
import pytest

from aichild.models import PollPolicy, Prediction
from aichild.services.replicate import (
    PollCancelled,
    ReplicateHTTPError,
    ReplicateServiceError,
    ReplicateTransportError,
)


# ── submit ───────────────────────────────────────────────────────────

async def test_submit_sends_version_input_and_bearer_token(fake_replicate, make_prediction):
    api = fake_replicate(create=make_prediction("starting"))
    client = api.client()

    prediction = await client.submit({"prompt": "a toddler"})

    assert prediction.id == "pred-1"
    assert prediction.status == "starting"
    request = api.submit_requests[0]
    assert request.url.path == "/v1/predictions"
    assert request.headers["Authorization"] == "Bearer test-token"
    body = json.loads(request.content)
    assert body == {"version": "smoosh-sh/baby-mystic:test", "input": {"prompt": "a toddler"}}


async def test_submit_applies_timeout(fake_replicate, make_prediction):
    api = fake_replicate(create=make_prediction("starting"))
    client = api.client()
    client.submit_timeout = 7.0

    await client.submit({})

    timeouts = api.submit_requests[0].extensions["timeout"]
    assert timeouts["read"] == 7.0
    assert timeouts["connect"] == 7.0


async def test_submit_network_failure_is_transport_error(fake_replicate):
    client = fake_replicate(create="connect_error").client()
    with pytest.raises(ReplicateTransportError):
        await client.submit({})


async def test_submit_timeout_is_transport_error(fake_replicate):
    client = fake_replicate(create="timeout").client()
    with pytest.raises(ReplicateTransportError, match="timed out"):
        await client.submit({})


async def test_submit_non_success_status_is_http_error(fake_replicate):
    client = fake_replicate(create=httpx.Response(422, text="invalid version")).client()
    with pytest.raises(ReplicateHTTPError) as exc_info:
        await client.submit({})
    assert exc_info.value.status_code == 422
    assert "invalid version" in exc_info.value.body


async def test_submit_error_field_in_200_is_service_error(fake_replicate):
    client = fake_replicate(create={"error": "model is disabled"}).client()
    with pytest.raises(ReplicateServiceError, match="model is disabled"):
        await client.submit({})


async def test_submit_pending_without_id_is_service_error(fake_replicate):
    client = fake_replicate(create={"status": "starting"}).client()
    with pytest.raises(ReplicateServiceError):
        await client.submit({})


async def test_submit_is_not_retried(fake_replicate):
    api = fake_replicate(create=httpx.Response(503, text="busy"))
    with pytest.raises(ReplicateHTTPError):
        await api.client().submit({})
    assert len(api.submit_requests) == 1


# ── poll ─────────────────────────────────────────────────────────────

async def test_poll_until_succeeded(fake_replicate, make_prediction, fake_sleep):
    api = fake_replicate(
        create=make_prediction("processing"),
        polls=[
            make_prediction("processing"),
            make_prediction("succeeded", output=["https://x/a.jpg"]),
        ],
    )
    client = api.client(sleep=fake_sleep)

    submitted = await client.submit({})
    result = await client.poll(submitted, PollPolicy(max_attempts=5, interval=2.0))

    assert result.status == "succeeded"
    assert len(api.poll_requests) == 2
    assert fake_sleep.calls == [2.0, 2.0]
    assert fake_sleep.total >= 4.0
    assert api.poll_requests[0].url.path == "/v1/predictions/pred-1"


async def test_poll_exhausts_attempts_while_processing(fake_replicate, make_prediction, fake_sleep):
    api = fake_replicate(create=None, polls=[make_prediction("processing")])
    client = api.client(sleep=fake_sleep)

    result = await client.poll(
        Prediction(id="pred-1", status="starting"), PollPolicy(max_attempts=4, interval=2.0)
    )

    assert result.status == "processing"
    assert result.is_pending
    assert len(api.poll_requests) == 4
    assert len(fake_sleep.calls) == 4


async def test_poll_tolerates_transient_failures(fake_replicate, make_prediction, fake_sleep):
    api = fake_replicate(
        create=None,
        polls=[
            "connect_error",
            httpx.Response(500, text="oops"),
            make_prediction("succeeded", output="https://x/y.jpg"),
        ],
    )
    client = api.client(sleep=fake_sleep)

    result = await client.poll(
        Prediction(id="pred-1", status="starting"), PollPolicy(max_attempts=3, interval=0)
    )

    assert result.status == "succeeded"
    assert len(api.poll_requests) == 3


async def test_poll_failures_still_use_up_attempts(fake_replicate, fake_sleep):
    api = fake_replicate(create=None, polls=["timeout"])
    client = api.client(sleep=fake_sleep)
    start = Prediction(id="pred-1", status="starting")

    result = await client.poll(start, PollPolicy(max_attempts=3, interval=1.0))

    assert result == start
    assert len(api.poll_requests) == 3


async def test_poll_stops_on_failed(fake_replicate, make_prediction):
    api = fake_replicate(create=None, polls=[make_prediction("failed", error="NSFW content detected")])

    result = await api.client().poll(
        Prediction(id="pred-1", status="starting"), PollPolicy(max_attempts=10, interval=0)
    )

    assert result.status == "failed"
    assert result.error == "NSFW content detected"
    assert len(api.poll_requests) == 1


async def test_poll_stops_on_unrecognized_status(fake_replicate, make_prediction):
    api = fake_replicate(create=None, polls=[make_prediction("queued")])

    result = await api.client().poll(
        Prediction(id="pred-1", status="starting"), PollPolicy(max_attempts=10, interval=0)
    )

    assert result.status == "queued"
    assert len(api.poll_requests) == 1


async def test_poll_cancelled_before_next_query(fake_replicate, make_prediction):
    cancel = asyncio.Event()

    async def sleep_then_cancel(seconds):
        cancel.set()

    api = fake_replicate(create=None, polls=[make_prediction("processing")])
    client = api.client(sleep=sleep_then_cancel)

    with pytest.raises(PollCancelled):
        await client.poll(
            Prediction(id="pred-1", status="starting"),
            PollPolicy(max_attempts=5, interval=1.0),
            cancel=cancel,
        )
    assert api.poll_requests == []


def test_poll_policy_rejects_negative_values():
    with pytest.raises(ValueError):
        PollPolicy(max_attempts=-1, interval=1.0)
    with pytest.raises(ValueError):
        PollPolicy(max_attempts=1, interval=-0.5)


async def test_submit_failed_prediction_is_returned_not_raised(fake_replicate, make_prediction):
    client = fake_replicate(create=make_prediction("failed", error="NSFW content detected")).client()

    prediction = await client.submit({})

    assert prediction.status == "failed"
    assert prediction.error == "NSFW content detected"
