import pytest

from aichild.models import OutcomeKind, OutputKind, Prediction
from aichild.services.normalizer import classify, decode_output, extract_url

DENYLIST = ["nsfw", "placeholder"]


def succeeded(output=None, **kwargs) -> Prediction:
    return Prediction(id="p1", status="succeeded", output=output, **kwargs)


# ── decode_output ────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "raw, kind",
    [
        ("https://x/y.jpg", OutputKind.TEXT),
        (["https://x/a.jpg"], OutputKind.LIST),
        ({"url": "https://x/c.jpg"}, OutputKind.OBJECT),
        (None, OutputKind.MISSING),
        (42, OutputKind.UNRECOGNIZED),
    ],
)
def test_decode_output_tags_each_shape(raw, kind):
    assert decode_output(raw).kind == kind


# ── extract_url ──────────────────────────────────────────────────────

def test_string_output_is_used_directly():
    assert extract_url(succeeded("https://x/y.jpg")) == "https://x/y.jpg"


def test_list_output_uses_first_element():
    assert extract_url(succeeded(["https://x/a.jpg", "https://x/b.jpg"])) == "https://x/a.jpg"


def test_object_output_uses_url_field():
    assert extract_url(succeeded({"url": "https://x/c.jpg"})) == "https://x/c.jpg"


def test_object_output_falls_back_to_other_url_like_fields():
    assert extract_url(succeeded({"image": "https://x/d.png"})) == "https://x/d.png"


def test_top_level_urls_get_is_last_resort():
    prediction = succeeded(None, urls={"get": "https://api.test/predictions/p1"})
    assert extract_url(prediction) == "https://api.test/predictions/p1"


def test_output_wins_over_urls_get():
    prediction = succeeded(["https://x/a.jpg"], urls={"get": "https://api.test/predictions/p1"})
    assert extract_url(prediction) == "https://x/a.jpg"


@pytest.mark.parametrize("output", [None, [], [None], {"other": 1}, 3.5, ""])
def test_nothing_usable_returns_none(output):
    assert extract_url(succeeded(output)) is None


@pytest.mark.parametrize("output", [[None, "https://x/b.jpg"], [], {"other": 1}, "", 3.5])
def test_urls_get_not_used_when_output_is_present(output):
    prediction = succeeded(output, urls={"get": "https://api.test/predictions/p1"})
    assert extract_url(prediction) is None


def test_unusable_list_head_is_extraction_error_not_api_url():
    prediction = succeeded(
        [None, "https://x/b.jpg"], urls={"get": "https://api.replicate.com/v1/predictions/p1"}
    )

    outcome = classify(prediction, DENYLIST)

    assert outcome.kind == OutcomeKind.EXTRACTION_ERROR
    assert outcome.url is None


# ── classify ─────────────────────────────────────────────────────────

def test_succeeded_with_url_is_success():
    outcome = classify(succeeded(["https://x/a.jpg"]), DENYLIST)
    assert outcome.kind == OutcomeKind.SUCCESS
    assert outcome.url == "https://x/a.jpg"


def test_succeeded_without_url_is_extraction_error():
    outcome = classify(succeeded(None), DENYLIST)
    assert outcome.kind == OutcomeKind.EXTRACTION_ERROR
    assert outcome.url is None


def test_denylisted_url_is_extraction_error():
    outcome = classify(succeeded("https://cdn.test/nsfw/blocked.jpg"), DENYLIST)
    assert outcome.kind == OutcomeKind.EXTRACTION_ERROR
    assert "nsfw" in outcome.reason


def test_denylist_match_is_case_insensitive():
    outcome = classify(succeeded("https://cdn.test/PLACEHOLDER.png"), DENYLIST)
    assert outcome.kind == OutcomeKind.EXTRACTION_ERROR


def test_relative_url_is_extraction_error():
    outcome = classify(succeeded("/tmp/out.png"), DENYLIST)
    assert outcome.kind == OutcomeKind.EXTRACTION_ERROR


def test_failed_uses_service_error_text():
    outcome = classify(Prediction(id="p1", status="failed", error="CUDA out of memory"))
    assert outcome.kind == OutcomeKind.FAILED
    assert outcome.reason == "CUDA out of memory"


def test_failed_without_error_text_is_unknown():
    outcome = classify(Prediction(id="p1", status="failed"))
    assert outcome.kind == OutcomeKind.FAILED
    assert outcome.reason == "unknown"


def test_canceled_is_failed():
    outcome = classify(Prediction(id="p1", status="canceled"))
    assert outcome.kind == OutcomeKind.FAILED
    assert outcome.status == "canceled"


@pytest.mark.parametrize("status", ["starting", "processing"])
def test_still_pending_after_polling_is_timeout(status):
    outcome = classify(Prediction(id="p1", status=status))
    assert outcome.kind == OutcomeKind.TIMEOUT
    assert outcome.kind != OutcomeKind.FAILED


def test_unrecognized_status_is_never_success():
    outcome = classify(Prediction(id="p1", status="queued", output="https://x/y.jpg"))
    assert outcome.kind == OutcomeKind.UNKNOWN_STATUS
    assert outcome.status == "queued"
    assert outcome.url is None


def test_terminal_classifications_are_distinct():
    outcomes = [
        classify(succeeded("https://x/y.jpg")),
        classify(Prediction(id="p1", status="failed")),
        classify(Prediction(id="p1", status="processing")),
        classify(succeeded(None)),
    ]
    assert len({o.kind for o in outcomes}) == 4


def test_classify_is_idempotent():
    prediction = succeeded(["https://x/a.jpg", "https://x/b.jpg"])
    first = classify(prediction, DENYLIST)
    second = classify(prediction, DENYLIST)
    assert first == second
