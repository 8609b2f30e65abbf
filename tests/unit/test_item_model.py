import pytest

from flux_studio.core.exceptions import InvalidTransitionError
from flux_studio.modules.batch.models import ItemStatus, SourceAsset, WorkItem


def image_item() -> WorkItem:
    return WorkItem(source_asset=SourceAsset(path="/tmp/a.png", filename="a.png"))


def test_image_item_full_lifecycle():
    item = image_item()

    item.mark_uploading()
    item.mark_uploaded("https://cdn/a.png")
    item.mark_submitting({"prompt": "p"})
    item.mark_polling()
    item.add_variant_outputs(["https://out/a.jpg"])
    item.mark_succeeded()

    assert item.status == ItemStatus.SUCCEEDED
    assert item.remote_asset_url == "https://cdn/a.png"
    assert item.variants_completed == 1
    assert item.remaining_variants == 0


def test_image_item_cannot_skip_upload():
    item = image_item()

    with pytest.raises(InvalidTransitionError):
        item.mark_submitting({})


def test_generation_item_submits_directly():
    item = WorkItem(knobs={"prompt": "p"}, variants_requested=2)

    item.mark_submitting({"prompt": "p"})
    item.mark_polling()
    item.add_variant_outputs(["https://out/1.jpg"])
    item.mark_submitting({"prompt": "p"})

    assert item.status == ItemStatus.SUBMITTING
    assert item.remaining_variants == 1


def test_generation_item_cannot_upload():
    with pytest.raises(InvalidTransitionError):
        WorkItem().mark_uploading()


def test_never_succeeds_without_output():
    item = WorkItem()
    item.mark_submitting({})
    item.mark_polling()

    with pytest.raises(InvalidTransitionError):
        item.mark_succeeded()


def test_outputs_only_recorded_while_polling():
    item = WorkItem()

    with pytest.raises(InvalidTransitionError):
        item.add_variant_outputs(["https://out/1.jpg"])


@pytest.mark.parametrize("advance", [
    lambda item: item.mark_uploading(),
    lambda item: (item.mark_uploading(), item.mark_uploaded("u")),
    lambda item: (item.mark_uploading(), item.mark_uploaded("u"), item.mark_submitting({})),
    lambda item: (item.mark_uploading(), item.mark_uploaded("u"), item.mark_submitting({}), item.mark_polling()),
])
def test_cancellation_resets_in_flight_items(advance):
    item = image_item()
    advance(item)

    item.reset_to_pending()

    assert item.status == ItemStatus.PENDING


def test_succeeded_is_terminal():
    item = WorkItem()
    item.mark_submitting({})
    item.mark_polling()
    item.add_variant_outputs(["https://out/1.jpg"])
    item.mark_succeeded()

    with pytest.raises(InvalidTransitionError):
        item.reset_to_pending()
    with pytest.raises(InvalidTransitionError):
        item.mark_failed("late error")


def test_retry_clears_error():
    item = WorkItem()
    item.mark_failed("Prediction failed: boom", "poll_remote_failure")

    item.retry()

    assert item.status == ItemStatus.PENDING
    assert item.error is None
    assert item.error_kind is None


def test_pending_cannot_be_retried():
    with pytest.raises(InvalidTransitionError):
        WorkItem().retry()


def test_response_dict_exposes_error_only_when_failed():
    item = image_item()
    assert item.to_response_dict()["error"] is None
    assert item.to_response_dict()["filename"] == "a.png"

    item.mark_failed("Upload failed", "upload")
    body = item.to_response_dict()

    assert body["status"] == "failed"
    assert body["error"] == {"message": "Upload failed", "kind": "upload"}


def test_label_for_generation_items():
    item = WorkItem(id="0123456789abcdef")
    assert item.label == "generation_01234567"
