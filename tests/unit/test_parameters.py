import json

import pytest

from flux_studio.core.exceptions import TemplateError, ValidationError
from flux_studio.pipeline.parameters import ParameterBuilder, WorkflowTemplateLoader
from flux_studio.pipeline.profiles import ProcessingProfile, KnobSpec, get_profile

ASSET = "https://res.cloudinary.com/demo/image/upload/portrait.png"


@pytest.fixture
def builder():
    return ParameterBuilder()


def test_restyle_payload(builder):
    payload = builder.build(get_profile("restyle"), {"prompt": "  ink drawing  "}, ASSET)

    assert payload.model_id.startswith("black-forest-labs/flux-canny-dev")
    assert payload.input["control_image"] == ASSET
    assert payload.input["prompt"] == "ink drawing"
    assert payload.input["guidance"] == 30
    assert payload.input["num_inference_steps"] == 28
    assert payload.input["output_format"] == "jpg"
    assert payload.input["megapixels"] == "1"


def test_numeric_knobs_are_clamped_and_defaulted(builder):
    payload = builder.build(
        get_profile("restyle"),
        {"prompt": "p", "guidance": 250, "steps": "not a number"},
        ASSET
    )

    assert payload.input["guidance"] == 100
    assert payload.input["num_inference_steps"] == 28


def test_image_profile_without_asset_url_is_rejected(builder):
    with pytest.raises(ValidationError):
        builder.build(get_profile("restyle"), {"prompt": "p"}, None)


def test_required_prompt(builder):
    with pytest.raises(ValidationError):
        builder.build(get_profile("generate"), {"prompt": "   "})


def test_choice_knob_rejects_unknown_value(builder):
    with pytest.raises(ValidationError):
        builder.build(get_profile("generate"), {"prompt": "p", "aspect_ratio": "7:3"})


def test_unknown_profile():
    with pytest.raises(ValidationError):
        get_profile("sharpen")


def test_upscale_patches_workflow_nodes(builder):
    payload = builder.build(
        get_profile("upscale"),
        {"tile_size": 4096, "steps": 25, "denoise": 45, "iphone_lora": 0.6},
        ASSET
    )

    workflow = json.loads(payload.input["workflow_json"])
    assert workflow["40"]["inputs"]["image"] == ASSET
    assert workflow["38"]["inputs"]["tile_width"] == 2048
    assert workflow["38"]["inputs"]["tile_height"] == 2048
    assert workflow["38"]["inputs"]["steps"] == 25
    assert workflow["38"]["inputs"]["denoise"] == pytest.approx(0.45)
    assert workflow["41"]["inputs"]["strength_model"] == pytest.approx(0.6)
    assert workflow["42"]["inputs"]["strength_model"] == pytest.approx(1.0)


def test_build_is_pure_and_template_isolated(builder):
    profile = get_profile("upscale")
    knobs = {"denoise": 30}

    first = builder.build(profile, knobs, ASSET)
    builder.build(profile, {"denoise": 90}, "https://other/asset.png")
    again = builder.build(profile, knobs, ASSET)

    assert first.canonical_json() == again.canonical_json()
    assert knobs == {"denoise": 30}
    cached = builder.templates.load("upscale")
    assert cached["40"]["inputs"]["image"] == ""


def test_fixed_input_is_not_shared_between_payloads(builder):
    profile = get_profile("generate")
    first = builder.build(profile, {"prompt": "a"})
    first.input["num_outputs"] = 99

    second = builder.build(profile, {"prompt": "b"})

    assert second.input["num_outputs"] == 1
    assert profile.fixed_input["num_outputs"] == 1


def test_missing_template_raises(tmp_path):
    builder = ParameterBuilder(WorkflowTemplateLoader(str(tmp_path)))

    with pytest.raises(TemplateError):
        builder.build(get_profile("upscale"), {}, ASSET)


def test_malformed_template_raises(tmp_path):
    (tmp_path / "upscale.json").write_text("{ not json")
    builder = ParameterBuilder(WorkflowTemplateLoader(str(tmp_path)))

    with pytest.raises(TemplateError):
        builder.build(get_profile("upscale"), {}, ASSET)


def test_missing_patch_target_raises(tmp_path):
    (tmp_path / "mini.json").write_text(json.dumps({"40": {"inputs": {"image": ""}}}))
    profile = ProcessingProfile(
        name="mini",
        tool="Test",
        model_id="owner/model:abc",
        requires_image=True,
        image_field="40.image",
        workflow_template="mini",
        knobs={"steps": KnobSpec(kind="int", default=20, targets=["38.steps"])},
    )
    builder = ParameterBuilder(WorkflowTemplateLoader(str(tmp_path)))

    with pytest.raises(TemplateError):
        builder.build(profile, {}, ASSET)
