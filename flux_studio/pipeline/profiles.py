"""
Processing Profiles

A profile maps one user intent (restyle, upscale, generate) to a remote model
and the shape of the payload that model expects. Knob targets name payload
fields, or "node_id.field" inside a workflow template's node inputs.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from flux_studio.core.exceptions import ValidationError


class KnobSpec(BaseModel):
    """A user-tunable value with its default, accepted range and payload targets."""
    kind: str = "float"  # int, float, str
    default: Any = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    scale: float = 1.0  # applied after clamping, e.g. denoise percent -> fraction
    choices: Optional[List[str]] = None
    required: bool = False
    targets: List[str] = Field(default_factory=list)


class ProcessingProfile(BaseModel):
    """Configuration mapping user intent to a remote model."""
    model_config = ConfigDict(protected_namespaces=())

    name: str
    tool: str  # provenance label recorded on gallery entries
    model_id: str
    requires_image: bool = False
    image_field: Optional[str] = None
    fixed_input: Dict[str, Any] = Field(default_factory=dict)
    knobs: Dict[str, KnobSpec] = Field(default_factory=dict)
    workflow_template: Optional[str] = None
    workflow_field: str = "workflow_json"

    @property
    def requires_prompt(self) -> bool:
        spec = self.knobs.get("prompt")
        return bool(spec and spec.required)


RESTYLE = ProcessingProfile(
    name="restyle",
    tool="Canny",
    model_id="black-forest-labs/flux-canny-dev:aeb2a8dbfe2580e25d41d8881cc1df1a0b1e52c87de99c1a65fc587ac3918179",
    requires_image=True,
    image_field="control_image",
    fixed_input={
        "output_format": "jpg",
        "num_outputs": 1,
        "megapixels": "1",
    },
    knobs={
        "prompt": KnobSpec(kind="str", required=True, targets=["prompt"]),
        "guidance": KnobSpec(kind="float", default=30, minimum=1, maximum=100, targets=["guidance"]),
        "steps": KnobSpec(kind="int", default=28, minimum=1, maximum=50, targets=["num_inference_steps"]),
    },
)

UPSCALE = ProcessingProfile(
    name="upscale",
    tool="FluxUpscale",
    model_id="fofr/any-comfyui-workflow:f552cf6bb263b2c7c547c3c7fb158aa4309794934bedc16c9aa395bee407744d",
    requires_image=True,
    image_field="40.image",
    workflow_template="upscale",
    knobs={
        "tile_size": KnobSpec(
            kind="int", default=1024, minimum=512, maximum=2048,
            targets=["38.tile_width", "38.tile_height"],
        ),
        "steps": KnobSpec(kind="int", default=20, minimum=1, maximum=50, targets=["38.steps"]),
        "denoise": KnobSpec(
            kind="int", default=30, minimum=0, maximum=100, scale=0.01,
            targets=["38.denoise"],
        ),
        "iphone_lora": KnobSpec(kind="float", default=0.4, minimum=0, maximum=1, targets=["41.strength_model"]),
        "imperfect_skin_lora": KnobSpec(
            kind="float", default=1.0, minimum=0, maximum=1,
            targets=["42.strength_model"],
        ),
    },
)

GENERATE = ProcessingProfile(
    name="generate",
    tool="FluxGenerate",
    model_id="black-forest-labs/flux-dev:6e4a938f85952bdabcc15aa329178c4d681c52bf25a0342403287dc26944661d",
    fixed_input={
        "num_outputs": 1,
        "megapixels": "1",
        "output_format": "jpg",
        "output_quality": 100,
    },
    knobs={
        "prompt": KnobSpec(kind="str", required=True, targets=["prompt"]),
        "steps": KnobSpec(kind="int", default=30, minimum=1, maximum=50, targets=["num_inference_steps"]),
        "guidance": KnobSpec(kind="float", default=3, minimum=0, maximum=10, targets=["guidance"]),
        "aspect_ratio": KnobSpec(
            kind="str", default="1:1",
            choices=["1:1", "16:9", "21:9", "3:2", "2:3", "4:5", "5:4", "3:4", "4:3", "9:16", "9:21"],
            targets=["aspect_ratio"],
        ),
    },
)

GENERATE_PRO = ProcessingProfile(
    name="generate-pro",
    tool="FluxGenerate",
    model_id="black-forest-labs/flux-1.1-pro:80a09d66baa990429c2f5ae8a4306bf778a1b3775afd01cc2cc8bdbe9033769c",
    fixed_input={
        "output_format": "jpg",
        "output_quality": 100,
        "prompt_upsampling": False,
    },
    knobs={
        "prompt": KnobSpec(kind="str", required=True, targets=["prompt"]),
        "aspect_ratio": KnobSpec(
            kind="str", default="1:1",
            choices=["1:1", "16:9", "3:2", "2:3", "4:5", "5:4", "9:16", "3:4", "4:3"],
            targets=["aspect_ratio"],
        ),
        "safety_tolerance": KnobSpec(kind="int", default=2, minimum=1, maximum=6, targets=["safety_tolerance"]),
    },
)

PROFILES: Dict[str, ProcessingProfile] = {
    profile.name: profile for profile in (RESTYLE, UPSCALE, GENERATE, GENERATE_PRO)
}


def get_profile(name: str) -> ProcessingProfile:
    """Look up a profile by name."""
    try:
        return PROFILES[name]
    except KeyError:
        raise ValidationError(
            f"Unknown profile '{name}'",
            details={"available": sorted(PROFILES)}
        )
