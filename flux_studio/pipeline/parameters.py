"""
Parameter Builder

Turns (profile, user knobs, resolved asset URL) into the exact request payload
a remote model expects. Building is pure: no I/O beyond the first load of a
workflow template, and the cached template is never handed out or mutated.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional

from flux_studio.core.config import settings
from flux_studio.core.exceptions import TemplateError, ValidationError
from flux_studio.core.logging import get_logger
from flux_studio.pipeline.profiles import KnobSpec, ProcessingProfile
from flux_studio.pipeline.schemas import RequestPayload

logger = get_logger(__name__)

BUNDLED_WORKFLOW_DIR = Path(__file__).resolve().parent.parent / "workflows"


class WorkflowTemplateLoader:
    """Loads node-graph workflow templates once and hands out independent copies."""

    def __init__(self, template_dir: Optional[str] = None):
        self.template_dir = Path(template_dir or settings.WORKFLOW_TEMPLATE_DIR or BUNDLED_WORKFLOW_DIR)
        self._cache: Dict[str, Dict[str, Any]] = {}

    def _read(self, name: str) -> Dict[str, Any]:
        path = self.template_dir / f"{name}.json"
        if not path.exists():
            raise TemplateError(f"Workflow template not found: {path}", template=name)
        try:
            with open(path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise TemplateError(f"Workflow template is not valid JSON: {e}", template=name)
        if not isinstance(document, dict):
            raise TemplateError("Workflow template must be a JSON object of nodes", template=name)
        logger.info("workflow_template_loaded", template=name, nodes=len(document))
        return document

    def load(self, name: str) -> Dict[str, Any]:
        """Return a deep copy of the named template."""
        if name not in self._cache:
            self._cache[name] = self._read(name)
        return copy.deepcopy(self._cache[name])


def _coerce(name: str, spec: KnobSpec, value: Any) -> Any:
    """Default, convert and clamp one knob value."""
    if value is None or (isinstance(value, str) and not value.strip()):
        value = spec.default

    if spec.kind == "str":
        text = "" if value is None else str(value).strip()
        if spec.required and not text:
            raise ValidationError(f"'{name}' is required")
        if spec.choices and text not in spec.choices:
            raise ValidationError(
                f"'{name}' must be one of {', '.join(spec.choices)}",
                details={"value": text}
            )
        return text

    try:
        number = float(value)
    except (TypeError, ValueError):
        # Unparseable numbers fall back to the default, like an empty form field
        number = float(spec.default)

    if spec.minimum is not None:
        number = max(number, spec.minimum)
    if spec.maximum is not None:
        number = min(number, spec.maximum)

    if spec.kind == "int":
        number = int(round(number))

    if spec.scale != 1.0:
        return round(number * spec.scale, 6)
    return number


def resolve_knobs(profile: ProcessingProfile, knobs: Dict[str, Any]) -> Dict[str, Any]:
    """Resolve every knob the profile declares; unknown keys are ignored."""
    return {
        name: _coerce(name, spec, knobs.get(name))
        for name, spec in profile.knobs.items()
    }


def _patch_node(workflow: Dict[str, Any], target: str, value: Any, template: str):
    node_id, _, field = target.partition(".")
    node = workflow.get(node_id)
    if not isinstance(node, dict) or not isinstance(node.get("inputs"), dict):
        raise TemplateError(
            f"Workflow node '{node_id}' has no inputs to patch",
            template=template,
            details={"target": target}
        )
    if field not in node["inputs"]:
        raise TemplateError(
            f"Workflow node '{node_id}' has no input '{field}'",
            template=template,
            details={"target": target}
        )
    node["inputs"][field] = value


class ParameterBuilder:
    """Maps a profile plus user knobs to a model-specific RequestPayload."""

    def __init__(self, template_loader: Optional[WorkflowTemplateLoader] = None):
        self.templates = template_loader or WorkflowTemplateLoader()

    def build(
        self,
        profile: ProcessingProfile,
        knobs: Dict[str, Any],
        asset_url: Optional[str] = None
    ) -> RequestPayload:
        if profile.requires_image and not asset_url:
            raise ValidationError(f"Profile '{profile.name}' needs an input image")

        resolved = resolve_knobs(profile, knobs)
        input_payload = copy.deepcopy(profile.fixed_input)

        if profile.workflow_template:
            workflow = self.templates.load(profile.workflow_template)
            for name, spec in profile.knobs.items():
                for target in spec.targets:
                    _patch_node(workflow, target, resolved[name], profile.workflow_template)
            if profile.image_field and asset_url:
                _patch_node(workflow, profile.image_field, asset_url, profile.workflow_template)
            input_payload[profile.workflow_field] = json.dumps(workflow)
        else:
            for name, spec in profile.knobs.items():
                for target in spec.targets:
                    input_payload[target] = resolved[name]
            if profile.image_field and asset_url:
                input_payload[profile.image_field] = asset_url

        return RequestPayload(model_id=profile.model_id, input=input_payload)
