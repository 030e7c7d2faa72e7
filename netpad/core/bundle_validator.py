"""Structural validation of bundle payloads before injection."""

from typing import Any

from netpad.models.bundle import BundleValidationResult


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _item_label(kind: str, item: Any, index: int) -> str:
    name = item.get("name") if isinstance(item, dict) else None
    if _has_text(name):
        return f'{kind} "{name}"'
    return f"{kind} at index {index}"


def _validate_forms(forms: Any) -> list[str]:
    if not isinstance(forms, list):
        return ["Bundle forms must be a list"]

    errors = []
    for index, form in enumerate(forms):
        if not isinstance(form, dict):
            errors.append(f"Form at index {index} must be an object")
            continue
        if not _has_text(form.get("name")):
            errors.append(f"Form at index {index} must have a name")
        if not isinstance(form.get("fieldConfigs", form.get("field_configs")), list):
            errors.append(f"{_item_label('Form', form, index)} must have fieldConfigs array")
    return errors


def _validate_workflows(workflows: Any) -> list[str]:
    if not isinstance(workflows, list):
        return ["Bundle workflows must be a list"]

    errors = []
    for index, workflow in enumerate(workflows):
        if not isinstance(workflow, dict):
            errors.append(f"Workflow at index {index} must be an object")
            continue
        if not _has_text(workflow.get("name")):
            errors.append(f"Workflow at index {index} must have a name")
        if workflow.get("canvas") is None:
            errors.append(f"{_item_label('Workflow', workflow, index)} must have a canvas")
    return errors


def validate_bundle(bundle: Any) -> BundleValidationResult:
    """Check a raw bundle payload and collect every structural problem.

    The manifest, forms and workflows are checked independently and all
    errors are accumulated. A bundle with no manifest at all reports only
    that, since nothing else in it can be identified. An empty manifest is
    present and reports its missing name and version.

    Never raises; the caller decides how to react to an invalid result.
    """
    if not isinstance(bundle, dict):
        return BundleValidationResult(valid=False, errors=["Bundle must be an object"])

    manifest = bundle.get("manifest")
    if manifest is None:
        return BundleValidationResult(
            valid=False, errors=["Bundle must include a manifest"]
        )

    errors: list[str] = []
    if not isinstance(manifest, dict):
        errors.append("Manifest must be an object")
    else:
        if not _has_text(manifest.get("name")):
            errors.append("Manifest must include a name")
        if not _has_text(manifest.get("version")):
            errors.append("Manifest must include a version")

    if bundle.get("forms") is not None:
        errors.extend(_validate_forms(bundle["forms"]))

    if bundle.get("workflows") is not None:
        errors.extend(_validate_workflows(bundle["workflows"]))

    return BundleValidationResult(valid=not errors, errors=errors)
