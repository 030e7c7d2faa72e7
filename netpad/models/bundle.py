"""Bundle data models.

A bundle packages a project's forms and workflows together with a manifest
so it can be embedded into the standalone app template before deploying.
"""

from typing import Any

from pydantic import ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from netpad.models.base import CamelModel, _to_camel


class _BundlePart(CamelModel):
    # Bundle parts carry many optional builder fields we pass through untouched.
    model_config = ConfigDict(
        alias_generator=_to_camel, populate_by_name=True, extra="allow"
    )


class BundleAssets(_BundlePart):
    forms: list[str] = Field(default_factory=list)
    workflows: list[str] = Field(default_factory=list)
    theme: str | None = None

    @field_validator("forms", "workflows", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class BundleManifest(_BundlePart):
    """Identity and contents of a bundle."""

    name: str
    version: str
    description: str | None = None
    author: str | None = None
    netpad_version: str | None = None
    assets: BundleAssets = Field(default_factory=BundleAssets)
    tags: list[str] = Field(default_factory=list)
    category: str | None = None

    @field_validator("assets", mode="before")
    @classmethod
    def _null_assets(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("tags", mode="before")
    @classmethod
    def _null_tags(cls, value: Any) -> Any:
        return [] if value is None else value


class FormDefinition(_BundlePart):
    name: str
    description: str | None = None
    slug: str | None = None
    field_configs: list[Any]


class WorkflowDefinition(_BundlePart):
    name: str
    description: str | None = None
    canvas: Any


class BundleValidationResult(CamelModel):
    """Outcome of structural bundle checks."""

    valid: bool
    errors: list[str] = Field(default_factory=list)


class Bundle(_BundlePart):
    """A validated bundle export."""

    manifest: BundleManifest
    forms: list[FormDefinition] = Field(default_factory=list)
    workflows: list[WorkflowDefinition] = Field(default_factory=list)
    theme: Any = None

    @classmethod
    def from_raw(cls, raw: Any) -> "Bundle":
        """Validate a loosely-typed bundle payload and build the typed model.

        Raises:
            ValidationError: If the payload fails structural checks.
        """
        from netpad.core.bundle_validator import validate_bundle
        from netpad.core.exceptions import ValidationError

        if isinstance(raw, cls):
            return raw

        result = validate_bundle(raw)
        if not result.valid:
            raise ValidationError("Bundle validation failed", result.errors)
        payload = {
            key: value
            for key, value in raw.items()
            if not (key in ("forms", "workflows") and value is None)
        }
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(
                "Bundle validation failed",
                [
                    f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                    for error in e.errors()
                ],
            ) from e
