"""Unit tests for bundle validation."""

import copy

import pytest

from netpad.core.bundle_validator import validate_bundle
from netpad.core.exceptions import ValidationError
from netpad.models.bundle import Bundle


class TestValidateBundle:
    """Tests for validate_bundle."""

    def test_valid_bundle(self, valid_bundle):
        result = validate_bundle(valid_bundle)

        assert result.valid is True
        assert result.errors == []

    def test_manifest_only_bundle_is_valid(self):
        result = validate_bundle({"manifest": {"name": "Empty", "version": "0.1.0"}})

        assert result.valid is True

    def test_null_forms_and_workflows_are_skipped(self):
        result = validate_bundle(
            {"manifest": {"name": "App", "version": "1"}, "forms": None, "workflows": None}
        )

        assert result.valid is True

    def test_missing_manifest_reports_single_error(self):
        """Other problems are not reported when the manifest is missing."""
        result = validate_bundle(
            {
                "forms": [{"fieldConfigs": "nope"}],
                "workflows": [{"name": "No canvas"}],
            }
        )

        assert result.valid is False
        assert result.errors == ["Bundle must include a manifest"]

    def test_manifest_missing_name_and_version(self):
        result = validate_bundle({"manifest": {"description": "x"}})

        assert result.errors == [
            "Manifest must include a name",
            "Manifest must include a version",
        ]

    def test_empty_manifest_checked_with_the_rest(self):
        result = validate_bundle({"manifest": {}, "forms": [{"name": "Intake"}]})

        assert result.errors == [
            "Manifest must include a name",
            "Manifest must include a version",
            'Form "Intake" must have fieldConfigs array',
        ]

    def test_errors_accumulate(self, valid_bundle):
        bundle = copy.deepcopy(valid_bundle)
        del bundle["manifest"]["version"]
        bundle["forms"].append({"name": "Feedback"})
        bundle["workflows"].append({"canvas": {}})

        result = validate_bundle(bundle)

        assert result.valid is False
        assert result.errors == [
            "Manifest must include a version",
            'Form "Feedback" must have fieldConfigs array',
            "Workflow at index 1 must have a name",
        ]

    def test_form_without_name_uses_index(self, valid_bundle):
        bundle = copy.deepcopy(valid_bundle)
        bundle["forms"] = [{"fieldConfigs": []}, {"name": "  "}]

        result = validate_bundle(bundle)

        assert result.errors == [
            "Form at index 0 must have a name",
            "Form at index 1 must have a name",
            "Form at index 1 must have fieldConfigs array",
        ]

    def test_workflow_missing_canvas(self, valid_bundle):
        bundle = copy.deepcopy(valid_bundle)
        bundle["workflows"] = [{"name": "Escalation"}]

        result = validate_bundle(bundle)

        assert result.errors == ['Workflow "Escalation" must have a canvas']

    @pytest.mark.parametrize("raw", [None, [], "bundle", 42])
    def test_non_object_bundle(self, raw):
        result = validate_bundle(raw)

        assert result.valid is False
        assert result.errors == ["Bundle must be an object"]

    def test_forms_must_be_a_list(self):
        result = validate_bundle(
            {"manifest": {"name": "App", "version": "1"}, "forms": {"name": "x"}}
        )

        assert result.errors == ["Bundle forms must be a list"]


class TestBundleFromRaw:
    """Tests for building the typed bundle at the boundary."""

    def test_builds_typed_bundle(self, valid_bundle):
        bundle = Bundle.from_raw(valid_bundle)

        assert bundle.manifest.name == "IT Helpdesk"
        assert bundle.forms[0].field_configs[0]["path"] == "title"
        assert bundle.workflows[0].canvas["nodes"][0]["id"] == "start"

    def test_keeps_unknown_fields_on_the_wire(self, valid_bundle):
        bundle = Bundle.from_raw(valid_bundle)
        wire = bundle.to_wire()

        assert wire["forms"][0]["slug"] == "submit-ticket"
        assert wire["forms"][0]["fieldConfigs"][1]["type"] == "dropdown"
        assert wire["theme"] == {"primaryColor": "#00ED64"}

    def test_invalid_bundle_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            Bundle.from_raw({"manifest": {"name": "App"}})

        assert exc_info.value.message == "Bundle validation failed"
        assert exc_info.value.errors == ["Manifest must include a version"]

    def test_typed_bundle_passes_through(self, valid_bundle):
        bundle = Bundle.from_raw(valid_bundle)

        assert Bundle.from_raw(bundle) is bundle

    def test_null_tags_become_empty(self, valid_bundle):
        raw = copy.deepcopy(valid_bundle)
        raw["manifest"]["tags"] = None

        assert Bundle.from_raw(raw).manifest.tags == []

    def test_null_assets_become_empty(self, valid_bundle):
        raw = copy.deepcopy(valid_bundle)
        raw["manifest"]["assets"] = None

        assets = Bundle.from_raw(raw).manifest.assets

        assert assets.forms == []
        assert assets.workflows == []

    def test_model_errors_raise_validation_error(self, valid_bundle):
        raw = copy.deepcopy(valid_bundle)
        raw["manifest"]["tags"] = "support"

        with pytest.raises(ValidationError) as exc_info:
            Bundle.from_raw(raw)

        assert exc_info.value.message == "Bundle validation failed"
        assert len(exc_info.value.errors) == 1
        assert exc_info.value.errors[0].startswith("manifest.tags:")
