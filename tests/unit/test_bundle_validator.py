"""Tests for offline bundle validation."""

import copy

import pytest

from cms.validation import BundleValidator, ValidationError, ValidationResult


@pytest.fixture
def validator():
    return BundleValidator()


@pytest.fixture
def bundle(manager):
    """A consistent exported bundle with one component, one type and one entry."""
    seo = manager.schema.create_component("seo", "SEO", "shared")
    manager.schema.add_field(seo.id, {"name": "metaTitle", "type": "text", "maxLength": 60})
    article = manager.schema.create_content_type("Article", "Article")
    manager.schema.add_field(
        article.id, {"name": "title", "type": "text", "required": True}
    )
    manager.schema.add_field(
        article.id, {"name": "seo", "type": "component", "componentId": seo.id}
    )
    manager.entries.create_entry(article.id, {"title": "Hello", "seo": {"metaTitle": "Hi"}})
    return manager.export_bundle().to_storage()


def error_types(result):
    return {error.type for error in result.errors}


class TestStructure:
    """Problems that stop validation early."""

    def test_not_a_mapping(self, validator):
        result = validator.validate(["components"])
        assert not result.is_valid
        assert error_types(result) == {"invalid_bundle"}

    def test_missing_version(self, validator, bundle):
        del bundle["version"]
        assert error_types(validator.validate(bundle)) == {"missing_version"}

    def test_unsupported_version(self, validator, bundle):
        bundle["version"] = "2.0.0"
        result = validator.validate(bundle)
        assert error_types(result) == {"unsupported_version"}
        assert result.errors[0].field == "version"

    def test_extra_supported_version(self, bundle):
        validator = BundleValidator(["2.0.0"])
        assert validator.supported_versions == {"1.0.0", "2.0.0"}
        bundle["version"] = "2.0.0"
        assert validator.validate(bundle).is_valid

    def test_collection_not_a_list(self, validator, bundle):
        bundle["entries"] = {"id": "x"}
        assert error_types(validator.validate(bundle)) == {"invalid_collection"}


class TestValidBundles:
    def test_exported_bundle_is_valid(self, validator, bundle):
        result = validator.validate(bundle)
        assert result.is_valid, str(result)
        assert result.warnings == []
        assert len(result.bundle.entries) == 1
        assert result.bundle.components[0].name == "seo"

    def test_model_input(self, validator, manager, bundle):
        result = validator.validate(manager.export_bundle())
        assert result.is_valid

    def test_empty_bundle(self, validator):
        result = validator.validate({"version": "1.0.0"})
        assert result.is_valid
        assert result.bundle.components == []


class TestSchemaProblems:
    """Problems are aggregated, not fail-fast."""

    def test_unknown_field_type(self, validator, bundle):
        bundle["components"][0]["fields"].append({"name": "pin", "type": "geo"})
        result = validator.validate(bundle)
        assert "unknown_field_type" in error_types(result)
        problem = next(e for e in result.errors if e.type == "unknown_field_type")
        assert problem.record == "component:seo"
        assert problem.field == "fields[1]"

    def test_dangling_component_reference(self, validator, bundle):
        bundle["contentTypes"][0]["fields"][1]["componentId"] = "missing"
        assert "component_not_found" in error_types(validator.validate(bundle))

    def test_cycle(self, validator, bundle):
        seo = bundle["components"][0]
        other = copy.deepcopy(seo)
        other.update(id="other-id", name="other", usageCount=1, usedIn=[seo["id"]])
        other["fields"] = [{"name": "back", "type": "component", "componentId": seo["id"]}]
        seo["fields"].append({"name": "next", "type": "component", "componentId": "other-id"})
        bundle["components"].append(other)

        result = validator.validate(bundle)
        assert "circular_dependency" in error_types(result)

    def test_duplicate_names(self, validator, bundle):
        twin = copy.deepcopy(bundle["components"][0])
        twin["id"] = "twin-id"
        bundle["components"].append(twin)
        bundle["contentTypes"][0]["fields"].append(
            {"name": "title", "type": "longtext"}
        )
        result = validator.validate(bundle)
        duplicates = [e for e in result.errors if e.type == "duplicate_name"]
        assert {e.record for e in duplicates} == {"component:seo", "content-type:Article"}

    def test_invalid_api_id(self, validator, bundle):
        bundle["contentTypes"][0]["apiId"] = "Not A Slug"
        assert "invalid_api_id" in error_types(validator.validate(bundle))

    def test_undecodable_record(self, validator, bundle):
        del bundle["mediaFiles"]
        bundle["entries"][0]["createdAt"] = "yesterday"
        result = validator.validate(bundle)
        assert error_types(result) == {"invalid_record"}
        assert result.bundle is None


class TestContentProblems:
    def test_entry_of_unknown_type(self, validator, bundle):
        bundle["entries"][0]["contentTypeId"] = "gone"
        result = validator.validate(bundle)
        assert "content_type_not_found" in error_types(result)

    def test_entry_data_checked(self, validator, bundle):
        bundle["entries"][0]["data"]["seo"]["metaTitle"] = "x" * 61
        result = validator.validate(bundle)
        problem = next(e for e in result.errors if e.type == "out_of_range")
        assert problem.field == "seo.metaTitle"


class TestCountWarnings:
    def test_stale_counts_are_warnings(self, validator, bundle):
        bundle["components"][0]["usageCount"] = 5
        bundle["components"][0]["usedIn"] = []
        bundle["contentTypes"][0]["entryCount"] = 0

        result = validator.validate(bundle)
        assert result.is_valid
        assert {w.type for w in result.warnings} == {
            "usage_count_mismatch",
            "used_in_mismatch",
            "entry_count_mismatch",
        }


class TestResult:
    def test_summary(self):
        result = ValidationResult()
        assert str(result) == "✅ Valid"
        result.add_error(ValidationError(type="x", message="broken", record="entry:1"))
        assert not result.is_valid
        assert str(result).startswith("❌ Invalid (1 errors, 0 warnings)")
        assert result.to_dict()["errors"][0]["record"] == "entry:1"
