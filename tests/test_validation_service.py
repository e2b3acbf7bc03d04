"""Unit tests for submitted-value validation."""

import logging

import pytest

from formlogic.models.form_schema import FieldSetValidation, FieldValidationConfig, FormFieldSchema, FormModuleSchema
from formlogic.models.runtime import WorkflowFormData
from formlogic.services.hierarchy_service import build_field_tree
from formlogic.services.validation_service import FieldError, FormValidationService, ValidationRule, has_value
from formlogic.services.workflow_service import resolve_field_states


def runtime_for(*fields: FormFieldSchema, cross_field=()):
    module = FormModuleSchema(id=1, module_key="M", fields=list(fields), cross_field_validations=list(cross_field))
    runtime = build_field_tree(module.fields)
    runtime.schema = module
    return runtime


def text_field(field_id: str, parent: str | None = None, order: int = 1, **validation) -> FormFieldSchema:
    return FormFieldSchema(
        id=field_id,
        parent_id=parent,
        order=order,
        label_en=field_id.replace("_", " ").capitalize(),
        validation=FieldValidationConfig(**validation) if validation else None,
    )


@pytest.fixture
def validator(test_logger) -> FormValidationService:
    return FormValidationService(logger=test_logger)


def codes(result) -> list[tuple[str, str]]:
    return [(e.field_id, e.error_code) for e in result.errors]


# -----------------------------------------------------------------------------
# Single field
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("value,filled", [(None, False), ("", False), ("  ", False), ([], False), (0, True), (False, True), ("x", True)])
def test_has_value(value, filled):
    assert has_value(value) is filled


def test_required_missing(validator):
    runtime = runtime_for(text_field("org_name", is_required=True, min_length=3))
    result = validator.validate_field(runtime.get_field("org_name"), "  ")
    assert not result.is_valid
    assert codes(result) == [("org_name", "REQUIRED")]
    assert result.errors[0].message == "Org name is required"
    assert result.errors[0].message_fr == "Org name est requis"


def test_required_custom_message(validator):
    field = text_field("org_name", is_required=True, required_message_en="Name please", required_message_fr="Le nom svp")
    result = validator.validate_field(runtime_for(field).get_field("org_name"), None)
    assert (result.errors[0].message, result.errors[0].message_fr) == ("Name please", "Le nom svp")


def test_empty_optional_value_skips_other_checks(validator):
    runtime = runtime_for(text_field("code", min_length=3, pattern="^[A-Z]+$", custom_rule_ids=["email"]))
    assert validator.validate_field(runtime.get_field("code"), "").is_valid


def test_length_bounds(validator):
    node = runtime_for(text_field("code", min_length=2, max_length=4)).get_field("code")
    assert codes(validator.validate_field(node, "a")) == [("code", "MIN_LENGTH")]
    assert codes(validator.validate_field(node, "abcde")) == [("code", "MAX_LENGTH")]
    assert validator.validate_field(node, "abc").is_valid
    assert codes(validator.validate_field(node, ["a", "b", "c", "d", "e"])) == [("code", "MAX_LENGTH")]


def test_pattern(validator):
    node = runtime_for(text_field("postal", pattern=r"^[A-Z]\d[A-Z] ?\d[A-Z]\d$", pattern_message_en="Bad postal code")).get_field("postal")
    assert validator.validate_field(node, "K1A 0B1").is_valid
    result = validator.validate_field(node, "12345")
    assert codes(result) == [("postal", "PATTERN_MISMATCH")]
    assert result.errors[0].message == "Bad postal code"


def test_invalid_pattern_passes_and_is_logged(validator, caplog):
    node = runtime_for(text_field("x", pattern="([")).get_field("x")
    with caplog.at_level(logging.WARNING, logger="formlogic.tests"):
        assert validator.validate_field(node, "anything").is_valid
    assert "invalid pattern" in caplog.text


def test_email_rule(validator):
    node = runtime_for(text_field("contact", custom_rule_ids=["email"])).get_field("contact")
    assert validator.validate_field(node, "jo@example.ca").is_valid
    assert codes(validator.validate_field(node, "jo@example")) == [("contact", "INVALID_EMAIL")]


def test_checks_accumulate_in_order(validator):
    node = runtime_for(text_field("contact", max_length=5, pattern="^a", custom_rule_ids=["email"])).get_field("contact")
    assert [e.error_code for e in validator.validate_field(node, "bad-address").errors] == [
        "MAX_LENGTH",
        "PATTERN_MISMATCH",
        "INVALID_EMAIL",
    ]


def test_required_override(validator):
    node = runtime_for(text_field("x", is_required=True)).get_field("x")
    assert validator.validate_field(node, None, required=False).is_valid
    assert not validator.validate_field(runtime_for(text_field("y")).get_field("y"), None, required=True).is_valid


# -----------------------------------------------------------------------------
# Rule registry
# -----------------------------------------------------------------------------


class NoTestRule:
    def validate(self, node, value, values):
        if str(value).lower() == "test":
            return [FieldError(field_id=node.id, error_code="NO_TEST", message=f"{node.id} cannot be 'test'")]
        return []


def test_builtin_rules_registered(validator):
    assert validator.rule_ids == ["required", "length", "pattern", "email"]
    assert isinstance(NoTestRule(), ValidationRule)


def test_register_custom_rule(validator):
    validator.register_rule("no-test", NoTestRule())
    node = runtime_for(text_field("name", custom_rule_ids=["no-test"])).get_field("name")
    assert codes(validator.validate_field(node, "TEST")) == [("name", "NO_TEST")]
    assert validator.validate_field(node, "Acme").is_valid


def test_custom_rule_sees_all_values(validator):
    class MatchesRule:
        def validate(self, node, value, values):
            if value != values.get("password"):
                return [FieldError(field_id=node.id, error_code="MISMATCH", message="Passwords differ")]
            return []

    validator.register_rule("matches-password", MatchesRule())
    runtime = runtime_for(text_field("password"), text_field("confirm", order=2, custom_rule_ids=["matches-password"]))
    assert validator.validate_module(runtime, {"password": "s3cret", "confirm": "s3cret"}).is_valid
    assert codes(validator.validate_module(runtime, {"password": "s3cret", "confirm": "other"})) == [("confirm", "MISMATCH")]


def test_unknown_rule_id_is_logged_and_ignored(validator, caplog):
    node = runtime_for(text_field("name", custom_rule_ids=["nope"])).get_field("name")
    with caplog.at_level(logging.WARNING, logger="formlogic.tests"):
        assert validator.validate_field(node, "x").is_valid
    assert "Validation rule 'nope' not found for field 'name'" in caplog.text


def test_register_blank_rule_id_raises(validator):
    with pytest.raises(ValueError):
        validator.register_rule(" ", NoTestRule())


# -----------------------------------------------------------------------------
# Module
# -----------------------------------------------------------------------------


def test_module_errors_follow_display_order(validator):
    runtime = runtime_for(
        text_field("b_root", order=2, is_required=True),
        text_field("child", parent="a_root", order=1, is_required=True),
        text_field("a_root", order=1, is_required=True),
    )
    result = validator.validate_module(runtime, {})
    assert [e.field_id for e in result.errors] == ["a_root", "child", "b_root"]


def test_module_valid(validator):
    runtime = runtime_for(text_field("name", is_required=True), text_field("code", order=2, max_length=3))
    result = validator.validate_module(runtime, {"name": "Acme", "code": "AB"})
    assert result.is_valid
    assert result.model_dump()["is_valid"] is True


@pytest.mark.parametrize(
    "kind,values,fails",
    [
        ("AtLeastOne", {}, True),
        ("AtLeastOne", {"phone": "555"}, False),
        ("AllOrNone", {"phone": "555"}, True),
        ("AllOrNone", {"phone": "555", "email": "a@b.c"}, False),
        ("AllOrNone", {}, False),
        ("MutuallyExclusive", {"phone": "555", "email": "a@b.c"}, True),
        ("MutuallyExclusive", {"email": "a@b.c"}, False),
    ],
)
def test_cross_field_constraints(validator, kind, values, fails):
    runtime = runtime_for(
        text_field("phone"),
        text_field("email", order=2),
        cross_field=[FieldSetValidation(type=kind, field_ids=["phone", "email"])],
    )
    result = validator.validate_module(runtime, values)
    assert (not result.is_valid) is fails
    if fails:
        assert result.errors[0].field_id == "phone,email"


def test_at_least_one_messages(validator):
    runtime = runtime_for(
        text_field("phone"),
        text_field("email", order=2),
        cross_field=[FieldSetValidation(type="AtLeastOne", field_ids=["phone", "email"], error_message_en="Give us a way to reach you")],
    )
    error = validator.validate_module(runtime, {"phone": " "}).errors_for("phone,email")[0]
    assert error.error_code == "CROSS_FIELD_REQUIRED"
    assert error.message == "Give us a way to reach you"
    assert error.message_fr == "Au moins un de ces champs est requis: phone, email"


def test_unknown_cross_field_type_is_skipped(validator, caplog):
    runtime = runtime_for(text_field("a"), cross_field=[FieldSetValidation(type="Sometimes", field_ids=["a"])])
    with caplog.at_level(logging.WARNING, logger="formlogic.tests"):
        assert validator.validate_module(runtime, {}).is_valid
    assert "Unknown cross-field validation type 'Sometimes'" in caplog.text


def test_cross_field_from_camel_case_json():
    module = FormModuleSchema.model_validate(
        {
            "id": 3,
            "fields": [{"id": "a", "validation": {"isRequired": True, "minLength": 2, "customRuleIds": None}}],
            "crossFieldValidations": [{"type": "AtLeastOne", "fieldIds": ["a", "b"]}],
        }
    )
    assert module.fields[0].validation.min_length == 2
    assert module.fields[0].validation.custom_rule_ids == []
    assert module.cross_field_validations[0].field_ids == ["a", "b"]


# -----------------------------------------------------------------------------
# With field states
# -----------------------------------------------------------------------------


def applicant(grant_modules):
    module = grant_modules["Applicant"]
    runtime = build_field_tree(module.fields)
    runtime.schema = module
    return runtime


def test_hidden_fields_are_skipped_and_rules_decide_required(validator, evaluator, grant_modules):
    runtime = applicant(grant_modules)
    values = {"org_name": "Helping Hands", "org_type": "NonProfit"}
    data = WorkflowFormData(modules={"Applicant": values}, current_module_key="Applicant")
    states = resolve_field_states(runtime, None, data, evaluator)

    result = validator.validate_module(runtime, values, states)
    assert codes(result) == [("charity_number", "REQUIRED")]

    values["charity_number"] = "12345"
    result = validator.validate_module(runtime, values, states)
    assert codes(result) == [("charity_number", "PATTERN_MISMATCH")]
    assert result.errors[0].message == "Use the format 123456789RR0001"

    values["charity_number"] = "123456789RR0001"
    assert validator.validate_module(runtime, values, states).is_valid


def test_business_applicant_ignores_hidden_charity_number(validator, evaluator, grant_modules):
    runtime = applicant(grant_modules)
    values = {"org_name": "Acme", "org_type": "Business", "charity_number": "bogus"}
    data = WorkflowFormData(modules={"Applicant": values}, current_module_key="Applicant")
    states = resolve_field_states(runtime, None, data, evaluator)
    assert validator.validate_module(runtime, values, states).is_valid
    # Without states every field is checked against its schema
    assert codes(validator.validate_module(runtime, values)) == [("charity_number", "PATTERN_MISMATCH")]
