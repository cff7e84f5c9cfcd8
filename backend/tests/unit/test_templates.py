# backend/tests/unit/test_templates.py
from armelle.models.workflow import StepDefinition
from armelle.workflows.templates import (
    MISSING,
    LiteralValue,
    VariableRef,
    interpolate,
    lookup_path,
    parse_template_value,
    render_params,
)


def test_exact_placeholder_parses_to_variable_ref():
    assert parse_template_value("{{ search_dgi.taxpayers }}") == VariableRef(path="search_dgi.taxpayers")


def test_anything_else_is_a_literal():
    assert parse_template_value("Hello {{name}}") == LiteralValue(value="Hello {{name}}")
    assert parse_template_value(3) == LiteralValue(value=3)


def test_variable_ref_passes_objects_through():
    variables = {"search_dgi": {"taxpayers": [{"niu": "A1"}]}}
    params = {"list": VariableRef(path="search_dgi.taxpayers"), "missing": VariableRef(path="nope"), "fixed": LiteralValue(value="x")}
    rendered = render_params(params, variables)
    assert rendered == {"list": [{"niu": "A1"}], "missing": None, "fixed": "x"}
    # Rendering hands out copies
    rendered["list"].append({"niu": "B2"})
    assert len(variables["search_dgi"]["taxpayers"]) == 1


def test_step_params_are_parsed_into_template_values():
    step = StepDefinition(id="s", kind="service", prompt_key="p", action="a", params={"name": "{{collect_name}}", "limit": 10})
    assert step.params["name"] == VariableRef(path="collect_name")
    assert step.params["limit"] == LiteralValue(value=10)


def test_step_params_survive_json_round_trip():
    step = StepDefinition(id="s", kind="service", prompt_key="p", action="a", params={"name": "{{collect_name}}"})
    restored = StepDefinition.model_validate_json(step.model_dump_json())
    assert restored == step


def test_lookup_path_descends_lists_and_reports_missing():
    data = {"a": {"b": [10, {"c": "deep"}]}}
    assert lookup_path(data, "a.b.1.c") == "deep"
    assert lookup_path(data, "a.b.5") is MISSING
    assert lookup_path(data, "a.x") is MISSING
    assert lookup_path(data, "a.b.c") is MISSING


def test_interpolate_inserts_scalars_only():
    params = {"name": "Paul", "count": 3, "taxpayer": {"niu": "A1"}}
    text = interpolate("{{name}} has {{count}} results: {{taxpayer}} {{unknown}}", params)
    assert text == "Paul has 3 results: {{taxpayer}} {{unknown}}"


def test_interpolate_nested_path():
    assert interpolate("NIU {{taxpayer.niu}}", {"taxpayer": {"niu": "A1"}}) == "NIU A1"
