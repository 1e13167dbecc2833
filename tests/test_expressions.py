import pytest

from evalkit.context import EvaluationContext, finalize_context
from evalkit.expressions import ExpressionError, evaluate_template, evaluate_value


def _ctx() -> EvaluationContext:
    return EvaluationContext(
        variables={
            "registry": "ghcr.io/acme",
            "app": {"name": "web", "ports": [80, 443]},
            "replicas": 3,
        }
    )


def test_template_interpolates_and_single_expression_keeps_type():
    ctx = _ctx()

    assert evaluate_template("${registry}/${app.name}", ctx) == "ghcr.io/acme/web"
    assert evaluate_template("${replicas}", ctx) == 3
    assert evaluate_template("${app.ports[1]}", ctx) == 443
    assert evaluate_template("${app['name']}", ctx) == "web"
    assert evaluate_template("plain text", ctx) == "plain text"


def test_template_calls_context_functions():
    ctx = finalize_context(_ctx())

    assert evaluate_template("${ upper(app.name) }", ctx) == "WEB"
    assert evaluate_template("${join(':', [registry, app.name])}", ctx) == "ghcr.io/acme:web"


def test_escaped_template_is_kept_literally():
    assert evaluate_template("cost $${literal}", _ctx()) == "cost ${literal}"


def test_undefined_variable_reports_path_and_expression():
    with pytest.raises(ExpressionError, match=r"Undefined variable 'missing'") as excinfo:
        evaluate_template("${missing}", _ctx(), path="steps[0].image")

    assert excinfo.value.path == "steps[0].image"
    assert excinfo.value.expression == "missing"


@pytest.mark.parametrize(
    ("template", "message"),
    [
        ("${1 + 2}", r"Unsupported expression element: BinOp"),
        ("${__import__('os')}", r"Undefined function '__import__'"),
        ("${app.}", r"Invalid expression syntax"),
        ("${app", r"Unterminated template expression"),
        ("x-${app}", r"Cannot interpolate a value of type dict"),
        ("${app.ports[5]}", r"out of range"),
        ("${app.missing}", r"Unknown key 'missing'"),
        ("${ {[1]: 2} }", r"unhashable type: 'list'"),
        ("${app[[1]]}", r"unhashable type: 'list'"),
    ],
)
def test_invalid_expressions_are_rejected(template, message):
    with pytest.raises(ExpressionError, match=message):
        evaluate_template(template, _ctx())


def test_failing_function_is_reported_as_expression_error():
    def boom(value):
        raise RuntimeError("nope")

    ctx = EvaluationContext(variables={"a": 1}, functions={"boom": boom})

    with pytest.raises(ExpressionError, match=r"Call to boom\(\) failed: nope"):
        evaluate_template("${boom(a)}", ctx)


def test_evaluate_value_collects_every_error_when_asked():
    errors: list[ExpressionError] = []

    out = evaluate_value(
        {"a": "${missing}", "b": ["${registry}", "${nope}"], "c": 7},
        _ctx(),
        path="body",
        errors=errors,
    )

    assert out == {"a": None, "b": ["ghcr.io/acme", None], "c": 7}
    assert [exc.path for exc in errors] == ["body.a", "body.b[1]"]


def test_evaluate_value_raises_first_error_by_default():
    with pytest.raises(ExpressionError, match=r"body\.a"):
        evaluate_value({"a": "${missing}"}, _ctx(), path="body")


def test_unhashable_key_failure_keeps_path_and_expression():
    with pytest.raises(ExpressionError) as excinfo:
        evaluate_value({"image": "${ {[1]: 2} }"}, _ctx(), path="steps[0]")

    assert excinfo.value.path == "steps[0].image"
    assert excinfo.value.expression == "{[1]: 2}"
