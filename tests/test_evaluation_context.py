import pytest

from evalkit.context import EvaluationContext, append_context, finalize_context


def test_append_context_overlay_shadows_base_and_base_is_unchanged():
    base = EvaluationContext(variables={"region": "us", "env": "dev"})
    overlay = EvaluationContext(variables={"env": "prod"})

    composed = append_context(base, overlay)

    assert composed.lookup_variable("region") == "us"
    assert composed.lookup_variable("env") == "prod"
    assert composed.parent is base
    assert base.lookup_variable("env") == "dev"
    assert dict(base.variables) == {"region": "us", "env": "dev"}


def test_append_context_with_missing_side_returns_other_side():
    base = EvaluationContext(variables={"a": 1})
    overlay = EvaluationContext(variables={"b": 2})

    assert append_context(base, None) is base
    assert append_context(None, overlay) is overlay
    assert append_context(None, None) is None


def test_append_context_flattens_overlay_chain():
    base = EvaluationContext(variables={"a": "base"})
    overlay = EvaluationContext(variables={"a": "outer", "b": "outer"}).child(variables={"b": "inner"})

    composed = append_context(base, overlay)

    assert composed.lookup_variable("a") == "outer"
    assert composed.lookup_variable("b") == "inner"
    assert composed.parent is base


def test_context_bindings_are_read_only_copies():
    raw = {"a": 1}
    ctx = EvaluationContext(variables=raw)
    raw["a"] = 2

    assert ctx.lookup_variable("a") == 1
    with pytest.raises(TypeError):
        ctx.variables["a"] = 3  # type: ignore[index]


def test_lookup_variable_missing_raises_or_returns_default():
    ctx = EvaluationContext(variables={"a": 1})

    with pytest.raises(KeyError):
        ctx.lookup_variable("missing")
    assert ctx.lookup_variable("missing", None) is None
    assert ctx.has_variable("a") is True
    assert ctx.has_variable("missing") is False


def test_non_callable_function_binding_is_rejected():
    with pytest.raises(TypeError, match=r"function 'f' is not callable"):
        EvaluationContext(functions={"f": 1})


def test_finalize_context_is_idempotent_and_caller_functions_win():
    ctx = EvaluationContext(variables={"x": "v"}, functions={"upper": lambda value: "custom"})

    final = finalize_context(ctx)

    assert finalize_context(final) is final
    assert final.lookup_function("upper")("a") == "custom"
    assert final.lookup_function("lower")("ABC") == "abc"
    assert final.lookup_variable("x") == "v"
    assert ctx.finalized is False
    with pytest.raises(KeyError):
        ctx.lookup_function("lower")


def test_finalize_context_of_none_provides_default_functions():
    final = finalize_context(None)

    assert final.lookup_function("join")("-", ["a", "b"]) == "a-b"
    assert final.lookup_function("coalesce")(None, "", "x") == "x"
