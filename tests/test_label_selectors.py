import pytest

from evalkit.selectors import LabelSelector, SelectorSyntaxError, parse_selector


@pytest.mark.parametrize(
    ("selector", "labels", "expected"),
    [
        ("env=prod", {"env": "prod"}, True),
        ("env=prod", {"env": "dev"}, False),
        ("env=prod", {}, False),
        ('env == "prod"', {"env": "prod"}, True),
        ("env==prod, tier", {"env": "prod", "tier": "web"}, True),
        ("env==prod, tier", {"env": "prod"}, False),
        ("env!=prod", {}, True),
        ("env!=prod", {"env": "prod"}, False),
        ("!canary", {"canary": "1"}, False),
        ("!canary", {}, True),
        ("region in (us, eu)", {"region": "eu"}, True),
        ("region in (us, eu)", {}, False),
        ("region notin (us, eu)", {"region": "ap"}, True),
        ("region notin (us, eu)", {}, True),
    ],
)
def test_label_selector_matches(selector, labels, expected):
    assert LabelSelector().matches(selector, labels) is expected


def test_parse_selector_keeps_set_values_together():
    requirements = parse_selector("env in (a,b), tier=web")

    assert [(r.key, r.op, r.values) for r in requirements] == [
        ("env", "in", ("a", "b")),
        ("tier", "eq", ("web",)),
    ]


@pytest.mark.parametrize(
    ("selector", "message"),
    [
        ("", r"cannot be empty"),
        ("env=prod,,tier", r"Empty requirement"),
        ("bad key=x", r"Invalid label key"),
        ("region in (us", r"Unbalanced parentheses"),
        ("region in ()", r"Empty value set"),
    ],
)
def test_malformed_selectors_raise(selector, message):
    with pytest.raises(SelectorSyntaxError, match=message):
        parse_selector(selector)
