import pytest

from evalkit.config_namespace import ConfigNamespace


def test_config_namespace_get_str_is_strict():
    ns = ConfigNamespace({"image": 5}, path="pipelines[0].steps[0]")
    with pytest.raises(TypeError, match=r"pipelines\[0\]\.steps\[0\]\.image must be a string"):
        ns.get_str("image")


def test_config_namespace_missing_required_key_names_path():
    ns = ConfigNamespace({}, path="p")
    with pytest.raises(ValueError, match=r"Missing required config key: p\.image"):
        ns.get_str("image")
    assert ns.get_str("description", default=None) is None


def test_config_namespace_unknown_key_enforcement_includes_path_and_consumed_keys():
    ns = ConfigNamespace({"image": "x", "imgae": "y"}, path="p")
    assert ns.get_str("image") == "x"
    with pytest.raises(ValueError, match=r"Unknown config keys under p: imgae \(consumed: image\)"):
        ns.assert_consumed()


def test_config_namespace_nested_unknown_keys_are_reported():
    ns = ConfigNamespace({"use": {"type": "docker", "extra": 1}}, path="s")
    assert ns.namespace("use").get_str("type") == "docker"
    with pytest.raises(ValueError, match=r"Unknown config keys under s\.use: extra"):
        ns.assert_consumed()


def test_config_namespace_str_mapping_coerces_scalars_and_rejects_bools():
    ns = ConfigNamespace({"labels": {"tier": "web", "rev": 2}}, path="s")
    assert ns.get_str_mapping("labels") == {"tier": "web", "rev": "2"}

    bad = ConfigNamespace({"labels": {"canary": True}}, path="s")
    with pytest.raises(TypeError, match=r"s\.labels\.canary must be a string"):
        bad.get_str_mapping("labels")


def test_config_namespace_list_str_validates_items():
    ns = ConfigNamespace({"depends_on": ["build", ""]}, path="s")
    with pytest.raises(ValueError, match=r"s\.depends_on\[1\] cannot be empty"):
        ns.get_list_str("depends_on")
