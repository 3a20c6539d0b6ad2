import json

from plugin_installer import validate_registry, validate_registry_file


def test_valid_registry_no_warnings():
    result = validate_registry({"foo": {"path": "/p/foo", "protocol": "git", "installerBuild": "make"}})
    assert result.valid
    assert result.issues == []


def test_duplicate_names_in_list():
    result = validate_registry(
        [{"name": "a", "protocol": "git"}, {"name": "a", "protocol": "git"}]
    )
    assert not result.valid
    assert result.errors[0].path == "plugins[1].name"
    assert "Duplicate" in result.errors[0].message


def test_missing_name_and_path_segments():
    result = validate_registry([{"protocol": "git"}, {"name": "../evil", "protocol": "git"}])
    messages = [str(e) for e in result.errors]
    assert "error: plugins[0].name: name: Required" in messages
    assert any("path segments" in m for m in messages)


def test_warnings_do_not_invalidate():
    result = validate_registry({"a": {"installerBuild": "make"}})
    assert result.valid
    paths = [w.path for w in result.warnings]
    assert paths == ["a.protocol", "a.build"]


def test_local_plugin_needs_no_protocol():
    result = validate_registry({"mine": {"path": "/p", "local": True}})
    assert result.warnings == []


def test_bad_depends_type():
    result = validate_registry({"a": {"protocol": "git", "depends": 3}})
    assert [e.path for e in result.errors] == ["a.depends"]


def test_empty_registry_warns():
    result = validate_registry([])
    assert result.valid
    assert len(result.warnings) == 1


def test_validate_file(tmp_path):
    path = tmp_path / "plugins.json"
    path.write_text(json.dumps("nope"))
    result = validate_registry_file(path)
    assert not result.valid
