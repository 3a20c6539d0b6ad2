from __future__ import annotations

from typing import Any

from ._result import ValidationResult


def validate_registry(data: dict[str, Any] | list[Any]) -> ValidationResult:
    result = ValidationResult()

    if isinstance(data, dict):
        entries = [
            (name, {"name": name, **value} if isinstance(value, dict) else value)
            for name, value in data.items()
        ]
    elif isinstance(data, list):
        entries = [(f"plugins[{i}]", value) for i, value in enumerate(data)]
    else:
        result.add("error", "", "Registry must be an object or a list")
        return result

    if not entries:
        result.add("warning", "", "Registry declares no plugins")

    seen_names: set[str] = set()
    for where, entry in entries:
        if not isinstance(entry, dict):
            result.add("error", where, "Plugin declaration must be an object")
            continue

        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            result.add("error", f"{where}.name", "name: Required")
        else:
            if name in seen_names:
                result.add("error", f"{where}.name", f'Duplicate plugin name "{name}"')
            seen_names.add(name)
            if "/" in name or "\\" in name or ".." in name:
                result.add("error", f"{where}.name", "Plugin names must not contain path segments")

        local = bool(entry.get("local"))
        if not entry.get("protocol") and not local:
            result.add(
                "warning",
                f"{where}.protocol",
                f'Plugin "{name}" declares no protocol and will never be updated',
            )

        build = entry.get("installerBuild", entry.get("build"))
        if build and not entry.get("path"):
            result.add("warning", f"{where}.build", "Build command declared without a path")

        depends = entry.get("depends")
        if depends is not None and not isinstance(depends, (str, list)):
            result.add("error", f"{where}.depends", "depends must be a string or a list")

    return result
