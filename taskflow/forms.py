"""
Form validation for the web surface.

Submitted JSON is checked here before anything reaches the store; a failure
raises ValidationError with a message the form shows inline. Field rules are
declared as small schemas and checked by FormValidator.
"""
import re
from typing import Any, Dict

from .schema import Priority, ProjectDraft, TaskDraft, parse_timestamp


class ValidationError(Exception):
    """Raised when submitted form data fails validation."""
    pass


COLOR_PATTERN = r"#[0-9A-Fa-f]{3}(?:[0-9A-Fa-f]{3})?"
PRIORITIES = [p.value for p in Priority]

TASK_SCHEMA = {
    "title": {"type": "string", "required": True, "label": "Title"},
    "priority": {"type": "string", "allowed": PRIORITIES, "default": "low", "label": "Priority"},
    "projectId": {"type": "string", "required": True, "label": "Project"},
    "dueDate": {"type": "datetime", "label": "Due date"},
    "completed": {"type": "boolean", "default": False, "label": "Completed"},
}

PROJECT_SCHEMA = {
    "name": {"type": "string", "required": True, "label": "Name"},
    "color": {"type": "string", "pattern": COLOR_PATTERN, "default": "#9b87f5", "label": "Color"},
}

SIGN_IN_SCHEMA = {
    "email": {"type": "string", "required": True, "label": "Email"},
    "password": {"type": "string", "required": True, "label": "Password", "strip": False},
}

SIGN_UP_SCHEMA = {
    **SIGN_IN_SCHEMA,
    "username": {"type": "string", "required": True, "label": "Username"},
}

# camelCase form keys -> task attribute names
TASK_FIELD_NAMES = {
    "title": "title",
    "priority": "priority",
    "projectId": "project_id",
    "dueDate": "due_date",
    "completed": "completed",
}


class FormValidator:
    """
    Validates and coerces form data against a field schema.

    Supports:
        - required / optional with defaults
        - types: string (stripped), boolean, datetime (ISO-8601)
        - allowed-value lists and regex patterns for strings
        - partial mode, where only submitted fields are checked
    """

    def validate(self, data: Dict[str, Any], schema: Dict[str, dict],
                 partial: bool = False) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise ValidationError("Form data must be an object")

        result: Dict[str, Any] = {}
        for name, rules in schema.items():
            if partial and name not in data:
                continue
            value = data.get(name)
            label = rules.get("label", name)
            if isinstance(value, str) and rules.get("strip", True):
                value = value.strip()

            if value is None or value == "":
                if rules.get("required"):
                    raise ValidationError(f"{label} is required")
                if "default" in rules and not partial:
                    result[name] = rules["default"]
                elif partial or rules.get("type") == "datetime":
                    result[name] = None
                continue

            result[name] = self._coerce(value, rules, label)
        return result

    def _coerce(self, value: Any, rules: dict, label: str) -> Any:
        kind = rules.get("type", "string")

        if kind == "string":
            value = str(value)
            allowed = rules.get("allowed")
            if allowed and value.lower() not in allowed:
                raise ValidationError(
                    f"Invalid {label.lower()}: '{value}'. Allowed: {', '.join(allowed)}"
                )
            pattern = rules.get("pattern")
            if pattern and not re.fullmatch(pattern, value):
                raise ValidationError(f"Invalid {label.lower()}: '{value}'")
            return value.lower() if allowed else value

        if kind == "boolean":
            if isinstance(value, bool):
                return value
            if str(value).lower() in ("true", "1", "yes", "on"):
                return True
            if str(value).lower() in ("false", "0", "no", "off"):
                return False
            raise ValidationError(f"{label} must be true or false")

        if kind == "datetime":
            try:
                return parse_timestamp(str(value))
            except ValueError:
                raise ValidationError(f"{label} must be an ISO-8601 date")

        raise ValidationError(f"Unknown field type in schema: {kind}")


_validator = FormValidator()


def validate_task_form(data: Dict[str, Any]) -> TaskDraft:
    values = _validator.validate(data, TASK_SCHEMA)
    return TaskDraft(
        title=values["title"],
        project_id=values["projectId"],
        priority=Priority(values["priority"]),
        due_date=values.get("dueDate"),
        completed=values["completed"],
    )


def validate_task_update(data: Dict[str, Any]) -> Dict[str, Any]:
    """Partial task fields keyed by attribute name; only submitted keys appear."""
    unknown = set(data or {}) - set(TASK_SCHEMA)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
    values = _validator.validate(data, TASK_SCHEMA, partial=True)
    if "completed" in values and values["completed"] is None:
        raise ValidationError("Completed must be true or false")
    if "priority" in values:
        if values["priority"] is None:
            raise ValidationError("Priority is required")
        values["priority"] = Priority(values["priority"])
    return {TASK_FIELD_NAMES[k]: v for k, v in values.items()}


def validate_project_form(data: Dict[str, Any]) -> ProjectDraft:
    values = _validator.validate(data, PROJECT_SCHEMA)
    return ProjectDraft(name=values["name"], color=values["color"])


def validate_sign_in(data: Dict[str, Any]) -> Dict[str, str]:
    return _validator.validate(data, SIGN_IN_SCHEMA)


def validate_sign_up(data: Dict[str, Any]) -> Dict[str, str]:
    return _validator.validate(data, SIGN_UP_SCHEMA)
