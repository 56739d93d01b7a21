"""Conditional transformation of payloads by a list of rules."""

from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Mapping, Optional, Sequence, Union

from liminal.conditions import evaluate_condition, parse_operation
from liminal.expression import ExpressionError, evaluate_expression
from liminal.fields import extract_field_value, remove_field_value, set_field_value

logger = logging.getLogger(__name__)

_MISSING = object()


class RuleError(ValueError):
    """Raised for an invalid rule configuration or an aborted action."""


class ErrorStrategy(Enum):
    """What to do when an action fails."""

    CONTINUE = "continue"
    SKIP = "skip"
    ABORT = "abort"
    USE_DEFAULT = "use_default"


def _require(data: Mapping[str, Any], key: str, what: str) -> Any:
    if key not in data:
        raise RuleError(f"{what}: missing field '{key}'")
    return data[key]


def _require_str(data: Mapping[str, Any], key: str, what: str) -> str:
    value = _require(data, key, what)
    if not isinstance(value, str):
        raise RuleError(f"{what}: field '{key}' must be a string")
    return value


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise RuleError(f"{what} must be an object")
    return data


@dataclass(frozen=True)
class Condition:
    """Test of the value at ``field_path`` with ``operation`` against ``value``."""

    field_path: str
    operation: str
    value: Any


def _condition_from_dict(data: Any) -> Condition:
    data = _require_mapping(data, "condition")
    return Condition(
        field_path=_require_str(data, "field_path", "condition"),
        operation=_require_str(data, "operation", "condition"),
        value=_require(data, "value", "condition"),
    )


@dataclass(frozen=True)
class SetField:
    kind: ClassVar[str] = "set_field"
    field_path: str
    value: Any


@dataclass(frozen=True)
class RemoveField:
    kind: ClassVar[str] = "remove_field"
    field_path: str


@dataclass(frozen=True)
class CopyField:
    kind: ClassVar[str] = "copy_field"
    source_field: str
    target_field: str


@dataclass(frozen=True)
class RenameField:
    kind: ClassVar[str] = "rename_field"
    old_field: str
    new_field: str


@dataclass(frozen=True)
class ComputeField:
    kind: ClassVar[str] = "compute_field"
    field_path: str
    expression: str


@dataclass(frozen=True)
class DropMessage:
    kind: ClassVar[str] = "drop_message"


@dataclass(frozen=True)
class PassThrough:
    kind: ClassVar[str] = "pass_through"


@dataclass(frozen=True)
class KeepOnlyFields:
    kind: ClassVar[str] = "keep_only_fields"
    field_paths: tuple[str, ...]


Action = Union[
    SetField,
    RemoveField,
    CopyField,
    RenameField,
    ComputeField,
    DropMessage,
    PassThrough,
    KeepOnlyFields,
]


def parse_action(data: Any) -> Action:
    """Build an action from a mapping whose ``type`` names the action."""
    data = _require_mapping(data, "action")
    kind = _require_str(data, "type", "action")
    what = f"action '{kind}'"
    if kind == SetField.kind:
        return SetField(_require_str(data, "field_path", what), _require(data, "value", what))
    if kind == RemoveField.kind:
        return RemoveField(_require_str(data, "field_path", what))
    if kind == CopyField.kind:
        return CopyField(
            _require_str(data, "source_field", what), _require_str(data, "target_field", what)
        )
    if kind == RenameField.kind:
        return RenameField(
            _require_str(data, "old_field", what), _require_str(data, "new_field", what)
        )
    if kind == ComputeField.kind:
        return ComputeField(
            _require_str(data, "field_path", what), _require_str(data, "expression", what)
        )
    if kind == DropMessage.kind:
        return DropMessage()
    if kind == PassThrough.kind:
        return PassThrough()
    if kind == KeepOnlyFields.kind:
        paths = _require(data, "field_paths", what)
        if not isinstance(paths, (list, tuple)) or not all(isinstance(p, str) for p in paths):
            raise RuleError(f"{what}: field 'field_paths' must be a list of strings")
        return KeepOnlyFields(tuple(paths))
    raise RuleError(f"Unknown action type: '{kind}'")


def _parse_actions(data: Any, what: str) -> list[Action]:
    if not isinstance(data, (list, tuple)):
        raise RuleError(f"{what} must be a list")
    return [parse_action(item) for item in data]


@dataclass
class Rule:
    """A condition with the actions run when it holds and when it does not."""

    condition: Condition
    actions: list[Action]
    else_actions: list[Action] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "Rule":
        data = _require_mapping(data, "rule")
        return cls(
            condition=_condition_from_dict(_require(data, "condition", "rule")),
            actions=_parse_actions(_require(data, "actions", "rule"), "actions"),
            else_actions=_parse_actions(data.get("else_actions", []), "else_actions"),
        )


def _validate_action(action: Action, context: str) -> None:
    if isinstance(action, (SetField, RemoveField)):
        if not action.field_path:
            raise RuleError(f"{context}: {type(action).__name__} has empty field_path")
    elif isinstance(action, CopyField):
        if not action.source_field:
            raise RuleError(f"{context}: CopyField has empty source_field")
        if not action.target_field:
            raise RuleError(f"{context}: CopyField has empty target_field")
        if action.source_field == action.target_field:
            raise RuleError(f"{context}: CopyField source and target are the same")
    elif isinstance(action, RenameField):
        if not action.old_field:
            raise RuleError(f"{context}: RenameField has empty old_field")
        if not action.new_field:
            raise RuleError(f"{context}: RenameField has empty new_field")
        if action.old_field == action.new_field:
            raise RuleError(f"{context}: RenameField old and new field are the same")
    elif isinstance(action, ComputeField):
        if not action.field_path:
            raise RuleError(f"{context}: ComputeField has empty field_path")
        if not action.expression:
            raise RuleError(f"{context}: ComputeField has empty expression")
    elif isinstance(action, KeepOnlyFields):
        # An empty list is valid: it clears the payload.
        if any(not path for path in action.field_paths):
            raise RuleError(f"{context}: KeepOnlyFields contains empty field_path")


@dataclass
class RuleConfig:
    """The rules of a processor and how it treats failing actions."""

    rules: list[Rule]
    error_strategy: ErrorStrategy = ErrorStrategy.CONTINUE

    @classmethod
    def from_parameters(cls, parameters: Optional[Mapping[str, Any]]) -> "RuleConfig":
        """Build a configuration from stage parameters.

        Rules that cannot be read count as no rules, which raises
        ``RuleError``; an unreadable error strategy means ``continue``.
        """
        params = parameters or {}
        try:
            raw_rules = params.get("rules", [])
            if not isinstance(raw_rules, (list, tuple)):
                raise RuleError("rules must be a list")
            rules = [Rule.from_dict(item) for item in raw_rules]
        except RuleError as exc:
            logger.warning("Could not read rules: %s", exc)
            rules = []
        if not rules:
            raise RuleError("rule_transformer requires at least one rule")

        try:
            strategy = ErrorStrategy(params.get("error_strategy", "continue"))
        except (ValueError, TypeError):
            strategy = ErrorStrategy.CONTINUE
        return cls(rules=rules, error_strategy=strategy)

    def validate(self) -> None:
        """Raise ``RuleError`` for the first invalid rule or action."""
        if not self.rules:
            raise RuleError("At least one rule must be defined")
        for i, rule in enumerate(self.rules):
            if not rule.condition.field_path:
                raise RuleError(f"Rule {i} has empty field_path")
            if not rule.condition.operation:
                raise RuleError(f"Rule {i} has empty operation")
            if parse_operation(rule.condition.operation) is None:
                raise RuleError(
                    f"Rule {i} has unsupported operation: '{rule.condition.operation}'"
                )
            if not rule.actions:
                raise RuleError(f"Rule {i} has no actions")
            for j, action in enumerate(rule.actions):
                _validate_action(action, f"Rule {i}, Action {j}")
            for j, action in enumerate(rule.else_actions):
                _validate_action(action, f"Rule {i}, Else Action {j}")


_RESET, _TRANSFORM, _CONTROL = 2, 3, 5


def _priority(action: Action) -> int:
    if isinstance(action, KeepOnlyFields):
        return _RESET
    if isinstance(action, (DropMessage, PassThrough)):
        return _CONTROL
    return _TRANSFORM


def _json_number(value: float) -> Union[float, int]:
    """Non-finite floats have no JSON form and become 0."""
    return value if math.isfinite(value) else 0


@dataclass
class _Slot:
    value: Any


def _set(payload: Any, path: str, value: Any) -> Any:
    try:
        return set_field_value(payload, path, value)
    except ValueError as exc:
        raise RuleError(str(exc)) from exc


class RuleProcessor:
    """Applies configured rules to payloads, transforming or dropping them."""

    def __init__(self, name: str, parameters: Optional[Mapping[str, Any]]) -> None:
        self.name = name
        self.config = RuleConfig.from_parameters(parameters)
        self.config.validate()

    def evaluate_condition(self, payload: Any, condition: Condition) -> bool:
        """Whether the condition holds; a missing field or unknown operation fails."""
        field_value = extract_field_value(payload, condition.field_path, _MISSING)
        if field_value is _MISSING:
            logger.debug("Field '%s' not found in payload", condition.field_path)
            return False
        operation = parse_operation(condition.operation)
        if operation is None:
            logger.warning("Unknown condition operation: %s", condition.operation)
            return False
        return evaluate_condition(field_value, operation, condition.value)

    def execute_actions(self, payload: Any, actions: Sequence[Action]) -> Any:
        """Run ``actions`` on the payload and return the resulting payload.

        The payload may be modified in place. Raises ``RuleError`` when an
        action fails under the abort strategy or a field cannot be set.
        """
        slot = _Slot(payload)
        self._run_actions(slot, actions)
        return slot.value

    def process_payload(self, payload: Any) -> Optional[Any]:
        """Apply every rule in turn; return the payload, or ``None`` if dropped."""
        slot = _Slot(payload)
        for rule in self.config.rules:
            if self.evaluate_condition(slot.value, rule.condition):
                actions, label = rule.actions, "actions"
            elif rule.else_actions:
                actions, label = rule.else_actions, "else_actions"
            else:
                continue
            try:
                self._run_actions(slot, actions)
            except RuleError as exc:
                logger.error("Failed to execute %s: %s", label, exc)
            if any(isinstance(action, DropMessage) for action in actions):
                logger.debug("Message dropped due to drop_message action")
                return None
        return slot.value

    def _run_actions(self, slot: _Slot, actions: Sequence[Action]) -> None:
        # Expressions see the payload as it was before any action ran.
        computed: dict[str, float] = {}
        for action in actions:
            if isinstance(action, ComputeField):
                try:
                    computed[action.field_path] = evaluate_expression(
                        slot.value, action.expression
                    )
                except ExpressionError as exc:
                    logger.error(
                        "Failed to pre-compute field '%s' with expression '%s': %s",
                        action.field_path,
                        action.expression,
                        exc,
                    )
                    computed[action.field_path] = 0.0

        for action in sorted(actions, key=_priority):
            if isinstance(action, ComputeField):
                if action.field_path in computed:
                    slot.value = _set(
                        slot.value, action.field_path, _json_number(computed[action.field_path])
                    )
            elif isinstance(action, KeepOnlyFields):
                slot.value = self._keep_only_fields(slot.value, action.field_paths)
            else:
                self._execute_action(slot, action)

    def _execute_action(self, slot: _Slot, action: Action) -> None:
        try:
            if isinstance(action, SetField):
                slot.value = set_field_value(
                    slot.value, action.field_path, copy.deepcopy(action.value)
                )
            elif isinstance(action, RemoveField):
                remove_field_value(slot.value, action.field_path)
            elif isinstance(action, CopyField):
                source = extract_field_value(slot.value, action.source_field, _MISSING)
                if source is _MISSING:
                    raise RuleError(
                        f"Source field '{action.source_field}' not found for copy operation"
                    )
                slot.value = set_field_value(
                    slot.value, action.target_field, copy.deepcopy(source)
                )
            elif isinstance(action, RenameField):
                value = extract_field_value(slot.value, action.old_field, _MISSING)
                if value is _MISSING:
                    raise RuleError(
                        f"Field '{action.old_field}' not found for rename operation"
                    )
                slot.value = set_field_value(slot.value, action.new_field, copy.deepcopy(value))
                remove_field_value(slot.value, action.old_field)
        except ValueError as exc:
            self._handle_action_error(exc, action)

    def _handle_action_error(self, error: Exception, action: Action) -> None:
        strategy = self.config.error_strategy
        if strategy is ErrorStrategy.ABORT:
            logger.error("Aborting message processing due to action error: %s", error)
            raise RuleError(str(error)) from error
        if strategy is ErrorStrategy.CONTINUE:
            logger.error("Action %r failed: %s (continuing)", action, error)
        elif strategy is ErrorStrategy.SKIP:
            logger.warning("Skipping action %r due to error: %s", action, error)
        else:
            logger.warning("Action %r failed: %s (using default behavior)", action, error)

    def _keep_only_fields(self, payload: Any, field_paths: Sequence[str]) -> dict:
        kept: dict[str, Any] = {}
        for path in field_paths:
            value = extract_field_value(payload, path, _MISSING)
            if value is _MISSING:
                logger.warning("Field '%s' not found while keeping fields", path)
            else:
                kept[path] = copy.deepcopy(value)

        result: Any = {}
        for path, value in kept.items():
            result = _set(result, path, value)
        logger.debug("Kept %d fields: %s", len(field_paths), list(field_paths))
        return result