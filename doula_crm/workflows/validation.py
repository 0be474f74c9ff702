"""Structural checks run before a workflow can be activated.

Works on anything with step attributes (table rows or schemas), so the editor
can validate a canvas before it is saved.
"""

from __future__ import annotations

from typing import Any, Iterable

from .models import StepType
from .schemas import ValidationResult

ACTION_TYPES = {
    StepType.SEND_EMAIL.value,
    StepType.SEND_SMS.value,
    StepType.CREATE_TASK.value,
    StepType.UPDATE_FIELD.value,
    StepType.WAIT.value,
    StepType.DECISION.value,
    StepType.WEBHOOK.value,
}


def _get(step: Any, name: str, default: Any = None) -> Any:
    if isinstance(step, dict):
        return step.get(name, default)
    return getattr(step, name, default)


def _branches(step: Any) -> list[dict[str, Any]]:
    result = []
    for branch in _get(step, "branches") or []:
        if not isinstance(branch, dict):
            branch = branch.model_dump()
        result.append(branch)
    return result


def _targets(step: Any) -> list[str]:
    targets = [b["next_step_key"] for b in _branches(step) if b.get("next_step_key")]
    if _get(step, "next_step_key"):
        targets.append(_get(step, "next_step_key"))
    return targets


def validate_workflow(steps: Iterable[Any]) -> ValidationResult:
    steps = list(steps)
    errors: list[str] = []
    warnings: list[str] = []
    by_key = {_get(s, "step_key"): s for s in steps}

    trigger = next((s for s in steps if _get(s, "step_type") == StepType.TRIGGER.value), None)
    if trigger is None:
        errors.append("Workflow must have a trigger node")
    if not any(_get(s, "step_type") in ACTION_TYPES for s in steps):
        errors.append("Workflow must have at least one action or step after the trigger")
    if trigger is not None and not _targets(trigger):
        errors.append("Trigger must be connected to at least one step")

    for step in steps:
        key = _get(step, "step_key")
        for target in _targets(step):
            if target not in by_key:
                errors.append(f'Step "{key}" points to unknown step "{target}"')

        step_type = _get(step, "step_type")
        if step_type == StepType.DECISION.value:
            branches = _branches(step)
            if not branches:
                errors.append(f'Decision node "{key}" has no branches defined')
            else:
                conditions = {b.get("condition") for b in branches}
                if "true" not in conditions:
                    warnings.append(f'Decision node "{key}" is missing a Yes branch')
                if "false" not in conditions:
                    warnings.append(f'Decision node "{key}" is missing a No branch')
        elif step_type == StepType.SEND_EMAIL.value:
            config = _get(step, "step_config") or {}
            if not (config.get("template_id") or config.get("body") or config.get("content")):
                warnings.append(f'Email step "{key}" should have a template or content')

    # Reachability from the trigger
    reachable: set[str] = set()
    if trigger is not None:
        pending = [_get(trigger, "step_key")]
        while pending:
            key = pending.pop()
            if key in reachable or key not in by_key:
                continue
            reachable.add(key)
            pending.extend(_targets(by_key[key]))
        orphaned = [k for k in by_key if k not in reachable]
        if orphaned:
            warnings.append(f"{len(orphaned)} node(s) are not connected and will not be executed")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
