"""Reading and updating conditions and readiness gates of a Kptfile."""

from __future__ import annotations

from collections.abc import Mapping

from krmspec.conditions import (
    Condition,
    ConditionStatus,
    ObjectReference,
    ReadinessGate,
    get_condition_type,
)
from krmspec.kubeobject import KubeObject, set_nested_field_keep_formatting

_INFO = "info"
_READINESS_GATES = "readinessGates"
_STATUS = "status"
_CONDITIONS = "conditions"


class KptFile:
    """A view over a Kptfile object for its readiness gates and conditions."""

    def __init__(self, kptfile: KubeObject) -> None:
        self.kptfile = kptfile

    def readiness_gates(self) -> list[ReadinessGate]:
        gates = self.kptfile.nested(_INFO, _READINESS_GATES)
        if not isinstance(gates, list):
            return []
        return [ReadinessGate.from_dict(g) for g in gates if isinstance(g, Mapping)]

    def has_readiness_gate(self, condition_type: str) -> bool:
        return any(g.condition_type == condition_type for g in self.readiness_gates())

    def set_readiness_gates(self, *args: str) -> None:
        """Add the given condition types as readiness gates unless already present."""
        gates = self.readiness_gates()
        for condition_type in args:
            if not any(g.condition_type == condition_type for g in gates):
                gates.append(ReadinessGate(condition_type))
        set_nested_field_keep_formatting(
            self.kptfile, [g.to_dict() for g in gates], _INFO, _READINESS_GATES
        )

    def conditions(self) -> list[Condition]:
        """A copy of the current conditions of the package."""
        items = self.kptfile.nested(_STATUS, _CONDITIONS)
        if not isinstance(items, list):
            return []
        return [Condition.from_dict(c) for c in items if isinstance(c, Mapping)]

    def get_condition(self, condition_type: str) -> Condition | None:
        return next((c for c in self.conditions() if c.type == condition_type), None)

    def _write_conditions(self, conditions: list[Condition]) -> None:
        set_nested_field_keep_formatting(
            self.kptfile, [c.to_dict() for c in conditions], _STATUS, _CONDITIONS
        )

    def set_conditions(self, *args: Condition) -> None:
        """Overwrite conditions of the same type or append new ones."""
        conditions = self.conditions()
        for new in args:
            for idx, existing in enumerate(conditions):
                if existing.type == new.type:
                    conditions[idx] = new
                    break
            else:
                conditions.append(new)
        self._write_conditions(conditions)

    def delete_condition(self, condition_type: str) -> None:
        self._write_conditions([c for c in self.conditions() if c.type != condition_type])

    def delete_condition_ref(self, ref: ObjectReference) -> None:
        self.delete_condition(get_condition_type(ref))

    def set_condition_ref_failed(self, ref: ObjectReference, message: str) -> None:
        """Mark the condition of ``ref`` as false with ``message``, creating it if needed."""
        condition_type = get_condition_type(ref)
        existing = self.get_condition(condition_type)
        if existing is not None:
            existing.message = message
            existing.status = ConditionStatus.FALSE
            self.set_conditions(existing)
            return
        self.set_conditions(
            Condition(type=condition_type, status=ConditionStatus.FALSE, message=message)
        )

    def is_ready(self, prefix: str) -> bool:
        """True when some condition starts with ``prefix`` and none of those is false."""
        found = False
        for c in self.conditions():
            if c.type.startswith(prefix):
                found = True
                if c.status == ConditionStatus.FALSE:
                    return False
        return found