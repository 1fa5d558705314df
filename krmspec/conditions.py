"""Object references, kpt conditions and the mapping between them."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class ObjectReference:
    """Identifies a KRM resource by apiVersion, kind, name and namespace."""

    api_version: str = ""
    kind: str = ""
    name: str = ""
    namespace: str = ""


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


@dataclass
class Condition:
    """A kpt package condition."""

    type: str
    status: ConditionStatus = ConditionStatus.FALSE
    reason: str = ""
    message: str = ""

    def to_dict(self) -> dict[str, str]:
        data = {"type": self.type, "status": ConditionStatus(self.status).value}
        if self.reason:
            data["reason"] = self.reason
        if self.message:
            data["message"] = self.message
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Condition":
        raw = data.get("status")
        try:
            status = ConditionStatus(str(raw))
        except ValueError:
            status = ConditionStatus.UNKNOWN
        return cls(
            type=str(data.get("type") or ""),
            status=status,
            reason=str(data.get("reason") or ""),
            message=str(data.get("message") or ""),
        )


@dataclass
class ReadinessGate:
    """A readiness gate of a kpt package."""

    condition_type: str

    def to_dict(self) -> dict[str, str]:
        return {"conditionType": self.condition_type}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReadinessGate":
        return cls(condition_type=str(data.get("conditionType") or ""))


def _group_version_string(api_version: str) -> str | None:
    """Normalise an apiVersion; None when it cannot be parsed."""
    if api_version in ("", "/"):
        return ""
    slashes = api_version.count("/")
    if slashes == 0:
        return api_version
    if slashes == 1:
        group, version = api_version.split("/")
        return f"{group}/{version}" if group else version
    return None


def get_condition_type(ref: ObjectReference) -> str:
    """Build a condition type from the apiVersion, kind and name that are present."""
    parts = []
    if ref.api_version:
        gv = _group_version_string(ref.api_version)
        if gv:
            parts.append(gv)
    if ref.kind:
        parts.append(ref.kind)
    if ref.name:
        parts.append(ref.name)
    return ".".join(parts)


def gvkn_from_condition_type(condition_type: str) -> ObjectReference:
    """Parse ``group/version.kind.name``; an empty reference when it does not fit."""
    split = condition_type.split("/")
    group = ""
    vkn = condition_type
    if len(split) > 1:
        group, vkn = split[0], split[1]
    parts = vkn.split(".")
    if len(parts) == 3:
        return ObjectReference(api_version=f"{group}/{parts[0]}", kind=parts[1], name=parts[2])
    return ObjectReference()


def _validate_gvk_ref(ref: ObjectReference) -> None:
    if not ref.api_version:
        raise ValueError("apiVersion is required in the reference")
    if not ref.kind:
        raise ValueError("kind is required in the reference")


def _validate_gvkn_ref(ref: ObjectReference) -> None:
    _validate_gvk_ref(ref)
    if not ref.name:
        raise ValueError("name is required in the reference")


def _is_wildcard_ref(ref: ObjectReference) -> bool:
    return "*" in (ref.api_version, ref.kind)


def _refs_valid(refs: Sequence[ObjectReference]) -> bool:
    if not 1 <= len(refs) <= 2:
        return False
    try:
        for ref in refs:
            _validate_gvkn_ref(ref)
    except ValueError:
        return False
    return True


def _refs_string(*refs: ObjectReference) -> str:
    return ", ".join(get_condition_type(ref) for ref in refs)


def condition_by_ref(
    refs: Sequence[ObjectReference],
    message: str,
    status: ConditionStatus,
    existing: Condition | None = None,
) -> Condition:
    """Build the condition of the last ref, with the first ref as its reason when there are two."""
    if not _refs_valid(refs):
        raise ValueError(
            f"cannot set resource in resource list as the object has no valid refs: {list(refs)}"
        )
    condition_type = get_condition_type(refs[0])
    reason = ""
    if len(refs) > 1:
        condition_type = get_condition_type(refs[1])
        reason = get_condition_type(refs[0])
    return Condition(type=condition_type, status=status, reason=reason, message=message)