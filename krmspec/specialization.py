"""The specialization condition that tracks a package's overall progress."""

from __future__ import annotations

from enum import Enum

from krmspec.conditions import Condition, ConditionStatus, ObjectReference, get_condition_type


class ConditionReason(str, Enum):
    """Where the specialization is at."""

    READY = "Ready"
    FAILED = "Failed"
    SPECIALIZE = "Specialize"


_SPECIALIZER_REF = ObjectReference(api_version="nephio.org", kind="Specializer", name="specialize")


def specialization_condition_type() -> str:
    return get_condition_type(_SPECIALIZER_REF)


def initialized() -> Condition:
    """The condition that starts specialization."""
    return Condition(
        type=specialization_condition_type(),
        status=ConditionStatus.FALSE,
        reason=ConditionReason.SPECIALIZE.value,
        message="initialized",
    )


def failed(message: str) -> Condition:
    """The condition for a failed specialization."""
    return Condition(
        type=specialization_condition_type(),
        status=ConditionStatus.FALSE,
        reason=ConditionReason.FAILED.value,
        message=message,
    )


def not_ready() -> Condition:
    """The condition for a specialization that is still in progress."""
    return Condition(
        type=specialization_condition_type(),
        status=ConditionStatus.FALSE,
        reason=ConditionReason.SPECIALIZE.value,
        message="not ready",
    )


def ready() -> Condition:
    """The condition for a completed specialization."""
    return Condition(
        type=specialization_condition_type(),
        status=ConditionStatus.TRUE,
        reason=ConditionReason.READY.value,
        message="",
    )