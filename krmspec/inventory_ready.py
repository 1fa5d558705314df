"""Readiness of each for resource, derived from its own and watch children."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from krmspec.conditions import Condition, ConditionStatus, ObjectReference, get_condition_type
from krmspec.inventory import GVKKind, Inventory, ResourceContext
from krmspec.kubeobject import KubeObject

log = logging.getLogger(__name__)


@dataclass
class ReadyContext:
    """Whether a for resource is ready, with the children it depends on."""

    ready: bool = True
    failed: bool = False
    for_obj: KubeObject | None = None
    for_condition: Condition | None = None
    owns: dict[ObjectReference, KubeObject] = field(default_factory=dict)
    watches: dict[ObjectReference, KubeObject] = field(default_factory=dict)


def _not_done(ctx: ResourceContext) -> bool:
    cond = ctx.existing_condition
    return cond is None or cond.status == ConditionStatus.FALSE


def ready_map(inventory: Inventory) -> dict[ObjectReference, ReadyContext]:
    """Map every for resource to its readiness based on its own and watch children."""
    result: dict[ObjectReference, ReadyContext] = {}
    for for_ref, for_ctx in inventory.get(GVKKind.FOR, [ObjectReference()]).items():
        rc = result[for_ref] = ReadyContext(
            failed=for_ctx.failed,
            for_obj=for_ctx.existing_resource,
            for_condition=for_ctx.existing_condition,
        )
        for ref, ctx in inventory.get(GVKKind.OWN, [for_ref, ObjectReference()]).items():
            if inventory.debug:
                log.debug("ready map: own ref: %s, condition %s", ref, ctx.existing_condition)
            if _not_done(ctx):
                rc.ready = False
            if ctx.existing_resource is not None:
                rc.owns[ref] = ctx.existing_resource
        for ref, ctx in inventory.get(GVKKind.WATCH, [for_ref, ObjectReference()]).items():
            if inventory.debug:
                log.debug("ready map: watch ref: %s, condition %s", ref, ctx.existing_condition)
            for_cond = for_ctx.existing_condition
            # a watch that is the owner of the for resource is not checked
            if _not_done(ctx) and for_cond is not None and get_condition_type(ref) != for_cond.reason:
                if inventory.debug:
                    log.debug(
                        "ready map: watch ref: %s not ready, for reason: %s, type %s",
                        ref,
                        for_cond.reason,
                        get_condition_type(ref),
                    )
                rc.ready = False
            if ctx.existing_resource is not None:
                rc.watches[ref] = ctx.existing_resource
    return result