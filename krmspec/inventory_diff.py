"""Compare existing and newly generated children of each for resource."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from krmspec.conditions import ConditionStatus, ObjectReference, _refs_string
from krmspec.inventory import (
    SPECIALIZER_DELETE,
    GVKKind,
    Inventory,
    ResourceContext,
    ResourceKind,
)
from krmspec.kubeobject import KubeObject

log = logging.getLogger(__name__)


@dataclass
class DiffObject:
    """A child resource or condition that an action applies to."""

    ref: ObjectReference
    obj: KubeObject | None = None
    own_kind: ResourceKind | None = None


@dataclass
class InventoryDiff:
    """The create, update and delete actions for the children of one for resource."""

    delete_for_condition: bool = False
    update_for_condition: bool = False
    delete_objs: list[DiffObject] = field(default_factory=list)
    update_objs: list[DiffObject] = field(default_factory=list)
    create_objs: list[DiffObject] = field(default_factory=list)
    delete_conditions: list[DiffObject] = field(default_factory=list)
    create_conditions: list[DiffObject] = field(default_factory=list)
    update_delete_annotations: list[DiffObject] = field(default_factory=list)


def get_spec(obj: KubeObject) -> dict[str, Any]:
    """Return the spec of ``obj``; raise ValueError when it has none."""
    spec = obj.nested("spec")
    if spec is None:
        raise ValueError("cannot get spec from obj, not found")
    if not isinstance(spec, Mapping):
        raise ValueError("cannot get spec from obj, spec is not a mapping")
    return dict(spec)


def _for_needs_update(for_ctx: ResourceContext) -> bool:
    cond = for_ctx.existing_condition
    return cond is None or cond.status != ConditionStatus.FALSE


def _is_local_or_initial(kind: ResourceKind | None) -> bool:
    return kind in (ResourceKind.CHILD_INITIAL, ResourceKind.CHILD_LOCAL)


def _diff_orphans(
    diff: InventoryDiff,
    for_ref: ObjectReference,
    owns: dict[ObjectReference, ResourceContext],
    debug: bool,
) -> None:
    """The for resource is gone: clean up all its children and conditions."""
    for own_ref, ctx in owns.items():
        if debug:
            log.debug("delete resource and conditions: objRef: %s", _refs_string(for_ref, own_ref))
        diff.delete_for_condition = True
        if ctx.existing_condition is not None:
            diff.delete_conditions.append(DiffObject(own_ref, own_kind=ctx.own_kind))
        if ctx.existing_resource is not None and ctx.own_kind != ResourceKind.CHILD_INITIAL:
            diff.delete_objs.append(DiffObject(own_ref, ctx.existing_resource, ctx.own_kind))


def _diff_child(
    diff: InventoryDiff,
    for_ctx: ResourceContext,
    own_ref: ObjectReference,
    ctx: ResourceContext,
    ready: bool,
) -> None:
    update_for = _for_needs_update(for_ctx)
    existing, new, cond = ctx.existing_resource, ctx.new_resource, ctx.existing_condition

    # conditions
    if new is None and cond is None:
        diff.update_for_condition |= update_for
        if ready:
            diff.create_conditions.append(DiffObject(own_ref, own_kind=ctx.own_kind))
    elif new is None and cond is not None:
        diff.update_for_condition |= update_for
        if not _is_local_or_initial(ctx.own_kind):
            diff.delete_conditions.append(DiffObject(own_ref, own_kind=ctx.own_kind))
    elif new is not None and cond is None:
        diff.update_for_condition |= update_for
        diff.create_conditions.append(DiffObject(own_ref, new, ctx.own_kind))

    # resources
    if existing is None and new is not None:
        diff.update_for_condition |= update_for
        diff.create_objs.append(DiffObject(own_ref, new, ctx.own_kind))
    elif existing is not None and new is None:
        diff.update_for_condition |= update_for
        if not _is_local_or_initial(ctx.own_kind):
            diff.delete_objs.append(DiffObject(own_ref, existing, ctx.own_kind))
    elif existing is not None and new is not None:
        # remote-condition children are created elsewhere; no spec comparison needed
        if ctx.own_kind == ResourceKind.CHILD_REMOTE_CONDITION:
            return
        try:
            existing_spec = get_spec(existing)
            new_spec = get_spec(new)
        except ValueError as err:
            log.warning("cannot get spec from obj: %s", err)
            return
        if existing_spec != new_spec:
            diff.update_for_condition |= update_for
            diff.update_objs.append(DiffObject(own_ref, new, ctx.own_kind))
        # the for object was deleted and recreated: clear the delete annotation
        annotations = existing.nested("metadata", "annotations") or {}
        if SPECIALIZER_DELETE in annotations:
            diff.update_for_condition |= update_for
            diff.update_delete_annotations.append(DiffObject(own_ref, new, ctx.own_kind))


def compute_diff(inventory: Inventory) -> dict[ObjectReference, InventoryDiff]:
    """Compare existing children against newly generated ones for each for resource."""
    diff_map: dict[ObjectReference, InventoryDiff] = {}
    for for_ref, for_ctx in inventory.get(GVKKind.FOR, [ObjectReference()]).items():
        diff = diff_map[for_ref] = InventoryDiff()
        owns = inventory.get(GVKKind.OWN, [for_ref, ObjectReference()])
        if for_ctx.existing_resource is None:
            _diff_orphans(diff, for_ref, owns, inventory.debug)
            continue
        for own_ref, ctx in owns.items():
            if inventory.debug:
                log.debug(
                    "diff: objRef: %s, existingResource: %s, newResource: %s, existing condition: %s",
                    _refs_string(for_ref, own_ref),
                    ctx.existing_resource is not None,
                    ctx.new_resource is not None,
                    ctx.existing_condition is not None,
                )
            _diff_child(diff, for_ctx, own_ref, ctx, inventory.ready)
    return diff_map