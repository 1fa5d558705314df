"""Fill the inventory from the Kptfile conditions and resource list, and run global watches."""

from __future__ import annotations

import logging
from typing import Any

from krmspec.conditions import (
    ObjectReference,
    _validate_gvk_ref,
    _validate_gvkn_ref,
    gvkn_from_condition_type,
)
from krmspec.inventory import SPECIALIZER_OWNER, GVKKind
from krmspec.updates import ChildUpdates

log = logging.getLogger(__name__)


def _same_gvk(a: ObjectReference, b: ObjectReference) -> bool:
    return a.api_version == b.api_version and a.kind == b.kind


def _is_valid_gvkn(ref: ObjectReference) -> bool:
    try:
        _validate_gvkn_ref(ref)
    except ValueError:
        return False
    return True


class InventoryPopulation(ChildUpdates):
    """Builds the inventory from the conditions and resources relevant to the config."""

    def populate_inventory(self) -> None:
        """Add every relevant condition and resource of the package to the inventory."""
        # A for condition whose reason names an owner gives the forOwnerRef; watch
        # resources owned by it belong to that for resource instead of the global context.
        for_owner_ref: ObjectReference | None = None
        name_map: dict[str, str] = {}
        conditions = self.kptfile.conditions()
        for c in conditions:
            obj_ref = gvkn_from_condition_type(c.type)
            kind_ctx = self.inventory.match_gvk(obj_ref)
            if kind_ctx is None or kind_ctx.gvk_kind != GVKKind.FOR:
                continue
            owner_ref = gvkn_from_condition_type(c.reason)
            try:
                _validate_gvk_ref(owner_ref)
            except ValueError:
                continue
            for_owner_ref = ObjectReference(owner_ref.api_version, owner_ref.kind)
            name_map[owner_ref.name] = obj_ref.name
            if self.debug:
                log.debug(
                    "for owner name map: kind: %s, name: %s, owner name: %s",
                    obj_ref.kind,
                    obj_ref.name,
                    owner_ref.name,
                )
        for c in conditions:
            self.populate(
                name_map,
                for_owner_ref,
                gvkn_from_condition_type(c.type),
                gvkn_from_condition_type(c.reason),
                c,
            )
        for obj in list(self.resource_list.items):
            obj_ref = ObjectReference(obj.api_version, obj.kind, obj.name)
            owner_ref = gvkn_from_condition_type(obj.get_annotation(SPECIALIZER_OWNER))
            self.populate(name_map, for_owner_ref, obj_ref, owner_ref, obj)

    def populate(
        self,
        name_map: dict[str, str],
        for_owner_ref: ObjectReference | None,
        obj_ref: ObjectReference,
        owner_ref: ObjectReference,
        item: Any,
    ) -> None:
        """Record one condition or resource in the inventory if the config cares about it."""
        kind_ctx = self.inventory.match_gvk(ObjectReference(obj_ref.api_version, obj_ref.kind))
        if kind_ctx is None:
            if self.debug:
                log.debug("stage1: populate no match, ref: %s", obj_ref)
            return

        if kind_ctx.gvk_kind == GVKKind.FOR:
            if self.debug:
                log.debug("stage1: set existing for object, ref: %s", obj_ref)
            self.inventory.set(kind_ctx, [obj_ref], item, False, False)
        elif kind_ctx.gvk_kind == GVKKind.OWN:
            owner_ctx = self.inventory.match_gvk(owner_ref)
            # added by another kind; with wildcards this keeps unrelated objects out
            if owner_ctx is None or owner_ctx.gvk_kind != GVKKind.FOR:
                if self.debug:
                    log.debug("stage1: own kind with different owner %s, ref: %s", owner_ref, obj_ref)
                return
            if self.debug:
                log.debug("stage1: set existing own object, ref: %s, owner: %s", obj_ref, owner_ref)
            self.inventory.set(kind_ctx, [owner_ref, obj_ref], item, False, False)
        elif kind_ctx.gvk_kind == GVKKind.WATCH:
            if for_owner_ref is not None and (
                _same_gvk(for_owner_ref, owner_ref) or _same_gvk(for_owner_ref, obj_ref)
            ):
                # a specific watch: the name normally comes from the owner, but when the
                # object itself is the for owner, its own name is used
                name = name_map.get(owner_ref.name, "")
                if _same_gvk(for_owner_ref, obj_ref):
                    name = name_map.get(obj_ref.name, "")
                for_ref = ObjectReference(
                    self.config.for_ref.api_version, self.config.for_ref.kind, name
                )
                if self.debug:
                    log.debug("stage1: set specific watch, for: %s, ref: %s", for_ref, obj_ref)
                self.inventory.set(kind_ctx, [for_ref, obj_ref], item, False, False)
            elif not _is_valid_gvkn(owner_ref):
                # owned objects are intermediate resources of another for; only unowned
                # ones are global watches
                if self.debug:
                    log.debug("stage1: set global watch, ref: %s", obj_ref)
                self.inventory.set(kind_ctx, [obj_ref], item, False, False)

    def call_global_watches(self) -> None:
        """Hand every global watch resource to its callback; a failure marks the run not ready."""
        for ctx in self.inventory.get(GVKKind.WATCH, [ObjectReference()]).values():
            if self.debug:
                log.debug("stage1: global watch: %r", ctx.existing_resource)
            if ctx.callback is None:
                continue
            try:
                ctx.callback(ctx.existing_resource)
            except Exception as err:  # the callback is user code
                if self.debug:
                    log.debug("stage1: global watch returned an error %s", err)
                self.inventory.ready = False
                raise