"""Stage 2: let the function update the for resource once all its children are ready."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from krmspec.conditions import Condition, ConditionStatus, ObjectReference, _refs_string
from krmspec.inventory import SPECIALIZER_OWNER, GVKKind
from krmspec.inventory_diff import DiffObject
from krmspec.inventory_ready import ready_map
from krmspec.kubeobject import KubeObject
from krmspec.updates import _ERRORS, ChildUpdates

log = logging.getLogger(__name__)


class Stage2(ChildUpdates):
    """Calls the update callback for ready for resources and applies what it returns."""

    def update_resources(self) -> None:
        """Update or generate resources for every for resource that is ready."""
        if self.debug:
            log.debug("update resources, ready: %s", self.inventory.ready)
        if not self.inventory.ready:
            # not ready overall: drop for objects of functions that own nothing
            for ctx in ready_map(self.inventory).values():
                if ctx.for_obj is not None and not self.config.owns:
                    self.delete_obj_from_resource_list(ctx.for_obj)
            return

        update_fn = self.config.update_resource_fn
        for for_ref, ctx in ready_map(self.inventory).items():
            if self.debug:
                log.debug("update resources: objRef %s, ready: %s", _refs_string(for_ref), ctx)
            if not ctx.ready or ctx.failed:
                continue
            if update_fn is None:
                continue
            objs = [*ctx.owns.values(), *ctx.watches.values()]
            try:
                new_objs = self.handle_update_resource(for_ref, ctx.for_obj, ctx.for_condition, objs)
            except Exception as err:  # the callback is user code
                log.warning("cannot handle update resource objRef %s, err: %s", _refs_string(for_ref), err)
                try:
                    self.kptfile.set_condition_ref_failed(for_ref, str(err))
                except _ERRORS as cerr:
                    log.warning("set condition failed error, err: %s", cerr)
                    self.resource_list.error(str(cerr))
                continue

            for new_obj in new_objs:
                obj_ref = ObjectReference(new_obj.api_version, new_obj.kind, new_obj.name)
                kind_ctx = self.inventory.match_gvk(ObjectReference(obj_ref.api_version, obj_ref.kind))
                if kind_ctx is None:
                    message = (
                        "stage 2 fn returned an object that is not owned in the config: "
                        f"ref: {_refs_string(obj_ref)}"
                    )
                    log.warning(message)
                    self.resource_list.error(message)
                    continue
                if kind_ctx.gvk_kind == GVKKind.FOR:
                    refs = [for_ref]
                elif kind_ctx.gvk_kind == GVKKind.OWN:
                    refs = [for_ref, obj_ref]
                else:
                    message = f"stage 2 fn returned an unexpected watch kind ref: {_refs_string(obj_ref)}"
                    log.warning(message)
                    self.resource_list.error(message)
                    continue
                try:
                    self.upsert_child_object(
                        kind_ctx.gvk_kind,
                        refs,
                        DiffObject(obj_ref, new_obj),
                        ctx.for_condition,
                        "update done",
                        ConditionStatus.TRUE,
                        True,
                    )
                except _ERRORS as err:
                    log.warning(
                        "cannot update resourcelist and inventory after update: objRef %s, err: %s",
                        _refs_string(for_ref),
                        err,
                    )

    def handle_update_resource(
        self,
        for_ref: ObjectReference,
        for_obj: KubeObject | None,
        for_condition: Condition | None,
        objs: Sequence[KubeObject],
    ) -> list[KubeObject]:
        """Run the update callback and mark what it returns with the for condition's owner."""
        new_objs = list(self.config.update_resource_fn(for_obj, list(objs)) or [])
        if not new_objs:
            # e.g. an interface on the default pod network needs no generated resource
            if self.debug:
                log.debug("update function returned nothing, objRef: %s", _refs_string(for_ref))
            return []
        if for_condition is not None and for_condition.reason:
            for new_obj in new_objs:
                try:
                    new_obj.set_annotation(SPECIALIZER_OWNER, for_condition.reason)
                except _ERRORS as err:
                    log.warning("error setting new annotation: %s", err)
                    self.resource_list.error(str(err))
                    raise
        return new_objs