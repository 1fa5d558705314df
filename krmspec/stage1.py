"""Stage 1: generate children of each for resource and reconcile them with what exists."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from krmspec.conditions import ConditionStatus, ObjectReference, _refs_string, get_condition_type
from krmspec.inventory import SPECIALIZER_OWNER, GVKKind, ResourceKind
from krmspec.inventory_diff import DiffObject, InventoryDiff, compute_diff
from krmspec.updates import _ERRORS, ChildUpdates

log = logging.getLogger(__name__)


def _ref_sort_key(ref: ObjectReference) -> str:
    return (
        f"&ObjectReference{{Kind:{ref.kind},Namespace:{ref.namespace},Name:{ref.name},"
        f"UID:,APIVersion:{ref.api_version},ResourceVersion:,FieldPath:,}}"
    )


def diff_keys_in_order(diff_map: Mapping[ObjectReference, InventoryDiff]) -> list[ObjectReference]:
    """The for references of a diff in a deterministic order."""
    return sorted(diff_map, key=_ref_sort_key)


def sort_objects(objs: Iterable[DiffObject]) -> list[DiffObject]:
    """The objects ordered by their reference."""
    return sorted(objs, key=lambda o: _ref_sort_key(o.ref))


class Stage1(ChildUpdates):
    """Populates new child resources and applies the diff against existing ones."""

    def _fail_for(self, for_ref: ObjectReference, message: str) -> None:
        try:
            self.kptfile.set_condition_ref_failed(for_ref, message)
        except _ERRORS as err:
            log.warning("stage1: cannot set the condition objRef: %s err: %s", _refs_string(for_ref), err)
            self.resource_list.error(str(err))

    def _report(self, err: Exception) -> None:
        log.warning("stage1 action failed, err: %s", err)
        self.resource_list.error(str(err))

    def populate_children(self) -> None:
        """Call the populate callback for every for object and record the new children."""
        if self.debug:
            log.debug("stage1: populate children")
        populate = self.config.populate_own_resources_fn
        for for_ref, ctx in self.inventory.get(GVKKind.FOR, [ObjectReference()]).items():
            for_obj = ctx.existing_resource
            if self.debug:
                log.debug("stage1: populate own resources objRef: %s", _refs_string(for_ref))
            if populate is None or for_obj is None:
                continue
            try:
                new_objs = populate(for_obj)
            except Exception as err:  # the callback is user code
                message = f"stage1: cannot populate new resource err: {err}"
                try:
                    self.set_condition(GVKKind.FOR, [for_ref], message, ConditionStatus.FALSE, True)
                except _ERRORS as cerr:
                    log.warning("stage1: cannot set the condition objRef: %s err: %s", _refs_string(for_ref), cerr)
                    self.resource_list.error(str(cerr))
                continue
            for new_obj in new_objs or []:
                obj_ref = ObjectReference(new_obj.api_version, new_obj.kind, new_obj.name)
                kind_ctx = self.inventory.match_gvk(obj_ref)
                if kind_ctx is None:
                    message = (
                        "stage1: cannot find new resource in gvkmap: objRef: "
                        f"{_refs_string(for_ref, obj_ref)}"
                    )
                    if self.debug:
                        log.debug(message)
                    self._fail_for(for_ref, message)
                    continue
                if self.debug:
                    log.debug("stage1: populate new resource: objRef: %s", _refs_string(for_ref, obj_ref))
                try:
                    new_obj.set_annotation(SPECIALIZER_OWNER, get_condition_type(for_ref))
                except _ERRORS as err:
                    self._fail_for(
                        for_ref,
                        f"stage1: cannot set new annotation objRef: {_refs_string(for_ref)}, err: {err}",
                    )
                    continue
                try:
                    self.inventory.set(kind_ctx, [for_ref, obj_ref], new_obj, True, False)
                except _ERRORS as err:
                    self._fail_for(
                        for_ref,
                        "stage1: cannot set new resource to the inventory objRef: "
                        f"{_refs_string(for_ref)}, err: {err}",
                    )

    def _attempt(self, action, *args) -> None:
        try:
            action(*args)
        except _ERRORS as err:
            self._report(err)

    def update_children(self) -> None:
        """Apply the diff of existing and new children to the Kptfile, resource list and inventory."""
        diff_map = compute_diff(self.inventory)
        if not self.inventory.ready:
            for for_ref, diff in diff_map.items():
                if diff.delete_for_condition:
                    if self.debug:
                        log.debug("stage1: delete for condition objRef: %s", _refs_string(for_ref))
                    self._attempt(self.delete_condition, GVKKind.FOR, [for_ref])
                for obj in diff.delete_objs:
                    if self.debug:
                        log.debug("stage1: delete child objRef: %s", _refs_string(for_ref, obj.ref))
                    self._attempt(self.delete_child_object, GVKKind.OWN, [for_ref, obj.ref], obj, "not ready")
            return

        for for_ref in diff_keys_in_order(diff_map):
            diff = diff_map[for_ref]
            if diff.update_for_condition:
                if self.debug:
                    log.debug("stage1: update for condition objRef: %s", _refs_string(for_ref))
                self._attempt(
                    self.set_condition, GVKKind.FOR, [for_ref], "update for condition", ConditionStatus.FALSE, False
                )
            for obj in sort_objects(diff.create_conditions):
                if self.debug:
                    log.debug("stage1: create condition objRef: %s", _refs_string(for_ref, obj.ref))
                status = ConditionStatus.FALSE
                message = "create condition"
                if obj.own_kind == ResourceKind.CHILD_LOCAL:
                    status = ConditionStatus.TRUE
                    message = "child local resource -> done"
                if obj.own_kind == ResourceKind.CHILD_INITIAL:
                    message = "create initial resource condition"
                self._attempt(self.set_condition, GVKKind.OWN, [for_ref, obj.ref], message, status, False)
            for obj in diff.delete_conditions:
                if self.debug:
                    log.debug("stage1: delete condition objRef: %s", _refs_string(for_ref, obj.ref))
                self._attempt(self.delete_condition, GVKKind.OWN, [for_ref, obj.ref])
            for obj in sort_objects(diff.create_objs):
                if self.debug:
                    log.debug("stage1: create obj: %s, ownkind: %s", get_condition_type(obj.ref), obj.own_kind)
                status = ConditionStatus.TRUE if obj.own_kind == ResourceKind.CHILD_LOCAL else ConditionStatus.FALSE
                self._attempt(
                    self.upsert_child_object,
                    GVKKind.OWN, [for_ref, obj.ref], obj, None, "create initial resource", status, False,
                )
            for obj in sort_objects(diff.update_objs):
                if self.debug:
                    log.debug("stage1: update obj: %s", get_condition_type(obj.ref))
                self._attempt(
                    self.upsert_child_object,
                    GVKKind.OWN, [for_ref, obj.ref], obj, None, "update resource", ConditionStatus.FALSE, False,
                )
            for obj in diff.delete_objs:
                if self.debug:
                    log.debug("stage1: delete obj: %s", get_condition_type(obj.ref))
                self._attempt(self.delete_child_object, GVKKind.OWN, [for_ref, obj.ref], obj, "delete resource")
            # the for object was deleted and recreated: clear the delete annotation
            for obj in diff.update_delete_annotations:
                if self.debug:
                    log.debug("stage1: update delete annotation")
                self._attempt(
                    self.upsert_child_object,
                    GVKKind.OWN, [for_ref, obj.ref], obj, None, "update resource", ConditionStatus.FALSE, False,
                )