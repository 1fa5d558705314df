"""Write conditions and child objects to the Kptfile, the resource list and the inventory."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from krmspec.conditions import (
    Condition,
    ConditionStatus,
    ObjectReference,
    _refs_string,
    _refs_valid,
    condition_by_ref,
)
from krmspec.inventory import (
    SPECIALIZER_DELETE,
    Config,
    GVKKind,
    GVKKindContext,
    Inventory,
    ResourceKind,
)
from krmspec.inventory_diff import DiffObject
from krmspec.kptfile import KptFile
from krmspec.kubeobject import KubeObject, ResourceList

log = logging.getLogger(__name__)

_ERRORS = (ValueError, TypeError, KeyError)


def _identity(obj: KubeObject) -> tuple[str, str, str, str]:
    return (obj.api_version, obj.kind, obj.name, obj.namespace)


def _raise_joined(errors: list[Exception]) -> None:
    if errors:
        raise ValueError("\n".join(str(e) for e in errors))


@dataclass
class ChildUpdates:
    """Applies condition and child object changes for a function run."""

    config: Config
    inventory: Inventory
    resource_list: ResourceList
    kptfile: KptFile | None = None
    debug: bool = False

    def _record(self, errors: list[Exception], err: Exception, what: str, refs: Sequence[ObjectReference]) -> None:
        log.warning("%s objref: %s, err: %s", what, _refs_string(*refs), err)
        self.resource_list.error(str(err))
        errors.append(err)

    @staticmethod
    def _object(obj: DiffObject) -> KubeObject:
        if obj.obj is None:
            raise ValueError(f"no object present for ref: {_refs_string(obj.ref)}")
        return obj.obj

    def delete_child_object(
        self, kind: GVKKind, refs: Sequence[ObjectReference], obj: DiffObject, message: str
    ) -> None:
        """Mark a child for deletion: false condition, delete annotation, write it back."""
        condition = condition_by_ref(refs, message, ConditionStatus.FALSE, None)
        errors: list[Exception] = []
        try:
            self.kptfile.set_conditions(condition)
        except _ERRORS as err:
            self._record(errors, err, "cannot set condition in kptfile", refs)
        try:
            self._object(obj).set_annotation(SPECIALIZER_DELETE, "true")
        except _ERRORS as err:
            self._record(errors, err, "cannot set annotation on obj", refs)
        try:
            self.set_object_in_resource_list(GVKKind.OWN, refs, obj)
        except _ERRORS as err:
            self._record(errors, err, "cannot set resource in resourceList", refs)
        _raise_joined(errors)

    def upsert_child_object(
        self,
        kind: GVKKind,
        refs: Sequence[ObjectReference],
        obj: DiffObject,
        existing: Condition | None,
        message: str,
        status: ConditionStatus,
        always_update: bool,
    ) -> None:
        """Set the condition of a child and, where its kind requires, write the object back."""
        condition = condition_by_ref(refs, message, status, existing)
        # an existing condition may carry data set by an earlier function, e.g. its reason
        if existing is not None:
            condition = dataclasses.replace(existing, message=message, status=status)
        errors: list[Exception] = []
        try:
            self.kptfile.set_conditions(condition)
        except _ERRORS as err:
            self._record(errors, err, "cannot set condition in kptfile", refs)
        if always_update:
            try:
                self.set_object_in_resource_list(kind, refs, obj)
            except _ERRORS as err:
                self._record(errors, err, "cannot set resource in resourceList", refs)
            _raise_joined(errors)
            return
        if obj.own_kind in (ResourceKind.CHILD_REMOTE, ResourceKind.CHILD_LOCAL):
            try:
                self.set_object_in_resource_list(GVKKind.OWN, refs, obj)
            except _ERRORS as err:
                self._record(errors, err, "cannot set resource in resourceList", refs)
        _raise_joined(errors)

    def delete_condition(self, kind: GVKKind, refs: Sequence[ObjectReference]) -> None:
        """Remove the condition from the Kptfile and the inventory."""
        condition = condition_by_ref(refs, "", ConditionStatus.FALSE, None)
        errors: list[Exception] = []
        try:
            self.kptfile.delete_condition(condition.type)
        except _ERRORS as err:
            self._record(errors, err, "cannot delete condition from Kptfile", refs)
        try:
            self.inventory.delete(GVKKindContext(gvk_kind=kind), refs)
        except _ERRORS as err:
            self._record(errors, err, "cannot delete condition from inventory", refs)
        _raise_joined(errors)

    def set_condition(
        self,
        kind: GVKKind,
        refs: Sequence[ObjectReference],
        message: str,
        status: ConditionStatus,
        failed: bool,
    ) -> None:
        """Set the condition in the Kptfile and the inventory."""
        condition = condition_by_ref(refs, message, status, None)
        errors: list[Exception] = []
        try:
            self.kptfile.set_conditions(condition)
        except _ERRORS as err:
            self._record(errors, err, "cannot set condition in Kptfile", refs)
        try:
            self.inventory.set(GVKKindContext(gvk_kind=kind), refs, condition, False, failed)
        except _ERRORS as err:
            self._record(errors, err, "cannot set condition in inventory", refs)
        _raise_joined(errors)

    def set_object_in_resource_list(
        self, kind: GVKKind, refs: Sequence[ObjectReference], obj: DiffObject
    ) -> None:
        """Upsert the object into the resource list and record it as existing in the inventory."""
        if self.debug:
            log.debug("set object in resource list: kind: %s, refs: %s, obj: %r", kind, refs, obj.obj)
        if not _refs_valid(refs):
            raise ValueError(
                f"cannot set resource in resourcelist as the object has no valid refs: {list(refs)}"
            )
        kube_obj = self._object(obj)
        try:
            self.resource_list.upsert(kube_obj, True)
            self.inventory.set(GVKKindContext(gvk_kind=kind), list(refs[:2]), kube_obj, False, False)
        except _ERRORS as err:
            log.warning("error updating stage1 resource: %s", err)
            self.resource_list.error(str(err))
            raise

    def delete_obj_from_resource_list(self, obj: KubeObject) -> None:
        """Remove every item with the same apiVersion, kind, name and namespace as ``obj``."""
        key = _identity(obj)
        self.resource_list.items[:] = [o for o in self.resource_list.items if _identity(o) != key]

    def fail_for_conditions(self, message: str) -> None:
        """Mark the condition of every for object in the resource list as failed."""
        gvk = (self.config.for_ref.api_version, self.config.for_ref.kind)
        for for_obj in self.resource_list.items:
            if for_obj.group_version_kind != gvk:
                continue
            ref = ObjectReference(for_obj.api_version, for_obj.kind, for_obj.name)
            try:
                self.kptfile.set_condition_ref_failed(ref, message)
            except _ERRORS as err:
                log.warning("set fail for condition failed, err: %s", err)
                self.resource_list.error(str(err))