"""Inventory of the for, own and watch resources and conditions of a function run."""

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from krmspec.conditions import (
    Condition,
    ObjectReference,
    _is_wildcard_ref,
    _refs_string,
    _validate_gvk_ref,
)
from krmspec.kubeobject import KubeObject

log = logging.getLogger(__name__)

SPECIALIZER_OWNER = "specializer.nephio.org/owner"
SPECIALIZER_DELETE = "specializer.nephio.org/delete"
SPECIALIZER_DEBUG = "specializer.nephio.org/debug"
SPECIALIZER_FOR = "specializer.nephio.org/for"
SPECIALIZER_VLAN_CLAIM_NAME = "specializer.nephio.org/vlanClaimName"
SPECIALIZER_NAMESPACE = "specializer.nephio.org/namespace"


class ResourceKind(str, Enum):
    """How a child resource is handled."""

    CHILD_REMOTE_CONDITION = "remoteCondition"
    CHILD_REMOTE = "remote"
    CHILD_LOCAL = "local"
    CHILD_INITIAL = "initial"


class GVKKind(str, Enum):
    FOR = "for"
    OWN = "own"
    WATCH = "watch"


def update_resource_nop(for_obj: KubeObject | None, objs: list[KubeObject]) -> list[KubeObject]:
    """An update function that produces nothing."""
    return []


@dataclass
class Config:
    """What a function acts on, owns and watches, and its callbacks."""

    for_ref: ObjectReference = field(default_factory=ObjectReference)
    owns: dict[ObjectReference, ResourceKind] = field(default_factory=dict)
    watch: dict[ObjectReference, Callable[[KubeObject | None], None] | None] = field(
        default_factory=dict
    )
    populate_own_resources_fn: Callable[[KubeObject], list[KubeObject]] | None = None
    update_resource_fn: Callable[[KubeObject | None, list[KubeObject]], list[KubeObject]] | None = None
    root: bool = False


@dataclass
class GVKKindContext:
    gvk_kind: GVKKind | None = None
    own_kind: ResourceKind | None = None
    callback: Callable[[KubeObject | None], None] | None = None


@dataclass
class ResourceContext:
    """The state the inventory holds for one resource."""

    gvk_kind: GVKKind | None = None
    own_kind: ResourceKind | None = None
    callback: Callable[[KubeObject | None], None] | None = None
    existing_condition: Condition | None = None
    existing_resource: KubeObject | None = None
    new_resource: KubeObject | None = None
    failed: bool = False

    def copy(self) -> "ResourceContext":
        """Copy with its own condition; objects keep sharing their document."""
        cond = self.existing_condition
        return dataclasses.replace(
            self, existing_condition=dataclasses.replace(cond) if cond is not None else None
        )


@dataclass(frozen=True)
class SdkObjectReference:
    gvk_kind: GVKKind
    ref: ObjectReference


@dataclass
class _ResourceNode:
    context: ResourceContext = field(default_factory=ResourceContext)
    children: dict[SdkObjectReference, "_ResourceNode"] = field(default_factory=dict)

    def set(self, refs, kind_ctx, item, new_resource, failed) -> None:
        node = self
        for sdk_ref in refs:
            node = node.children.setdefault(sdk_ref, _ResourceNode())
        ctx = node.context
        ctx.failed = failed
        if isinstance(item, Condition):
            ctx.existing_condition = dataclasses.replace(item)
        elif isinstance(item, KubeObject):
            ctx.gvk_kind = kind_ctx.gvk_kind
            ctx.own_kind = kind_ctx.own_kind
            ctx.callback = kind_ctx.callback
            if new_resource:
                ctx.new_resource = item
            else:
                ctx.existing_resource = item
        else:
            raise TypeError(f"unsupported object: {item!r}")

    def delete(self, refs) -> None:
        node = self
        for sdk_ref in refs:
            if sdk_ref not in node.children:
                raise KeyError("not found")
            node = node.children[sdk_ref]
        node.context.existing_condition = None

    def get(self, refs) -> dict[ObjectReference, ResourceContext]:
        node = self
        for sdk_ref in refs:
            if sdk_ref.ref == ObjectReference():
                return {
                    s.ref: child.context.copy()
                    for s, child in node.children.items()
                    if s.gvk_kind == sdk_ref.gvk_kind
                }
            if sdk_ref not in node.children:
                return {}
            node = node.children[sdk_ref]
        if not node.children:
            return {ObjectReference(): node.context.copy()}
        return {s.ref: child.context.copy() for s, child in node.children.items()}

    def list(self) -> list[list[SdkObjectReference]]:
        entries = []
        for parent, child in self.children.items():
            entries.append([parent])
            entries.extend([parent, s] for s in child.children)
        return entries


def _sdk_refs(kind: GVKKind, refs: Sequence[ObjectReference]) -> list[SdkObjectReference]:
    if len(refs) == 0:
        raise ValueError("cannot walk resource tree with empty ref")
    if len(refs) == 1:
        if kind not in (GVKKind.FOR, GVKKind.WATCH):
            log.debug("sdk refs: kind: %s, objs: %s", kind.value, _refs_string(*refs))
            raise ValueError("refs with len 1 only allowed for for/watch")
        return [SdkObjectReference(kind, refs[0])]
    if len(refs) == 2:
        if kind == GVKKind.FOR:
            raise ValueError("refs with len 2 only allowed for own/watch")
        return [SdkObjectReference(GVKKind.FOR, refs[0]), SdkObjectReference(kind, refs[1])]
    raise ValueError(f"refs with len > 2, got {len(refs)}")


def _gvk_key(ref: ObjectReference) -> ObjectReference:
    return ObjectReference(api_version=ref.api_version, kind=ref.kind)


class Inventory:
    """Holds the GVKs of a config and the resources and conditions met at runtime."""

    def __init__(self, config: Config) -> None:
        self._lock = threading.RLock()
        self.gvk_resources: dict[ObjectReference, GVKKindContext] = {}
        self._root = _ResourceNode()
        self.ready = True
        self.debug = False
        self._initialize(config)

    def _initialize(self, config: Config) -> None:
        _validate_gvk_ref(config.for_ref)
        if _is_wildcard_ref(config.for_ref):
            raise ValueError("no wildcard refs allowed in for reference")
        self.add_gvk_reference(GVKKindContext(gvk_kind=GVKKind.FOR), config.for_ref)
        for obj_ref, own_kind in config.owns.items():
            _validate_gvk_ref(obj_ref)
            if _is_wildcard_ref(obj_ref) and own_kind != ResourceKind.CHILD_INITIAL:
                raise ValueError("only childLocal wildcard refs allowed in own reference")
            self.add_gvk_reference(GVKKindContext(gvk_kind=GVKKind.OWN, own_kind=own_kind), obj_ref)
        for obj_ref, callback in config.watch.items():
            _validate_gvk_ref(obj_ref)
            if _is_wildcard_ref(obj_ref):
                raise ValueError("no wildcard refs allowed in watch resource reference")
            self.add_gvk_reference(GVKKindContext(gvk_kind=GVKKind.WATCH, callback=callback), obj_ref)
        if config.update_resource_fn is None:
            raise ValueError("a function always needs a GenerateResource function")

    def add_gvk_reference(self, kind_ctx: GVKKindContext, ref: ObjectReference) -> None:
        with self._lock:
            key = _gvk_key(ref)
            existing = self.gvk_resources.get(key)
            if existing is not None:
                kind = existing.gvk_kind.value if existing.gvk_kind else ""
                raise ValueError(f"another resource with a different kind {kind} already exists")
            self.gvk_resources[key] = kind_ctx

    def match_gvk(self, ref: ObjectReference | None) -> GVKKindContext | None:
        """The context registered for the ref's GVK, falling back to a wildcard entry."""
        if ref is None:
            return None
        with self._lock:
            ctx = self.gvk_resources.get(_gvk_key(ref))
            if ctx is None:
                ctx = self.gvk_resources.get(ObjectReference(api_version="*", kind="*"))
            return ctx

    def set(
        self,
        kind_ctx: GVKKindContext,
        refs: Sequence[ObjectReference],
        item: Any,
        new_resource: bool = False,
        failed: bool = False,
    ) -> None:
        with self._lock:
            self._root.set(_sdk_refs(kind_ctx.gvk_kind, refs), kind_ctx, item, new_resource, failed)

    def delete(self, kind_ctx: GVKKindContext, refs: Sequence[ObjectReference]) -> None:
        """Clear the existing condition at the given refs."""
        with self._lock:
            self._root.delete(_sdk_refs(kind_ctx.gvk_kind, refs))

    def get(self, kind: GVKKind, refs: Sequence[ObjectReference]) -> dict[ObjectReference, ResourceContext]:
        """Copies of the contexts at the refs; an empty reference selects all of its kind."""
        with self._lock:
            try:
                sdk_refs = _sdk_refs(kind, refs)
            except ValueError as err:
                log.debug("cannot get sdkrefs: %s", err)
                return {}
            return self._root.get(sdk_refs)

    def list(self) -> list[list[SdkObjectReference]]:
        with self._lock:
            return self._root.list()