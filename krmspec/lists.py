"""Typed filtering of KubeObject lists through a model registry."""

from __future__ import annotations

from typing import Any, Iterable, TypeVar

from krmspec.kubeobject import KubeObject, kube_object_to_struct

T = TypeVar("T")


class Scheme:
    """Maps model types to (apiVersion, kind) pairs."""

    def __init__(self) -> None:
        self._gvks: dict[type, tuple[str, str]] = {}

    def register(self, model: type, gvk: tuple[str, str]) -> None:
        self._gvks[model] = (gvk[0], gvk[1])

    def gvk_of(self, model: type) -> tuple[str, str]:
        try:
            return self._gvks[model]
        except KeyError:
            raise KeyError(f"type {getattr(model, '__name__', model)!r} is not registered") from None


THE_SCHEME = Scheme()


def filter_by_type(
    model: type[T], objs: Iterable[KubeObject], scheme: Scheme | None = None
) -> tuple[list[T], list[KubeObject]]:
    """Split ``objs`` into those of the model's type (converted) and the rest."""
    gvk = (scheme or THE_SCHEME).gvk_of(model)
    matched: list[T] = []
    rest: list[KubeObject] = []
    for obj in objs:
        if obj.group_version_kind == gvk:
            matched.append(kube_object_to_struct(obj, model))
        else:
            rest.append(obj)
    return matched, rest


def get_singleton(model: type[T], objs: Iterable[KubeObject], scheme: Scheme | None = None) -> Any:
    """Return the only object of the model's type, or raise if there is not exactly one."""
    matched, _ = filter_by_type(model, objs, scheme)
    if len(matched) != 1:
        raise ValueError(
            f"expected exactly 1 instance of {model.__name__} in the kpt package, but got {len(matched)}"
        )
    return matched[0]