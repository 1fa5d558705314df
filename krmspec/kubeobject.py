"""KRM objects backed by round-trip YAML, with formatting-preserving updates."""

from __future__ import annotations

import copy as _copy
import dataclasses
import io
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq

T = TypeVar("T")


def _yaml() -> YAML:
    y = YAML(typ="rt")
    y.preserve_quotes = True
    y.width = 4096
    return y


def _to_plain(value: Any) -> Any:
    """Convert dataclasses and YAML containers into plain dicts, lists and scalars."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: _to_plain(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if getattr(value, f.name) is not None
        }
    if isinstance(value, Mapping):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value


def _to_node(value: Any) -> Any:
    value = _to_plain(value)
    if isinstance(value, dict):
        node = CommentedMap()
        for k, v in value.items():
            node[k] = _to_node(v)
        return node
    if isinstance(value, list):
        return CommentedSeq(_to_node(v) for v in value)
    return value


def _matches(src: Any, dst: Any) -> bool:
    """Whether formatting of ``src`` should carry over to ``dst``."""
    if isinstance(src, Mapping):
        if not isinstance(dst, Mapping):
            return False
        for key, value in src.items():
            if not isinstance(key, str) or key not in dst:
                return False
            if not _matches(value, dst[key]):
                return False
        return True
    if isinstance(src, list):
        return isinstance(dst, list)
    if isinstance(dst, (Mapping, list)):
        return False
    return src == dst


def _merge(old: Any, new: Any) -> Any:
    """Write ``new`` into ``old`` in place where possible, keeping order and comments."""
    new = _to_plain(new)
    if isinstance(old, CommentedMap) and isinstance(new, dict):
        for key in [k for k in old if k not in new]:
            del old[key]
        for key, value in new.items():
            old[key] = _merge(old[key], value) if key in old else _to_node(value)
        return old
    if isinstance(old, CommentedSeq) and isinstance(new, list):
        pool = list(old)
        items = []
        for item in new:
            idx = next((i for i, o in enumerate(pool) if _matches(o, item)), None)
            if idx is None:
                items.append(_to_node(item))
            else:
                items.append(_merge(pool.pop(idx), item))
        del old[:]
        old.extend(items)
        return old
    return _to_node(new)


class KubeObject:
    """A Kubernetes resource held as a round-trip YAML mapping."""

    def __init__(self, data: CommentedMap | Mapping | None = None) -> None:
        if data is None:
            data = CommentedMap()
        elif not isinstance(data, CommentedMap):
            data = _to_node(data)
        self._data: CommentedMap = data

    @classmethod
    def parse(cls, text: str | bytes) -> "KubeObject":
        if isinstance(text, bytes):
            text = text.decode()
        data = _yaml().load(text)
        if not isinstance(data, CommentedMap):
            raise ValueError("input is not a YAML mapping")
        return cls(data)

    def to_yaml(self) -> str:
        buf = io.StringIO()
        _yaml().dump(self._data, buf)
        return buf.getvalue()

    def __str__(self) -> str:
        return self.to_yaml()

    def as_dict(self) -> dict:
        return _to_plain(self._data)

    def copy(self) -> "KubeObject":
        return KubeObject(_copy.deepcopy(self._data))

    @property
    def api_version(self) -> str:
        return str(self._data.get("apiVersion") or "")

    @property
    def kind(self) -> str:
        return str(self._data.get("kind") or "")

    @property
    def name(self) -> str:
        return str(self.nested("metadata", "name") or "")

    @property
    def namespace(self) -> str:
        return str(self.nested("metadata", "namespace") or "")

    @property
    def group_version_kind(self) -> tuple[str, str]:
        return (self.api_version, self.kind)

    def get_annotation(self, key: str) -> str:
        value = self.nested("metadata", "annotations", key)
        return "" if value is None else str(value)

    def set_annotation(self, key: str, value: str) -> None:
        self.set_nested(str(value), "metadata", "annotations", key)

    def nested(self, *args: str) -> Any:
        """Return a plain copy of the value at the path, or None if absent."""
        node: Any = self._data
        for key in args:
            if not isinstance(node, Mapping) or key not in node:
                return None
            node = node[key]
        return _to_plain(node)

    def _container(self, path: tuple[str, ...]) -> CommentedMap:
        node = self._data
        for key in path:
            child = node.get(key)
            if not isinstance(child, CommentedMap):
                child = CommentedMap()
                node[key] = child
            node = child
        return node

    def set_nested(self, value: Any, *args: str) -> None:
        if not args:
            raise ValueError("a field path is required")
        self._container(args[:-1])[args[-1]] = _to_node(value)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, KubeObject) and self.as_dict() == other.as_dict()

    def __repr__(self) -> str:
        return f"KubeObject({self.api_version}/{self.kind} {self.name!r})"


def set_nested_field_keep_formatting(obj: KubeObject, value: Any, *args: str) -> None:
    """Set a field (or the whole object when no path is given) keeping comments and field order."""
    if not args:
        _merge(obj._data, value)
        return
    parent = obj._container(args[:-1])
    key = args[-1]
    if key in parent:
        parent[key] = _merge(parent[key], value)
    else:
        parent[key] = _to_node(value)


def _validate_model(model: Any) -> None:
    if not isinstance(model, type) or not (
        dataclasses.is_dataclass(model) or hasattr(model, "from_dict")
    ):
        raise TypeError(f"{model!r} is not a structured model type")


def _build(model: type[T], data: Mapping) -> T:
    if hasattr(model, "from_dict"):
        return model.from_dict(data)
    names = {f.name for f in dataclasses.fields(model)}
    return model(**{k: v for k, v in data.items() if k in names})


def kube_object_to_struct(obj: KubeObject | None, model: type[T]) -> T:
    """Convert a KubeObject into an instance of ``model``."""
    if obj is None:
        raise ValueError("cannot convert a missing KubeObject")
    _validate_model(model)
    return _build(model, obj.as_dict())


class KubeObjectExt(KubeObject, Generic[T]):
    """A KubeObject bound to a typed model."""

    def __init__(self, data: Any, model: type[T]) -> None:
        _validate_model(model)
        super().__init__(data)
        self.model = model

    @classmethod
    def from_kube_object(cls, model: type[T], obj: KubeObject | None) -> "KubeObjectExt[T]":
        _validate_model(model)
        if obj is None:
            raise ValueError("cannot initialize with a missing object")
        return cls(obj._data, model)

    @classmethod
    def from_yaml(cls, model: type[T], text: str | bytes) -> "KubeObjectExt[T]":
        _validate_model(model)
        return cls.from_kube_object(model, KubeObject.parse(text))

    @classmethod
    def from_typed(cls, value: T) -> "KubeObjectExt[T]":
        if value is None:
            raise ValueError("cannot initialize with a missing value")
        model = type(value)
        _validate_model(model)
        return cls(_to_node(value), model)

    def to_typed(self) -> T:
        return _build(self.model, self.as_dict())

    def unsafe_set_spec(self, spec: Any) -> None:
        set_nested_field_keep_formatting(self, spec, "spec")

    def unsafe_set_status(self, status: Any) -> None:
        set_nested_field_keep_formatting(self, status, "status")

    def set_from_typed(self, value: T) -> None:
        set_nested_field_keep_formatting(self, value)

    def _field(self, value: T, name: str) -> Any:
        if not hasattr(value, name):
            raise AttributeError(f"type {type(value).__name__!r} has no {name!r} field")
        return getattr(value, name)

    def set_spec(self, value: T) -> None:
        set_nested_field_keep_formatting(self, self._field(value, "spec"), "spec")

    def set_status(self, value: T) -> None:
        set_nested_field_keep_formatting(self, self._field(value, "status"), "status")

    def set_nested_field_keep_formatting(self, value: Any, *args: str) -> None:
        set_nested_field_keep_formatting(self, value, *args)


@dataclass
class Result:
    """A message reported by a function run."""

    message: str
    severity: str = "error"


@dataclass
class ResourceList:
    """The items of a package and the results reported against them."""

    items: list[KubeObject] = field(default_factory=list)
    results: list[Result] = field(default_factory=list)

    @staticmethod
    def _key(obj: KubeObject) -> tuple[str, str, str, str]:
        return (obj.api_version, obj.kind, obj.namespace, obj.name)

    def upsert(self, obj: KubeObject, replace: bool = True) -> None:
        """Add ``obj`` or, when an object with the same identity exists, replace it."""
        key = self._key(obj)
        for idx, existing in enumerate(self.items):
            if self._key(existing) == key:
                if not replace:
                    raise ValueError(f"object {key} already exists")
                self.items[idx] = obj
                return
        self.items.append(obj)

    def root_kptfile(self) -> KubeObject | None:
        for obj in self.items:
            if obj.kind == "Kptfile":
                path = obj.get_annotation("internal.config.kubernetes.io/path")
                if path in ("", "Kptfile"):
                    return obj
        return None

    def error(self, message: str) -> None:
        self.results.append(Result(str(message), "error"))

    def info(self, message: str) -> None:
        self.results.append(Result(str(message), "info"))