"""Build a ResourceList from a mapping of package file paths to contents."""

from __future__ import annotations

import fnmatch
import posixpath
from collections.abc import Mapping

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from krmspec.kubeobject import KubeObject, ResourceList

PATH_ANNOTATION = "internal.config.kubernetes.io/path"
_PATTERNS = ("*.yaml", "*.yml", "Kptfile")


def _include_file(path: str) -> bool:
    base = posixpath.basename(path)
    return any(fnmatch.fnmatchcase(base, p) for p in _PATTERNS)


def get_resource_list(resources: Mapping[str, str]) -> ResourceList:
    """Parse every YAML document of the matching files into a ResourceList."""
    yaml = YAML(typ="rt")
    yaml.preserve_quotes = True
    rl = ResourceList()
    for path in sorted(resources):
        if not _include_file(path):
            continue
        for doc in yaml.load_all(resources[path]):
            if doc is None:
                continue
            if not isinstance(doc, CommentedMap):
                raise ValueError(f"{path}: document is not a YAML mapping")
            obj = KubeObject(doc)
            obj.set_annotation(PATH_ANNOTATION, path)
            rl.upsert(obj, True)
    return rl