from dataclasses import dataclass, field

import pytest

from krmspec.kubeobject import (
    KubeObject,
    KubeObjectExt,
    ResourceList,
    kube_object_to_struct,
    set_nested_field_keep_formatting,
)


@dataclass
class Deployment:
    apiVersion: str = "apps/v1"
    kind: str = "Deployment"
    metadata: dict = field(default_factory=dict)
    spec: dict = field(default_factory=dict)
    status: dict | None = None


@dataclass
class NoSpecOrStatus:
    apiVersion: str = "x/v1"
    kind: str = "X"


DEPLOY = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: a
  namespace: b
# spec head comment
spec:
  replicas: 3  # keep me
  paused: true
  selector:
    matchLabels:
      install: output
"""


@pytest.mark.parametrize("name,ns", [("a", "b"), ("d", "e")])
def test_from_kube_object_shares_data(name, ns):
    obj = KubeObject.parse(DEPLOY.replace("name: a", f"name: {name}").replace("namespace: b", f"namespace: {ns}"))
    ext = KubeObjectExt.from_kube_object(Deployment, obj)
    assert ext.to_typed().metadata["name"] == ext.nested("metadata", "name") == name


def test_from_yaml_round_trip():
    ext = KubeObjectExt.from_yaml(Deployment, DEPLOY)
    assert ext.to_yaml() == DEPLOY


def test_from_typed():
    d = Deployment(metadata={"name": "a"}, spec={"replicas": 3})
    ext = KubeObjectExt.from_typed(d)
    assert ext.nested("metadata", "name") == "a"
    assert ext.to_typed() == d


def test_set_nested_keeps_comments_and_order():
    obj = KubeObject.parse(DEPLOY)
    set_nested_field_keep_formatting(
        obj, {"paused": False, "replicas": 10, "strategy": {"type": "RollingUpdate"}}, "spec"
    )
    out = obj.to_yaml()
    assert "replicas: 10  # keep me" in out
    assert "# spec head comment" in out
    assert "selector" not in out
    assert out.index("replicas") < out.index("paused") < out.index("strategy")


def test_set_spec_and_status():
    ext = KubeObjectExt.from_yaml(Deployment, DEPLOY)
    d = ext.to_typed()
    d.spec["replicas"] = 7
    d.status = {"replicas": 3}
    ext.set_spec(d)
    ext.set_status(d)
    assert ext.nested("spec", "replicas") == 7
    assert ext.nested("status") == {"replicas": 3}
    assert "# keep me" in ext.to_yaml()


def test_set_from_typed_noop_preserves_text():
    ext = KubeObjectExt.from_yaml(Deployment, DEPLOY)
    ext.set_from_typed(ext.to_typed())
    assert ext.to_yaml() == DEPLOY


def test_list_items_keep_formatting():
    text = "a:\n- name: x  # first\n  port: 1\n- name: y\n"
    obj = KubeObject.parse(text)
    set_nested_field_keep_formatting(obj, [{"name": "y"}, {"name": "x", "port": 2}], "a")
    assert obj.nested("a") == [{"name": "y"}, {"name": "x", "port": 2}]


def test_errors():
    with pytest.raises(ValueError):
        KubeObjectExt.from_kube_object(Deployment, None)
    with pytest.raises(TypeError):
        KubeObjectExt.from_kube_object(Deployment(), KubeObject.parse(DEPLOY))
    with pytest.raises(ValueError):
        kube_object_to_struct(None, Deployment)
    ext = KubeObjectExt.from_typed(NoSpecOrStatus())
    with pytest.raises(AttributeError):
        ext.set_spec(NoSpecOrStatus())
    with pytest.raises(AttributeError):
        ext.set_status(NoSpecOrStatus())


def test_annotations_and_copy():
    obj = KubeObject.parse(DEPLOY)
    assert obj.get_annotation("k") == ""
    clone = obj.copy()
    obj.set_annotation("k", "v")
    assert obj.get_annotation("k") == "v"
    assert clone.get_annotation("k") == ""


def test_resource_list_upsert():
    rl = ResourceList()
    rl.upsert(KubeObject.parse(DEPLOY))
    rl.upsert(KubeObject.parse(DEPLOY.replace("replicas: 3", "replicas: 4")), True)
    assert len(rl.items) == 1
    assert rl.items[0].nested("spec", "replicas") == 4
    with pytest.raises(ValueError):
        rl.upsert(KubeObject.parse(DEPLOY), False)
    rl.upsert(KubeObject.parse("apiVersion: kpt.dev/v1\nkind: Kptfile\nmetadata:\n  name: k\n"))
    assert rl.root_kptfile().name == "k"
    rl.error("boom")
    assert rl.results[0].severity == "error"