import pytest

from krmspec.conditions import Condition, ConditionStatus, ObjectReference, get_condition_type
from krmspec.inventory import (
    SPECIALIZER_DELETE,
    Config,
    GVKKind,
    GVKKindContext,
    Inventory,
    ResourceKind,
    update_resource_nop,
)
from krmspec.inventory_diff import DiffObject
from krmspec.kptfile import KptFile
from krmspec.kubeobject import KubeObject, ResourceList
from krmspec.updates import ChildUpdates

KPTFILE = """apiVersion: kpt.dev/v1
kind: Kptfile
metadata:
  name: pkg
info:
  description: test
"""

FOR_REF = ObjectReference("a.a/v1", "A", "a")
OWN_REF = ObjectReference("b.b/v1", "B", "b")


def _obj(ref):
    return KubeObject(
        {"apiVersion": ref.api_version, "kind": ref.kind, "metadata": {"name": ref.name}, "spec": {"x": 1}}
    )


@pytest.fixture
def updates():
    config = Config(
        for_ref=ObjectReference("a.a/v1", "A"),
        owns={ObjectReference("b.b/v1", "B"): ResourceKind.CHILD_REMOTE},
        update_resource_fn=update_resource_nop,
    )
    return ChildUpdates(
        config=config,
        inventory=Inventory(config),
        resource_list=ResourceList(),
        kptfile=KptFile(KubeObject.parse(KPTFILE)),
    )


def test_set_condition_writes_kptfile_and_inventory(updates):
    updates.set_condition(GVKKind.OWN, [FOR_REF, OWN_REF], "hello", ConditionStatus.FALSE, False)
    cond = updates.kptfile.get_condition(get_condition_type(OWN_REF))
    assert cond.reason == get_condition_type(FOR_REF)
    assert cond.message == "hello"
    ctx = updates.inventory.get(GVKKind.OWN, [FOR_REF, OWN_REF])[ObjectReference()]
    assert ctx.existing_condition.message == "hello"


def test_set_condition_marks_failed(updates):
    updates.set_condition(GVKKind.FOR, [FOR_REF], "bad", ConditionStatus.FALSE, True)
    ctx = updates.inventory.get(GVKKind.FOR, [FOR_REF])[ObjectReference()]
    assert ctx.failed is True


def test_set_condition_invalid_refs(updates):
    with pytest.raises(ValueError):
        updates.set_condition(GVKKind.FOR, [ObjectReference("a.a/v1", "A")], "m", ConditionStatus.FALSE, False)


def test_delete_condition(updates):
    updates.set_condition(GVKKind.OWN, [FOR_REF, OWN_REF], "hello", ConditionStatus.FALSE, False)
    updates.delete_condition(GVKKind.OWN, [FOR_REF, OWN_REF])
    assert updates.kptfile.get_condition(get_condition_type(OWN_REF)) is None
    ctx = updates.inventory.get(GVKKind.OWN, [FOR_REF, OWN_REF])[ObjectReference()]
    assert ctx.existing_condition is None


def test_delete_condition_not_in_inventory_reports(updates):
    with pytest.raises(ValueError):
        updates.delete_condition(GVKKind.OWN, [FOR_REF, OWN_REF])
    assert [r.severity for r in updates.resource_list.results] == ["error"]


def test_delete_child_object(updates):
    child = DiffObject(OWN_REF, _obj(OWN_REF), ResourceKind.CHILD_REMOTE)
    updates.delete_child_object(GVKKind.OWN, [FOR_REF, OWN_REF], child, "delete resource")
    assert len(updates.resource_list.items) == 1
    assert updates.resource_list.items[0].get_annotation(SPECIALIZER_DELETE) == "true"
    cond = updates.kptfile.get_condition(get_condition_type(OWN_REF))
    assert cond.status == ConditionStatus.FALSE
    assert cond.message == "delete resource"


def test_upsert_child_remote_writes_object(updates):
    child = DiffObject(OWN_REF, _obj(OWN_REF), ResourceKind.CHILD_REMOTE)
    updates.upsert_child_object(
        GVKKind.OWN, [FOR_REF, OWN_REF], child, None, "create initial resource", ConditionStatus.FALSE, False
    )
    assert updates.resource_list.items == [_obj(OWN_REF)]
    ctx = updates.inventory.get(GVKKind.OWN, [FOR_REF, OWN_REF])[ObjectReference()]
    assert ctx.existing_resource == _obj(OWN_REF)


def test_upsert_child_initial_leaves_object(updates):
    child = DiffObject(OWN_REF, _obj(OWN_REF), ResourceKind.CHILD_INITIAL)
    updates.upsert_child_object(
        GVKKind.OWN, [FOR_REF, OWN_REF], child, None, "update resource", ConditionStatus.FALSE, False
    )
    assert updates.resource_list.items == []
    assert updates.kptfile.get_condition(get_condition_type(OWN_REF)).message == "update resource"


def test_upsert_keeps_existing_condition_reason(updates):
    existing = Condition(type="custom", status=ConditionStatus.FALSE, reason="owner", message="old")
    obj = DiffObject(FOR_REF, _obj(FOR_REF))
    updates.upsert_child_object(GVKKind.FOR, [FOR_REF], obj, existing, "update done", ConditionStatus.TRUE, True)
    cond = updates.kptfile.get_condition("custom")
    assert cond.reason == "owner"
    assert cond.status == ConditionStatus.TRUE
    assert cond.message == "update done"
    assert updates.resource_list.items == [_obj(FOR_REF)]


def test_set_object_invalid_refs(updates):
    with pytest.raises(ValueError):
        updates.set_object_in_resource_list(GVKKind.OWN, [], DiffObject(OWN_REF, _obj(OWN_REF)))


def test_delete_obj_from_resource_list(updates):
    updates.resource_list.upsert(_obj(FOR_REF))
    updates.resource_list.upsert(_obj(OWN_REF))
    updates.delete_obj_from_resource_list(_obj(FOR_REF))
    assert updates.resource_list.items == [_obj(OWN_REF)]


def test_fail_for_conditions(updates):
    updates.resource_list.upsert(_obj(FOR_REF))
    updates.resource_list.upsert(_obj(OWN_REF))
    updates.fail_for_conditions("broken")
    cond = updates.kptfile.get_condition(get_condition_type(FOR_REF))
    assert cond.status == ConditionStatus.FALSE
    assert cond.message == "broken"
    assert updates.kptfile.get_condition(get_condition_type(OWN_REF)) is None


def test_inventory_set_by_context_kind(updates):
    updates.inventory.set(GVKKindContext(gvk_kind=GVKKind.FOR), [FOR_REF], _obj(FOR_REF))
    updates.fail_for_conditions("broken")
    assert updates.kptfile.is_ready(get_condition_type(FOR_REF)) is False