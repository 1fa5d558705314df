import pytest

from krmspec.conditions import Condition, ConditionStatus, ObjectReference, get_condition_type
from krmspec.inventory import (
    SPECIALIZER_DELETE,
    SPECIALIZER_OWNER,
    Config,
    GVKKind,
    GVKKindContext,
    Inventory,
    ResourceKind,
    update_resource_nop,
)
from krmspec.inventory_diff import DiffObject, InventoryDiff
from krmspec.kptfile import KptFile
from krmspec.kubeobject import KubeObject, ResourceList
from krmspec.stage1 import Stage1, diff_keys_in_order, sort_objects

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


def _stage(own_kind=ResourceKind.CHILD_REMOTE, populate=None):
    config = Config(
        for_ref=ObjectReference("a.a/v1", "A"),
        owns={ObjectReference("b.b/v1", "B"): own_kind},
        populate_own_resources_fn=populate,
        update_resource_fn=update_resource_nop,
    )
    return Stage1(
        config=config,
        inventory=Inventory(config),
        resource_list=ResourceList(),
        kptfile=KptFile(KubeObject.parse(KPTFILE)),
    )


def test_sort_objects_orders_by_kind_first():
    first = DiffObject(ObjectReference("z/v1", "A", "n"))
    second = DiffObject(ObjectReference("a/v1", "B", "n"))
    assert sort_objects([second, first]) == [first, second]


def test_diff_keys_in_order():
    r1 = ObjectReference("a/v1", "A", "y")
    r2 = ObjectReference("a/v1", "A", "x")
    r3 = ObjectReference("a/v1", "B", "a")
    keys = diff_keys_in_order({r3: InventoryDiff(), r1: InventoryDiff(), r2: InventoryDiff()})
    assert keys == [r2, r1, r3]


def test_populate_children_records_new_resource():
    stage = _stage(populate=lambda for_obj: [_obj(OWN_REF)])
    stage.inventory.set(GVKKindContext(gvk_kind=GVKKind.FOR), [FOR_REF], _obj(FOR_REF))
    stage.populate_children()
    ctx = stage.inventory.get(GVKKind.OWN, [FOR_REF, OWN_REF])[ObjectReference()]
    assert ctx.new_resource.get_annotation(SPECIALIZER_OWNER) == get_condition_type(FOR_REF)
    assert ctx.existing_resource is None


def test_populate_children_callback_error():
    def boom(for_obj):
        raise RuntimeError("boom")

    stage = _stage(populate=boom)
    stage.inventory.set(GVKKindContext(gvk_kind=GVKKind.FOR), [FOR_REF], _obj(FOR_REF))
    stage.populate_children()
    cond = stage.kptfile.get_condition(get_condition_type(FOR_REF))
    assert cond.status == ConditionStatus.FALSE
    assert cond.message.startswith("stage1: cannot populate new resource err:")
    ctx = stage.inventory.get(GVKKind.FOR, [FOR_REF])[ObjectReference()]
    assert ctx.failed is True


def test_populate_children_unknown_gvk():
    stage = _stage(populate=lambda for_obj: [_obj(ObjectReference("c.c/v1", "C", "c"))])
    stage.inventory.set(GVKKindContext(gvk_kind=GVKKind.FOR), [FOR_REF], _obj(FOR_REF))
    stage.populate_children()
    cond = stage.kptfile.get_condition(get_condition_type(FOR_REF))
    assert "cannot find new resource in gvkmap" in cond.message


def test_update_children_creates_remote_child():
    stage = _stage()
    stage.inventory.set(GVKKindContext(gvk_kind=GVKKind.FOR), [FOR_REF], _obj(FOR_REF))
    own_ctx = GVKKindContext(gvk_kind=GVKKind.OWN, own_kind=ResourceKind.CHILD_REMOTE)
    stage.inventory.set(own_ctx, [FOR_REF, OWN_REF], _obj(OWN_REF), True)
    stage.update_children()
    assert stage.resource_list.items == [_obj(OWN_REF)]
    own_cond = stage.kptfile.get_condition(get_condition_type(OWN_REF))
    assert own_cond.message == "create initial resource"
    assert own_cond.status == ConditionStatus.FALSE
    assert stage.kptfile.get_condition(get_condition_type(FOR_REF)).message == "update for condition"


def test_update_children_local_child_is_true():
    stage = _stage(own_kind=ResourceKind.CHILD_LOCAL)
    stage.inventory.set(GVKKindContext(gvk_kind=GVKKind.FOR), [FOR_REF], _obj(FOR_REF))
    own_ctx = GVKKindContext(gvk_kind=GVKKind.OWN, own_kind=ResourceKind.CHILD_LOCAL)
    stage.inventory.set(own_ctx, [FOR_REF, OWN_REF], _obj(OWN_REF), True)
    stage.update_children()
    assert stage.kptfile.get_condition(get_condition_type(OWN_REF)).status == ConditionStatus.TRUE


def test_update_children_not_ready_deletes():
    stage = _stage()
    for_cond = Condition(type=get_condition_type(FOR_REF), status=ConditionStatus.FALSE, message="m")
    stage.kptfile.set_conditions(for_cond)
    stage.inventory.set(GVKKindContext(gvk_kind=GVKKind.FOR), [FOR_REF], for_cond)
    own_ctx = GVKKindContext(gvk_kind=GVKKind.OWN, own_kind=ResourceKind.CHILD_REMOTE)
    stage.inventory.set(own_ctx, [FOR_REF, OWN_REF], _obj(OWN_REF))
    stage.inventory.set(
        own_ctx,
        [FOR_REF, OWN_REF],
        Condition(type=get_condition_type(OWN_REF), status=ConditionStatus.TRUE),
    )
    stage.inventory.ready = False
    stage.update_children()
    assert stage.kptfile.get_condition(get_condition_type(FOR_REF)) is None
    assert len(stage.resource_list.items) == 1
    assert stage.resource_list.items[0].get_annotation(SPECIALIZER_DELETE) == "true"
    assert stage.kptfile.get_condition(get_condition_type(OWN_REF)).message == "not ready"


@pytest.mark.parametrize("own_kind", [ResourceKind.CHILD_INITIAL, ResourceKind.CHILD_REMOTE_CONDITION])
def test_update_children_non_written_kinds(own_kind):
    stage = _stage(own_kind=own_kind)
    stage.inventory.set(GVKKindContext(gvk_kind=GVKKind.FOR), [FOR_REF], _obj(FOR_REF))
    own_ctx = GVKKindContext(gvk_kind=GVKKind.OWN, own_kind=own_kind)
    stage.inventory.set(own_ctx, [FOR_REF, OWN_REF], _obj(OWN_REF), True)
    stage.update_children()
    assert stage.resource_list.items == []
    assert stage.kptfile.get_condition(get_condition_type(OWN_REF)).message == "create initial resource"