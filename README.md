# krmspec

`krmspec` is a library for functions that specialize KRM (Kubernetes Resource
Model) packages. It reads a package's YAML files into a resource list and
records progress as conditions in the package's `Kptfile`. It generates child
resources for each "for" resource, then creates, updates or marks them for
deletion based on how they differ from what already exists. Once all children
of a "for" resource are ready, it hands them to an update callback.

## Installation

```
pip install krmspec
```

## Modules

- `krmspec.kubeobject`
  - `KubeObject` wraps a YAML mapping and keeps its comments and key order.
    It provides `parse`, `to_yaml`, `as_dict`, `copy`, `get_annotation`,
    `set_annotation`, `nested` and `set_nested`, and the properties
    `api_version`, `kind`, `name`, `namespace` and `group_version_kind`.
  - `set_nested_field_keep_formatting(obj, value, *path)` replaces a field, or
    the whole object when no path is given. Existing comments and field order
    are kept wherever keys and list items still match.
  - `kube_object_to_struct(obj, model)` converts an object into a dataclass,
    or into a class that has a `from_dict` classmethod.
  - `KubeObjectExt` is a `KubeObject` bound to such a model. It is built with
    `from_kube_object`, `from_yaml` or `from_typed`. It offers `to_typed`,
    `set_from_typed`, `set_spec`, `set_status`, `unsafe_set_spec`,
    `unsafe_set_status` and `set_nested_field_keep_formatting`.
    `set_spec` and `set_status` raise `AttributeError` when the value has no
    `spec` or `status` attribute.
  - `ResourceList` holds `items` and `results`. It provides `upsert`,
    `root_kptfile`, `error` and `info`. `Result` is one reported message with
    its severity.
- `krmspec.lists`
  - `Scheme` maps model types to `(apiVersion, kind)` pairs through `register`
    and `gvk_of`.
  - `filter_by_type(model, objs, scheme=None)` returns the matching objects,
    converted to the model, together with the remaining objects.
  - `get_singleton(model, objs, scheme=None)` returns the one matching object
    and raises `ValueError` unless there is exactly one.
  - When no scheme is passed, both use the module-level `THE_SCHEME`.
- `krmspec.kptrl`
  - `get_resource_list(files)` turns a mapping of file paths to file contents
    into a `ResourceList`. Only files whose base name matches `*.yaml`,
    `*.yml` or `Kptfile` are read. Every YAML document becomes an item, and
    the item's `internal.config.kubernetes.io/path` annotation is set to its
    file path.
- `krmspec.conditions`
  - The types `ObjectReference`, `Condition`, `ConditionStatus` and
    `ReadinessGate`.
  - `get_condition_type(ref)` builds a condition type from the apiVersion,
    kind and name, for example `a.a/a.b.c`.
  - `gvkn_from_condition_type` reverses `get_condition_type`.
  - `condition_by_ref` builds the condition for one or two references.
- `krmspec.kptfile`
  - `KptFile` reads and edits a Kptfile's `info.readinessGates` and
    `status.conditions`. It provides `readiness_gates`, `has_readiness_gate`,
    `set_readiness_gates`, `conditions`, `get_condition`, `set_conditions`,
    `delete_condition`, `delete_condition_ref`, `set_condition_ref_failed`
    and `is_ready`.
- `krmspec.inventory`
  - `Config` describes what the function acts on: `for_ref`, `owns`, `watch`,
    `populate_own_resources_fn`, `update_resource_fn` and `root`.
  - `ResourceKind` lists the kinds of owned children: `CHILD_REMOTE`,
    `CHILD_REMOTE_CONDITION`, `CHILD_LOCAL` and `CHILD_INITIAL`.
  - `Inventory` records "for", "own" and "watch" resources and conditions.
  - `update_resource_nop` is an update callback that returns nothing.
- `krmspec.inventory_diff`
  - `compute_diff` and `get_spec` work out the create, update and delete
    actions. The actions are returned as `InventoryDiff` values.
- `krmspec.inventory_ready`
  - `ready_map` reports the readiness of each "for" resource as a
    `ReadyContext`.
- `krmspec.specialization`
  - Builds the package-wide specialization condition, whose type is
    `nephio.org.Specializer.specialize`, through `initialized`, `failed`,
    `not_ready` and `ready`.
- `krmspec.updates`, `krmspec.stage1`, `krmspec.stage2` and `krmspec.populate`
  - The steps of a run: `ChildUpdates`, `Stage1`, `Stage2` and
    `InventoryPopulation`.
- `krmspec.sdk`
  - `KptCondSDK` runs the whole pipeline.

## Example

```python
from krmspec.conditions import ObjectReference
from krmspec.inventory import Config, ResourceKind
from krmspec.kptrl import get_resource_list
from krmspec.kubeobject import KubeObject
from krmspec.sdk import KptCondSDK

files = {
    "Kptfile": """\
apiVersion: kpt.dev/v1
kind: Kptfile
metadata:
  name: pkg
""",
    "app.yaml": """\
apiVersion: example.com/v1alpha1
kind: App
metadata:
  name: app
spec:
  size: small
""",
}
resource_list = get_resource_list(files)


def populate(for_obj):
    # The children that should exist for this "for" resource.
    claim = KubeObject({
        "apiVersion": "example.com/v1alpha1",
        "kind": "Claim",
        "metadata": {"name": f"{for_obj.name}-claim"},
        "spec": {"size": for_obj.nested("spec", "size")},
    })
    return [claim]


def update(for_obj, objs):
    # Called once all children are ready; return the updated "for" resource.
    return [for_obj]


config = Config(
    for_ref=ObjectReference(api_version="example.com/v1alpha1", kind="App"),
    owns={
        ObjectReference(api_version="example.com/v1alpha1", kind="Claim"): ResourceKind.CHILD_REMOTE,
    },
    populate_own_resources_fn=populate,
    update_resource_fn=update,
)

KptCondSDK(resource_list, config).run()

for item in resource_list.items:
    print(item.to_yaml())
```

`Inventory` (and therefore `KptCondSDK`) raises `ValueError` in these cases:

- the config has no valid `for_ref`;
- the `for_ref` is a wildcard;
- two entries share an apiVersion and kind;
- `update_resource_fn` is missing.

When the resource list is not empty, `run()` also raises `ValueError` if there
is no root Kptfile. With `root=True`, the run also adds the specialization
readiness gate and condition. At the end of the run it sets that condition to
ready or not ready.

Run the pipeline once each time the package changes. Each run brings the
children, the conditions and the readiness of every "for" resource up to date.

## Debugging

If a "for" resource has the `specializer.nephio.org/debug` annotation, the run
logs each step at `DEBUG` level through the standard `logging` loggers named
after the `krmspec` modules. This includes the inventory contents.

## What it does not do

`krmspec` is a library only:

- It has no command-line program.
- It does not read a resource list from standard input or write one to
  standard output.
- It does not write files back to disk.

The caller loads the files, passes them to `get_resource_list` and writes out
the resulting `ResourceList.items`.

## Tests

```
pip install krmspec[test]
pytest
```