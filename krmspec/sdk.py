"""Drive a conditional function run over a resource list."""

from __future__ import annotations

import logging

from krmspec.conditions import ObjectReference, get_condition_type
from krmspec.inventory import SPECIALIZER_DEBUG, Config, Inventory
from krmspec.kptfile import KptFile
from krmspec.kubeobject import ResourceList
from krmspec.populate import InventoryPopulation
from krmspec.specialization import (
    failed,
    initialized,
    not_ready,
    ready,
    specialization_condition_type,
)
from krmspec.stage1 import Stage1
from krmspec.stage2 import Stage2
from krmspec.updates import _ERRORS

log = logging.getLogger(__name__)


class KptCondSDK(Stage1, Stage2, InventoryPopulation):
    """Runs the populate, stage 1 and stage 2 pipeline for one function config."""

    def __init__(self, resource_list: ResourceList | None, config: Config) -> None:
        self.config = config
        self.inventory = Inventory(config)
        self.resource_list = resource_list
        self.kptfile: KptFile | None = None
        self.debug = False

    def run(self) -> bool:
        """Process the resource list; raise ValueError when the package cannot be handled."""
        rl = self.resource_list
        if not rl.items:
            rl.info("no resources present in the resourcelist")
            return True

        kptfile_obj = rl.root_kptfile()
        if kptfile_obj is None:
            message = "mandatory Kptfile is missing from the package"
            log.error(message)
            rl.error(message)
            raise ValueError(message)
        self.kptfile = KptFile(kptfile_obj)

        if self.config.root:
            try:
                self.ensure_conditions_and_gates()
            except _ERRORS as err:
                message = "cannot ensure specialize conditions and readiness gates"
                log.error("%s, error: %s", message, err)
                rl.error(f"{message}, error: {err}")
                raise ValueError(f"{message}: {err}") from err

        self._set_debug()
        try:
            self.populate_inventory()
        except _ERRORS as err:
            self.fail_for_conditions(f"stage1: cannot populate inventory, err: {err}")
            return True
        if self.debug:
            self.list_inventory()

        # global watches inform the function; a failure makes the run not ready
        try:
            self.call_global_watches()
        except Exception as err:  # callbacks are user code
            if self.config.root:
                try:
                    self.kptfile.set_conditions(failed(str(err)))
                except _ERRORS as cerr:
                    log.warning("set conditions, err: %s", cerr)
                    rl.error(str(cerr))
            else:
                self.fail_for_conditions(str(err))

        # stage 1: generate children as if nothing existed, then reconcile
        if self.inventory.ready and self.config.owns:
            self.populate_children()
        if self.debug:
            self.list_inventory()
        self.update_children()

        # stage 2: update the for resources that are ready
        self.update_resources()

        if self.config.root and self.inventory.ready:
            prefix = get_condition_type(
                ObjectReference(self.config.for_ref.api_version, self.config.for_ref.kind)
            )
            condition = ready() if self.kptfile.is_ready(prefix) else not_ready()
            try:
                self.kptfile.set_conditions(condition)
            except _ERRORS as err:
                log.warning("set conditions, err: %s", err)
                rl.error(str(err))
        return True

    def _set_debug(self) -> None:
        """Enable debugging when a for object carries the debug annotation."""
        gvk = (self.config.for_ref.api_version, self.config.for_ref.kind)
        for obj in self.resource_list.items:
            if obj.group_version_kind == gvk and obj.get_annotation(SPECIALIZER_DEBUG):
                self.debug = True
                self.inventory.debug = True

    def list_inventory(self) -> None:
        """Log every entry of the inventory."""
        for entry in self.inventory.list():
            log.debug("resources entry: %s", entry)

    def ensure_conditions_and_gates(self) -> None:
        """Add the specialization readiness gate, and its condition when absent."""
        condition_type = specialization_condition_type()
        self.kptfile.set_readiness_gates(condition_type)
        if self.kptfile.get_condition(condition_type) is None:
            try:
                self.kptfile.set_conditions(initialized())
            except _ERRORS as err:
                log.warning("set conditions, err: %s", err)
                self.resource_list.error(str(err))