"""Condition-driven specialization of KRM resource lists and Kptfiles."""

__version__ = "0.1.0"

__all__ = [
    "conditions",
    "inventory",
    "inventory_diff",
    "inventory_ready",
    "kptfile",
    "kptrl",
    "kubeobject",
    "lists",
    "populate",
    "sdk",
    "specialization",
    "stage1",
    "stage2",
    "updates",
]