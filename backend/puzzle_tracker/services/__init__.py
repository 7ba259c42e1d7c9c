"""Business logic services for the Puzzle tracker.

This package intentionally avoids eager imports to prevent circular import
chains during application startup.
"""

from importlib import import_module

__all__ = [
    # Records
    "CareNetwork",
    "InMemoryRecordStore",
    "SQLRecordStore",
    # Analytics
    "Population",
    "RiskTier",
    "classify",
    "facility_metrics",
    "project_rth",
    # Alerts
    "AlertGenerator",
    "AlertRules",
    # Tenancy
    "TenantClaim",
    "TenantRole",
    "TenantViewResolver",
    # Workflow
    "PatientWorkflow",
]

_LAZY_IMPORTS = {
    "CareNetwork": ("puzzle_tracker.services.records", "CareNetwork"),
    "InMemoryRecordStore": ("puzzle_tracker.services.records", "InMemoryRecordStore"),
    "SQLRecordStore": ("puzzle_tracker.services.records", "SQLRecordStore"),
    "Population": ("puzzle_tracker.services.population", "Population"),
    "RiskTier": ("puzzle_tracker.services.risk", "RiskTier"),
    "classify": ("puzzle_tracker.services.risk", "classify"),
    "facility_metrics": ("puzzle_tracker.services.metrics", "facility_metrics"),
    "project_rth": ("puzzle_tracker.services.metrics", "project_rth"),
    "AlertGenerator": ("puzzle_tracker.services.alerts", "AlertGenerator"),
    "AlertRules": ("puzzle_tracker.services.alerts", "AlertRules"),
    "TenantClaim": ("puzzle_tracker.services.access", "TenantClaim"),
    "TenantRole": ("puzzle_tracker.services.access", "TenantRole"),
    "TenantViewResolver": ("puzzle_tracker.services.views", "TenantViewResolver"),
    "PatientWorkflow": ("puzzle_tracker.services.workflow", "PatientWorkflow"),
}


def __getattr__(name: str):
    target = _LAZY_IMPORTS.get(name)
    if target is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = target
    return getattr(import_module(module_name), attr_name)
