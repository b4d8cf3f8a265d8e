"""Core Provider Logic Module

This module maps declarative resource blocks onto Casdoor CRUD calls,
independent of any front end (CLI, tests, automation).

Module Structure:
    - casdoor/          : Low-level Casdoor REST API client
    - identifier.py     : Composite ``owner/name`` identifiers and import strings
    - reconcile.py      : Attribute classification and state reconciliation
    - adapter.py        : Generic ResourceAdapter + ResourceDescriptor
    - resources.py      : Descriptors for every supported resource type
    - errors.py         : Diagnostics (summary/detail) raised by operations
    - state.py          : JSON state file
    - validators.py     : Configuration document validation
    - engine.py         : Plan/apply orchestration

Usage Pattern:
    Modules are NOT auto-imported here; import explicitly when needed:
        from casdoor_provider.core.adapter import ResourceAdapter
        from casdoor_provider.core.resources import get_descriptor
        from casdoor_provider.core.engine import Engine, load_configuration

Public APIs:
    Identifiers (casdoor_provider.core.identifier):
        - format_id(), parse_id(), import_attributes()
        - ResourceIdentifier, IdentifierStyle, InvalidIdentifier

    Reconciliation (casdoor_provider.core.reconcile):
        - resolve_masked(), normalize_collection()
        - plan_attributes(), merge_after_write(), state_from_remote(), diff()

    Resources (casdoor_provider.core.adapter / resources):
        - ResourceAdapter.create/read/update/delete/import_state
        - RESOURCE_TYPES, get_descriptor()

    Orchestration (casdoor_provider.core.engine):
        - Engine.plan/apply/import_resource/refresh_state/destroy
"""
