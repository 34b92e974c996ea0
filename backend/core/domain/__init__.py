"""
core.domain — Shared domain utilities for the PhysioCare service layers.

Modules
-------
exceptions         Domain exceptions carrying an HTTP-neutral error kind.
exception_handler  DRF handler that turns domain exceptions into responses.
transactions       Helpers for ``transaction.atomic`` + ``select_for_update``.
access             Role checks and role-scoped case querysets.

Usage from any app::

    from core.domain.exceptions import DomainError, InvalidTransition
    from core.domain.transactions import atomic_transition
    from core.domain.access import apply_role_scope, require_role
"""
