"""
core.domain.transactions — Helpers for safe state transitions.

Provides utilities that wrap ``transaction.atomic`` and
``select_for_update`` into reusable patterns so that every app's
service layer follows the same concurrency-safe approach.

Usage::

    from core.domain.transactions import atomic_transition

    case = atomic_transition(
        instance=case,
        target_status=CaseStatus.PENDING_CLOSURE,
        allowed_sources={CaseStatus.OPEN, CaseStatus.IN_PROGRESS},
        changes={"closure_requested_by": user},
    )
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, TypeVar

from django.db import models, transaction

from core.domain.exceptions import InvalidTransition, NotFound

M = TypeVar("M", bound=models.Model)


def atomic_transition(
    *,
    instance: M,
    status_field: str = "status",
    target_status: str,
    allowed_sources: Iterable[str] | None = None,
    changes: Mapping[str, Any] | None = None,
    reason: str | None = None,
    on_locked: Callable[[M], None] | None = None,
) -> M:
    """
    Atomically transition a model instance from one status to another.

    Steps performed inside ``transaction.atomic()``:
        1. Re-fetch the instance with ``select_for_update()`` to acquire
           a row-level lock.
        2. If ``allowed_sources`` is provided, verify the current value
           of ``status_field`` is among them; raise ``InvalidTransition``
           otherwise.
        3. Call ``on_locked`` with the locked row (extra guards that need
           the fresh state, e.g. participant checks).
        4. Apply ``changes`` plus the new status and save only those fields.

    Args:
        instance:        The model instance to transition.
        status_field:    Name of the status field.  Defaults to ``"status"``.
        target_status:   The desired new value.
        allowed_sources: Status values from which the transition is
                         permitted.  ``None`` accepts any current value.
        changes:         Extra ``field -> value`` assignments persisted in
                         the same save.
        reason:          Message appended to ``InvalidTransition``.
        on_locked:       Optional callback run after the source check.

    Returns:
        The locked, updated instance.

    Raises:
        NotFound:          If the instance no longer exists in the DB.
        InvalidTransition: If the current status is not in ``allowed_sources``.
    """
    model_class = type(instance)

    with transaction.atomic():
        locked = lock_for_update(model_class, instance.pk)
        current = getattr(locked, status_field)

        if allowed_sources is not None:
            allowed = {str(s) for s in allowed_sources}
            if str(current) not in allowed:
                raise InvalidTransition(
                    current=str(current),
                    target=str(target_status),
                    reason=reason,
                )

        if on_locked is not None:
            on_locked(locked)

        update_fields = {status_field}
        for field, value in (changes or {}).items():
            setattr(locked, field, value)
            update_fields.add(field)
        setattr(locked, status_field, target_status)

        if any(f.name == "updated_at" for f in model_class._meta.concrete_fields):
            update_fields.add("updated_at")

        locked.save(update_fields=sorted(update_fields))

    return locked


def lock_for_update(model_class: type[M], pk: Any) -> M:
    """
    Acquire a row-level lock on the given model instance.

    Must be called inside an ``atomic()`` block.

    Raises:
        NotFound: If no row with that PK exists.
    """
    try:
        return model_class.objects.select_for_update().get(pk=pk)
    except model_class.DoesNotExist:
        raise NotFound(f"{model_class.__name__} with pk={pk} does not exist.")
