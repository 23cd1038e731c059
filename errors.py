"""
Exceptions raised by the catalog services.

Routes recover from ValidationFailed and BlockedByDependents by re-rendering
a form; NotFound and StoreFailure are left to the app-level error handlers.
"""


class CatalogError(Exception):
    """Base class for catalog errors."""


class ValidationFailed(CatalogError):
    """
    One or more form fields broke a rule. Nothing was written.

    Attributes:
        entity: unsaved model instance holding the sanitized values.
        errors: list of FieldError(field, message).
        context: extra data the form needs to be shown again.
    """

    def __init__(self, entity, errors, context=None):
        super().__init__("; ".join(f"{e.field}: {e.message}" for e in errors))
        self.entity = entity
        self.errors = list(errors)
        self.context = context or {}


class NotFound(CatalogError):
    def __init__(self, kind: str, entity_id):
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class BlockedByDependents(CatalogError):
    """
    A delete was refused. The entity and whatever blocks it are attached
    so the caller can show them.
    """

    def __init__(self, entity, dependents, reason: str):
        super().__init__(reason)
        self.entity = entity
        self.dependents = list(dependents)
        self.reason = reason


class StoreFailure(CatalogError):
    """The database rejected a read or write."""
