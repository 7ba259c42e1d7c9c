"""Error taxonomy shared by the tracker services.

Empty scopes are not errors: a chain without facilities or a facility outside
the requested organization simply yields empty collections.
"""


class TrackerError(Exception):
    """Base class for expected, caller-facing tracker errors."""


class NotFoundError(TrackerError):
    """An organization, chain, facility, patient or alert id is unknown."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} not found")


class ScopeForbiddenError(TrackerError):
    """The requested scope lies outside the caller's authorized tenant."""


class AlertTransitionError(TrackerError):
    """An alert lifecycle transition is not allowed from its current status."""


class VersionConflictError(TrackerError):
    """A patient history write raced with another writer."""

    def __init__(self, patient_id: str, expected: int, actual: int):
        self.patient_id = patient_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Patient {patient_id} changed concurrently "
            f"(expected version {expected}, found {actual})"
        )


class DuplicateInterventionError(TrackerError):
    """An intervention id is already taken by another patient's history."""

    def __init__(self, intervention_id: str):
        self.intervention_id = intervention_id
        super().__init__(f"Intervention {intervention_id} belongs to another patient")
