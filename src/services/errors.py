"""Error taxonomy shared by the controllers."""


class ValidationError(ValueError):
    """A required field is missing; raised before any external call."""


class ServiceError(RuntimeError):
    """An auth, database, storage or generation call failed."""
