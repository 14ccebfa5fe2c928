"""
Typed failures raised by the store and the services built on it.

Endpoints translate these into HTTP errors; the engines never retry.
"""


class KnowMeError(Exception):
    """Base class for application errors."""


class NotFound(KnowMeError):
    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class DuplicateKey(KnowMeError):
    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} already exists: {key}")


class DuplicateJoinCode(DuplicateKey):
    def __init__(self, join_code: str):
        super().__init__("group join code", join_code)
        self.join_code = join_code


class StoreUnavailable(KnowMeError):
    """The persistence backend could not be reached or failed mid-operation."""


class InvalidCredentials(KnowMeError):
    pass


class InvalidJoinCode(KnowMeError):
    """A join code that is empty once trimmed."""
