"""Errors raised while resolving capes.

Each error carries the HTTP status it maps to and whether the caller may
retry the same request later.
"""


class CapeError(Exception):
    status_code: int = 500
    retryable: bool = False
    default_detail: str = "internal error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class PlayerNotFound(CapeError):
    status_code = 404
    default_detail = "player not found"


class UnsupportedType(CapeError):
    status_code = 400

    def __init__(self, cape_type: str, supported: list[str]) -> None:
        self.cape_type = cape_type
        super().__init__(f"{cape_type} is not supported. ({','.join(supported)})")


class InvalidPlayerReference(CapeError):
    status_code = 400
    default_detail = "invalid player"


class UpstreamFetchFailure(CapeError):
    """Identity service or provider returned an error or was unreachable."""

    status_code = 500
    retryable = True
    default_detail = "failed to fetch from upstream"


class CollaboratorTimeout(CapeError):
    status_code = 503
    retryable = True
    default_detail = "upstream timed out"


class StorageFailure(CapeError):
    """Record store or content store failed."""

    status_code = 500
    default_detail = "storage error"


class CapeNotFound(CapeError):
    """No stored record or image for the requested hash."""

    status_code = 404
    default_detail = "not found"


class DuplicateObservation(StorageFailure):
    """A record with the same observation hash is already stored."""

    default_detail = "cape observation already stored"
