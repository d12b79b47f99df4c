from typing import Optional

import urllib3
from kubernetes.client.exceptions import ApiException

from .models import ResourceIdentity


class InspectorError(Exception):
    pass


class UnknownKindError(InspectorError):

    def __init__(self, kind: str):
        super().__init__(f"unknown resource kind: {kind!r}")
        self.kind = kind


class MissingCredentialsError(InspectorError):
    pass


class ResourceAccessError(InspectorError):
    """A read against a cluster failed for the resource named by ``identity``."""

    reason = "request failed"

    def __init__(self, identity: ResourceIdentity, detail: str = "", status: Optional[int] = None):
        message = f"{self.reason}: {identity}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)
        self.identity = identity
        self.detail = detail
        self.status = status


class NotFoundError(ResourceAccessError):
    reason = "not found"


class UnauthorizedError(ResourceAccessError):
    reason = "unauthorized"


class ForbiddenError(ResourceAccessError):
    reason = "forbidden"


class UnavailableError(ResourceAccessError):
    reason = "unavailable"


AUTH_ERRORS = (UnauthorizedError, ForbiddenError)

_STATUS_ERRORS = {
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
}


def error_from_api_exception(identity: ResourceIdentity, exc: ApiException) -> ResourceAccessError:
    status = exc.status or 0
    error_cls = _STATUS_ERRORS.get(status)
    if error_cls is None:
        # status 0 means the client never got a response
        error_cls = UnavailableError if status == 0 or status >= 500 else ResourceAccessError
    return error_cls(identity, detail=exc.reason or "", status=status or None)


def error_from_transport(identity: ResourceIdentity, exc: urllib3.exceptions.HTTPError) -> UnavailableError:
    return UnavailableError(identity, detail=str(exc))
