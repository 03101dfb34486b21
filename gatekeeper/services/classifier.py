"""Request classifier — picks the policy category for an update request."""

from gatekeeper.schemas.policy import PolicyCategory
from gatekeeper.schemas.update_request import Severity, UpdateRequest, UpdateType

_SECURITY_SEVERITIES = {Severity.CRITICAL, Severity.HIGH}


def classify(request: UpdateRequest) -> PolicyCategory:
    """Security findings first, then the largest update type, else dependency."""
    if any(v.severity in _SECURITY_SEVERITIES for v in request.vulnerabilities):
        return PolicyCategory.SECURITY

    kinds = {u.update_type for u in request.updates}
    if UpdateType.MAJOR in kinds:
        return PolicyCategory.MAJOR
    if UpdateType.MINOR in kinds:
        return PolicyCategory.MINOR
    if UpdateType.PATCH in kinds:
        return PolicyCategory.PATCH
    return PolicyCategory.DEPENDENCY
