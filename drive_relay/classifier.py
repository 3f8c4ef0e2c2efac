# drive_relay/classifier.py
import enum
import logging
from typing import Iterator, Optional

from .errors import (
    CredentialNotFoundError,
    DriveApiError,
    ExchangeFailedError,
    TokenRefreshError,
)

logger = logging.getLogger(__name__)

AUTH_STATUS_CODES = frozenset({401, 403})

# 403s that are about quota rather than the credential
QUOTA_REASONS = frozenset({
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "dailyLimitExceeded",
    "quotaExceeded",
    "storageQuotaExceeded",
})

INVALID_GRANT = "invalid_grant"


class FailureKind(str, enum.Enum):
    """Which recovery prompt a failed operation should lead to."""
    NO_CREDENTIAL = "no_credential"
    AUTH_REJECTED = "auth_rejected"
    OTHER = "other"


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__suppress_context__:
            # `raise ... from None` hides the context
            current = current.__cause__
        else:
            current = current.__cause__ or current.__context__


def _is_auth_status(status_code: Optional[int], reason: Optional[str] = None) -> bool:
    if status_code not in AUTH_STATUS_CODES:
        return False
    return not (status_code == 403 and reason in QUOTA_REASONS)


def _mentions_invalid_grant(exc: BaseException) -> bool:
    """Free-text fallback for errors that carry no structured code."""
    return INVALID_GRANT in str(exc)


def classify_failure(exc: BaseException) -> FailureKind:
    """
    Map a failure to the recovery it calls for.

    Only used to pick user-facing guidance, never to retry.
    """
    chain = list(_exception_chain(exc))

    for link in chain:
        if isinstance(link, CredentialNotFoundError):
            return FailureKind.NO_CREDENTIAL

    for link in chain:
        if isinstance(link, DriveApiError) and _is_auth_status(link.status_code, link.reason):
            return FailureKind.AUTH_REJECTED
        if isinstance(link, (TokenRefreshError, ExchangeFailedError)) and link.error_code == INVALID_GRANT:
            return FailureKind.AUTH_REJECTED

    if any(_mentions_invalid_grant(link) for link in chain):
        logger.debug(f"Classified failure as AUTH_REJECTED from error text: {exc}")
        return FailureKind.AUTH_REJECTED

    return FailureKind.OTHER
