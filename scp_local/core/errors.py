"""
Typed failures raised by the credential broker.

Every error carries a ``remediation`` string so that whatever surface relays
the failure to a calling agent can tell it what to do next.
"""

from __future__ import annotations

from typing import Iterable, List, Optional


class SCPLocalError(Exception):
    """Base class for all broker failures."""

    remediation: str = "Retry the operation."

    def __init__(self, message: str, *, remediation: Optional[str] = None) -> None:
        super().__init__(message)
        if remediation is not None:
            self.remediation = remediation


class DiscoveryNotFoundError(SCPLocalError):
    """No discovery method produced an SCP endpoint for the domain."""

    def __init__(self, domain: str) -> None:
        super().__init__(
            f"Could not discover a Shopper Context Protocol endpoint for {domain}.",
            remediation=(
                "Check the merchant domain spelling; the merchant may not support SCP yet."
            ),
        )
        self.domain = domain


class DiscoveryTransportError(SCPLocalError):
    """DNS or network failure that is not a plain miss."""

    remediation = "Check network connectivity and DNS configuration, then retry."


class UnsupportedScopeError(SCPLocalError):
    """Requested scopes are not advertised by the merchant."""

    def __init__(self, domain: str, unsupported: Iterable[str], supported: Iterable[str]) -> None:
        self.domain = domain
        self.unsupported: List[str] = list(unsupported)
        self.supported: List[str] = list(supported)
        super().__init__(
            f"Unsupported scopes for {domain}: {', '.join(self.unsupported)}",
            remediation=(
                "Request only supported scopes: " + ", ".join(self.supported)
            ),
        )


class AuthorizationRequestError(SCPLocalError):
    """Initiating or polling an authorization request failed."""

    remediation = "Retry the authorization; if it keeps failing the merchant may be unavailable."


class AuthorizationDeniedError(SCPLocalError):
    """The customer declined the authorization request."""

    def __init__(self, reason: Optional[str] = None) -> None:
        self.reason = reason or "User declined"
        super().__init__(
            f"Authorization denied: {self.reason}",
            remediation="Ask the customer whether they want to try authorizing again.",
        )


class AuthorizationExpiredError(SCPLocalError):
    """The magic link expired before the customer approved it."""

    def __init__(self) -> None:
        super().__init__(
            "Authorization request expired",
            remediation="Start a new authorization and ask the customer to click the emailed link promptly.",
        )


class AuthorizationTimeoutError(SCPLocalError):
    """The poll budget ran out while the request was still pending."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(
            f"Authorization timeout: no decision after {attempts} poll attempts",
            remediation="Ask the customer to check their email (and spam folder), then authorize again.",
        )


class AuthorizationCancelledError(SCPLocalError):
    """The caller aborted an in-flight authorization."""

    remediation = "Start a new authorization when the customer is ready."


class TokenExchangeFailedError(SCPLocalError):
    """Exchanging the authorization code for tokens failed."""

    remediation = "Start the authorization again; the code may have been used or expired."


class TokenRefreshFailedError(SCPLocalError):
    """Refreshing an access token failed; the stored record is unchanged."""

    def __init__(self, domain: str, detail: str) -> None:
        self.domain = domain
        super().__init__(
            f"Failed to refresh token for {domain}: {detail}",
            remediation=(
                f"Retry later, or revoke and re-authorize {domain} if the refresh token was revoked."
            ),
        )


class CryptoIntegrityError(SCPLocalError):
    """An encrypted envelope failed authentication or could not be parsed."""

    remediation = "The stored credential is corrupted; revoke and re-authorize the merchant."


class CryptoSelfTestError(SCPLocalError):
    """The startup encryption round-trip did not reproduce its input."""

    remediation = "Check the key store at the configured database path; refusing to start."


class NotAuthorizedError(SCPLocalError):
    """No authorization record exists for the domain."""

    def __init__(self, domain: str) -> None:
        self.domain = domain
        super().__init__(
            f"No authorization found for {domain}",
            remediation=f"Authorize first with the customer's email for {domain}.",
        )


class IdentityConflictError(SCPLocalError):
    """Re-authorization was attempted with a different customer email."""

    def __init__(self, domain: str, existing_email: str, requested_email: str) -> None:
        self.domain = domain
        self.existing_email = existing_email
        self.requested_email = requested_email
        super().__init__(
            f"Already authorized with {domain} using {existing_email}.",
            remediation=(
                f"To authorize with {requested_email}, revoke the existing authorization "
                f"for {domain} first, then authorize again."
            ),
        )


__all__ = [
    "AuthorizationCancelledError",
    "AuthorizationDeniedError",
    "AuthorizationExpiredError",
    "AuthorizationRequestError",
    "AuthorizationTimeoutError",
    "CryptoIntegrityError",
    "CryptoSelfTestError",
    "DiscoveryNotFoundError",
    "DiscoveryTransportError",
    "IdentityConflictError",
    "NotAuthorizedError",
    "SCPLocalError",
    "TokenExchangeFailedError",
    "TokenRefreshFailedError",
    "UnsupportedScopeError",
]
