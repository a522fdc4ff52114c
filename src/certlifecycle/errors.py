"""
certlifecycle Unified Error Taxonomy.

This module provides a centralized error hierarchy for the certificate
lifecycle client. All errors include:
- Machine-readable error codes
- Structured details (never credentials or private keys)
- Optional object path correlation

Error Code Naming Convention:
- CL_<CATEGORY>_<SPECIFIC>
- Categories: TRANSPORT, STATUS, DECODE, POLICY, AUTH, LIFECYCLE, CONFIG

Propagation:
- Transport and decode errors abort the current operation immediately
- A pending retrieval or an already revoked certificate is an outcome
  value, never an exception
"""

from typing import Any, Dict, Optional


class CertLifecycleError(Exception):
    """Base exception for all certlifecycle errors.

    All errors include:
    - code: Machine-readable error code (e.g., CL_UNEXPECTED_STATUS)
    - message: Human-readable description
    - details: Structured metadata (NEVER include secrets)
    - object_path: Optional backend object the error relates to
    """

    def __init__(
        self,
        message: str,
        code: str = "CL_INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
        object_path: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.object_path = object_path

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.message}"]
        if self.object_path:
            parts.append(f"(object: {self.object_path})")
        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "object_path": self.object_path,
        }


# =============================================================================
# Transport and Wire Errors (CL_TRANSPORT_*, CL_UNEXPECTED_STATUS, CL_DECODE_*)
# =============================================================================


class TransportError(CertLifecycleError):
    """Raised when a call fails before any status code is received."""

    def __init__(self, reason: str, url: Optional[str] = None):
        super().__init__(
            message=f"Transport failure: {reason}",
            code="CL_TRANSPORT_FAILED",
            details={"url": url} if url else {},
        )


class UnexpectedStatusError(CertLifecycleError):
    """Raised when the status code is outside the operation's accepted set."""

    def __init__(
        self,
        operation: str,
        status_code: int,
        status_text: str,
        body: bytes = b"",
        object_path: Optional[str] = None,
    ):
        self.operation = operation
        self.status_code = status_code
        self.status_text = status_text
        self.body = body
        super().__init__(
            message=(
                f"Unexpected status code on {operation}. "
                f"Status: {status_text}. Body: {_body_text(body)}"
            ),
            code="CL_UNEXPECTED_STATUS",
            details={"operation": operation, "status_code": status_code},
            object_path=object_path,
        )


class DecodeError(CertLifecycleError):
    """Raised when an accepted response carries malformed JSON, base64 or PEM."""

    def __init__(self, reason: str, operation: Optional[str] = None):
        super().__init__(
            message=f"Failed to decode response: {reason}",
            code="CL_DECODE_FAILED",
            details={"operation": operation} if operation else {},
        )


# =============================================================================
# Validation Errors (CL_POLICY_*)
# =============================================================================


class ValidationError(CertLifecycleError):
    """Base class for local validation failures."""

    pass


class PolicyViolationError(ValidationError):
    """Raised when a request violates the zone policy or CSR origin rules."""

    def __init__(self, reason: str, violations: Optional[list] = None):
        self.violations = list(violations or [])
        super().__init__(
            message=reason,
            code="CL_POLICY_VIOLATION",
            details={"violations": self.violations} if self.violations else {},
        )


class InvalidPolicyError(ValidationError):
    """Raised when the backend policy document carries malformed values."""

    def __init__(self, attribute: str, value: Any):
        super().__init__(
            message=f"Invalid policy value for {attribute}: {value!r}",
            code="CL_POLICY_INVALID",
            details={"attribute": attribute, "value": str(value)},
        )


class UnsupportedOperationError(CertLifecycleError):
    """Raised when the backend cannot process the request at all."""

    def __init__(self, reason: str):
        super().__init__(
            message=reason,
            code="CL_UNSUPPORTED_OPERATION",
        )


# =============================================================================
# Authentication Errors (CL_AUTH_*)
# =============================================================================


class AuthenticationError(CertLifecycleError):
    """Raised when a token grant, refresh or revoke fails."""

    def __init__(self, reason: str, grant: Optional[str] = None):
        super().__init__(
            message=f"Authentication failed: {reason}",
            code="CL_AUTH_FAILED",
            details={"grant": grant} if grant else {},
        )


# =============================================================================
# Lifecycle Errors (CL_LIFECYCLE_*)
# =============================================================================


class LifecycleError(CertLifecycleError):
    """Base class for failures reported by the backend for a lifecycle call."""

    pass


class CertificateRequestError(LifecycleError):
    """Raised when the backend refuses a certificate request."""

    def __init__(self, reason: str, object_path: Optional[str] = None):
        super().__init__(
            message=f"Certificate request failed: {reason}",
            code="CL_LIFECYCLE_REQUEST_FAILED",
            object_path=object_path,
        )


class RevocationError(LifecycleError):
    """Raised when the backend reports an unsuccessful revocation."""

    def __init__(self, reason: str, object_path: Optional[str] = None):
        super().__init__(
            message=f"Revocation failed: {reason}",
            code="CL_LIFECYCLE_REVOKE_FAILED",
            object_path=object_path,
        )


class RenewalError(LifecycleError):
    """Raised when the backend reports an unsuccessful renewal."""

    def __init__(self, reason: str, object_path: Optional[str] = None):
        super().__init__(
            message=f"Renewal failed: {reason}",
            code="CL_LIFECYCLE_RENEW_FAILED",
            object_path=object_path,
        )


class ResetError(LifecycleError):
    """Raised with the backend error string when a reset is refused."""

    def __init__(self, reason: str, object_path: Optional[str] = None):
        super().__init__(
            message=reason,
            code="CL_LIFECYCLE_RESET_FAILED",
            object_path=object_path,
        )


class RetrieveTimeoutError(LifecycleError):
    """Raised when issuance does not complete within the caller's timeout."""

    def __init__(self, object_path: str, timeout: float, last_status: str = ""):
        super().__init__(
            message=(
                f"Certificate was not issued within {timeout:g}s"
                + (f" (last status: {last_status})" if last_status else "")
            ),
            code="CL_LIFECYCLE_RETRIEVE_TIMEOUT",
            details={"timeout": timeout, "last_status": last_status},
            object_path=object_path,
        )


# =============================================================================
# Configuration Errors (CL_CONFIG_*)
# =============================================================================


class ConfigurationError(CertLifecycleError):
    """Raised when the connector is misconfigured."""

    def __init__(self, reason: str, key: Optional[str] = None):
        super().__init__(
            message=f"Configuration error: {reason}",
            code="CL_CONFIG_INVALID",
            details={"key": key} if key else {},
        )


def _body_text(body: bytes) -> str:
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    return str(body)


__all__ = [
    "CertLifecycleError",
    "TransportError",
    "UnexpectedStatusError",
    "DecodeError",
    "ValidationError",
    "PolicyViolationError",
    "InvalidPolicyError",
    "UnsupportedOperationError",
    "AuthenticationError",
    "LifecycleError",
    "CertificateRequestError",
    "RevocationError",
    "RenewalError",
    "ResetError",
    "RetrieveTimeoutError",
    "ConfigurationError",
]
