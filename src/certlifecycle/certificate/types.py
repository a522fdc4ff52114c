"""
Certificate enumerations shared by the policy compiler and the connector.

Every enumeration that is fed from backend or caller strings is closed and
parsed through a ``parse``/``from_string`` classmethod so that unexpected
values are handled in one place.
"""

from enum import Enum, IntEnum
from typing import List, Optional, Tuple

from ..errors import InvalidPolicyError


class KeyType(str, Enum):
    """Supported private key algorithms."""
    RSA = "RSA"
    ECDSA = "ECDSA"
    ED25519 = "ED25519"

    @classmethod
    def parse(cls, value: str, curve: str = "") -> "KeyType":
        """Parse a backend key algorithm identifier.

        Raises InvalidPolicyError for identifiers that name no known algorithm.
        """
        normalized = (value or "").strip().lower()
        if normalized == "rsa":
            return cls.RSA
        if normalized in ("ecdsa", "ec", "ecc"):
            if (curve or "").strip().lower() == "ed25519":
                return cls.ED25519
            return cls.ECDSA
        if normalized == "ed25519":
            return cls.ED25519
        raise InvalidPolicyError("Key Algorithm", value)

    @property
    def is_elliptic(self) -> bool:
        return self is not KeyType.RSA


class EllipticCurve(str, Enum):
    """Supported elliptic curves."""
    P521 = "P521"
    P256 = "P256"
    P384 = "P384"
    ED25519 = "ED25519"

    @classmethod
    def parse(cls, value: str) -> "EllipticCurve":
        """Parse a backend curve identifier (p256, P-256, secp256r1, ...)."""
        normalized = (value or "").strip().lower().replace("-", "")
        aliases = {
            "p521": cls.P521,
            "secp521r1": cls.P521,
            "p384": cls.P384,
            "secp384r1": cls.P384,
            "p256": cls.P256,
            "secp256r1": cls.P256,
            "prime256v1": cls.P256,
            "ed25519": cls.ED25519,
        }
        try:
            return aliases[normalized]
        except KeyError:
            raise InvalidPolicyError("Elliptic Curve", value) from None


# Order matters: compiled policies list sizes and curves in this order
SUPPORTED_KEY_SIZES: Tuple[int, ...] = (512, 1024, 2048, 3072, 4096, 8192)
SUPPORTED_CURVES: Tuple[EllipticCurve, ...] = (
    EllipticCurve.P521,
    EllipticCurve.P256,
    EllipticCurve.P384,
    EllipticCurve.ED25519,
)

DEFAULT_RSA_KEY_SIZE = 2048
DEFAULT_CURVE = EllipticCurve.P256


def all_supported_key_sizes() -> List[int]:
    return list(SUPPORTED_KEY_SIZES)


def all_supported_curves() -> List[EllipticCurve]:
    return list(SUPPORTED_CURVES)


class CsrOrigin(str, Enum):
    """Where the CSR of a request comes from."""
    LOCAL_GENERATED = "local"
    USER_PROVIDED = "provided"
    SERVICE_GENERATED = "service"


class ChainOption(str, Enum):
    """Order of the issuer chain in a retrieved certificate bundle."""
    ROOT_LAST = "root-last"
    ROOT_FIRST = "root-first"
    IGNORE = "ignore"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "ChainOption":
        """Unknown or empty values select root-last."""
        normalized = (value or "").strip().lower()
        for option in cls:
            if option.value == normalized:
                return option
        return cls.ROOT_LAST


class SanType(IntEnum):
    """Subject alternative name type codes on the wire."""
    UPN = 0
    EMAIL = 1
    DNS = 2
    URI = 6
    IP = 7


class RevocationReason(IntEnum):
    """Backend revocation reason codes."""
    NONE = 0
    KEY_COMPROMISE = 1
    CA_COMPROMISE = 2
    AFFILIATION_CHANGED = 3
    SUPERSEDED = 4
    CESSATION_OF_OPERATION = 5

    @classmethod
    def from_string(cls, reason: Optional[str]) -> "RevocationReason":
        """Map a caller-facing reason string; unknown strings map to NONE."""
        return _REVOCATION_REASONS.get((reason or "").strip().lower(), cls.NONE)


_REVOCATION_REASONS = {
    "": RevocationReason.NONE,
    "none": RevocationReason.NONE,
    "key-compromise": RevocationReason.KEY_COMPROMISE,
    "ca-compromise": RevocationReason.CA_COMPROMISE,
    "affiliation-changed": RevocationReason.AFFILIATION_CHANGED,
    "superseded": RevocationReason.SUPERSEDED,
    "cessation-of-operation": RevocationReason.CESSATION_OF_OPERATION,
}
