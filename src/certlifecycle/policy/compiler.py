"""
Policy Compiler - Backend Policy to Offline Validation Grammar

Converts a zone's ServerPolicy into a CompiledPolicy:
- Anchored regexes per subject attribute and SAN kind
- Allowed key configurations (key type x sizes/curves)
- Wildcard, key reuse and manual CSR flags

Pattern rules:
- Locked attribute      -> exact-match escaped pattern per value
- Unlocked attribute    -> permit-all pattern
- Disabled SAN kind     -> no patterns at all (the SAN must be absent)
- CN / DNS SAN          -> whitelist patterns; a leading "." on a whitelist
                           entry requires at least one extra label
"""

import ipaddress
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from ..certificate.request import CertificateRequest
from ..certificate.types import (
    DEFAULT_CURVE,
    DEFAULT_RSA_KEY_SIZE,
    EllipticCurve,
    KeyType,
    all_supported_curves,
    all_supported_key_sizes,
)
from ..errors import PolicyViolationError
from .document import ServerPolicy


ALL_ALLOWED_REGEX = r"^(?s:.*)\Z"

# Letters, digits and hyphen; wildcard-enabled labels may also hold "*"
_LABEL = r"(?:[^\W_]|-)+"
_WILDCARD_LABEL = r"(?:[^\W_]|[-*])+"

SERVICE_GENERATED_CSR = "ServiceGenerated"


@dataclass(frozen=True)
class AllowedKeyConfiguration:
    """One acceptable key type with its permitted sizes or curves."""
    key_type: KeyType
    key_sizes: Tuple[int, ...] = ()
    key_curves: Tuple[EllipticCurve, ...] = ()

    def allows(self, key_type: KeyType, key_size: int = 0, curve: Optional[EllipticCurve] = None) -> bool:
        if key_type is not self.key_type:
            return False
        if key_type is KeyType.RSA:
            return (key_size or DEFAULT_RSA_KEY_SIZE) in self.key_sizes
        return (curve or DEFAULT_CURVE) in self.key_curves


@dataclass(frozen=True)
class CompiledPolicy:
    """
    Validation grammar compiled from a zone policy.

    Every pattern is anchored with ``^`` and ``$`` and is matched with
    ``re.fullmatch``. An empty pattern tuple means the value must be absent.
    """
    subject_cn_regexes: Tuple[str, ...] = ()
    subject_o_regexes: Tuple[str, ...] = ()
    subject_ou_regexes: Tuple[str, ...] = ()
    subject_l_regexes: Tuple[str, ...] = ()
    subject_st_regexes: Tuple[str, ...] = ()
    subject_c_regexes: Tuple[str, ...] = ()
    dns_san_regexes: Tuple[str, ...] = ()
    ip_san_regexes: Tuple[str, ...] = ()
    email_san_regexes: Tuple[str, ...] = ()
    uri_san_regexes: Tuple[str, ...] = ()
    upn_san_regexes: Tuple[str, ...] = ()
    allowed_key_configurations: Tuple[AllowedKeyConfiguration, ...] = ()
    allow_wildcards: bool = False
    allow_key_reuse: bool = False
    manual_csr_allowed: bool = True

    def allows_key(self, key_type: KeyType, key_size: int = 0, curve: Optional[EllipticCurve] = None) -> bool:
        """True when at least one allowed key configuration accepts the key."""
        return any(c.allows(key_type, key_size, curve) for c in self.allowed_key_configurations)

    def validate_request(self, req: CertificateRequest) -> None:
        """
        Check a request against the grammar.

        Empty subject values are accepted. A SAN kind with no patterns must be
        absent from the request.

        Raises:
            PolicyViolationError: listing every violated attribute
        """
        violations: List[str] = []
        subject = req.subject

        checks = [
            ("common name", self.subject_cn_regexes, [subject.common_name]),
            ("organization", self.subject_o_regexes, [subject.organization]),
            ("organizational unit", self.subject_ou_regexes, subject.organizational_units),
            ("locality", self.subject_l_regexes, [subject.locality]),
            ("province", self.subject_st_regexes, [subject.province]),
            ("country", self.subject_c_regexes, [subject.country]),
        ]
        for name, patterns, values in checks:
            for value in values:
                if value and not matches_any(patterns, value):
                    violations.append(f"{name} {value!r} does not match policy")

        sans = [
            ("DNS", self.dns_san_regexes, req.dns_names),
            ("IP", self.ip_san_regexes, req.ip_addresses),
            ("email", self.email_san_regexes, req.email_addresses),
            ("URI", self.uri_san_regexes, req.uris),
            ("UPN", self.upn_san_regexes, req.upns),
        ]
        for kind, patterns, values in sans:
            if values and not patterns:
                violations.append(f"{kind} subject alternative names are not allowed")
                continue
            for value in values:
                if not matches_any(patterns, value):
                    violations.append(f"{kind} SAN {value!r} does not match policy")

        for ip in req.ip_addresses:
            try:
                ipaddress.ip_address(ip)
            except ValueError:
                violations.append(f"IP SAN {ip!r} is not an IP address")

        if req.key_type is not None and self.allowed_key_configurations:
            if not self.allows_key(req.key_type, req.key_length, req.key_curve):
                violations.append(f"key {req.key_type.value} is not allowed by policy")

        if violations:
            raise PolicyViolationError("certificate request does not match zone policy", violations)


def matches_any(patterns: Sequence[str], value: str) -> bool:
    return any(re.fullmatch(p, value) for p in patterns)


def _anchor(pattern: str) -> str:
    # \Z, unlike $, does not match before a trailing newline
    return "^" + pattern + r"\Z"


def _escape_one(value: str) -> str:
    return _anchor(re.escape(value))


def _escape_all(values: Iterable[str]) -> Tuple[str, ...]:
    return tuple(_escape_one(v) for v in values)


def domain_regex(domain: str, wildcards_allowed: bool) -> str:
    """Pattern for one whitelist entry."""
    requires_prefix = domain.startswith(".")
    if requires_prefix:
        domain = domain[1:]

    label = _WILDCARD_LABEL if wildcards_allowed else _LABEL
    repeat = "+" if requires_prefix else "*"
    return _anchor(f"(?:{label}\\.){repeat}{re.escape(domain)}")


def domain_regexes(domains: Sequence[str], wildcards_allowed: bool, default_allow_all: bool) -> Tuple[str, ...]:
    if not domains:
        if default_allow_all:
            return (ALL_ALLOWED_REGEX,)
        return ()
    return tuple(domain_regex(d, wildcards_allowed) for d in domains)


def _locked_or_all(locked: bool, value: str) -> Tuple[str, ...]:
    if locked:
        return (_escape_one(value),)
    return (ALL_ALLOWED_REGEX,)


def _allowed_or_none(allowed: bool) -> Tuple[str, ...]:
    return (ALL_ALLOWED_REGEX,) if allowed else ()


def compile_key_configurations(policy: ServerPolicy) -> Tuple[AllowedKeyConfiguration, ...]:
    """
    Allowed key configurations for a policy.

    Raises:
        InvalidPolicyError: when a locked algorithm or curve is unrecognized
    """
    key_pair = policy.key_pair
    size = key_pair.key_size

    if key_pair.key_algorithm.locked:
        key_type = KeyType.parse(key_pair.key_algorithm.value, key_pair.elliptic_curve.value)
        if key_type is KeyType.RSA:
            if size.locked:
                sizes = tuple(s for s in all_supported_key_sizes() if s >= size.value)
            else:
                sizes = tuple(all_supported_key_sizes())
            return (AllowedKeyConfiguration(KeyType.RSA, key_sizes=sizes),)

        if key_pair.elliptic_curve.locked:
            curves: Tuple[EllipticCurve, ...] = (EllipticCurve.parse(key_pair.elliptic_curve.value),)
        else:
            curves = tuple(all_supported_curves())
        return (AllowedKeyConfiguration(key_type, key_curves=curves),)

    # Algorithm unlocked: either an RSA key or an ECDSA key satisfies the zone
    sizes = tuple(s for s in all_supported_key_sizes() if not size.locked or s >= size.value)
    if key_pair.elliptic_curve.locked:
        curves = (EllipticCurve.parse(key_pair.elliptic_curve.value),)
    else:
        curves = tuple(all_supported_curves())
    return (
        AllowedKeyConfiguration(KeyType.RSA, key_sizes=sizes),
        AllowedKeyConfiguration(KeyType.ECDSA, key_curves=curves),
    )


def compile_policy(policy: ServerPolicy) -> CompiledPolicy:
    """
    Compile a ServerPolicy. Pure and deterministic.

    Raises:
        InvalidPolicyError: for malformed key algorithm or curve identifiers
    """
    subject = policy.subject
    domains = policy.whitelisted_domains
    wildcards = policy.wildcards_allowed

    if subject.organizational_unit.locked:
        ou_regexes = _escape_all(subject.organizational_unit.values)
    else:
        ou_regexes = (ALL_ALLOWED_REGEX,)

    manual_csr_allowed = not (
        policy.csr_generation.locked and policy.csr_generation.value == SERVICE_GENERATED_CSR
    )

    return CompiledPolicy(
        subject_cn_regexes=domain_regexes(domains, wildcards, True),
        subject_o_regexes=_locked_or_all(subject.organization.locked, subject.organization.value),
        subject_ou_regexes=ou_regexes,
        subject_l_regexes=_locked_or_all(subject.city.locked, subject.city.value),
        subject_st_regexes=_locked_or_all(subject.state.locked, subject.state.value),
        subject_c_regexes=_locked_or_all(subject.country.locked, subject.country.value),
        dns_san_regexes=domain_regexes(domains, wildcards, policy.san_dns_allowed),
        ip_san_regexes=_allowed_or_none(policy.san_ip_allowed),
        email_san_regexes=_allowed_or_none(policy.san_email_allowed),
        uri_san_regexes=_allowed_or_none(policy.san_uri_allowed),
        upn_san_regexes=_allowed_or_none(policy.san_upn_allowed),
        allowed_key_configurations=compile_key_configurations(policy),
        allow_wildcards=wildcards,
        allow_key_reuse=policy.private_key_reuse_allowed,
        manual_csr_allowed=manual_csr_allowed,
    )
