"""
TLS Transport Configuration

Builds the TLS settings every backend call uses:
- Free renegotiation (some backend auth flows renegotiate mid-session)
- Optional client identity decoded from a password-protected PKCS#12 bundle
- Root CAs from a trust bundle, the platform store, or no verification

A TLSConfig is an immutable value. Each connector mounts it on its own
requests.Session through TLSConfigAdapter; nothing is installed globally.
"""

import os
import ssl
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12
from requests.adapters import HTTPAdapter

from ..errors import ConfigurationError
from ..logging import get_logger

logger = get_logger(__name__)


class Renegotiation(str, Enum):
    """Client-side TLS renegotiation support."""
    NEVER = "never"
    FREELY = "freely"


@dataclass(frozen=True)
class ClientCertificate:
    """A PKCS#12 bundle and its password, given as bytes or a file path."""
    bundle: Union[bytes, str, Path]
    password: Optional[str] = None

    def read(self) -> bytes:
        if isinstance(self.bundle, bytes):
            return self.bundle
        return Path(self.bundle).read_bytes()


@dataclass(frozen=True)
class TLSConfig:
    """
    Immutable TLS settings for one connection.

    Attributes:
        renegotiation: renegotiation support requested from the TLS stack
        insecure_skip_verify: certificate verification disabled entirely
        certificates: client leaf followed by its intermediates (empty if none)
        private_key: client private key matching certificates[0]
        root_cas: trusted roots; None means the platform default store
    """
    renegotiation: Renegotiation = Renegotiation.NEVER
    insecure_skip_verify: bool = False
    certificates: Tuple[x509.Certificate, ...] = ()
    private_key: Optional[pkcs12.PKCS12PrivateKeyTypes] = None
    root_cas: Optional[Tuple[x509.Certificate, ...]] = None

    @property
    def has_client_certificate(self) -> bool:
        return bool(self.certificates) and self.private_key is not None

    def build_ssl_context(self) -> ssl.SSLContext:
        """Materialize an SSLContext for this configuration."""
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.minimum_version = ssl.TLSVersion.TLSv1_2

        if self.renegotiation is Renegotiation.FREELY:
            # Accept server-initiated renegotiation on TLS 1.2 sessions
            context.options &= ~getattr(ssl, "OP_NO_RENEGOTIATION", 0)
        else:
            context.options |= getattr(ssl, "OP_NO_RENEGOTIATION", 0)

        if self.insecure_skip_verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        elif self.root_cas is not None:
            cadata = "".join(
                c.public_bytes(serialization.Encoding.PEM).decode() for c in self.root_cas
            )
            context.load_verify_locations(cadata=cadata)
        else:
            context.load_default_certs()

        if self.has_client_certificate:
            _load_client_identity(context, self.certificates, self.private_key)

        return context


def _load_client_identity(
    context: ssl.SSLContext,
    certificates: Tuple[x509.Certificate, ...],
    private_key: pkcs12.PKCS12PrivateKeyTypes,
) -> None:
    # ssl only loads identities from files; they live in a private temp dir
    # for the duration of the call
    with tempfile.TemporaryDirectory(prefix="certlifecycle-") as tmp:
        cert_path = os.path.join(tmp, "client.pem")
        key_path = os.path.join(tmp, "client.key")
        with open(cert_path, "wb") as f:
            for cert in certificates:
                f.write(cert.public_bytes(serialization.Encoding.PEM))
        fd = os.open(key_path, os.O_WRONLY | os.O_CREAT, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            ))
        context.load_cert_chain(cert_path, key_path)


def load_trust_bundle(trust_bundle: Union[bytes, str, Path]) -> Tuple[x509.Certificate, ...]:
    """Load PEM certificates from bytes, PEM text or a file path."""
    if isinstance(trust_bundle, bytes):
        data = trust_bundle
    elif isinstance(trust_bundle, str) and "-----BEGIN" in trust_bundle:
        data = trust_bundle.encode()
    else:
        data = Path(trust_bundle).read_bytes()
    return tuple(x509.load_pem_x509_certificates(data))


def configure_tls(
    client_certificate: Optional[ClientCertificate] = None,
    trust_bundle: Optional[Union[bytes, str, Path]] = None,
    insecure: bool = False,
) -> TLSConfig:
    """
    Build the TLS configuration for a connection.

    A client certificate that cannot be read or decoded is logged as a
    warning and the configuration proceeds without one; callers relying on
    mutual TLS should check ``TLSConfig.has_client_certificate``.

    Args:
        client_certificate: PKCS#12 bundle + password for mutual TLS
        trust_bundle: PEM roots to trust instead of the platform store
        insecure: disable verification; the trust bundle is then ignored

    Returns:
        TLSConfig

    Raises:
        ConfigurationError: the trust bundle cannot be read or holds no
            parseable certificate
    """
    certificates: Tuple[x509.Certificate, ...] = ()
    private_key = None

    if client_certificate is not None:
        try:
            password = client_certificate.password.encode() if client_certificate.password else None
            key, cert, additional = pkcs12.load_key_and_certificates(client_certificate.read(), password)
            if cert is None or key is None:
                raise ValueError("bundle holds no certificate/key pair")
            certificates = (cert,) + tuple(additional)
            private_key = key
            logger.debug(f"Loaded client certificate {cert.subject.rfc4514_string()} with {len(additional)} intermediate(s)")
        except (OSError, ValueError, TypeError) as e:
            logger.warning("unable to read PKCS#12 bundle", extra={"reason": str(e)})
            certificates = ()
            private_key = None

    root_cas = None
    if insecure:
        if trust_bundle is not None:
            logger.debug("Trust bundle ignored, certificate verification is disabled")
    elif trust_bundle is not None:
        try:
            root_cas = load_trust_bundle(trust_bundle)
        except (OSError, ValueError, TypeError) as e:
            raise ConfigurationError(f"unable to read trust bundle: {e}", "trust_bundle") from e

    return TLSConfig(
        renegotiation=Renegotiation.FREELY,
        insecure_skip_verify=insecure,
        certificates=certificates,
        private_key=private_key,
        root_cas=root_cas,
    )


class TLSConfigAdapter(HTTPAdapter):
    """HTTPAdapter that pins one connection's SSLContext on its pools."""

    def __init__(self, tls_config: TLSConfig, **kwargs):
        self.tls_config = tls_config
        self._ssl_context = tls_config.build_ssl_context()
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self._ssl_context
        return super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, *args, **kwargs):
        kwargs["ssl_context"] = self._ssl_context
        return super().proxy_manager_for(*args, **kwargs)
