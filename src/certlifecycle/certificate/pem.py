"""
PEM bundle decoding for retrieved certificates.

The backend returns the leaf, its issuer chain and optionally the private key
as one base64 encoded PEM blob. The chain option decides which end of the
certificate list holds the leaf.
"""

import base64
import binascii
import re
from dataclasses import dataclass, field
from typing import List, Optional

from cryptography import x509

from ..errors import DecodeError
from .types import ChainOption

_PEM_BLOCK = re.compile(
    rb"-----BEGIN ([A-Z0-9 ]+)-----\r?\n.*?-----END \1-----",
    re.DOTALL,
)


@dataclass
class PEMCollection:
    """Leaf certificate, ordered chain and optional private key, all PEM."""
    certificate: str = ""
    chain: List[str] = field(default_factory=list)
    private_key: Optional[str] = None

    def all_certificates(self, chain_option: ChainOption = ChainOption.ROOT_LAST) -> List[str]:
        """Return leaf + chain laid out in the given order."""
        if chain_option is ChainOption.ROOT_FIRST:
            return list(self.chain) + [self.certificate]
        return [self.certificate] + list(self.chain)

    def to_pem(self, chain_option: ChainOption = ChainOption.ROOT_LAST) -> str:
        return "".join(self.all_certificates(chain_option))


def pem_collection_from_bytes(data: bytes, chain_option: ChainOption) -> PEMCollection:
    """
    Split a PEM blob into a PEMCollection.

    With ROOT_FIRST the leaf is the last certificate in the blob, otherwise
    the first. IGNORE means the chain was not requested; any certificates the
    backend still sends are kept in root-last order.

    Raises:
        DecodeError: if the blob holds no certificate or a block does not parse
    """
    certificates: List[str] = []
    private_key: Optional[str] = None

    for match in _PEM_BLOCK.finditer(data):
        block = _normalize(match.group(0))
        label = match.group(1).decode()
        if label == "CERTIFICATE":
            try:
                x509.load_pem_x509_certificate(block.encode())
            except ValueError as e:
                raise DecodeError(f"invalid certificate in bundle: {e}") from e
            certificates.append(block)
        elif label.endswith("PRIVATE KEY"):
            private_key = block

    if not certificates:
        raise DecodeError("certificate bundle contains no certificates")

    collection = PEMCollection(private_key=private_key)
    if chain_option is ChainOption.ROOT_FIRST:
        collection.certificate = certificates[-1]
        collection.chain = certificates[:-1]
    else:
        collection.certificate = certificates[0]
        collection.chain = certificates[1:]
    return collection


def pem_collection_from_base64(encoded: str, chain_option: ChainOption) -> PEMCollection:
    """Decode the base64 ``CertificateData`` field of a retrieve response."""
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"certificate data is not valid base64: {e}") from e
    return pem_collection_from_bytes(raw, chain_option)


def _normalize(block: bytes) -> str:
    try:
        text = block.decode("ascii")
    except UnicodeDecodeError as e:
        raise DecodeError("certificate bundle is not PEM text") from e
    return text.replace("\r\n", "\n") + "\n"
