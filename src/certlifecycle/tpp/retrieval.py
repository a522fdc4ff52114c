"""
Certificate Retrieval - Restartable Issuance Polling

Issuance is asynchronous on the backend. A retrieve call returns either the
issued bundle or a "not ready yet" answer; the caller decides how long to
keep asking. CertificateRetrieval makes that loop explicit:

    retrieval = connector.start_retrieval(req)
    result = retrieval.step()           # one round trip
    result = retrieval.wait(60, 2.0)    # poll with a fixed 2s backoff

Outcomes:
- ISSUED   = certificate data present, decoded into a PEMCollection
- PENDING  = HTTP 202, or 200 without certificate data
- REJECTED = backend status text reports a rejection

Timeout expiry raises RetrieveTimeoutError; the submitted request is left
on the backend as it is.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, Optional, Union

from ..certificate.pem import PEMCollection, pem_collection_from_base64
from ..certificate.types import ChainOption
from ..errors import RetrieveTimeoutError
from ..logging import get_logger
from ..utils.http import HTTPResult
from .resources import CertificateRetrieveResponse, UrlResource, decode, expect_status

if TYPE_CHECKING:
    from .connector import Connector

logger = get_logger(__name__)

RETRIEVE_OPERATION = "certificate retrieve"

Backoff = Union[float, Callable[[int], float]]


class RetrieveStatus(str, Enum):
    """Outcome of one retrieve attempt."""
    ISSUED = "issued"
    PENDING = "pending"
    REJECTED = "rejected"


@dataclass
class RetrieveResult:
    """Typed outcome of a retrieve attempt."""
    status: RetrieveStatus
    object_path: str
    pem: Optional[PEMCollection] = None
    backend_status: str = ""
    stage: int = 0

    @property
    def is_issued(self) -> bool:
        return self.status is RetrieveStatus.ISSUED

    @property
    def is_pending(self) -> bool:
        return self.status is RetrieveStatus.PENDING


def build_retrieve_payload(
    object_path: str,
    chain_option: ChainOption,
    key_password: Optional[str] = None,
) -> Dict[str, object]:
    payload: Dict[str, object] = {
        "CertificateDN": object_path,
        "Format": "base64",
    }
    if chain_option is not ChainOption.IGNORE:
        payload["IncludeChain"] = True
    if chain_option is ChainOption.ROOT_FIRST:
        payload["RootFirstOrder"] = True
    if key_password:
        payload["IncludePrivateKey"] = True
        payload["Password"] = key_password
    return payload


def interpret_retrieve_response(
    result: HTTPResult,
    object_path: str,
    chain_option: ChainOption,
) -> RetrieveResult:
    """
    Turn one retrieve round trip into a RetrieveResult.

    Raises:
        UnexpectedStatusError: for statuses other than 200 and 202
        DecodeError: for malformed JSON, base64 or PEM data
    """
    expect_status(result, RETRIEVE_OPERATION, (200, 202), object_path)
    response = decode(CertificateRetrieveResponse, result, RETRIEVE_OPERATION)

    if result.status_code == 200 and response.certificate_data:
        pem = pem_collection_from_base64(response.certificate_data, chain_option)
        return RetrieveResult(
            RetrieveStatus.ISSUED, object_path, pem, response.status, response.stage
        )

    if "reject" in response.status.lower():
        return RetrieveResult(
            RetrieveStatus.REJECTED, object_path, None, response.status, response.stage
        )

    return RetrieveResult(
        RetrieveStatus.PENDING, object_path, None, response.status, response.stage
    )


class CertificateRetrieval:
    """
    Restartable, single-step-advanceable retrieve loop for one object path.

    The clock and sleep functions are injectable so callers and tests can
    drive the loop deterministically.
    """

    def __init__(
        self,
        connector: "Connector",
        object_path: str,
        chain_option: ChainOption = ChainOption.ROOT_LAST,
        key_password: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.connector = connector
        self.object_path = object_path
        self.chain_option = chain_option
        self.key_password = key_password
        self._clock = clock
        self._sleep = sleep
        self.attempts = 0
        self.last_result: Optional[RetrieveResult] = None
        self.started_at = clock()

    def restart(self) -> None:
        """Forget previous attempts and restart the timeout clock."""
        self.attempts = 0
        self.last_result = None
        self.started_at = self._clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self.started_at

    def step(self) -> RetrieveResult:
        """Perform exactly one retrieve round trip."""
        payload = build_retrieve_payload(self.object_path, self.chain_option, self.key_password)
        http_result = self.connector.post(UrlResource.CERTIFICATE_RETRIEVE, payload)
        result = interpret_retrieve_response(http_result, self.object_path, self.chain_option)

        self.attempts += 1
        self.last_result = result
        logger.debug(
            f"Retrieve attempt {self.attempts}: {result.status.value}"
            + (f" ({result.backend_status})" if result.backend_status else ""),
            extra={"object_path": self.object_path},
        )
        return result

    def wait(self, timeout: float, backoff: Backoff = 2.0) -> RetrieveResult:
        """
        Step until the result is no longer pending or ``timeout`` seconds pass.

        A zero timeout performs a single step and returns whatever it got,
        including PENDING.

        Args:
            timeout: seconds since construction or the last restart()
            backoff: fixed delay, or a function of the attempt number

        Raises:
            RetrieveTimeoutError: when still pending at the deadline
        """
        while True:
            result = self.step()
            if not result.is_pending or timeout <= 0:
                return result

            remaining = timeout - self.elapsed
            if remaining <= 0:
                raise RetrieveTimeoutError(self.object_path, timeout, result.backend_status)

            delay = backoff(self.attempts) if callable(backoff) else backoff
            self._sleep(max(0.0, min(delay, remaining)))
