import base64
import json

import pytest

from certlifecycle.certificate import ChainOption
from certlifecycle.errors import DecodeError, RetrieveTimeoutError, UnexpectedStatusError
from certlifecycle.tpp.resources import UrlResource
from certlifecycle.tpp.retrieval import (
    CertificateRetrieval,
    RetrieveStatus,
    build_retrieve_payload,
    interpret_retrieve_response,
)
from certlifecycle.utils.http import HTTPResult

OBJECT_PATH = "\\VED\\Policy\\DevOps\\web.example.com"


def _result(status_code, body):
    return HTTPResult(status_code, f"{status_code} X", json.dumps(body).encode())


PENDING = _result(202, {"Stage": 500, "Status": "WebSDK CertRequest Module Requested Certificate"})


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeConnector:
    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def post(self, resource, payload):
        self.calls.append((resource, payload))
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


@pytest.fixture
def issued(chain_pem):
    data = base64.b64encode("".join(chain_pem).encode()).decode()
    return _result(200, {"CertificateData": data, "Format": "base64", "Stage": 800})


def _retrieval(connector, clock, **kwargs):
    return CertificateRetrieval(connector, OBJECT_PATH, clock=clock, sleep=clock.sleep, **kwargs)


def test_payload_reflects_chain_option_and_key_password():
    root_first = build_retrieve_payload(OBJECT_PATH, ChainOption.ROOT_FIRST)
    assert root_first == {
        "CertificateDN": OBJECT_PATH,
        "Format": "base64",
        "IncludeChain": True,
        "RootFirstOrder": True,
    }

    ignore = build_retrieve_payload(OBJECT_PATH, ChainOption.IGNORE, key_password="pw")
    assert "IncludeChain" not in ignore
    assert ignore["IncludePrivateKey"] is True
    assert ignore["Password"] == "pw"


def test_accepted_202_is_pending_not_error():
    result = interpret_retrieve_response(PENDING, OBJECT_PATH, ChainOption.ROOT_LAST)
    assert result.status is RetrieveStatus.PENDING
    assert result.is_pending
    assert result.stage == 500
    assert result.pem is None


def test_200_without_data_is_pending():
    result = interpret_retrieve_response(_result(200, {"Stage": 400}), OBJECT_PATH, ChainOption.ROOT_LAST)
    assert result.is_pending


def test_rejection_is_reported():
    result = interpret_retrieve_response(
        _result(200, {"Stage": 500, "Status": "Request rejected by approver"}),
        OBJECT_PATH,
        ChainOption.ROOT_LAST,
    )
    assert result.status is RetrieveStatus.REJECTED
    assert result.backend_status == "Request rejected by approver"


def test_issued_bundle_is_decoded(issued, chain_pem):
    result = interpret_retrieve_response(issued, OBJECT_PATH, ChainOption.ROOT_LAST)
    assert result.is_issued
    assert result.pem.certificate == chain_pem[0]
    assert len(result.pem.chain) == 2


def test_unexpected_status_raises():
    with pytest.raises(UnexpectedStatusError) as exc:
        interpret_retrieve_response(_result(400, {"Error": "nope"}), OBJECT_PATH, ChainOption.ROOT_LAST)
    assert exc.value.object_path == OBJECT_PATH


def test_malformed_body_is_decode_error():
    with pytest.raises(DecodeError):
        interpret_retrieve_response(HTTPResult(200, "200 OK", b"<html>"), OBJECT_PATH, ChainOption.ROOT_LAST)
    with pytest.raises(DecodeError):
        interpret_retrieve_response(_result(200, {"CertificateData": "%%%"}), OBJECT_PATH, ChainOption.ROOT_LAST)


def test_step_performs_one_round_trip():
    connector = FakeConnector(PENDING)
    clock = FakeClock()
    retrieval = _retrieval(connector, clock)

    result = retrieval.step()

    assert result.is_pending
    assert retrieval.attempts == 1
    assert connector.calls[0][0] is UrlResource.CERTIFICATE_RETRIEVE
    assert clock.sleeps == []


def test_wait_polls_until_issued(issued):
    connector = FakeConnector(PENDING, PENDING, issued)
    clock = FakeClock()

    result = _retrieval(connector, clock).wait(timeout=60, backoff=2.0)

    assert result.is_issued
    assert len(connector.calls) == 3
    assert clock.sleeps == [2.0, 2.0]


def test_wait_with_zero_timeout_returns_pending():
    connector = FakeConnector(PENDING)
    result = _retrieval(connector, FakeClock()).wait(timeout=0)
    assert result.is_pending
    assert len(connector.calls) == 1


def test_wait_times_out():
    connector = FakeConnector(PENDING)
    clock = FakeClock()
    retrieval = _retrieval(connector, clock)

    with pytest.raises(RetrieveTimeoutError) as exc:
        retrieval.wait(timeout=5, backoff=2.0)

    assert retrieval.attempts == 4
    assert clock.sleeps == [2.0, 2.0, 1.0]
    assert exc.value.object_path == OBJECT_PATH
    assert "WebSDK CertRequest" in exc.value.details["last_status"]


def test_wait_uses_callable_backoff(issued):
    connector = FakeConnector(PENDING, PENDING, PENDING, issued)
    clock = FakeClock()
    attempts = []

    def backoff(attempt):
        attempts.append(attempt)
        return attempt * 0.5

    _retrieval(connector, clock).wait(timeout=60, backoff=backoff)

    assert attempts == [1, 2, 3]
    assert clock.sleeps == [0.5, 1.0, 1.5]


def test_restart_resets_clock_and_attempts():
    connector = FakeConnector(PENDING)
    clock = FakeClock()
    retrieval = _retrieval(connector, clock)

    with pytest.raises(RetrieveTimeoutError):
        retrieval.wait(timeout=3, backoff=1.0)

    retrieval.restart()
    assert retrieval.attempts == 0
    assert retrieval.last_result is None
    assert retrieval.elapsed == 0

    result = retrieval.wait(timeout=0)
    assert result.is_pending
