import json
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from dataclasses import dataclass
from typing import Optional, Dict, Any, Callable

from ..logging import get_logger
from ..errors import TransportError, DecodeError

logger = get_logger(__name__)

# Connection pool configuration
DEFAULT_POOL_CONNECTIONS = 10  # Number of connection pools
DEFAULT_POOL_MAXSIZE = 20      # Max connections per pool
DEFAULT_POOL_BLOCK = False     # Don't block when pool exhausted
DEFAULT_TIMEOUT_SECONDS = 30.0

USER_AGENT = "certlifecycle-py/1.0.0"


@dataclass(frozen=True)
class HTTPResult:
    """Status and raw body of one backend round trip."""
    status_code: int
    status_text: str
    body: bytes

    def json(self, operation: str) -> Any:
        """Decode the body as JSON, raising DecodeError on malformed data."""
        try:
            return json.loads(self.body or b"null")
        except ValueError as e:
            raise DecodeError(f"invalid JSON body: {e}", operation) from e


def build_session(
    adapter_factory: Optional[Callable[..., HTTPAdapter]] = None,
    verify: bool = True,
    pool_connections: int = DEFAULT_POOL_CONNECTIONS,
    pool_maxsize: int = DEFAULT_POOL_MAXSIZE,
) -> requests.Session:
    """
    Build a connection-private session.

    Retries only cover idempotent methods; lifecycle POSTs are never replayed.
    """
    session = requests.Session()

    retries = Retry(
        total=3,
        backoff_factor=1,
        status_forcelist=[502, 503, 504],
        allowed_methods=["HEAD", "GET", "OPTIONS"],
    )

    adapter_factory = adapter_factory or HTTPAdapter
    adapter = adapter_factory(
        max_retries=retries,
        pool_connections=pool_connections,
        pool_maxsize=pool_maxsize,
        pool_block=DEFAULT_POOL_BLOCK,
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.verify = verify

    session.headers.update({
        "User-Agent": USER_AGENT,
        "content-type": "application/json",
        "cache-control": "no-cache",
    })
    return session


class BackendClient:
    """
    HTTP client bound to one backend base URL and one session.

    Returns the raw status and body; interpreting status codes is the
    caller's job because every lifecycle operation accepts a different set.
    """
    def __init__(
        self,
        base_url: str,
        session: requests.Session,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.base_url = normalize_base_url(base_url)
        self.session = session
        self.timeout = timeout

    def request(
        self,
        method: str,
        resource: str,
        data: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> HTTPResult:
        """Performs a request; only pre-status failures raise."""
        url = self.base_url + resource.lstrip("/")
        kwargs: Dict[str, Any] = {"headers": headers or {}, "timeout": self.timeout}
        if method in ("POST", "PUT"):
            kwargs["json"] = data if data is not None else {}
        if params:
            kwargs["params"] = params

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error(f"Network Error: {method} {url}: {e}")
            raise TransportError(str(e), url) from e

        status_text = f"{response.status_code} {response.reason or ''}".strip()
        logger.debug(f"Got {status_text} status for {method} {url}")
        return HTTPResult(response.status_code, status_text, response.content or b"")

    def close(self) -> None:
        self.session.close()


def normalize_base_url(url: str) -> str:
    """
    Normalize a backend URL to ``https://host[/path]/``.

    Adds the https scheme when missing and strips a trailing ``vedsdk``
    component, since resource paths already carry it.
    """
    url = (url or "").strip()
    if not url:
        return url
    if "://" not in url:
        url = "https://" + url
    elif url.lower().startswith("http://"):
        url = "https://" + url[len("http://"):]
    url = url.rstrip("/")
    if url.lower().endswith("/vedsdk"):
        url = url[: -len("/vedsdk")]
    return url + "/"
