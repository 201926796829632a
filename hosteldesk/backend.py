import json
import logging
from typing import Any, Callable, Dict, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from .config import API_BASE_URL, API_TIMEOUT_SECONDS
from .errors import BackendError, ErrorKind

logger = logging.getLogger(__name__)


def build_query(params: Optional[Dict[str, Any]]) -> str:
    """Encode list filters, dropping empty values and the ``all`` sentinel."""
    if not params:
        return ""
    pairs = []
    for key, value in params.items():
        if value is None or value == "" or value == "all":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        pairs.append((key, str(getattr(value, "value", value))))
    if not pairs:
        return ""
    return "?" + urlencode(pairs)


def _decode(raw_bytes: bytes) -> Any:
    if not raw_bytes:
        return None
    try:
        text = raw_bytes.decode("utf-8")
    except UnicodeDecodeError:
        text = raw_bytes.decode("latin-1")
    try:
        return json.loads(text)
    except ValueError:
        return text


class BackendClient:
    """JSON client for the hostel API.

    ``with_auth`` decorates outgoing headers, normally
    :meth:`hosteldesk.auth.AuthContext.with_auth`. Without it requests are
    sent anonymously (login).
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        with_auth: Optional[Callable[[Dict[str, str]], Dict[str, str]]] = None,
        timeout_seconds: int = API_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.with_auth = with_auth
        self.timeout_seconds = timeout_seconds

    def request(self, method: str, path: str, payload: Any = None, params=None) -> Any:
        url = f"{self.base_url}{path}{build_query(params)}"
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.with_auth is not None:
            headers = self.with_auth(headers)
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")

        request = Request(url, data=data, headers=headers, method=method)
        try:
            with urlopen(request, timeout=self.timeout_seconds) as response:
                raw_bytes = response.read()
        except HTTPError as exc:
            body = _decode(exc.read() or b"")
            error = BackendError.from_response(exc.code, body, str(exc.reason or ""))
            logger.warning("%s %s failed: %s %s", method, path, exc.code, error.kind.value)
            raise error from exc
        except (URLError, TimeoutError, OSError) as exc:
            logger.warning("%s %s unreachable: %s", method, path, exc)
            raise BackendError(
                ErrorKind.NETWORK,
                0,
                "Network error. Please check your connection and try again.",
            ) from exc
        return _decode(raw_bytes)

    def get(self, path: str, params=None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, payload: Any = None) -> Any:
        return self.request("POST", path, payload if payload is not None else {})
