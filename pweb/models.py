from typing import TYPE_CHECKING, Dict, List, Optional, Tuple, Union
from dataclasses import dataclass, field
from http import HTTPStatus
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from .errors import ErrorKind


@dataclass
class HTTPRequest:
    """Model representing an HTTP request."""
    method: str
    path: str
    protocol: str
    headers: Dict[str, str]
    body: bytes = b''
    client_address: Optional[str] = None

    @classmethod
    def from_raw_data(cls, request_data: bytes) -> Optional['HTTPRequest']:
        """Create HTTPRequest instance from raw request bytes."""
        head, _, body = request_data.partition(b'\r\n\r\n')
        try:
            lines = head.decode('iso-8859-1').split('\r\n')

            # Parse request line
            method, path, protocol = lines[0].strip().split()

            # Parse headers
            headers = {}
            for line in lines[1:]:
                if not line.strip():
                    break
                key, value = line.split(':', 1)
                headers[key.strip()] = value.strip()
        except ValueError:
            return None

        return cls(
            method=method.upper(),
            path=path,
            protocol=protocol,
            headers=headers,
            body=body
        )

    def _split_target(self) -> Tuple[str, str]:
        target = self.path
        if target.startswith(('http://', 'https://')):
            parts = urlsplit(target)
            return parts.path or '/', parts.query
        target = target.partition('#')[0]
        path, _, query = target.partition('?')
        return path or '/', query

    @property
    def url_path(self) -> str:
        """Path component of the request target, without the query."""
        return self._split_target()[0]

    @property
    def query(self) -> str:
        """Raw query string of the request target."""
        return self._split_target()[1]

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default


@dataclass
class HTTPResponse:
    """Model representing an HTTP response."""
    status_code: int
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: bytes = b''
    status_message: Optional[str] = None

    def __post_init__(self):
        if self.status_message is None:
            try:
                self.status_message = HTTPStatus(self.status_code).phrase
            except ValueError:
                self.status_message = ''

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a header, looked up case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return default

    def header_values(self, name: str) -> List[str]:
        """Every value of a header that may repeat, such as Set-Cookie."""
        lowered = name.lower()
        return [value for key, value in self.headers if key.lower() == lowered]

    def to_bytes(self, include_body: bool = True) -> bytes:
        """Serialize the response for a single-request connection."""
        headers = [(k, v) for k, v in self.headers
                   if k.lower() not in ('content-length', 'connection')]
        headers.append(('Content-Length', str(len(self.body))))
        headers.append(('Connection', 'close'))

        headers_str = ''.join(f"{k}: {v}\r\n" for k, v in headers)
        head = (
            f"HTTP/1.1 {self.status_code} {self.status_message}\r\n"
            f"{headers_str}"
            f"\r\n"
        ).encode('iso-8859-1')
        return head + self.body if include_body else head

    @classmethod
    def create_error(cls, status_code: int, message: str) -> 'HTTPResponse':
        """Create a plain-text error response."""
        return cls(
            status_code=status_code,
            headers=[('Content-Type', 'text/plain')],
            body=message.encode('utf-8')
        )


@dataclass(frozen=True)
class Served:
    """A stage produced a complete response."""
    response: HTTPResponse


@dataclass(frozen=True)
class NotFound:
    """The requested resource does not exist at this stage."""
    detail: str


@dataclass(frozen=True)
class Failure:
    """A terminal error detected while handling a request."""
    kind: 'ErrorKind'
    detail: str


Outcome = Union[Served, NotFound, Failure]
