"""A single HTTP request whose response body is streamed into a sink."""

from __future__ import annotations

import enum
import logging
import math
import re
import socket
import ssl
import time
import urllib.error
import urllib.request
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from urllib.parse import urljoin, urlsplit, urlunsplit

from packlauncher.resource import human_readable_size

log = logging.getLogger(__name__)

USER_AGENT = "PackLauncher/1.0"
DEFAULT_TIMEOUT = 30.0
MAX_REDIRECTS = 30
_HTTP_DATE_FORMAT = "%a, %d %b %Y %H:%M:%S GMT"
_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


class RequestState(enum.Enum):
    INACTIVE = enum.auto()
    RUNNING = enum.auto()
    SUCCEEDED = enum.auto()
    FAILED = enum.auto()
    ABORTED_BY_USER = enum.auto()


class NetworkError(enum.Enum):
    NO_ERROR = enum.auto()
    CONNECTION_REFUSED = enum.auto()
    HOST_NOT_FOUND = enum.auto()
    TIMEOUT = enum.auto()
    OPERATION_CANCELED = enum.auto()
    SSL_HANDSHAKE_FAILED = enum.auto()
    NETWORK_SESSION_FAILED = enum.auto()
    UNKNOWN_NETWORK = enum.auto()
    PROTOCOL_FAILURE = enum.auto()
    AUTHENTICATION_REQUIRED = enum.auto()
    CONTENT_ACCESS_DENIED = enum.auto()
    CONTENT_NOT_FOUND = enum.auto()
    CONTENT_OPERATION_NOT_PERMITTED = enum.auto()
    CONTENT_CONFLICT = enum.auto()
    CONTENT_GONE = enum.auto()
    UNKNOWN_CONTENT = enum.auto()
    INTERNAL_SERVER_ERROR = enum.auto()
    OPERATION_NOT_IMPLEMENTED = enum.auto()
    SERVICE_UNAVAILABLE = enum.auto()
    UNKNOWN_SERVER = enum.auto()


class RequestOption(enum.Flag):
    NONE = 0
    AUTO_RETRY = enum.auto()
    ACCEPT_LOCAL_FILES = enum.auto()


@dataclass
class Request:
    """What a transport is asked to send."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    data: bytes | None = None
    timeout: float = DEFAULT_TIMEOUT


@dataclass
class Reply:
    """What a transport got back; ``error`` is NO_ERROR on success."""

    url: str
    status: int | None = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    error: NetworkError = NetworkError.NO_ERROR
    error_string: str = ""

    def header(self, name: str) -> str | None:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


Transport = Callable[[Request], Reply]
Validator = Callable[[bytes], bool]


class Sink(ABC):
    """Receives the body of a request and decides whether it is acceptable."""

    def __init__(self) -> None:
        self.validators: list[Validator] = []
        self.fail_reason = ""

    def add_validator(self, validator: Validator) -> None:
        self.validators.append(validator)

    def init(self, url: str) -> RequestState:
        """Prepare for a new transfer; SUCCEEDED means the data is already at hand."""
        self.fail_reason = ""
        return RequestState.RUNNING

    @abstractmethod
    def write(self, data: bytes) -> RequestState:
        """Accept a chunk of the body; RUNNING while all is well."""

    @abstractmethod
    def finalize(self, reply: Reply) -> RequestState:
        """Finish the transfer; SUCCEEDED when the data is complete and valid."""

    def abort(self) -> None:
        """Drop whatever was received."""

    def has_local_data(self) -> bool:
        return False


class ByteArraySink(Sink):
    """Collects the body in memory."""

    def __init__(self) -> None:
        super().__init__()
        self._buffer = bytearray()

    @property
    def data(self) -> bytes:
        return bytes(self._buffer)

    def init(self, url: str) -> RequestState:
        self._buffer.clear()
        return super().init(url)

    def write(self, data: bytes) -> RequestState:
        self._buffer += data
        return RequestState.RUNNING

    def finalize(self, reply: Reply) -> RequestState:
        data = bytes(self._buffer)
        if not all(validator(data) for validator in self.validators):
            self.fail_reason = "Failed to validate downloaded data"
            return RequestState.FAILED
        return RequestState.SUCCEEDED

    def abort(self) -> None:
        self._buffer.clear()


def parse_retry_after(value: str | bytes, now: datetime) -> int:
    """Seconds to wait according to a Retry-After header value; 0 when unreadable."""
    if isinstance(value, bytes):
        value = value.decode("utf-8", "replace")
    text = value.strip()
    if text.endswith("GMT"):
        try:
            after = datetime.strptime(text, _HTTP_DATE_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError:
            return 0
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return int((after - now).total_seconds())
    try:
        return int(text)
    except ValueError:
        return 0


def fix_location(reply_url: str, location: str) -> str:
    """Resolve a Location header against the URL that returned it.

    Raises ValueError when no absolute URL can be made of it.
    """
    location = location.strip()
    if not location:
        raise ValueError("empty redirect location")
    if location.startswith("//"):
        result = urlsplit(reply_url).scheme + ":" + location
    elif location.startswith("/"):
        base = urlsplit(reply_url)
        path, sep, query = location.partition("?")
        result = urlunsplit((base.scheme, base.netloc, path, query if sep else base.query, ""))
    elif _SCHEME.match(location):
        result = location
    else:
        result = urljoin(reply_url, location)
    parts = urlsplit(result)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"invalid redirect URL: {location!r}")
    return result


def _human_duration(seconds: float) -> str:
    if not math.isfinite(seconds):
        return "unknown"
    total = max(0, int(round(seconds)))
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)
    parts = [
        f"{amount}{unit}"
        for amount, unit in ((days, "d"), (hours, "h"), (minutes, "min"))
        if amount
    ]
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def format_progress(bytes_received: int, bytes_total: int, elapsed_ms: float) -> str:
    """Two lines: amount transferred, then speed with the estimated time left."""
    progress = f"{human_readable_size(bytes_received)} / {human_readable_size(bytes_total)}"
    if elapsed_ms > 0:
        speed = bytes_received / elapsed_ms * 1000
        if bytes_total > 0 and speed > 0:
            eta = _human_duration((bytes_total - bytes_received) / speed)
        else:
            eta = "unknown"
        speed_str = f"{human_readable_size(speed)} /s ({eta})"
    else:
        speed_str = "0 B/s"
    return progress + "\n" + speed_str


def _truncate_url(url: str, max_len: int) -> str:
    text = _SCHEME.sub("", url)
    if len(text) <= max_len:
        return text
    keep = max_len - 3
    head = keep // 2
    return text[:head] + "..." + text[len(text) - (keep - head):]


_HTTP_ERRORS = {
    401: NetworkError.AUTHENTICATION_REQUIRED,
    403: NetworkError.CONTENT_ACCESS_DENIED,
    404: NetworkError.CONTENT_NOT_FOUND,
    405: NetworkError.CONTENT_OPERATION_NOT_PERMITTED,
    409: NetworkError.CONTENT_CONFLICT,
    410: NetworkError.CONTENT_GONE,
    500: NetworkError.INTERNAL_SERVER_ERROR,
    501: NetworkError.OPERATION_NOT_IMPLEMENTED,
    503: NetworkError.SERVICE_UNAVAILABLE,
}


def _http_error(code: int) -> NetworkError:
    if 300 <= code < 400:
        return NetworkError.NO_ERROR
    if code in _HTTP_ERRORS:
        return _HTTP_ERRORS[code]
    return NetworkError.UNKNOWN_SERVER if code >= 500 else NetworkError.UNKNOWN_CONTENT


def _os_error(reason: object) -> NetworkError:
    if isinstance(reason, socket.gaierror):
        return NetworkError.HOST_NOT_FOUND
    if isinstance(reason, TimeoutError):
        return NetworkError.TIMEOUT
    if isinstance(reason, ConnectionRefusedError):
        return NetworkError.CONNECTION_REFUSED
    if isinstance(reason, ssl.SSLError):
        return NetworkError.SSL_HANDSHAKE_FAILED
    return NetworkError.UNKNOWN_NETWORK


def _build_opener() -> urllib.request.OpenerDirector:
    """An opener without a redirect handler, so 3xx replies reach the caller."""
    opener = urllib.request.OpenerDirector()
    for handler in (
        urllib.request.ProxyHandler(),
        urllib.request.UnknownHandler(),
        urllib.request.HTTPHandler(),
        urllib.request.HTTPSHandler(),
        urllib.request.HTTPDefaultErrorHandler(),
        urllib.request.HTTPErrorProcessor(),
    ):
        opener.add_handler(handler)
    return opener


_OPENER = _build_opener()


def urllib_transport(request: Request) -> Reply:
    """Send a request with the standard library, leaving redirects to the caller."""
    req = urllib.request.Request(
        request.url, data=request.data, headers=request.headers, method=request.method
    )
    try:
        with _OPENER.open(req, timeout=request.timeout) as response:
            body = response.read()
            headers = dict(response.headers.items()) if response.headers else {}
            return Reply(
                url=response.geturl() or request.url,
                status=getattr(response, "status", None),
                headers=headers,
                body=body,
            )
    except urllib.error.HTTPError as exc:
        try:
            body = exc.read()
        except OSError:
            body = b""
        return Reply(
            url=request.url,
            status=exc.code,
            headers=dict(exc.headers.items()) if exc.headers else {},
            body=body,
            error=_http_error(exc.code),
            error_string=f"HTTP {exc.code} {exc.reason}",
        )
    except urllib.error.URLError as exc:
        return Reply(url=request.url, status=None, error=_os_error(exc.reason), error_string=str(exc.reason))
    except OSError as exc:
        return Reply(url=request.url, status=None, error=_os_error(exc), error_string=str(exc))


_RETRY = object()
_REDIRECT = object()


class NetRequest:
    """One request, with redirect following and optional retry on rate limiting."""

    def __init__(
        self,
        url: str,
        sink: Sink | None = None,
        *,
        method: str = "GET",
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
        transport: Transport | None = None,
        options: RequestOption = RequestOption.NONE,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = USER_AGENT,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.url = url
        self.sink = sink if sink is not None else ByteArraySink()
        self.method = method
        self.data = data
        self.headers = dict(headers or {})
        self.transport = transport
        self.options = options
        self.timeout = timeout
        self.user_agent = user_agent
        self.uid = uuid.uuid4()
        self.state = RequestState.INACTIVE
        self.fail_reason = ""
        self.error_response = bytearray()
        self.status = ""
        self.details = ""
        self.progress = (0, 0)
        self.retry_count = 0
        self._sleep = sleep
        self._clock = clock
        self._reply: Reply | None = None

    def __repr__(self) -> str:
        return f"NetRequest({self.url!r}, state={self.state.name})"

    @property
    def status_code(self) -> int:
        if self._reply is None:
            return -1
        return self._reply.status or 0

    @property
    def error(self) -> NetworkError:
        return self._reply.error if self._reply is not None else NetworkError.NO_ERROR

    @property
    def error_string(self) -> str:
        return self._reply.error_string if self._reply is not None else ""

    def add_validator(self, validator: Validator) -> None:
        self.sink.add_validator(validator)

    def enable_auto_retry(self, enable: bool) -> None:
        if enable:
            self.options |= RequestOption.AUTO_RETRY
        else:
            self.options &= ~RequestOption.AUTO_RETRY

    def can_abort(self) -> bool:
        return True

    def abort(self) -> bool:
        """Mark the request as aborted; a transfer in flight is discarded when it ends."""
        self.state = RequestState.ABORTED_BY_USER
        return True

    def execute(self) -> RequestState:
        """Run the request to completion and return its final state."""
        redirects = 0
        while True:
            outcome = self._attempt()
            if outcome is _RETRY:
                continue
            if outcome is _REDIRECT:
                redirects += 1
                if redirects > MAX_REDIRECTS:
                    self.sink.abort()
                    self.fail_reason = "Too many redirects"
                    return self._finish(RequestState.FAILED)
                continue
            return outcome

    def _finish(self, state: RequestState) -> RequestState:
        self.state = state
        return state

    def _attempt(self):
        self.status = f"Requesting {_truncate_url(self.url, 80)}"
        if self.state is RequestState.ABORTED_BY_USER:
            log.warning("%s Attempt to start an aborted Request: %s", self.uid, self.url)
            return self._finish(RequestState.ABORTED_BY_USER)

        self.fail_reason = ""
        self.error_response.clear()
        state = self.sink.init(self.url)
        if state is RequestState.SUCCEEDED:
            log.debug("%s Request cache hit %s", self.uid, self.url)
            return self._finish(state)
        if state in (RequestState.INACTIVE, RequestState.FAILED):
            self.fail_reason = self.sink.fail_reason
            return self._finish(RequestState.FAILED)
        if state is RequestState.ABORTED_BY_USER:
            return self._finish(state)
        self.state = RequestState.RUNNING
        log.debug("%s Running %s", self.uid, self.url)

        request = Request(
            url=self.url,
            method=self.method,
            headers={"User-Agent": self.user_agent, **self.headers},
            data=self.data,
            timeout=self.timeout,
        )
        started = self._clock()
        transport = self.transport or urllib_transport
        try:
            reply = transport(request)
        except OSError as exc:
            reply = Reply(url=self.url, status=None, error=_os_error(exc), error_string=str(exc))
        self._reply = reply

        if self.state is RequestState.ABORTED_BY_USER:
            self.sink.abort()
            return self._finish(RequestState.ABORTED_BY_USER)

        self._on_progress(reply, (self._clock() - started) * 1000)
        self._ready_read(reply.body)

        if reply.error is not NetworkError.NO_ERROR:
            outcome = self._download_error(reply)
            if outcome is not None:
                return outcome

        target = self._redirect_target(reply)
        if target is not None:
            log.debug("%s Following redirect to %s", self.uid, target)
            self.url = target
            return _REDIRECT

        if self.state is RequestState.SUCCEEDED:
            log.debug("%s Request failed but we are allowed to proceed: %s", self.uid, self.url)
            self.sink.abort()
            return self._finish(RequestState.SUCCEEDED)
        if self.state is RequestState.FAILED:
            self.sink.abort()
            self.fail_reason = (
                reply.error_string or self.fail_reason or self.sink.fail_reason or "Request failed"
            )
            return self._finish(RequestState.FAILED)
        if self.state is RequestState.ABORTED_BY_USER:
            self.sink.abort()
            return self._finish(RequestState.ABORTED_BY_USER)

        if self.sink.finalize(reply) is not RequestState.SUCCEEDED:
            log.debug("%s Request failed to finalize: %s", self.uid, self.url)
            self.sink.abort()
            self.fail_reason = self.sink.fail_reason
            return self._finish(RequestState.FAILED)

        log.debug("%s Request succeeded: %s", self.uid, self.url)
        return self._finish(RequestState.SUCCEEDED)

    def _on_progress(self, reply: Reply, elapsed_ms: float) -> None:
        received = len(reply.body)
        try:
            total = int(reply.header("Content-Length") or received)
        except ValueError:
            total = received
        self.details = format_progress(received, total, elapsed_ms)
        self.progress = (received, total)

    def _ready_read(self, data: bytes) -> None:
        if self.state is not RequestState.RUNNING:
            log.error("%s Cannot write download data! illegal status %s", self.uid, self.state)
            return
        self.state = self.sink.write(data)
        if self.status_code >= 400:
            self.error_response += data
        if self.state is RequestState.FAILED:
            log.error("%s Failed to process response chunk: %s", self.uid, self.sink.fail_reason)

    def _download_error(self, reply: Reply):
        """Handle a transfer error; returns an outcome when the attempt ends here."""
        if reply.error is NetworkError.OPERATION_CANCELED:
            log.error("%s Aborted %s", self.uid, self.url)
            self.state = RequestState.FAILED
            return None
        if self.status_code == 429 and RequestOption.AUTO_RETRY in self.options:
            log.debug("%s Rate Limited!", self.uid)
            delay = 10 * 2**self.retry_count
            retry_after = reply.header("Retry-After")
            if retry_after is not None:
                delay = parse_retry_after(retry_after, datetime.now(timezone.utc))
            return self._handle_auto_retry(delay)
        if RequestOption.ACCEPT_LOCAL_FILES in self.options and self.sink.has_local_data():
            self.state = RequestState.SUCCEEDED
            return None
        log.error("%s Failed %s with error %s", self.uid, self.url, reply.error.name)
        log.error("%s HTTP status: %s %s", self.uid, self.status_code, reply.error_string)
        if self.error_response:
            log.error("%s Response from server: %r", self.uid, bytes(self.error_response))
        self.state = RequestState.FAILED
        return None

    def _handle_auto_retry(self, delay: int):
        self.retry_count += 1
        if delay > 60 or self.retry_count > 4:
            self.sink.abort()
            when = datetime.now().astimezone() + timedelta(seconds=delay)
            self.fail_reason = (
                f"Request Rate Limited for {delay} second(s): "
                f"Retry After {when:%Y-%m-%d %H:%M}"
            )
            return self._finish(RequestState.FAILED)
        log.debug("%s Retrying Request in %s seconds", self.uid, delay)
        self.status = f"Rate Limited: Waiting {delay} second(s)"
        self._sleep(max(delay, 0))
        return _RETRY

    def _redirect_target(self, reply: Reply) -> str | None:
        if reply.status is None or not 300 <= reply.status < 400:
            return None
        location = reply.header("Location")
        if not location:
            return None
        try:
            return fix_location(reply.url or self.url, location)
        except ValueError:
            log.warning("%s Failed to parse redirect URL: %s", self.uid, location)
            self.fail_reason = f"Failed to parse redirect URL: {location}"
            self.state = RequestState.FAILED
            return None