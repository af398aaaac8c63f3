"""
huesync wire-level HTTP client.

This module implements the request side of the bridge resource API using aiohttp.
It contains the HueClient class for sending requests and classifying responses.

Terms:
- Request = An HTTP request sent by the Client to the bridge
- Response = The decoded JSON body of a Request
- Client = A class which sends Requests and receives Responses

Example usage:
async def main():
    async with HueClient("http://192.0.2.10/api") as client:
        config = await client.send("GET", "/config")
        print(config["name"])

asyncio.run(main())
"""

import asyncio
import errno
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Self

import aiohttp
from colorama import Fore, Style

from ..exceptions import HueTransportError, HueHTTPStatusError, HueResourceError, HueAuthorizationPending, HueResponseError


# Constants
class ClientConst:
    """Constants for the HueClient"""
    DEFAULT_TIMEOUT = 5.0
    DEFAULT_PARALLEL_REQUESTS = 10
    WAIT_TIME_RESEND = 0.3
    LINK_BUTTON_NOT_PRESSED = 101


@dataclass
class Request:
    """Represents a request to be sent to the bridge"""
    method: str
    path: str
    body: Optional[Any] = None
    anonymous: bool = False
    seq: Optional[int] = None
    attempts: int = 0
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        self.method = self.method.upper()
        if not self.path.startswith('/'):
            self.path = '/' + self.path

    def __str__(self) -> str:
        if self.body is None:
            return f"{self.method} {self.path}"
        return f"{self.method} {self.path} {json.dumps(self.body, separators=(',', ':'))}"


def is_connection_reset(err: BaseException) -> bool:
    """True for the transient reset a bridge produces during its radio duty cycle"""
    if isinstance(err, (ConnectionResetError, aiohttp.ServerDisconnectedError)):
        return True
    if isinstance(err, aiohttp.ClientOSError) and err.errno == errno.ECONNRESET:
        return True
    return False


def check_embedded_errors(body: Any) -> None:
    """Raise for the first {"error": {...}} element of an array response"""
    if not isinstance(body, list):
        return
    for element in body:
        if not isinstance(element, dict):
            continue
        error = element.get("error")
        if error:
            error_type = error.get("type")
            description = error.get("description", "")
            address = error.get("address")
            if error_type == ClientConst.LINK_BUTTON_NOT_PRESSED:
                raise HueAuthorizationPending(error_type, description, address)
            raise HueResourceError(error_type, description, address)


class HueClient:
    """
    Sends requests to one bridge.

      - At most `parallel_requests` requests are in flight; others queue in order.
      - A connection reset is retried after `wait_time_resend` seconds, forever.
      - Any other transport error, or a non-200 status, is raised at once.
      - An error object embedded in a 200 array response is raised as HueResourceError.
    """

    def __init__(self,
                 base_url: str,
                 username: Optional[str] = None,
                 parallel_requests: int = ClientConst.DEFAULT_PARALLEL_REQUESTS,
                 timeout: float = ClientConst.DEFAULT_TIMEOUT,
                 wait_time_resend: float = ClientConst.WAIT_TIME_RESEND,
                 session: Optional[aiohttp.ClientSession] = None,
                 name: Optional[str] = None,
                 print_traffic: bool = False,
                 logger: Optional[logging.Logger] = None):
        self.base_url = base_url.rstrip('/')
        self.username = username
        self.name = name or self.base_url
        self.timeout = timeout
        self.wait_time_resend = wait_time_resend
        self.print_traffic = print_traffic
        self.logger = logger or logging.getLogger(__name__)
        self.request_count: int = 0
        self._parallel_requests = parallel_requests
        self._gate = asyncio.Semaphore(parallel_requests)
        self._session = session
        self._owns_session = session is None
        self._closed = False

    @property
    def parallel_requests(self) -> int:
        return self._parallel_requests

    @parallel_requests.setter
    def parallel_requests(self, value: int) -> None:
        # Only safe before the first request is issued
        if value < 1:
            raise ValueError(f"parallel_requests must be at least 1, got {value}")
        self._parallel_requests = value
        self._gate = asyncio.Semaphore(value)

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.username}" if self.username else self.base_url

    def _url_for(self, path: str, anonymous: bool = False) -> str:
        return (self.base_url if anonymous else self.url) + path

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            self._owns_session = True
        return self._session

    async def send(self, method: str, path: str, body: Optional[Any] = None, anonymous: bool = False) -> Any:
        """Send a request through the concurrency gate and return the decoded body"""
        if self._closed: raise RuntimeError("Client is closed")
        request = Request(method=method, path=path, body=body, anonymous=anonymous)
        async with self._gate:
            return await self._send(request)

    async def _send(self, request: Request) -> Any:
        self.request_count += 1
        request.seq = self.request_count
        self.logger.debug(f"{self.name}: request #{request.seq}: {request}")
        while True:
            request.attempts += 1
            request.timestamp = time.time()
            try:
                status, body = await self._http(request)
            except HueResponseError as e:
                self.logger.error(f"{self.name}: request #{request.seq}: {request}")
                self.logger.error(f"{self.name}: {e}")
                raise
            except (aiohttp.ClientError, ConnectionError, asyncio.TimeoutError) as e:
                if is_connection_reset(e):
                    self.logger.debug(f"{self.name}: request #{request.seq}: connection reset - retrying in {self.wait_time_resend * 1000:.0f}ms")
                    await asyncio.sleep(self.wait_time_resend)
                    continue
                self.logger.error(f"{self.name}: request #{request.seq}: {request}")
                self.logger.error(f"{self.name}: communication error {type(e).__name__}: {e}")
                raise HueTransportError(f"{self.name}: {type(e).__name__}: {e}") from e
            break

        if self.print_traffic:
            rtt_ms = (time.time() - request.timestamp) * 1000
            print(Fore.MAGENTA + f"REQUEST #{request.seq}: {request}  "
                + Fore.WHITE + Style.DIM + f"RTT: {rtt_ms:.0f}ms".ljust(10)
                + Style.BRIGHT + Fore.CYAN + f"  RESPONSE: {status} {json.dumps(body)[:200] if body is not None else ''}"
                + Style.RESET_ALL)

        if status != 200:
            self.logger.error(f"{self.name}: request #{request.seq}: {request}")
            self.logger.error(f"{self.name}: http status {status}")
            raise HueHTTPStatusError(status)

        try:
            check_embedded_errors(body)
        except HueAuthorizationPending:
            self.logger.debug(f"{self.name}: request #{request.seq}: link button not pressed")
            raise
        except HueResourceError as e:
            self.logger.error(f"{self.name}: request #{request.seq}: {request}")
            self.logger.error(f"{self.name}: bridge error {e.type}: {e.description}")
            raise

        self.logger.debug(f"{self.name}: request #{request.seq}: ok")
        return body

    async def _http(self, request: Request) -> tuple[int, Any]:
        session = self._get_session()
        kwargs: dict[str, Any] = {"timeout": aiohttp.ClientTimeout(total=self.timeout)}
        if request.body is not None:
            kwargs["json"] = request.body
        async with session.request(request.method, self._url_for(request.path, request.anonymous), **kwargs) as response:
            if response.status != 200:
                return response.status, None
            try:
                body = await response.json(content_type=None)
            except ValueError as e:
                raise HueResponseError(f"invalid json in response: {e}") from e
            return response.status, body

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def is_closed(self) -> bool:
        return self._closed

    async def close(self):
        """Close the client, and its session if the client created it"""
        self._closed = True
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
