"""
Data Source

Outbound requests to the Featherbone data API.

Contract:
    request(method, path, body=None, params=None) -> Future

The future resolves exactly once with the parsed JSON payload, or fails
with FetchError (GET) or SaveError (anything else). Single records are
{id, ...attributes}; list reads are arrays of those.

Paths:
- /data/{feather-name}/{id}   GET, PATCH, DELETE
- /data/{plural-name}         GET (params = filter), POST
- /settings/{name}            GET, PUT
"""

from concurrent.futures import Future
from typing import Any, Callable, Dict, Optional

import requests

from ..core.errors import DataSourceError, FetchError, SaveError
from ..utils import encode_filter


DEFAULT_TIMEOUT = 30


def error_for(method: str, message: str, status_code: Optional[int] = None) -> DataSourceError:
    """FetchError for reads, SaveError for writes"""
    cls = FetchError if method.upper() == 'GET' else SaveError
    return cls(message, status_code=status_code)


class DataSource:
    """Base class for data sources"""

    def __init__(self, logger=None):
        self.logger = logger

    def request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Future:
        """
        Send a request.

        Args:
            method: GET, POST, PATCH, PUT or DELETE
            path: Resource path (see module docstring)
            body: JSON body for writes
            params: Filter for list reads

        Returns:
            Future resolving to the parsed JSON payload
        """
        raise NotImplementedError

    def _settle(self, method: str, path: str, send: Callable[[], Any]) -> Future:
        """Run `send` and capture its outcome in a future"""
        future: Future = Future()
        future.set_running_or_notify_cancel()

        try:
            result = send()
        except DataSourceError as e:
            if self.logger:
                self.logger.error(
                    f'{method} {path} failed: {e}',
                    method=method,
                    path=path,
                    status=e.status_code,
                )
            future.set_exception(e)
            return future

        if self.logger:
            self.logger.debug(f'{method} {path}', method=method, path=path)

        future.set_result(result)
        return future


class HttpDataSource(DataSource):
    """
    Data source talking to a Featherbone server over HTTP.

    Example:
        >>> ds = HttpDataSource('http://localhost:8080')
        >>> ds.request('GET', '/data/contact/c1').result()
        {'id': 'c1', 'name': 'Alice'}
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        logger=None,
    ):
        """
        Initialize HTTP data source.

        Args:
            base_url: Server root (e.g. 'http://localhost:8080')
            timeout: Request timeout in seconds
            session: Optional requests.Session (cookies, auth)
            logger: Optional SelfLogger
        """
        super().__init__(logger=logger)
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session

    def url(self, path: str) -> str:
        return f'{self.base_url}{path}'

    def request(self, method, path, body=None, params=None) -> Future:
        method = method.upper()
        return self._settle(method, path, lambda: self._send(method, path, body, params))

    def _send(self, method: str, path: str, body, params) -> Any:
        send = self.session.request if self.session is not None else requests.request
        kwargs: Dict[str, Any] = {'timeout': self.timeout}

        if params:
            kwargs['params'] = encode_filter(params)
        if body is not None:
            kwargs['json'] = body
            kwargs['headers'] = {'Content-Type': 'application/json'}

        try:
            response = send(method, self.url(path), **kwargs)
        except requests.RequestException as e:
            raise error_for(method, f'{method} {path}: {e}')

        if response.status_code >= 400:
            raise error_for(method, _error_message(response), response.status_code)

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError:
            raise error_for(method, f'{method} {path}: invalid JSON response',
                            response.status_code)


def _error_message(response) -> str:
    """Pull the server's message out of an error response"""
    try:
        payload = response.json()
    except ValueError:
        return response.text or f'HTTP {response.status_code}'

    if isinstance(payload, dict):
        return str(payload.get('message') or payload)
    return str(payload)
