"""
HTTP client for the data API (lotes, animais, pesagens, vendas, custos).

Every call is a single attempt: no retries, no caching. Transport failures and
non-2xx answers both surface as ApiError, carrying the server's message verbatim.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from urllib.parse import urlsplit

import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict
from werkzeug.test import Client

logger = logging.getLogger(__name__)

COLLECTIONS = ('lotes', 'animais', 'pesagens', 'vendas', 'custos')
DEFAULT_ERROR = 'Erro na requisição'

# Base URL of the API when it is served by the same process as the pages.
LOCAL_API_URL = 'http://tgagro.local/api'


class ApiError(Exception):
    """A failed API call. status is None for network/transport failures."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        self.status = status


class WsgiAdapter(BaseAdapter):
    """
    Transport that hands each request straight to a WSGI application in this
    process instead of opening a socket. Used when the pages and the API are
    served by the same app.
    """

    def __init__(self, wsgi_app):
        super().__init__()
        self.wsgi_app = wsgi_app

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        parts = urlsplit(request.url)
        body = request.body
        if isinstance(body, str):
            body = body.encode('utf-8')

        result = Client(self.wsgi_app).open(
            parts.path,
            base_url=f'{parts.scheme}://{parts.netloc}',
            method=request.method,
            query_string=parts.query,
            data=body,
            content_type=request.headers.get('Content-Type'),
        )

        response = requests.Response()
        response.status_code = result.status_code
        response._content = result.get_data()
        response.headers = CaseInsensitiveDict(dict(result.headers))
        response.encoding = 'utf-8'
        response.reason = result.status
        response.url = request.url
        response.request = request
        return response

    def close(self):
        pass


def local_session(wsgi_app):
    """A requests session whose LOCAL_API_URL calls are served in-process by wsgi_app."""
    session = requests.Session()
    session.mount(LOCAL_API_URL.rsplit('/', 1)[0] + '/', WsgiAdapter(wsgi_app))
    return session


class ApiClient:
    def __init__(self, base_url, session=None, timeout=15):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method, endpoint, params=None, body=None):
        url = f'{self.base_url}/{endpoint}'
        try:
            response = self.session.request(
                method, url, params=params, json=body, timeout=self.timeout,
                headers={'Accept': 'application/json'},
            )
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise ApiError(f'Falha de comunicação com a API: {e}') from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.ok:
            message = data.get('error') if isinstance(data, dict) else None
            logger.warning("%s %s -> %s: %s", method, url, response.status_code, message)
            raise ApiError(message or DEFAULT_ERROR, status=response.status_code)
        return data

    # --- Reads ---

    def list(self, collection):
        """GET /<collection>: every record, unfiltered."""
        data = self._request('GET', collection)
        if not isinstance(data, list):
            raise ApiError(f"Resposta inesperada da API para '{collection}'")
        return data

    def fetch_many(self, *collections):
        """
        Fetches several collections as independent parallel requests and joins
        them before returning, in the order requested.
        Raises the first ApiError encountered.
        """
        if not collections:
            return ()
        # Workers share self.session for GETs only; a Session is not guaranteed thread-safe,
        # so no writes or header/cookie changes may happen while the batch runs.
        with ThreadPoolExecutor(max_workers=len(collections)) as pool:
            futures = [pool.submit(self.list, name) for name in collections]
            return tuple(future.result() for future in futures)

    # --- Writes ---

    def create(self, collection, body):
        return self._request('POST', collection, body=body)

    def update(self, collection, record_id, body):
        return self._request('PUT', collection, params={'id': record_id}, body=body)

    def delete(self, collection, record_id):
        return self._request('DELETE', collection, params={'id': record_id})

    def setup(self, db_url):
        """One-time schema provisioning on the given datastore URL."""
        return self._request('POST', 'setup', body={'dbUrl': db_url})
