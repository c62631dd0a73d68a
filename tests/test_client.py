import pytest
import requests

from tgagro.client import DEFAULT_ERROR, LOCAL_API_URL, ApiClient, ApiError, local_session


class StubResponse:
    def __init__(self, status_code=200, payload=None, json_body=True):
        self.status_code = status_code
        self.payload = payload
        self.json_body = json_body

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if not self.json_body:
            raise ValueError('No JSON object could be decoded')
        return self.payload


class StubSession:
    def __init__(self, responses=None, error=None):
        self.responses = responses or {}
        self.error = error
        self.calls = []

    def request(self, method, url, params=None, json=None, timeout=None, headers=None):
        self.calls.append({'method': method, 'url': url, 'params': params, 'json': json, 'timeout': timeout})
        if self.error:
            raise self.error
        return self.responses.get((method, url), StubResponse(404, {'error': 'not stubbed'}))


def test_list_returns_records():
    session = StubSession({('GET', 'http://api/lotes'): StubResponse(200, [{'id': 1}])})
    client = ApiClient('http://api/', session=session, timeout=5)

    assert client.list('lotes') == [{'id': 1}]
    assert session.calls[0]['timeout'] == 5


def test_server_message_is_passed_through_verbatim():
    session = StubSession({('DELETE', 'http://api/lotes'): StubResponse(409, {'error': 'O lote possui animais'})})
    client = ApiClient('http://api', session=session)

    with pytest.raises(ApiError) as excinfo:
        client.delete('lotes', 3)

    assert excinfo.value.message == 'O lote possui animais'
    assert excinfo.value.status == 409
    assert session.calls[0]['params'] == {'id': 3}


def test_error_without_json_body_uses_default_message():
    session = StubSession({('GET', 'http://api/lotes'): StubResponse(502, json_body=False)})

    with pytest.raises(ApiError) as excinfo:
        ApiClient('http://api', session=session).list('lotes')

    assert excinfo.value.message == DEFAULT_ERROR
    assert excinfo.value.status == 502


def test_transport_failure_becomes_api_error():
    session = StubSession(error=requests.ConnectionError('refused'))

    with pytest.raises(ApiError) as excinfo:
        ApiClient('http://api', session=session).create('lotes', {'nome': 'A'})

    assert excinfo.value.status is None
    assert 'refused' in excinfo.value.message


def test_list_rejects_non_array_payload():
    session = StubSession({('GET', 'http://api/lotes'): StubResponse(200, {'oops': True})})
    with pytest.raises(ApiError):
        ApiClient('http://api', session=session).list('lotes')


def test_fetch_many_keeps_requested_order():
    session = StubSession({
        ('GET', 'http://api/lotes'): StubResponse(200, [{'id': 1}]),
        ('GET', 'http://api/animais'): StubResponse(200, [{'id': 2}, {'id': 3}]),
    })

    lotes, animais = ApiClient('http://api', session=session).fetch_many('lotes', 'animais')

    assert lotes == [{'id': 1}]
    assert animais == [{'id': 2}, {'id': 3}]


def test_fetch_many_fails_when_any_collection_fails():
    session = StubSession({('GET', 'http://api/lotes'): StubResponse(200, [])})
    with pytest.raises(ApiError):
        ApiClient('http://api', session=session).fetch_many('lotes', 'custos')


def test_update_and_setup_payloads():
    session = StubSession({
        ('PUT', 'http://api/animais'): StubResponse(200, {'id': 7}),
        ('POST', 'http://api/setup'): StubResponse(200, {'message': 'ok'}),
    })
    client = ApiClient('http://api', session=session)

    client.update('animais', 7, {'raca': 'Angus'})
    client.setup('sqlite:///x.db')

    assert session.calls[0]['params'] == {'id': 7}
    assert session.calls[0]['json'] == {'raca': 'Angus'}
    assert session.calls[1]['json'] == {'dbUrl': 'sqlite:///x.db'}


def test_local_session_serves_the_api_in_process(app):
    client = ApiClient(LOCAL_API_URL, session=local_session(app))

    created = client.create('lotes', {'nome': 'Lote A'})
    lotes, animais = client.fetch_many('lotes', 'animais')

    assert [l['id'] for l in lotes] == [created['id']]
    assert animais == []
    with pytest.raises(ApiError) as excinfo:
        client.delete('lotes', 999)
    assert excinfo.value.status == 404
