import pytest
import requests
from requests.adapters import BaseAdapter

from tgagro import create_app


class OfflineAdapter(BaseAdapter):
    """Every request fails as if the API host were unreachable."""

    def send(self, request, **kwargs):
        raise requests.ConnectionError('connection refused')

    def close(self):
        pass


@pytest.fixture
def app(tmp_path):
    # No API_URL: pages reach the data API of this same app in-process.
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'test.db'}",
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def offline(app):
    session = requests.Session()
    session.mount('http://', OfflineAdapter())
    app.extensions['tgagro.http_session'] = session
    return app


@pytest.fixture
def create(client):
    """POSTs a record to the data API and returns the created JSON."""
    def _create(collection, **fields):
        response = client.post(f'/api/{collection}', json=fields)
        assert response.status_code == 201, response.get_json()
        return response.get_json()
    return _create
