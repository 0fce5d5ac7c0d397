"""Tests for the HTTP command surface."""

import pytest
from fastapi.testclient import TestClient

from acres_collector.api import create_app
from acres_collector.collector import AcresCollector
from acres_collector.services.persistence import MemoryGateway

from factories import CROP_STATS_URL, FakeAgent, FakeFetcher, crop_response, make_comp


@pytest.fixture
def collector(settings):
    return AcresCollector.from_settings(
        settings,
        gateway=MemoryGateway(),
        fetcher=FakeFetcher(),
        agent=FakeAgent(),
    )


@pytest.fixture
def client(collector):
    with TestClient(create_app(collector)) as test_client:
        yield test_client


def post_comp(client, comp_id, **overrides):
    return client.post("/collector/events", json={'type': 'comp', 'payload': make_comp(comp_id, **overrides)})


class TestCollectorApi:

    def test_status_starts_empty(self, client):
        response = client.get("/collector/status")
        assert response.status_code == 200
        assert response.json()['properties'] == 0

    def test_ingest_and_read_back(self, client):
        assert post_comp(client, "A").json() == {'type': 'comp', 'result': 'added'}
        assert post_comp(client, "A").json() == {
            'type': 'comp', 'result': 'duplicate', 'reason': 'DuplicateEntityError',
        }
        assert post_comp(client, "LA", fips="06037").json()['reason'] == 'AdmissionRejected'

        data = client.get("/collector/data").json()['data']
        assert [row['id'] for row in data] == ["A"]

    def test_crop_events_enrich_property(self, client):
        post_comp(client, "A", acres=40.0)
        client.post("/collector/events", json={
            'type': 'crop_request', 'request_id': "5", 'url': CROP_STATS_URL, 'body': "{}",
        })
        response = client.post("/collector/events", json={
            'type': 'crop_response', 'request_id': "5",
            'body': crop_response(40.1, ["Almonds"], [0.96]),
        })

        assert response.json()['result'] == 'succeeded'
        row = client.get("/collector/data").json()['data'][0]
        assert row['crops'] == [{'name': "Almonds", 'acres': 38.5}]

    def test_unknown_event_type(self, client):
        assert client.post("/collector/events", json={'type': 'tab_closed'}).status_code == 422

    def test_county_stats(self, client):
        post_comp(client, "A", fips="06107")
        stats = client.get("/collector/stats").json()
        assert stats['total'] == 1
        assert stats['counties']["06107"] == {'name': "Tulare", 'count': 1}

    def test_export_empty_is_bad_request(self, client):
        response = client.post("/collector/export")
        assert response.status_code == 400
        assert response.json()['detail'] == "No data to download"

    def test_export(self, client, settings):
        post_comp(client, "A")

        response = client.post("/collector/export")

        assert response.status_code == 200
        assert response.json()['status'] == 'downloading'
        assert (settings.EXPORT_DIR / settings.EXPORT_FILENAME).exists()

    def test_clear(self, client):
        post_comp(client, "A")
        assert client.post("/collector/clear").json() == {'status': 'cleared'}
        assert client.get("/collector/data").json() == {'data': []}

    def test_automation_endpoints(self, client):
        assert client.post("/collector/automation/start").json()['enabled'] is True
        assert client.get("/collector/automation/status").json() == {'enabled': True}
        assert client.post("/collector/automation/stop").json()['enabled'] is False

    def test_raw_command(self, client):
        response = client.post("/collector/command", json={'action': 'nope'})
        assert response.json()['status'] == 'error'
