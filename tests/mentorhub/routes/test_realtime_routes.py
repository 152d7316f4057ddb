import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from mentorhub.routes import realtime_routes
from mentorhub.services.realtime import feed


@pytest.fixture
def client() -> TestClient:
    app = FastAPI()
    app.include_router(realtime_routes.router, prefix='/realtime')
    return TestClient(app)


def wait_for_subscribers(table: str, expected: int, timeout: float = 2.0) -> int:
    deadline = time.monotonic() + timeout
    while feed.subscriber_count(table) != expected and time.monotonic() < deadline:
        time.sleep(0.01)
    return feed.subscriber_count(table)


def test_published_change_reaches_subscribed_client(client: TestClient) -> None:
    with client.websocket_connect('/realtime/mentor_sessions') as websocket:
        feed.publish('mentor_sessions', 'INSERT', {'id': 7, 'status': 'pending'})

        payload = websocket.receive_json()

    assert payload['table'] == 'mentor_sessions'
    assert payload['event'] == 'INSERT'
    assert payload['record'] == {'id': 7, 'status': 'pending'}


def test_changes_to_other_tables_are_not_streamed(client: TestClient) -> None:
    with client.websocket_connect('/realtime/mentor_sessions') as websocket:
        feed.publish('mentors', 'UPDATE', {'id': 1})
        feed.publish('mentor_sessions', 'UPDATE', {'id': 2})

        payload = websocket.receive_json()

    assert payload['table'] == 'mentor_sessions'
    assert payload['record'] == {'id': 2}


def test_subscription_is_released_when_client_disconnects(client: TestClient) -> None:
    before = feed.subscriber_count('mentor_availability')

    with client.websocket_connect('/realtime/mentor_availability'):
        assert feed.subscriber_count('mentor_availability') == before + 1

    assert wait_for_subscribers('mentor_availability', before) == before


def test_unknown_table_is_rejected_with_policy_violation(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect) as exception_info:
        with client.websocket_connect('/realtime/users'):
            pass

    assert exception_info.value.code == 1008
