import json

import pytest
import requests

from cultbook.booking_http import (
    BookingTimeout,
    EmptySchedule,
    FastBookingClient,
    HttpError,
    NetworkError,
)


def make_response(status_code=200, body=None):
    response = requests.Response()
    response.status_code = status_code
    if isinstance(body, (dict, list)):
        response._content = json.dumps(body).encode()
        response.headers['Content-Type'] = 'application/json'
    else:
        response._content = (body or '').encode()
    return response


class RecordingSession(requests.Session):
    """Session that answers from a queue instead of the network."""

    def __init__(self, *answers):
        super().__init__()
        self.answers = list(answers)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture
def make_client(config, credentials):
    def _make(*answers):
        session = RecordingSession(*answers)
        return FastBookingClient(config, credentials, session=session), session
    return _make


def test_session_headers(make_client):
    client, session = make_client()

    headers = session.headers
    assert headers['apikey'] == 'key-123'
    assert headers['cookie'] == 'at=at-token; st=st-token'
    assert headers['appversion'] == '7'
    assert headers['browsername'] == 'Web'
    assert headers['osname'] == 'browser'
    assert headers['cityid'] == 'Bangalore'
    assert headers['timezone'] == 'Asia/Kolkata'
    assert headers['content-type'] == 'application/json'
    assert 'Chrome' in headers['user-agent']


def test_blind_book_request_shape(make_client):
    client, session = make_client(make_response(200, {'meta': {'code': 200}, 'bookingId': 'b-1'}))

    result = client.blind_book('2026-10-23', '15')

    method, url, kwargs = session.calls[0]
    assert method == 'POST'
    assert url == 'https://example.test/api/v2/fitso/web/class/book'
    assert kwargs['json'] == {
        'slotId': '15',
        'classId': '15',
        'productType': 'PLAY',
        'date': '2026-10-23',
        'workoutId': 350,
        'centerID': 988,
    }
    assert kwargs['timeout'] == 5.0
    assert result.slot_id == '15'
    assert result.payload['bookingId'] == 'b-1'


def test_blind_book_accepts_date_objects(make_client):
    from datetime import date

    client, session = make_client(make_response(200, {}))

    result = client.blind_book(date(2026, 10, 23), '16')

    assert session.calls[0][2]['json']['date'] == '2026-10-23'
    assert result.date == '2026-10-23'


def test_rejection_surfaces_platform_code(make_client):
    client, _ = make_client(make_response(409, {'meta': {'code': 'SLOT_FULL'}}))

    with pytest.raises(HttpError) as exc_info:
        client.blind_book('2026-10-23', '15')

    assert exc_info.value.status_code == 409
    assert exc_info.value.code == 'SLOT_FULL'
    assert exc_info.value.reason == 'SLOT_FULL'


def test_rejection_without_json_uses_status(make_client):
    client, _ = make_client(make_response(503, 'Service Unavailable'))

    with pytest.raises(HttpError) as exc_info:
        client.blind_book('2026-10-23', '15')

    assert exc_info.value.reason == '503'
    assert exc_info.value.payload == 'Service Unavailable'


def test_transport_errors_are_classified(make_client):
    client, _ = make_client(
        requests.exceptions.ReadTimeout('read timed out'),
        requests.exceptions.ConnectionError('dns failure'),
    )

    with pytest.raises(BookingTimeout):
        client.blind_book('2026-10-23', '15')
    with pytest.raises(NetworkError):
        client.blind_book('2026-10-23', '15')


def test_fetch_schedule_params_and_parsing(make_client):
    payload = {
        'classByDateList': [
            {'id': '2026-10-22', 'classByTimeList': [
                {'classes': [{'id': '15', 'date': '2026-10-22', 'startTime': '19:00:00', 'state': 'BOOKED'}]},
            ]},
            {'id': '2026-10-23', 'classByTimeList': [
                {'classes': [{'id': '15', 'date': '2026-10-23', 'startTime': '19:00:00', 'state': 'AVAILABLE'}]},
                {'classes': []},
            ]},
        ]
    }
    client, session = make_client(make_response(200, payload))

    schedule = client.fetch_schedule()

    method, url, kwargs = session.calls[0]
    assert method == 'GET'
    assert url == 'https://example.test/api/v2/fitso/web/schedule'
    assert kwargs['params'] == {
        'workoutId': 350,
        'productType': 'PLAY',
        'pageFrom': 'PLAY',
        'pageType': 'slotbooking',
        'centerId': 988,
    }
    assert [d.id for d in schedule.days] == ['2026-10-22', '2026-10-23']
    assert len(schedule.last_day.slots) == 1
    assert schedule.last_day.slots[0].is_available


@pytest.mark.parametrize('body', [{'classByDateList': []}, {}, 'not json'])
def test_empty_schedule(make_client, body):
    client, _ = make_client(make_response(200, body))

    with pytest.raises(EmptySchedule):
        client.fetch_schedule()


def test_warm_connection_swallows_failures(make_client, monkeypatch):
    monkeypatch.setattr('socket.getaddrinfo', lambda *args, **kwargs: [])
    client, session = make_client(requests.exceptions.ConnectionError('offline'))

    client.warm_connection()

    assert session.calls[0][1] == 'https://example.test/api/user/cities/v2'
