import requests

from spotnere.infrastructure.push.expo_push import ExpoPushClient

PUSH_URL = "https://push.example.test/send"


class StubResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def _client(session):
    return ExpoPushClient(push_url=PUSH_URL, timeout_seconds=3, session=session)


def test_send_posts_message():
    session = StubSession(StubResponse(200, {"data": {"status": "ok", "id": "ticket-1"}}))

    result = _client(session).send(
        " ExponentPushToken[abc] ",
        "New booking",
        "You have a new booking",
        {"type": "NEW_BOOKING", "bookingId": "b1"},
    )

    assert result.success
    assert session.calls == [
        {
            "url": PUSH_URL,
            "json": {
                "to": "ExponentPushToken[abc]",
                "title": "New booking",
                "body": "You have a new booking",
                "data": {"type": "NEW_BOOKING", "bookingId": "b1"},
            },
            "timeout": 3,
        }
    ]


def test_blank_token_is_rejected_without_request():
    session = StubSession()

    result = _client(session).send("   ", "t", "b")

    assert not result.success
    assert result.error == "Invalid push token"
    assert session.calls == []


def test_http_error_is_reported():
    session = StubSession(StubResponse(400, {"errors": [{"message": "bad token"}]}))

    result = _client(session).send("ExponentPushToken[abc]", "t", "b")

    assert not result.success
    assert result.error == "bad token"


def test_ticket_error_is_reported():
    session = StubSession(
        StubResponse(200, {"data": {"status": "error", "message": "DeviceNotRegistered"}})
    )

    result = _client(session).send("ExponentPushToken[abc]", "t", "b")

    assert not result.success
    assert result.error == "DeviceNotRegistered"


def test_transport_error_is_reported_not_raised():
    session = StubSession(error=requests.ConnectionError("connection refused"))

    result = _client(session).send("ExponentPushToken[abc]", "t", "b")

    assert not result.success
    assert "connection refused" in result.error


def test_non_json_response_is_reported():
    session = StubSession(StubResponse(502, ValueError("no json")))

    result = _client(session).send("ExponentPushToken[abc]", "t", "b")

    assert not result.success
