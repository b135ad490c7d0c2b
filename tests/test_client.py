from datetime import date

import pytest
import requests

from trailhub.api.client import TrailHubAPIClient, print_trails


class FakeResponse:

    def __init__(self, status_code, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FakeSession:

    def __init__(self, *responses):
        self.headers = {}
        self.calls = []
        self.responses = list(responses)

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_client(*responses):
    client = TrailHubAPIClient("http://trailhub.test/", client_id="tab-1")
    client.session = FakeSession(*responses)
    return client


def test_client_id_header_is_set_on_the_session():
    client = TrailHubAPIClient("http://trailhub.test", client_id="tab-9")
    assert client.session.headers["X-Client-Id"] == "tab-9"


def test_list_trails_sends_filters():
    client = make_client(FakeResponse(200, {"status": "loaded", "trails": [], "count": 0}))

    client.list_trails("fuji", "beginner", "Japan", refresh=True)

    method, url, kwargs = client.session.calls[0]
    assert method == "GET"
    assert url == "http://trailhub.test/api/trails"
    assert kwargs["params"] == {"q": "fuji", "difficulty": "beginner", "country": "Japan", "refresh": "true"}
    assert kwargs["timeout"] == 10


def test_save_completion_payload():
    client = make_client(FakeResponse(201, {"rating": 4}))

    client.save_completion("2", 4, "Nice", completed_at=date(2024, 5, 1))

    _, url, kwargs = client.session.calls[0]
    assert url.endswith("/api/completions")
    assert kwargs["json"] == {"trail_id": "2", "rating": 4, "review": "Nice", "completed_at": "2024-05-01"}


def test_server_detail_is_raised():
    client = make_client(FakeResponse(401, {"detail": "You need to sign in first."}))
    with pytest.raises(RuntimeError, match="401: You need to sign in first."):
        client.toggle_favorite("1")


def test_non_json_error_falls_back_to_text():
    client = make_client(FakeResponse(502, text="Bad Gateway"))
    with pytest.raises(RuntimeError, match="502: Bad Gateway"):
        client.stats()


def test_health_check_wraps_connection_errors():
    client = make_client(requests.ConnectionError("refused"))
    with pytest.raises(RuntimeError, match="Health check failed"):
        client.health_check()


def test_print_trails_marks_favorites(capsys):
    print_trails({
        "status": "loaded",
        "count": 1,
        "favorites": ["2"],
        "trails": [{
            "id": "2", "name": "Jeju Olle", "country": "Korea", "region": "Jeju",
            "difficulty": "intermediate", "distance_km": 20.5, "price": "₩15,000",
        }],
    })
    out = capsys.readouterr().out
    assert "❤️" in out
    assert "Jeju Olle" in out


def test_print_trails_reports_load_error(capsys):
    print_trails({"status": "errored", "error": "Could not load trails."})
    assert "use /refresh to retry" in capsys.readouterr().out
