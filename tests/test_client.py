import json

import pytest
import requests

from spiral_app import client as spiral_client
from spiral_app.client import call_spiral_api


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self._text = text

    def json(self):
        if self._text is not None:
            raise json.JSONDecodeError("Expecting value", self._text, 0)
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError("%s Server Error" % self.status_code)


@pytest.fixture
def fake_request(monkeypatch):
    calls = []

    def install(response=None, exc=None):
        def _request(method, url, **kwargs):
            calls.append({"method": method, "url": url, **kwargs})
            if exc is not None:
                raise exc
            return response

        monkeypatch.setattr(spiral_client.requests, "request", _request)
        return calls

    return install


class TestCallSpiralApi:
    def test_success(self, fake_request):
        calls = fake_request(FakeResponse(200, {"episode_id": 3, "severity": 4}))
        result = call_spiral_api(
            "POST", "/widgets/mood-tracker/episodes", payload={"user_id": 1}, base_url="http://api:8000/"
        )
        assert result == {"episode_id": 3, "severity": 4}
        assert calls[0]["url"] == "http://api:8000/widgets/mood-tracker/episodes"
        assert calls[0]["json"] == {"user_id": 1}
        assert calls[0]["timeout"] == 60

    def test_validation_errors_surface(self, fake_request):
        detail = {"message": "Validation failed.", "code": "validation_failed", "errors": {"mood": "Please select your mood."}}
        fake_request(FakeResponse(400, {"detail": detail}))
        result = call_spiral_api("POST", "/widgets/mood-tracker/episodes", payload={})
        assert result["error"] == "Validation Error (400): Validation failed."
        assert result["errors"] == {"mood": "Please select your mood."}

    @pytest.mark.parametrize(
        "status,prefix",
        [(403, "API Access Error (403)"), (404, "API Error (404)"), (429, "Limit Reached (429)")],
    )
    def test_client_errors(self, fake_request, status, prefix):
        fake_request(FakeResponse(status, {"detail": {"message": "Nope.", "code": "x"}}))
        assert call_spiral_api("GET", "/widgets") == {"error": "%s: Nope." % prefix}

    def test_string_detail(self, fake_request):
        fake_request(FakeResponse(404, {"detail": "Episode 9 not found."}))
        assert call_spiral_api("DELETE", "/episodes/9")["error"] == "API Error (404): Episode 9 not found."

    def test_server_error(self, fake_request):
        fake_request(FakeResponse(500, {"detail": "boom"}))
        assert call_spiral_api("GET", "/widgets")["error"].startswith("API request failed")

    def test_timeout(self, fake_request):
        fake_request(exc=requests.exceptions.Timeout())
        assert call_spiral_api("GET", "/widgets") == {"error": "API request timed out."}

    def test_connection_error(self, fake_request):
        fake_request(exc=requests.exceptions.ConnectionError("refused"))
        assert call_spiral_api("GET", "/widgets")["error"].startswith("Could not connect to backend")

    def test_non_json_body(self, fake_request):
        fake_request(FakeResponse(200, text="<html>"))
        assert call_spiral_api("GET", "/widgets") == {"error": "Invalid response format from backend."}
