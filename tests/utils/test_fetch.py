import pytest
import requests

from nodeboot.utils.fetch import FetchError, HttpFetcher


class DummyResponse:
    def __init__(self, status=200, body=b"", payload=None):
        self.status_code = status
        self.body = body
        self.payload = payload
        self.closed = False

    @property
    def text(self):
        return self.body.decode()

    def json(self):
        if self.payload is None:
            raise ValueError("no json")
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]

    def close(self):
        self.closed = True


class DummySession:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_text():
    session = DummySession(DummyResponse(body=b"v1.30.0\n"))
    assert HttpFetcher(session=session, timeout=5).text("https://dl.k8s.io/stable.txt") == "v1.30.0\n"
    assert session.requests[0][1]["timeout"] == 5


def test_json_and_invalid_json():
    assert HttpFetcher(session=DummySession(DummyResponse(payload={"tag_name": "v1"}))).json("u") == {"tag_name": "v1"}
    with pytest.raises(FetchError):
        HttpFetcher(session=DummySession(DummyResponse(body=b"<html>"))).json("u")


def test_download_streams_to_file(tmp_path):
    resp = DummyResponse(body=b"#!/bin/sh\necho hi\n" * 10000)
    dest = tmp_path / "nested" / "get.sh"

    out = HttpFetcher(session=DummySession(resp)).download("https://get.k3s.io", dest, mode=0o755)

    assert out == dest
    assert dest.read_bytes() == resp.body
    assert dest.stat().st_mode & 0o777 == 0o755
    assert resp.closed


def test_http_error_wrapped():
    with pytest.raises(FetchError) as ei:
        HttpFetcher(session=DummySession(DummyResponse(status=404))).text("https://x/y")
    assert "https://x/y" in str(ei.value)


def test_connection_error_wrapped(tmp_path):
    session = DummySession(requests.ConnectionError("no route"))
    with pytest.raises(FetchError):
        HttpFetcher(session=session).download("https://get.docker.com", tmp_path / "never")
