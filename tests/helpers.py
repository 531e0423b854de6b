"""Request builders and small fakes shared by the tests."""

import json

from restguard import Request

SECRET = "restguard-test-secret-0123456789abcdef"


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_request(method="GET", path="/", headers=None, body=None, query=None, client=("10.0.0.1", 5000)):
    """Build a Request; dict bodies are JSON-encoded."""
    if isinstance(body, (dict, list)):
        body = json.dumps(body).encode("utf-8")
    return Request(
        method=method,
        path=path,
        headers=dict(headers or {}),
        body=body or b"",
        query_params=dict(query or {}),
        client=client,
    )


def body_of(response):
    return json.loads(response.body.decode("utf-8"))


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
