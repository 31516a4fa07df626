"""
End-to-end test: HTTP form in, reply out, with every real stage wired together.

Only the package transport is faked; classifier, SQLite store, context
tracking and routing all run for real against a temporary directory.
"""

import pytest
from fastapi.testclient import TestClient

from api.message import get_dispatcher
from core.classifier import BayesClassifier
from core.orchestrator import Dispatcher
from main import app
from packages.registry import PackageRegistry
from packages.router import PackageRouter
from services.context_tracker import ContextTracker
from services.database import connect, create_user
from services.interaction_logger import InteractionLogger
from services.user_resolver import UserResolver
from shared.errors import PackageClientError
from shared.models import PackageReply

FALLBACK = "I'm not sure I understand you."


class FakePackages:
    """Stands in for the package HTTP client and records every call."""

    def __init__(self):
        self.calls = []
        self.fail = False
        self.close = False

    def __call__(self, url, payload, timeout_s):
        self.calls.append((url, payload))
        if self.fail:
            raise PackageClientError(f"Package HTTP 500 from {url}/run")
        if url == "http://weather":
            route = "forecast/followup" if payload["continuation"] else "forecast"
            if self.close:
                route = ""
            return PackageReply(reply=f"weather says hi ({route})", route=route)
        return PackageReply(reply="", route="")


@pytest.fixture
def packages():
    return FakePackages()


@pytest.fixture
def client(db_path, tmp_path, packages):
    classifier = BayesClassifier(str(tmp_path / "classifier.joblib"))
    registry = PackageRegistry.from_config([
        {"name": "weather_pkg", "url": "http://weather", "triggers": ["weather"]},
        {"name": "quiet_pkg", "url": "http://quiet", "triggers": ["smalltalk"]},
    ])
    dispatcher = Dispatcher(
        classifier=classifier,
        user_resolver=UserResolver(db_path),
        context_tracker=ContextTracker(db_path, window_seconds=300),
        router=PackageRouter(registry, timeout_s=1.0, invoke=packages),
        interaction_logger=InteractionLogger(db_path),
        fallback_reply=FALLBACK,
    )
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


def _interactions(db_path):
    with connect(db_path) as con:
        return [dict(row) for row in con.execute("SELECT * FROM interactions ORDER BY id")]


def _train(client):
    for cmd in (
        "train weather will it rain tomorrow",
        "train weather what is the weather like",
        "train billing refund my last order",
        "train billing my invoice is wrong",
        "train smalltalk how are you doing",
    ):
        response = client.post("/", data={"cmd": cmd})
        assert response.status_code == 200
        assert response.text == "ok"


def test_untrained_dispatcher_falls_back(client, db_path, packages):
    response = client.post("/", data={"cmd": "hello"})

    assert response.status_code == 200
    assert response.text == FALLBACK
    assert packages.calls == []
    rows = _interactions(db_path)
    assert len(rows) == 1
    assert rows[0]["command"] == ""
    assert rows[0]["package_name"] == ""


def test_training_is_not_logged(client, db_path):
    _train(client)
    assert _interactions(db_path) == []


def test_conversation_flow(client, db_path, packages):
    _train(client)
    uid = create_user(db_path, name="Ada")

    first = client.post("/", data={"cmd": "will it rain tomorrow", "uid": str(uid)})
    assert first.text == "weather says hi (forecast)"

    # The follow-up goes back to the same package with its route, whatever it classifies as.
    second = client.post("/", data={"cmd": "refund my last order", "uid": str(uid)})
    assert second.text == "weather says hi (forecast/followup)"
    _, payload = packages.calls[-1]
    assert payload["continuation"] is True
    assert payload["route"] == "forecast"
    assert payload["message"]["user"]["name"] == "Ada"

    rows = _interactions(db_path)
    assert [r["package_name"] for r in rows] == ["weather_pkg", "weather_pkg"]
    assert rows[0]["command"] == "weather"
    assert rows[1]["route"] == "forecast/followup"


def test_label_without_package_falls_back(client, db_path, packages):
    _train(client)

    response = client.post("/", data={"cmd": "refund my last order"})

    assert response.text == FALLBACK
    assert packages.calls == []
    assert _interactions(db_path)[-1]["command"] == "billing"


def test_empty_package_reply_falls_back_but_keeps_package(client, db_path):
    _train(client)

    response = client.post("/", data={"cmd": "how are you doing"})

    assert response.text == FALLBACK
    assert _interactions(db_path)[-1]["package_name"] == "quiet_pkg"


def test_package_failure_is_502_and_not_logged(client, db_path, packages):
    _train(client)
    packages.fail = True

    response = client.post("/", data={"cmd": "will it rain tomorrow"})

    assert response.status_code == 502
    assert _interactions(db_path) == []


def test_invalid_uid_is_400_and_not_logged(client, db_path, packages):
    _train(client)

    response = client.post("/", data={"cmd": "will it rain tomorrow", "uid": "abc"})

    assert response.status_code == 400
    assert packages.calls == []
    assert _interactions(db_path) == []


def test_flexid_header_identifies_unresolved_sender(client, db_path):
    _train(client)
    headers = {"X-Flex-Id": "+15551234567"}

    client.post("/", data={"cmd": "will it rain tomorrow", "flexidtype": "2"}, headers=headers)
    second = client.post("/", data={"cmd": "how are you doing", "flexidtype": "2"}, headers=headers)

    assert second.text == "weather says hi (forecast/followup)"
    rows = _interactions(db_path)
    assert rows[-1]["flexid"] == "+15551234567"
    assert rows[-1]["flexidtype"] == 2


def test_closed_exchange_routes_next_message_from_scratch(client, db_path, packages):
    _train(client)
    uid = create_user(db_path, name="Ada")
    packages.close = True

    first = client.post("/", data={"cmd": "will it rain tomorrow", "uid": str(uid)})
    second = client.post("/", data={"cmd": "how are you doing", "uid": str(uid)})

    assert first.text == "weather says hi ()"
    assert second.text == FALLBACK
    url, payload = packages.calls[-1]
    assert url == "http://quiet"
    assert payload["continuation"] is False
    assert payload["route"] == ""
    assert [r["package_name"] for r in _interactions(db_path)] == ["weather_pkg", "quiet_pkg"]
