import json
import threading

import pytest
import responses

from conftest import make_card, make_player
from neon_descent.advisor import (
    API_KEY_ENV_VAR,
    EMPTY_TEXT,
    OFFLINE_TEXT,
    AdvisorRunner,
    TacticalAdvisor,
    build_prompt,
)
from neon_descent.models import RoomType
from neon_descent.upgrades import MODULES

URL = "https://generativelanguage.googleapis.com/v1beta/models/gemini-3-pro-preview:generateContent"
SCOUT = (RoomType.REST, RoomType.MERCHANT, RoomType.EVENT)


def _cards():
    return (
        make_card(RoomType.ENEMY, scout=SCOUT),
        make_card(RoomType.REST, name="Safe House"),
        make_card(RoomType.MERCHANT, name="Black Market"),
    )


def test_prompt_describes_the_floor():
    player = make_player(hp=64, credits=120, security_alert=45, modules=(MODULES["m1"],))
    prompt = build_prompt(4, player, _cards())
    assert "Floor Depth: 4" in prompt
    assert "Player Integrity (HP): 64 / 100" in prompt
    assert "Network Security Alert Level: 45%" in prompt
    assert "Installed Modules: Vampire Kernel" in prompt
    assert "Option 1: [ENEMY] - Test Node" in prompt
    assert "It leads to [REST, MERCHANT, EVENT]" in prompt
    assert "Option 3: [MERCHANT] - Black Market" in prompt


def test_prompt_without_modules():
    assert "Installed Modules: None" in build_prompt(1, make_player(), _cards())


@responses.activate
def test_get_advice_returns_model_text():
    responses.add(
        responses.POST,
        URL,
        json={"candidates": [{"content": {"parts": [{"text": "Take option 2. "}, {"text": "Repair first."}]}}]},
        status=200,
    )
    advisor = TacticalAdvisor(api_key="k")
    assert advisor.get_advice(4, make_player(), _cards()) == "Take option 2. Repair first."

    request = responses.calls[0].request
    assert request.headers["x-goog-api-key"] == "k"
    body = json.loads(request.body)
    assert "Floor Depth: 4" in body["contents"][0]["parts"][0]["text"]
    assert body["generationConfig"]["thinkingConfig"]["thinkingBudget"] == 32768


@responses.activate
def test_error_response_falls_back_to_offline_text():
    responses.add(responses.POST, URL, status=500, body="upstream down")
    assert TacticalAdvisor(api_key="k").get_advice(1, make_player(), _cards()) == OFFLINE_TEXT


@responses.activate
def test_non_json_body_falls_back_to_offline_text():
    responses.add(responses.POST, URL, status=200, body="<html>")
    assert TacticalAdvisor(api_key="k").get_advice(1, make_player(), _cards()) == OFFLINE_TEXT


@responses.activate
def test_empty_candidates():
    responses.add(responses.POST, URL, json={"candidates": []}, status=200)
    assert TacticalAdvisor(api_key="k").get_advice(1, make_player(), _cards()) == EMPTY_TEXT


@responses.activate
def test_missing_key_never_calls_out(monkeypatch):
    monkeypatch.delenv(API_KEY_ENV_VAR, raising=False)
    advisor = TacticalAdvisor.from_env()
    assert advisor.get_advice(1, make_player(), _cards()) == OFFLINE_TEXT
    assert len(responses.calls) == 0


def test_from_env_reads_key(monkeypatch):
    monkeypatch.setenv(API_KEY_ENV_VAR, "secret")
    advisor = TacticalAdvisor.from_env(model="other-model")
    assert advisor.api_key == "secret"
    assert advisor.url.endswith("/models/other-model:generateContent")


class _SlowAdvisor:
    def __init__(self):
        self.release = threading.Event()
        self.calls = 0

    def get_advice(self, floor, player, cards):
        self.calls += 1
        self.release.wait(5)
        return f"advice for floor {floor}"


def test_runner_refuses_overlapping_requests():
    advisor = _SlowAdvisor()
    results = []
    runner = AdvisorRunner(advisor, on_result=results.append)

    assert runner.request_advice(3, make_player(), _cards())
    assert runner.busy
    assert not runner.request_advice(3, make_player(), _cards())

    advisor.release.set()
    assert runner.wait(5) == "advice for floor 3"
    assert not runner.busy
    assert advisor.calls == 1
    assert results == ["advice for floor 3"]


@pytest.mark.parametrize(
    "body",
    [
        ["unexpected"],
        {"candidates": ["x"]},
        {"candidates": [{"content": "flat text"}]},
        {"candidates": [{"content": {"parts": "flat text"}}]},
    ],
)
@responses.activate
def test_malformed_body_falls_back_to_offline_text(body):
    responses.add(responses.POST, URL, json=body, status=200)
    assert TacticalAdvisor(api_key="k").get_advice(1, make_player(), _cards()) == OFFLINE_TEXT


class _BrokenAdvisor:
    def get_advice(self, floor, player, cards):
        raise RuntimeError("boom")


def test_runner_delivers_offline_text_when_the_advisor_crashes():
    results = []
    runner = AdvisorRunner(_BrokenAdvisor(), on_result=results.append)
    assert runner.request_advice(2, make_player(), _cards())
    assert runner.wait(5) == OFFLINE_TEXT
    assert not runner.busy
    assert results == [OFFLINE_TEXT]
