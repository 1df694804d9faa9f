"""Tactical advisor: optional LLM commentary on the current floor.

The advisor never touches game state. It reads a snapshot, asks a
Gemini-style ``generateContent`` endpoint for a recommendation and returns
plain text; any failure turns into a fixed placeholder string.
"""
from __future__ import annotations

import logging
import os
import threading
from typing import Any, Callable, Dict, Optional, Sequence

import requests

from .exceptions import AdvisorError
from .models import PlayerStats, RoomCardData

logger = logging.getLogger(__name__)

API_KEY_ENV_VAR = "ND_ADVISOR_API_KEY"
DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-3-pro-preview"
THINKING_BUDGET = 32768

OFFLINE_TEXT = "Tactical mainframe offline. Unable to process neural link."
EMPTY_TEXT = "Connection to tactical mainframe failed."


def build_prompt(floor: int, player: PlayerStats, cards: Sequence[RoomCardData]) -> str:
    modules = ", ".join(m.name for m in player.modules) or "None"
    nodes = "\n".join(
        f"Option {i + 1}: [{c.type.value}] - {c.name}\n"
        f"   - Description: {c.description}\n"
        f"   - Next Layer Scout: It leads to [{', '.join(t.value for t in c.next_scout_info)}]"
        for i, c in enumerate(cards)
    )
    return f"""You are a high-level tactical AI assistant for a cyberpunk roguelike game called "Neon Descent".
Your goal is to ensure the user's survival (Integrity/HP) and maximize their growth (Power/RAM).

CURRENT STATE:
Floor Depth: {floor} (Difficulty scales exponentially)
Player Integrity (HP): {player.hp} / {player.max_hp}
Player RAM (Power): {player.power}
Player Firewall (Shield): {player.shield}
Network Security Alert Level: {player.security_alert}% (High alert = Enemies deal significantly more damage!)
Credits (Crypto): {player.credits}
Installed Modules: {modules}

AVAILABLE NODES (Choices):
{nodes}

GAME RULES:
- ALERT LEVEL: Avoiding combat (Rest, Treasure, Merchant) INCREASES Alert. Combat DECREASES Alert. High alert makes enemies deadly.
- COMBAT: Damage = (EnemyAttack * AlertMultiplier) - PlayerShield.
- MODULES: Passive buffs that change strategy.
- MERCHANT: Spend Crypto to buy Modules or Repair.

TASK:
Think deeply about the risk vs reward.
- Is the Alert Level too high? You might need to fight an Enemy to lower it.
- Do you have enough Crypto for a Merchant?
- Consider the "Next Layer Scout" info carefully.

Provide a concise, tactical recommendation on which Option (1, 2, or 3) to pick and WHY. Be strategic."""


class TacticalAdvisor:
    """Minimal client for a ``models/{model}:generateContent`` endpoint.

    Requests are not retried: one failure yields the offline placeholder
    and the player can ask again.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_MODEL,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 60.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json", "User-Agent": "neon-descent-advisor"})

    @classmethod
    def from_env(cls, **kwargs: Any) -> "TacticalAdvisor":
        return cls(os.getenv(API_KEY_ENV_VAR), **kwargs)

    @property
    def url(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    def _request(self, prompt: str) -> Dict[str, Any]:
        if not self.api_key:
            raise AdvisorError(f"No advisor API key configured (set {API_KEY_ENV_VAR})")
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"thinkingConfig": {"thinkingBudget": THINKING_BUDGET}},
        }
        try:
            resp = self.session.post(
                self.url, json=payload, headers={"x-goog-api-key": self.api_key}, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise AdvisorError(f"Advisor request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise AdvisorError(f"Advisor API error {resp.status_code}: {resp.text}")
        try:
            return resp.json()
        except ValueError as exc:
            raise AdvisorError("Advisor returned a non-JSON body") from exc

    @staticmethod
    def _extract_text(data: Any) -> str:
        """Join the text parts of the first candidate.

        Raises AdvisorError when the body does not have the
        ``candidates[0].content.parts`` shape.
        """
        if not isinstance(data, dict):
            raise AdvisorError(f"Unexpected advisor payload type: {type(data).__name__}")
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
            raise AdvisorError("Malformed advisor candidates")
        content = candidates[0].get("content") or {}
        if not isinstance(content, dict):
            raise AdvisorError("Malformed advisor candidate content")
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise AdvisorError("Malformed advisor candidate parts")
        return "".join(str(p.get("text", "")) for p in parts if isinstance(p, dict)).strip()

    def get_advice(self, floor: int, player: PlayerStats, cards: Sequence[RoomCardData]) -> str:
        try:
            text = self._extract_text(self._request(build_prompt(floor, player, cards)))
        except AdvisorError as exc:
            logger.warning("Tactical analysis failed: %s", exc)
            return OFFLINE_TEXT
        return text or EMPTY_TEXT


class AdvisorRunner:
    """Runs advisor requests off the game thread, one at a time.

    ``request_advice`` returns immediately. While a request is outstanding
    the runner is ``busy`` and further requests are refused.
    """

    def __init__(self, advisor: TacticalAdvisor, on_result: Optional[Callable[[str], None]] = None) -> None:
        self.advisor = advisor
        self.on_result = on_result
        self.last_result: Optional[str] = None
        self._busy = False
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._busy

    def request_advice(self, floor: int, player: PlayerStats, cards: Sequence[RoomCardData]) -> bool:
        with self._lock:
            if self._busy:
                logger.debug("Advisor busy; request ignored")
                return False
            self._busy = True
            self.last_result = None
        self._thread = threading.Thread(
            target=self._run, args=(floor, player, tuple(cards)), name="tactical-advisor", daemon=True
        )
        self._thread.start()
        return True

    def _run(self, floor: int, player: PlayerStats, cards: Sequence[RoomCardData]) -> None:
        try:
            result = self.advisor.get_advice(floor, player, cards)
        except Exception:
            logger.exception("Advisor request crashed on floor %s", floor)
            result = OFFLINE_TEXT
        with self._lock:
            self.last_result = result
            self._busy = False
        if self.on_result is not None:
            self.on_result(result)

    def wait(self, timeout: Optional[float] = None) -> Optional[str]:
        """Block until the outstanding request (if any) finishes; returns the last result."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return self.last_result
