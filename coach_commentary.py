"""
coach_commentary.py

  ―  short match commentary from a hosted text-generation model

Advisory only: nothing here reads or writes scheduling state, and every
failure turns into a fallback message instead of an exception.
"""

from typing import Optional, Sequence
import logging
import os

import requests

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_TIMEOUT = 15
API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

FALLBACK_MESSAGE = "The coach is taking a water break. Try again in a moment."
EMPTY_MESSAGE = "No commentary available right now."
INCOMPLETE_MESSAGE = "Commentary needs four players on court."

LEVEL_NOTES = (
    "Levels run 1-18 (beginner 3, intermediate 8, advanced 14, pro 18):\n"
    "- 1-5: still learning basic shots.\n"
    "- 6-10: understands rotation, steady returns.\n"
    "- 11-14: strong smash, solid defence, tactical awareness.\n"
    "- 15-18: top level."
)


def api_key_from_env() -> Optional[str]:
    return os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")


def build_prompt(players: Sequence) -> str:
    p1, p2, p3, p4 = (f"{p.name} ({p.level})" for p in players)
    return (
        "You are a professional badminton coach and commentator.\n"
        "Analyse this doubles match:\n\n"
        f"Team A: {p1} & {p2}\n"
        "VS\n"
        f"Team B: {p3} & {p4}\n\n"
        f"{LEVEL_NOTES}\n\n"
        "Keep it short, fun and tactical (150 words at most):\n"
        "1. Give the match a catchy title.\n"
        "2. Say which team has the edge and why.\n"
        "3. Give the underdogs one key tactic to win.\n"
        "4. Use emojis."
    )


def get_match_analysis(players: Sequence, api_key: Optional[str] = None,
                       model: str = DEFAULT_MODEL, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Return commentary for a full lineup, or a fallback message."""
    if len(players) != 4 or any(p is None for p in players):
        return INCOMPLETE_MESSAGE

    api_key = api_key or api_key_from_env()
    if not api_key:
        logger.warning("commentary skipped: no API key configured")
        return FALLBACK_MESSAGE

    payload = {"contents": [{"parts": [{"text": build_prompt(players)}]}]}
    try:
        resp = requests.post(
            API_URL.format(model=model),
            params={"key": api_key},
            json=payload,
            timeout=timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except requests.RequestException as e:
        logger.warning("commentary request failed: %s", e)
        return FALLBACK_MESSAGE
    except (ValueError, KeyError, IndexError, TypeError) as e:
        logger.warning("commentary response unreadable: %s", e)
        return FALLBACK_MESSAGE

    return (text or "").strip() or EMPTY_MESSAGE
