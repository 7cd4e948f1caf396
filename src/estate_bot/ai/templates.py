"""Canned replies for greetings, thanks, goodbyes and help requests."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Template:
    key: str
    pattern: re.Pattern[str]
    text: str
    confidence: float


TEMPLATES = (
    Template(
        "greeting",
        re.compile(r"^(hi|hello|hey|good\s+(morning|afternoon|evening))\b", re.IGNORECASE),
        "Hello {user_name}! I'm here to help you find your perfect home. You can ask me about available "
        "properties, prices, neighborhoods, or schedule a viewing. How can I assist you today?",
        0.95,
    ),
    Template(
        "thanks",
        re.compile(r"\b(thank|thanks|appreciate|grateful)\b", re.IGNORECASE),
        "You're welcome, {user_name}! Is there anything else you'd like to know about our properties "
        "or the home buying process?",
        0.90,
    ),
    Template(
        "goodbye",
        re.compile(r"\b(bye|goodbye|see you|take care|have a good)\b", re.IGNORECASE),
        "Thank you for visiting! Feel free to return anytime if you have more questions. Have a great day!",
        0.92,
    ),
    Template(
        "help",
        re.compile(r"\b(help|what can you|capabilities|how do i)\b", re.IGNORECASE),
        "I can help you with:\n"
        "• Searching for properties by location, price, or features\n"
        "• Providing market statistics and trends\n"
        "• Information about neighborhoods and schools\n"
        "• Scheduling property viewings\n"
        "• Connecting you with an agent\n\n"
        "What would you like to know?",
        0.88,
    ),
)


def match_template(question: str) -> Optional[Template]:
    text = question.strip()
    return next((t for t in TEMPLATES if t.pattern.search(text)), None)


def fill_template(text: str, user_name: Optional[str] = None, site_name: str = "", now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    replacements = {
        "{user_name}": user_name or "there",
        "{site_name}": site_name,
        "{current_date}": now.strftime("%B %d, %Y"),
        "{current_time}": now.strftime("%I:%M %p"),
    }
    for placeholder, value in replacements.items():
        text = text.replace(placeholder, value)
    return text
