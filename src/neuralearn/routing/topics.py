"""Topic extraction and deterministic title matching.

Extraction is an explicit ordered list of rules; the first rule that matches
the cleaned question wins and no match yields an empty topic. A topic that
matches a node title short-circuits routing before any model call.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from neuralearn.models.graph import TopicNode

_LEADING_NOISE = re.compile(r"^(?:\.{2,}|[\s.,;:!?…-])+")
_SEPARATORS = re.compile(r"[-_]")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class TopicRule:
    """A named pattern whose first capture group is the candidate topic."""

    name: str
    pattern: re.Pattern[str]

    def apply(self, question: str) -> str | None:
        match = self.pattern.search(question)
        if not match:
            return None
        topic = match.group(1).strip()
        topic = topic.rstrip("?").strip()
        topic = re.sub(r"^the\s+", "", topic, flags=re.IGNORECASE)
        return topic or None


TOPIC_RULES: tuple[TopicRule, ...] = (
    TopicRule(
        "question_prefix",
        re.compile(
            r"(?:what is|what are|explain|tell me about|who is|how does|"
            r"give me an example of|an example of)\s+(?:the\s+)?(.+?)(?:\?|$)",
            re.IGNORECASE,
        ),
    ),
    TopicRule(
        "noun_suffix",
        re.compile(r"(.+?)\s+(?:example|explanation|definition)", re.IGNORECASE),
    ),
)


def clean_question(question: str) -> str:
    """Strip leading ellipses and punctuation left over from chat input."""
    return _LEADING_NOISE.sub("", question or "").strip()


def extract_topic(question: str, rules: Iterable[TopicRule] = TOPIC_RULES) -> str:
    cleaned = clean_question(question)
    for rule in rules:
        topic = rule.apply(cleaned)
        if topic:
            return topic
    return ""


def _normalize(text: str) -> str:
    return _WHITESPACE.sub(" ", _SEPARATORS.sub(" ", text.lower())).strip()


def title_matches(topic: str, title: str) -> bool:
    """Case-insensitive containment in either direction.

    A second, strict pass compares the strings with all whitespace removed so
    "chainrule" and "Chain Rule" still match.
    """
    a, b = _normalize(topic), _normalize(title)
    if not a or not b:
        return False
    if a in b or b in a:
        return True
    a, b = a.replace(" ", ""), b.replace(" ", "")
    return a in b or b in a


def find_title_match(topic: str, nodes: Iterable[TopicNode]) -> TopicNode | None:
    """First node, in the given order, whose title matches ``topic``."""
    if not topic.strip():
        return None
    for node in nodes:
        if title_matches(topic, node.title):
            return node
    return None


def title_case(topic: str) -> str:
    """'power rule' -> 'Power Rule'; words already capitalised are kept."""
    return " ".join(
        word if word[:1].isupper() else word[:1].upper() + word[1:]
        for word in topic.split()
    )
