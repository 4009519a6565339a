"""
Coverage tags: which topic areas the participant has talked about.
"""
from typing import Dict, Iterable, List, Set


TOPIC_KEYWORDS: Dict[str, tuple] = {
    "framing": ("goal", "problem"),
    "constraints": ("constraint", "limit"),
    "users": ("user", "persona"),
    "ideation": ("idea", "approach"),
    "systems": ("state", "flow", "error"),
    "metrics": ("metric", "kpi", "experiment"),
    "accessibility": ("accessibility", "wcag"),
}

TOPICS: List[str] = list(TOPIC_KEYWORDS)


def detect(text: str) -> Set[str]:
    """
    Return the topics whose keywords appear in the text.

    Matching is a plain case-insensitive substring test, so "users" and
    "user's" both count for the users topic.
    """
    lowered = (text or "").lower()
    return {
        topic
        for topic, keywords in TOPIC_KEYWORDS.items()
        if any(keyword in lowered for keyword in keywords)
    }


class CoverageState:
    """Monotonic topic flags for one session."""

    def __init__(self):
        self._flags: Dict[str, bool] = {topic: False for topic in TOPICS}

    def merge(self, topics: Iterable[str]) -> Set[str]:
        """
        OR the given topics into the flags.

        Returns:
            The topics that flipped from False to True
        """
        newly = set()
        for topic in topics:
            if topic not in self._flags:
                raise KeyError(f"Unknown coverage topic: {topic}")
            if not self._flags[topic]:
                self._flags[topic] = True
                newly.add(topic)
        return newly

    def observe(self, text: str) -> Set[str]:
        """Run the detector on an utterance and merge the result."""
        return self.merge(detect(text))

    def is_covered(self, topic: str) -> bool:
        return self._flags[topic]

    def covered(self) -> List[str]:
        return [t for t in TOPICS if self._flags[t]]

    def missing(self) -> List[str]:
        """Topics not yet covered, in the fixed topic order."""
        return [t for t in TOPICS if not self._flags[t]]

    def as_dict(self) -> Dict[str, bool]:
        return dict(self._flags)
