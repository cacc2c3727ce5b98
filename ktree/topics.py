"""
Topic suggestions for expanding a node.

Suggesting subtopics is best-effort. Strategies share one interface,
`suggest(title, text) -> List[str]`, so the session can swap them freely.
"""

import re
from typing import Dict, List, Sequence, Tuple

# Checked in order; the first category with a keyword hit wins.
DEFAULT_CATEGORIES: Sequence[Tuple[str, Sequence[str], Sequence[str]]] = (
    (
        "programming",
        ("code", "program", "programming", "python", "javascript", "algorithm",
         "recursion", "function", "software", "compiler", "data structure"),
        ("Core Syntax", "Data Structures", "Algorithms", "Debugging", "Best Practices"),
    ),
    (
        "mathematics",
        ("math", "mathematics", "algebra", "calculus", "geometry", "equation",
         "theorem", "proof", "statistics", "probability"),
        ("Definitions", "Theorems", "Worked Examples", "Proof Techniques", "Applications"),
    ),
    (
        "science",
        ("physics", "chemistry", "biology", "science", "atom", "cell", "energy",
         "evolution", "quantum", "molecule"),
        ("Fundamental Principles", "Key Experiments", "Models and Theories",
         "Real-World Applications", "Open Questions"),
    ),
    (
        "history",
        ("history", "war", "empire", "revolution", "century", "ancient",
         "civilization", "dynasty"),
        ("Background", "Key Figures", "Major Events", "Causes and Effects", "Legacy"),
    ),
    (
        "economics",
        ("economy", "economics", "market", "finance", "inflation", "trade",
         "money", "investment"),
        ("Basic Concepts", "Market Dynamics", "Policy", "Case Studies", "Current Trends"),
    ),
    (
        "language",
        ("language", "grammar", "vocabulary", "linguistics", "writing",
         "literature", "poetry"),
        ("Grammar", "Vocabulary", "Usage", "Style", "Common Mistakes"),
    ),
    (
        "arts",
        ("art", "music", "painting", "design", "composition", "melody", "film"),
        ("Techniques", "History and Movements", "Notable Works", "Theory", "Practice"),
    ),
    (
        "health",
        ("health", "nutrition", "exercise", "medicine", "disease", "sleep", "diet"),
        ("Basics", "Risk Factors", "Prevention", "Treatment", "Latest Research"),
    ),
)

FALLBACK_TOPICS: Sequence[str] = (
    "Fundamentals",
    "Key Concepts",
    "Practical Applications",
    "Advanced Techniques",
    "Common Misconceptions",
)


class TopicSuggester:
    """Interface for strategies that propose child topics for a node."""

    def suggest(self, title: str, text: str) -> List[str]:
        raise NotImplementedError("Subclasses must implement suggest()")


class KeywordTopicSuggester(TopicSuggester):
    """
    Suggest subtopics by matching keywords of known subject categories.

    Args:
        max_suggestions: Upper bound on the number of returned titles
        categories: (name, keywords, labels) triples, checked in order
        fallback: Labels used when no category matches
    """

    def __init__(
        self,
        max_suggestions: int = 5,
        categories: Sequence[Tuple[str, Sequence[str], Sequence[str]]] = DEFAULT_CATEGORIES,
        fallback: Sequence[str] = FALLBACK_TOPICS,
    ):
        if max_suggestions < 1:
            raise ValueError("max_suggestions must be at least 1")
        self.max_suggestions = max_suggestions
        self.categories = categories
        self.fallback = fallback
        self._patterns: Dict[str, re.Pattern] = {
            name: re.compile(r"\b(" + "|".join(re.escape(k) for k in keywords) + r")\b")
            for name, keywords, _ in categories
        }

    def match_category(self, title: str, text: str) -> str:
        """Name of the first matching category, or "" if none matches."""
        haystack = f"{title} {text}".lower()
        for name, _, _ in self.categories:
            if self._patterns[name].search(haystack):
                return name
        return ""

    def suggest(self, title: str, text: str) -> List[str]:
        category = self.match_category(title, text)
        labels = self.fallback
        for name, _, category_labels in self.categories:
            if name == category:
                labels = category_labels
                break
        return list(labels[:self.max_suggestions])
