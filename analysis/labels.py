"""Mapping from free-text classifier labels to verdict fields.

Classifier labels are opaque strings such as ``"Real 200 Notes"`` or
``"fake"``. Everything the scanner derives from them lives here as pure
functions over a :class:`LabelVocabulary`, so the substring rules can be
tested without a model or a camera.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from .ai.types import ClassificationSample, Verdict

DEFAULT_POSITIVE_TERMS: tuple[str, ...] = ("real", "authentic", "genuine")
# Bangladeshi Taka note values.
DEFAULT_DENOMINATIONS: tuple[str, ...] = (
    "2",
    "5",
    "10",
    "20",
    "50",
    "100",
    "200",
    "500",
    "1000",
)
UNKNOWN_DENOMINATION = "Unknown"


@dataclass(frozen=True)
class LabelVocabulary:
    positive_terms: tuple[str, ...] = DEFAULT_POSITIVE_TERMS
    denominations: tuple[str, ...] = DEFAULT_DENOMINATIONS
    currency: str = "Taka"
    fallback_denomination: str = UNKNOWN_DENOMINATION

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LabelVocabulary:
        defaults = cls()
        positive = data.get("positive_terms", defaults.positive_terms)
        denominations = data.get("denominations", defaults.denominations)
        if isinstance(positive, str) or not isinstance(positive, (list, tuple)):
            raise ValueError("labels.positive_terms must be a list of strings")
        if isinstance(denominations, str) or not isinstance(
            denominations, (list, tuple)
        ):
            raise ValueError("labels.denominations must be a list")
        fallback = data.get("fallback_denomination") or defaults.fallback_denomination
        return cls(
            positive_terms=tuple(str(term).strip().lower() for term in positive if str(term).strip()),
            denominations=tuple(
                str(value).strip() for value in denominations if str(value).strip()
            ),
            currency=str(data.get("currency", defaults.currency)),
            fallback_denomination=str(fallback),
        )


DEFAULT_VOCABULARY = LabelVocabulary()


def is_authentic_label(label: str, vocabulary: LabelVocabulary = DEFAULT_VOCABULARY) -> bool:
    """Case-insensitive membership test against the positive terms."""
    text = label.lower()
    return any(term.lower() in text for term in vocabulary.positive_terms)


@lru_cache(maxsize=32)
def _denomination_patterns(
    denominations: tuple[str, ...]
) -> tuple[tuple[str, re.Pattern[str]], ...]:
    # Longest entries first so "200" is tried before "20".
    ordered = sorted(denominations, key=len, reverse=True)
    return tuple(
        (value, re.compile(rf"(?<!\w){re.escape(value)}(?!\w)", re.IGNORECASE))
        for value in ordered
    )


def denomination_for_label(
    label: str, vocabulary: LabelVocabulary = DEFAULT_VOCABULARY
) -> str:
    """Return the first configured denomination found as a whole token.

    Entries match on word boundaries, case-insensitively, so "20" never hits
    inside "200" and non-numeric entries such as "fifty" work too.
    """
    for value, pattern in _denomination_patterns(tuple(vocabulary.denominations)):
        if pattern.search(label):
            return f"{value} {vocabulary.currency}".strip()
    return vocabulary.fallback_denomination


def build_verdict(
    sample: ClassificationSample, vocabulary: LabelVocabulary = DEFAULT_VOCABULARY
) -> Verdict:
    return Verdict(
        is_authentic=is_authentic_label(sample.label, vocabulary),
        denomination=denomination_for_label(sample.label, vocabulary),
        confidence=sample.confidence,
    )


__all__ = [
    "DEFAULT_DENOMINATIONS",
    "DEFAULT_POSITIVE_TERMS",
    "DEFAULT_VOCABULARY",
    "LabelVocabulary",
    "UNKNOWN_DENOMINATION",
    "build_verdict",
    "denomination_for_label",
    "is_authentic_label",
]
