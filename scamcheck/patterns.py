"""
Offline heuristic scoring engine for pasted text messages.

Checks a message against six fixed rule categories, sums their weights
and maps the total to a verdict. Score >= 50 is a scam, >= 25 is
suspicious (medium), any other hit is suspicious (low). No hits means no
offline determination and the caller falls back to the remote classifier.

The rule table is built once at import and only read afterwards, so a
single scorer can serve concurrent requests without locking.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from scamcheck.models import Verdict


MIN_MESSAGE_LENGTH: int = 10

# Scoring modes
EACH = "each"            # every matching rule adds weight + reason
FIRST = "first"          # first matching rule counts, rest skipped
THRESHOLD = "threshold"  # all rules tested, counts once if enough hit


@dataclass(frozen=True)
class RuleCategory:
    """A named, weighted group of matchers."""
    name: str
    matchers: Tuple[re.Pattern, ...]
    weight: int
    reason: str
    mode: str = FIRST
    min_hits: int = 1

    @property
    def count_once(self) -> bool:
        return self.mode != EACH


# Regex dialect of the rule table: ASCII \d and case folding, a dot that
# stops at any line terminator, and the wider \s whitespace set.
_DOT = r'[^\n\r\u2028\u2029]'
_SPACE = r'[\t\n\v\f\r \u00a0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000\ufeff]'
_UNESCAPED_DOT = re.compile(r'(?<!\\)\.')


def _compile(*rules) -> Tuple[re.Pattern, ...]:
    """Compile (pattern, flags) pairs or bare case-sensitive patterns."""
    compiled = []
    for rule in rules:
        if isinstance(rule, tuple):
            pattern, flags = rule
        else:
            pattern, flags = rule, 0
        pattern = _UNESCAPED_DOT.sub(lambda _: _DOT, pattern).replace(r'\s', _SPACE)
        compiled.append(re.compile(pattern, flags | re.ASCII))
    return tuple(compiled)


_I = re.IGNORECASE


def _utf16_length(text: str) -> int:
    """Length in UTF-16 code units; astral characters count twice."""
    return len(text.encode("utf-16-le")) // 2


# Ordered; the order fixes the order of reasons in the output.
SCAM_PATTERNS: Tuple[RuleCategory, ...] = (
    RuleCategory(
        name="tollScamAmounts",
        matchers=_compile(
            r'\$11\.69',
            r'\$12\.51',
            r'\$6\.99',
            r'\$3\.55',
            r'\$4\.91',
        ),
        weight=30,
        reason="Contains known toll scam amount",
        mode=EACH,
    ),
    RuleCategory(
        name="urgentPhrases",
        matchers=_compile(
            (r'urgent.{0,10}action', _I),
            (r'immediate.{0,10}attention', _I),
            (r'act.{0,5}now', _I),
            (r'expires?.{0,5}(today|tonight|soon|in)', _I),
            (r'final.{0,5}(notice|warning|reminder)', _I),
            (r'account.{0,10}(suspended|locked|restricted)', _I),
            (r'verify.{0,5}immediately', _I),
            (r'click.{0,5}(here|link|now)', _I),
            (r'within.{0,5}\d+.{0,5}hours?', _I),
            (r'late.{0,5}fee', _I),
        ),
        weight=20,
        reason="Uses urgent/threatening language",
    ),
    RuleCategory(
        name="suspiciousUrls",
        matchers=_compile(
            (r'bit\.ly', _I),
            (r'tinyurl', _I),
            (r'short\.link', _I),
            r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}',   # IPv4 address
            (r'[a-z]+-[a-z]+\.com', _I),              # hyphenated look-alike domain
        ),
        weight=25,
        reason="Contains suspicious URL",
    ),
    RuleCategory(
        name="impersonation",
        matchers=_compile(
            (r'usps.{0,10}package', _I),
            (r'fedex.{0,10}delivery', _I),
            (r'ups.{0,10}shipment', _I),
            (r'irs.{0,10}(refund|tax|payment)', _I),
            (r'social.{0,5}security', _I),
            (r'medicare', _I),
            (r'dmv', _I),
            (r'toll.{0,10}(bill|payment|invoice|charge)', _I),
            (r'e-?zpass', _I),
            (r'fastrak', _I),
        ),
        weight=20,
        reason="Appears to impersonate legitimate organization",
    ),
    RuleCategory(
        name="financialFlags",
        matchers=_compile(
            (r'won.{0,10}(prize|lottery|million)', _I),
            (r'inheritance', _I),
            (r'nigerian', _I),
            (r'claim.{0,10}(reward|prize|money)', _I),
            (r'free.{0,5}(gift|card|money)', _I),
            (r'crypto', _I),
            (r'bitcoin', _I),
        ),
        weight=15,
        reason="Contains financial scam indicators",
    ),
    RuleCategory(
        name="grammarIssues",
        matchers=_compile(
            r'\s{2,}',      # repeated whitespace
            r'[A-Z]{5,}',   # long run of capitals
            r'!!!+',
            r'\$\$+',
        ),
        weight=10,
        reason="Poor grammar or formatting",
        mode=THRESHOLD,
        min_hits=2,
    ),
)

CATEGORIES: Dict[str, RuleCategory] = {c.name: c for c in SCAM_PATTERNS}


SCAM_THRESHOLD: int = 50
SUSPICIOUS_THRESHOLD: int = 25
LOW_RISK_CONFIDENCE: int = 60

# risk_level -> (verdict, explanation, action_recommended)
_TIERS = {
    "high": (
        "scam",
        "This message shows multiple scam indicators. Do not click links or provide information.",
        "Delete this message immediately and block the sender.",
    ),
    "medium": (
        "suspicious",
        "This message contains suspicious elements. Proceed with caution.",
        "Verify the sender through official channels before taking any action.",
    ),
    "low": (
        "suspicious",
        "Some suspicious patterns detected. Be cautious.",
        "Consider verifying the message authenticity before responding.",
    ),
}


class PatternScorer:
    """Scores a single message against the static rule table."""

    def __init__(self, categories: Tuple[RuleCategory, ...] = SCAM_PATTERNS) -> None:
        self.categories = categories

    def evaluate(self, text: Optional[str]) -> Optional[Verdict]:
        """Return an offline verdict for ``text``, or None if undetermined."""
        if not text:
            return None
        if not isinstance(text, str):
            raise TypeError(f"message must be str, got {type(text).__name__}")
        if _utf16_length(text) < MIN_MESSAGE_LENGTH:
            return None

        score, reasons = self.score(text)
        return self.classify(score, reasons)

    def score(self, text: str) -> Tuple[int, List[str]]:
        """Accumulate (score, reasons) over every category in order."""
        score = 0
        reasons: List[str] = []
        for category in self.categories:
            points, hits = self._score_category(text, category)
            score += points
            reasons.extend(hits)
        return score, reasons

    @staticmethod
    def _score_category(text: str, category: RuleCategory) -> Tuple[int, List[str]]:
        if category.mode == EACH:
            matched = sum(1 for m in category.matchers if m.search(text))
            return category.weight * matched, [category.reason] * matched

        if category.mode == THRESHOLD:
            matched = sum(1 for m in category.matchers if m.search(text))
            if matched >= category.min_hits:
                return category.weight, [category.reason]
            return 0, []

        if any(m.search(text) for m in category.matchers):
            return category.weight, [category.reason]
        return 0, []

    @staticmethod
    def classify(score: int, reasons: List[str]) -> Optional[Verdict]:
        """Map an accumulated score to a verdict tier."""
        if score >= SCAM_THRESHOLD:
            risk_level, confidence = "high", min(95, score)
        elif score >= SUSPICIOUS_THRESHOLD:
            risk_level, confidence = "medium", min(85, score + 20)
        elif reasons:
            risk_level, confidence = "low", LOW_RISK_CONFIDENCE
        else:
            return None

        verdict, explanation, action = _TIERS[risk_level]
        return Verdict(
            verdict=verdict,
            confidence=confidence,
            risk_level=risk_level,
            reasons=list(reasons),
            explanation=explanation,
            action_recommended=action,
            isOffline=True,
        )


# Module-level singleton
pattern_scorer = PatternScorer()


def quick_pattern_check(text: Optional[str]) -> Optional[Verdict]:
    """Evaluate ``text`` with the shared scorer."""
    return pattern_scorer.evaluate(text)
