"""Analysis pipeline: offline pattern check first, then the remote
classifier, saving whichever result the user ends up seeing."""

import logging
from typing import Optional

from scamcheck.classifier import ScamClassifier, scam_classifier
from scamcheck.models import AnalysisResult, Verdict
from scamcheck.patterns import PatternScorer, pattern_scorer
from scamcheck.storage import HistoryStore, history_store

logger = logging.getLogger(__name__)

# Offline verdicts at or above this are shown and saved without waiting
HIGH_CONFIDENCE: int = 75


class AnalysisUnavailable(Exception):
    """Neither the offline check nor the remote classifier produced a result."""


def unavailable_result() -> AnalysisResult:
    return AnalysisResult(
        verdict="unknown",
        confidence=0,
        risk_level="unknown",
        reasons=["AI analysis unavailable"],
        explanation=(
            "Please configure API key for full AI-powered analysis. "
            "Limited offline checking performed."
        ),
        action_recommended="Configure the app with an API key for complete scam detection.",
        isOffline=True,
    )


class MessageAnalyzer:
    def __init__(
        self,
        scorer: PatternScorer = pattern_scorer,
        classifier: ScamClassifier = scam_classifier,
        store: HistoryStore = history_store,
    ) -> None:
        self.scorer = scorer
        self.classifier = classifier
        self.store = store

    def check_offline(self, message: str) -> Optional[Verdict]:
        return self.scorer.evaluate(message)

    def analyze(self, message: str, metadata: Optional[dict] = None) -> AnalysisResult:
        """Run the full pipeline for one message.

        Stages:
        1. Offline pattern check, saved immediately when confident enough
        2. Remote classifier (if configured), saved when it answers
        3. Fallback to the offline verdict, or the "unknown" placeholder
           when no classifier is configured
        """
        offline = self.scorer.evaluate(message)
        offline_result = AnalysisResult.from_verdict(offline) if offline else None

        if offline is not None:
            logger.info(
                f"OFFLINE verdict={offline.verdict} confidence={offline.confidence} "
                f"reasons={len(offline.reasons)}"
            )
            if offline.confidence >= HIGH_CONFIDENCE:
                self.store.save_to_history(message, offline.model_dump())

        if not self.classifier.is_configured:
            logger.info("Remote classifier not configured, using offline result only")
            return offline_result or unavailable_result()

        remote = self.classifier.classify_cached(message, metadata)
        if remote is not None:
            logger.info(f"REMOTE verdict={remote.verdict} confidence={remote.confidence}")
            self.store.save_to_history(message, remote.model_dump())
            return remote

        if offline_result is not None:
            logger.warning("Remote classifier failed, falling back to offline verdict")
            return offline_result

        raise AnalysisUnavailable(
            "Could not analyze the message. Please check your internet connection and try again."
        )


# Module-level singleton
message_analyzer = MessageAnalyzer()
