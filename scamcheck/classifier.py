"""Remote LLM classifier client. Sends the message either to a configured
proxy endpoint or straight to the Anthropic messages API and parses the
JSON verdict out of the reply. One attempt per call; failures are logged
and reported as None so the caller can fall back to the offline result."""

import os
import json
import logging
import re
import threading
import time
import requests
from typing import Dict, Optional, Tuple
from dotenv import load_dotenv
from pydantic import ValidationError

from scamcheck.models import AnalysisResult

load_dotenv()

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL: str = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION: str = "2023-06-01"
API_KEY_PLACEHOLDER: str = "YOUR_ANTHROPIC_API_KEY_HERE"

ANTHROPIC_API_KEY: Optional[str] = os.getenv("ANTHROPIC_API_KEY")
CLASSIFIER_ENDPOINT: Optional[str] = os.getenv("CLASSIFIER_ENDPOINT") or None
CLASSIFIER_MODEL: str = os.getenv("CLASSIFIER_MODEL", "claude-3-haiku-20240307")
CLASSIFIER_TIMEOUT: float = float(os.getenv("CLASSIFIER_TIMEOUT", "30"))

MAX_TOKENS: int = 1024
TEMPERATURE: float = 0.2

CACHE_TTL_SECONDS: int = 5 * 60

SCAM_DETECTION_PROMPT: str = """<role>You are an expert cybersecurity analyst specializing in SMS/text message scam detection.</role>

<task>Analyze the provided text message and determine if it is likely a scam, legitimate, or suspicious.</task>

<analysis_criteria>
Examine for:
1. Urgency tactics (threats, deadlines, penalties)
2. Suspicious URLs (misspelled domains, unusual TLDs, shortened links)
3. Source verification (phone number format, sender ID)
4. Linguistic patterns (generic greetings, poor grammar, awkward phrasing)
5. Financial red flags (common scam amounts like $11.69, immediate payment requests)
6. Impersonation indicators (fake government agencies, spoofed companies)
</analysis_criteria>

<output_format>
Return ONLY valid JSON with this structure:
{
  "verdict": "scam" | "suspicious" | "likely_legitimate",
  "confidence": 0-100,
  "risk_level": "high" | "medium" | "low",
  "reasons": ["reason1", "reason2", ...],
  "detected_tactics": ["tactic1", "tactic2", ...],
  "explanation": "2-3 sentence summary",
  "action_recommended": "What user should do"
}
</output_format>

<message_to_analyze>
{user_message}
</message_to_analyze>"""

# metadata key -> request header for the proxy endpoint
METADATA_HEADERS: Dict[str, str] = {
    "deviceId": "x-device-id",
    "appVersion": "x-app-version",
    "userId": "x-user-id",
}

_JSON_BLOCK = re.compile(r'\{[\s\S]*\}')


def build_prompt(message: str) -> str:
    return SCAM_DETECTION_PROMPT.replace("{user_message}", message)


def parse_reply(content: str) -> Optional[dict]:
    """Parse the model's reply as JSON, falling back to the first {...} block."""
    try:
        return json.loads(content)
    except (json.JSONDecodeError, TypeError):
        pass

    match = _JSON_BLOCK.search(content or "")
    if not match:
        return None
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError:
        return None


class ScamClassifier:
    """Thin client over the remote classifier with a short-lived cache."""

    def __init__(
        self,
        api_key: Optional[str] = ANTHROPIC_API_KEY,
        endpoint: Optional[str] = CLASSIFIER_ENDPOINT,
        model: str = CLASSIFIER_MODEL,
        timeout: float = CLASSIFIER_TIMEOUT,
    ) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        self.model = model
        self.timeout = timeout
        self._cache: Dict[str, Tuple[float, AnalysisResult]] = {}
        self._lock = threading.Lock()

    @property
    def is_configured(self) -> bool:
        if self.endpoint:
            return True
        return bool(self.api_key) and self.api_key != API_KEY_PLACEHOLDER

    def classify(self, message: str, metadata: Optional[dict] = None) -> Optional[AnalysisResult]:
        """Classify a message remotely. Returns None on any failure."""
        if self.endpoint:
            data = self._call_endpoint(message, metadata or {})
        elif self.is_configured:
            data = self._call_anthropic(message)
        else:
            logger.warning("Classifier not configured; skipping remote analysis")
            return None

        if data is None:
            return None
        try:
            return AnalysisResult.model_validate(data)
        except ValidationError as exc:
            logger.error(f"Classifier returned an unexpected shape: {exc.errors()}")
            return None

    def classify_cached(self, message: str, metadata: Optional[dict] = None) -> Optional[AnalysisResult]:
        """Like classify(), reusing results for the same message for 5 minutes."""
        key = message.strip().lower()
        now = time.monotonic()

        with self._lock:
            cached = self._cache.get(key)
            if cached and now - cached[0] < CACHE_TTL_SECONDS:
                logger.info("Classifier cache hit")
                return cached[1]

        result = self.classify(message, metadata)

        if result is not None:
            with self._lock:
                self._cache[key] = (now, result)
                self._prune(now)
        return result

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def _prune(self, now: float) -> None:
        """Drop expired cache entries. Called under lock."""
        expired = [
            key for key, (stamp, _) in self._cache.items()
            if now - stamp > CACHE_TTL_SECONDS
        ]
        for key in expired:
            del self._cache[key]

    def _call_endpoint(self, message: str, metadata: dict) -> Optional[dict]:
        headers = {"Content-Type": "application/json"}
        for key, header in METADATA_HEADERS.items():
            if metadata.get(key):
                headers[header] = str(metadata[key])

        response = self._post(self.endpoint, {"message": message}, headers)
        if response is None:
            return None
        try:
            return response.json()
        except ValueError:
            logger.error("Classifier endpoint returned non-JSON body")
            return None

    def _call_anthropic(self, message: str) -> Optional[dict]:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        body = {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "messages": [{"role": "user", "content": build_prompt(message)}],
            "temperature": TEMPERATURE,
        }

        response = self._post(ANTHROPIC_API_URL, body, headers)
        if response is None:
            return None
        try:
            content = response.json()["content"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError):
            logger.error("Unexpected Anthropic response envelope")
            return None

        parsed = parse_reply(content)
        if parsed is None:
            logger.error(f"Could not parse classifier reply: {content[:200]}")
        return parsed

    def _post(self, url: str, body: dict, headers: dict) -> Optional[requests.Response]:
        """Execute a single POST. Returns the response on 2xx, else None."""
        try:
            response = requests.post(url, json=body, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.error(f"Classifier request timed out after {self.timeout}s")
            return None
        except requests.exceptions.RequestException as exc:
            logger.error(f"Classifier network error: {exc}")
            return None

        if not 200 <= response.status_code < 300:
            logger.warning(
                f"Classifier request failed: "
                f"{response.status_code} {response.text[:200]}"
            )
            return None
        return response


# Module-level singleton
scam_classifier = ScamClassifier()
