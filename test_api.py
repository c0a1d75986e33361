"""Analysis pipeline and HTTP endpoints, with a stub remote classifier."""

import pytest
from fastapi.testclient import TestClient

from scamcheck import main
from scamcheck.analyzer import AnalysisUnavailable, MessageAnalyzer
from scamcheck.models import AnalysisResult
from scamcheck.storage import HistoryStore

SCAM_TEXT = "URGENT: USPS package awaiting. Pay $11.69 at bit.ly/fake"
TOLL_TEXT = "Pay your toll fee of $11.69 now!"
CLEAN_TEXT = "See you at lunch tomorrow, bring the slides."


class StubClassifier:
    """Stands in for ScamClassifier; returns a canned result or None."""

    def __init__(self, result=None, configured=True):
        self.result = result
        self.is_configured = configured
        self.seen = []

    def classify_cached(self, message, metadata=None):
        self.seen.append(message)
        return self.result


REMOTE = AnalysisResult(
    verdict="likely_legitimate",
    confidence=88,
    risk_level="low",
    reasons=["Known contact"],
    detected_tactics=[],
    explanation="Looks fine.",
    action_recommended="No action needed.",
)


@pytest.fixture
def store(tmp_path):
    return HistoryStore(path=str(tmp_path / "history.json"))


def make_analyzer(store, classifier):
    return MessageAnalyzer(classifier=classifier, store=store)


# ==================== Pipeline ====================

def test_unconfigured_returns_offline_verdict(store):
    analyzer = make_analyzer(store, StubClassifier(configured=False))

    result = analyzer.analyze(SCAM_TEXT)

    assert result.verdict == "scam"
    assert result.isOffline is True
    # confident offline verdicts are saved right away
    assert [e.message for e in store.get_scan_history()] == [SCAM_TEXT]


def test_low_confidence_offline_verdict_is_not_saved(store):
    analyzer = make_analyzer(store, StubClassifier(configured=False))

    result = analyzer.analyze(TOLL_TEXT)

    assert result.verdict == "suspicious"
    assert result.confidence == 50
    assert store.get_scan_history() == []


def test_unconfigured_without_offline_verdict_is_unknown(store):
    analyzer = make_analyzer(store, StubClassifier(configured=False))

    result = analyzer.analyze(CLEAN_TEXT)

    assert result.verdict == "unknown"
    assert result.risk_level == "unknown"
    assert result.reasons == ["AI analysis unavailable"]
    assert result.isOffline is True


def test_remote_result_wins_and_is_saved(store):
    classifier = StubClassifier(result=REMOTE)
    analyzer = make_analyzer(store, classifier)

    result = analyzer.analyze(SCAM_TEXT)

    assert result == REMOTE
    assert classifier.seen == [SCAM_TEXT]
    # offline verdict (75) and remote verdict both recorded
    history = store.get_scan_history()
    assert [e.result["verdict"] for e in history] == ["likely_legitimate", "scam"]
    assert history[0].result["isOffline"] is False


def test_remote_failure_falls_back_to_offline(store):
    analyzer = make_analyzer(store, StubClassifier(result=None))

    result = analyzer.analyze(TOLL_TEXT)

    assert result.verdict == "suspicious"
    assert result.isOffline is True


def test_remote_failure_without_offline_raises(store):
    analyzer = make_analyzer(store, StubClassifier(result=None))

    with pytest.raises(AnalysisUnavailable):
        analyzer.analyze(CLEAN_TEXT)


# ==================== HTTP ====================

@pytest.fixture
def client(store, monkeypatch):
    monkeypatch.setattr(main.message_analyzer, "store", store)
    monkeypatch.setattr(main.message_analyzer, "classifier", StubClassifier(configured=False))
    return TestClient(main.app)


def test_health(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "online"


def test_analyze_endpoint(client):
    response = client.post("/analyze", json={"message": SCAM_TEXT})

    assert response.status_code == 200
    body = response.json()
    assert body["verdict"] == "scam"
    assert body["risk_level"] == "high"
    assert body["isOffline"] is True


def test_analyze_unavailable(client, monkeypatch):
    monkeypatch.setattr(main.message_analyzer, "classifier", StubClassifier(result=None))

    response = client.post("/analyze", json={"message": CLEAN_TEXT})
    assert response.status_code == 503


@pytest.mark.parametrize("payload", [{}, {"message": "   "}, {"message": "x" * 2001}])
def test_analyze_rejects_bad_payloads(client, payload):
    response = client.post("/analyze", json=payload)

    assert response.status_code == 422
    assert response.json()["message"] == "Invalid request payload."


def test_offline_endpoint(client):
    body = client.post("/analyze/offline", json={"message": TOLL_TEXT}).json()
    assert set(body) == {
        "verdict", "confidence", "risk_level", "reasons",
        "explanation", "action_recommended", "isOffline",
    }
    assert body["confidence"] == 50

    response = client.post("/analyze/offline", json={"message": CLEAN_TEXT})
    assert response.status_code == 200
    assert response.json() is None


def test_history_endpoints(client, store):
    kept = store.save_to_history("Keep me", {"verdict": "scam"})
    gone = store.save_to_history("Drop me", {"verdict": "suspicious"})

    history = client.get("/history").json()
    assert [e["message"] for e in history] == ["Drop me", "Keep me"]

    assert client.delete(f"/history/{gone.id}").json() == {"deleted": True}
    assert [e["id"] for e in client.get("/history").json()] == [kept.id]

    stats = client.get("/statistics").json()
    assert stats["totalScans"] == 2
    assert stats["scamsDetected"] == 1
    assert stats["historyCount"] == 1

    assert client.delete("/history").json() == {"cleared": True}
    assert client.get("/history").json() == []


def test_export_and_import(client, store, tmp_path):
    store.save_to_history("Backed up", {"verdict": "scam"})
    exported = client.get("/history/export").json()
    assert exported["history"][0]["message"] == "Backed up"

    client.delete("/history")
    response = client.post("/history/import", json=exported)
    assert response.json() == {"imported": 1}
    assert client.get("/history").json()[0]["message"] == "Backed up"

    assert client.post("/history/import", json={"history": "nope"}).status_code == 400
