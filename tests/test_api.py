"""HTTP tests for the interview and performance endpoints."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from interview_ai.core.exceptions import NonRetryableRemoteError, RetryableRemoteError


class TestHealthAndPerformance:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["api_keys_configured"] == 2
        assert data["queue"] == {"queue_length": 0, "active_requests": 0, "concurrency_limit": 5}

    @pytest.mark.asyncio
    async def test_performance_dashboard(self, client):
        resp = await client.get("/api/v1/performance")
        assert resp.status_code == 200
        data = resp.json()
        assert data["throttling"] is False
        assert data["recommendations"] == ["System performance is optimal"]
        assert data["performance"]["request_count"] == 0
        assert set(data["cache"]) == {"size", "hits", "misses", "hit_rate"}
        assert "uptime_seconds" in data["system"]

    @pytest.mark.asyncio
    async def test_status_masks_keys(self, client, gateway):
        gateway.key_rotator.get_next_credential()
        resp = await client.get("/api/v1/performance/status")
        assert resp.status_code == 200
        assert "sk-key-alpha-0001" not in resp.text
        assert resp.json()["api_key_usage"] == {"sk-key-...": 1}

    @pytest.mark.asyncio
    async def test_prometheus_metrics(self, client):
        resp = await client.get("/metrics")
        assert resp.status_code == 200
        assert "http_requests_total" in resp.text


class TestEvaluateEndpoint:
    @pytest.mark.asyncio
    async def test_evaluate(self, client, ai_service):
        evaluation = {"score": 72, "feedback": "Solid.", "strengths": ["Clear"], "improvements": []}
        with patch.object(ai_service, "evaluate_answer", AsyncMock(return_value=evaluation)) as mock_eval:
            resp = await client.post(
                "/api/v1/interview/evaluate",
                json={"question": "Why this role?", "transcript": "Because I love infra.", "role": "SRE"},
            )

        assert resp.status_code == 200
        assert resp.json() == evaluation
        mock_eval.assert_awaited_once_with(
            "Why this role?",
            "Because I love infra.",
            role="SRE",
            resume_context=None,
            job_requirements=None,
            resume_analysis=None,
        )

    @pytest.mark.asyncio
    async def test_validation_error(self, client):
        resp = await client.post("/api/v1/interview/evaluate", json={"question": "Q"})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_throttled_when_backlog_deep(self, client, gateway, ai_service):
        gateway.queue._pending.extend([object()] * 51)
        with patch.object(ai_service, "evaluate_answer", AsyncMock()) as mock_eval:
            resp = await client.post(
                "/api/v1/interview/evaluate",
                json={"question": "Q", "transcript": "A"},
            )
        gateway.queue._pending.clear()

        assert resp.status_code == 503
        assert resp.json()["error_code"] == "system_busy"
        mock_eval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, client, ai_service):
        error = NonRetryableRemoteError("OpenAI chat API error (401): Incorrect API key", upstream_status=401)
        with patch.object(ai_service, "evaluate_answer", AsyncMock(side_effect=error)):
            resp = await client.post("/api/v1/interview/evaluate", json={"question": "Q", "transcript": "A"})

        assert resp.status_code == 502
        assert resp.json()["error_code"] == "credentials_rejected"

    @pytest.mark.asyncio
    async def test_upstream_unavailable(self, client, ai_service):
        error = RetryableRemoteError("OpenAI chat request timed out")
        with patch.object(ai_service, "evaluate_answer", AsyncMock(side_effect=error)):
            resp = await client.post("/api/v1/interview/evaluate", json={"question": "Q", "transcript": "A"})

        assert resp.status_code == 503
        assert resp.json() == {"detail": "OpenAI chat request timed out", "error_code": "temporarily_unavailable"}

    @pytest.mark.asyncio
    async def test_empty_transcript_is_bad_request(self, client):
        resp = await client.post("/api/v1/interview/evaluate", json={"question": "Q", "transcript": "   "})
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "invalid_input"


class TestOtherInterviewEndpoints:
    @pytest.mark.asyncio
    async def test_transcribe_upload(self, client, ai_service):
        with patch.object(ai_service, "transcribe_audio", AsyncMock(return_value="hello there")) as mock_transcribe:
            resp = await client.post(
                "/api/v1/interview/transcribe",
                files={"audio": ("answer.webm", b"fake-webm-bytes", "audio/webm")},
            )

        assert resp.status_code == 200
        assert resp.json() == {"transcript": "hello there"}
        mock_transcribe.assert_awaited_once_with(b"fake-webm-bytes", filename="answer.webm")

    @pytest.mark.asyncio
    async def test_transcribe_empty_upload(self, client):
        resp = await client.post(
            "/api/v1/interview/transcribe",
            files={"audio": ("answer.webm", b"", "audio/webm")},
        )
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_questions(self, client, ai_service):
        questions = [{"id": "ai-q1", "text": "Tell me about a hard bug.", "category": "technical"}]
        with patch.object(ai_service, "generate_questions", AsyncMock(return_value=questions)):
            resp = await client.post("/api/v1/interview/questions", json={"role": "Backend Engineer"})

        assert resp.status_code == 200
        data = resp.json()["questions"]
        assert data[0]["id"] == "ai-q1"
        assert data[0]["text"] == "Tell me about a hard bug."

    @pytest.mark.asyncio
    async def test_speech_returns_mpeg(self, client, ai_service):
        with patch.object(ai_service, "synthesize_speech", AsyncMock(return_value=b"ID3-audio")):
            resp = await client.post("/api/v1/interview/speech", json={"text": "Welcome to your interview."})

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "audio/mpeg"
        assert resp.content == b"ID3-audio"

    @pytest.mark.asyncio
    async def test_overall_score(self, client):
        resp = await client.post("/api/v1/interview/overall-score", json={"scores": [80, None, 91, 70]})
        assert resp.status_code == 200
        assert resp.json() == {"overall_score": 80, "answered": 3}

    @pytest.mark.asyncio
    async def test_overall_score_rejects_non_finite(self, client):
        resp = await client.post(
            "/api/v1/interview/overall-score",
            content='{"scores": [80, NaN]}',
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 422


def _provider_client(*contents: str):
    """Patch the provider HTTP client so each chat call replies with the next content."""
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    replies = [
        httpx.Response(200, json={"choices": [{"message": {"content": c}}]}, request=request) for c in contents
    ]
    mock_client = AsyncMock()
    mock_client.post.side_effect = replies
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return patch("interview_ai.services.ai_evaluator.httpx.AsyncClient", return_value=mock_client), mock_client


class TestProviderReplies:
    @pytest.mark.asyncio
    async def test_malformed_evaluation_is_normalised(self, client, gateway):
        patcher, provider = _provider_client('{"score": 70, "feedback": null, "strengths": [{"a": 1}]}')
        with patcher:
            first = await client.post("/api/v1/interview/evaluate", json={"question": "Q", "transcript": "A"})
            second = await client.post("/api/v1/interview/evaluate", json={"question": "Q", "transcript": "A"})

        assert first.status_code == second.status_code == 200
        assert first.json() == {"score": 70, "feedback": "", "strengths": [], "improvements": []}
        assert provider.post.call_count == 1

    @pytest.mark.asyncio
    async def test_nan_score_is_upstream_failure(self, client, gateway):
        patcher, provider = _provider_client(*['{"score": NaN}'] * 3)
        with patcher:
            resp = await client.post("/api/v1/interview/evaluate", json={"question": "Q", "transcript": "A"})

        assert resp.status_code == 503
        assert resp.json()["error_code"] == "temporarily_unavailable"
        assert provider.post.call_count == 3
        assert len(gateway.cache) == 0


ANALYSIS = {
    "actual_role": "Backend Engineer",
    "skills": ["Python"],
    "years_of_experience": 5,
    "key_technologies": ["Kafka"],
    "seniority": "mid",
}


class TestResumeEndpoints:
    @pytest.mark.asyncio
    async def test_analyze(self, client, ai_service):
        analysis = {**ANALYSIS, "companies": ["Acme"]}
        with patch.object(ai_service, "analyze_resume", AsyncMock(return_value=analysis)) as mock_analyze:
            resp = await client.post("/api/v1/interview/resume/analyze", json={"resume_text": "resume body"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["actual_role"] == "Backend Engineer"
        assert data["companies"] == ["Acme"]
        assert data["gaps"] == []
        mock_analyze.assert_awaited_once_with("resume body")

    @pytest.mark.asyncio
    async def test_analyze_rejects_non_resume(self, client):
        resp = await client.post("/api/v1/interview/resume/analyze", json={"resume_text": "hello world"})
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_resume_questions(self, client, ai_service):
        questions = [{"id": "resume-q1", "text": "How did you scale Kafka?", "resumeContext": "Kafka", "isFollowUp": False}]
        with patch.object(ai_service, "generate_resume_questions", AsyncMock(return_value=questions)) as mock_gen:
            resp = await client.post(
                "/api/v1/interview/resume/questions",
                json={"analysis": ANALYSIS, "job_requirements": "Streaming"},
            )

        assert resp.status_code == 200
        assert resp.json()["questions"][0]["resumeContext"] == "Kafka"
        analysis_arg, requirements_arg = mock_gen.await_args.args
        assert analysis_arg["years_of_experience"] == 5
        assert analysis_arg["companies"] == []
        assert requirements_arg == "Streaming"

    @pytest.mark.asyncio
    async def test_follow_up_none(self, client, ai_service):
        with patch.object(ai_service, "generate_follow_up", AsyncMock(return_value=None)):
            resp = await client.post(
                "/api/v1/interview/follow-up",
                json={"question": "Q", "answer": "A thorough answer.", "analysis": ANALYSIS},
            )

        assert resp.status_code == 200
        assert resp.json() == {"follow_up": None}

    @pytest.mark.asyncio
    async def test_follow_up_question(self, client, gateway):
        reply = '{"needsFollowUp": true, "question": {"text": "What was the partition count?"}}'
        patcher, _ = _provider_client(reply)
        with patcher:
            resp = await client.post(
                "/api/v1/interview/follow-up",
                json={"question": "Q", "answer": "We used Kafka.", "analysis": ANALYSIS},
            )

        assert resp.status_code == 200
        follow_up = resp.json()["follow_up"]
        assert follow_up["text"] == "What was the partition count?"
        assert follow_up["isFollowUp"] is True
