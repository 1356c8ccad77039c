"""Interview AI service: the provider calls behind each interview step.

Every provider call goes through the AIGateway, so results are cached by
content hash, admission-controlled, retried with backoff across the API key
pool, and tracked in the performance metrics.

Provider failures are mapped onto the error taxonomy:
  - HTTP 401 → NonRetryableRemoteError
  - other non-2xx, timeouts, transport errors → RetryableRemoteError
  - a reply that is not the JSON shape we asked for → RetryableRemoteError

Replies are normalised before they leave ``_call``, so only well-formed
results ever reach the cache.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

import httpx

from interview_ai.core.config import Settings
from interview_ai.core.exceptions import InvalidInputError, NonRetryableRemoteError, RetryableRemoteError
from interview_ai.gateway.cache import (
    content_digest,
    evaluation_cache_key,
    follow_up_cache_key,
    questions_cache_key,
    resume_analysis_cache_key,
    resume_questions_cache_key,
    speech_cache_key,
    transcription_cache_key,
)
from interview_ai.gateway.gateway import AIGateway
from interview_ai.gateway.types import AIOperation

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")

EVALUATION_SYSTEM_PROMPT = (
    "You are an expert interview evaluator. Evaluate based on candidate actual background, "
    "not predetermined job positions. Always respond with valid JSON format."
)

QUESTIONS_SYSTEM_PROMPT = (
    "You are an expert HR professional. Generate relevant, engaging interview questions. "
    "Always respond with valid JSON."
)

RESUME_ANALYSIS_SYSTEM_PROMPT = "You are a resume analyzer. Respond only with valid JSON."

RESUME_QUESTIONS_SYSTEM_PROMPT = (
    "Generate interview questions based on actual resume content. Always respond with valid JSON."
)

FOLLOW_UP_SYSTEM_PROMPT = "Decide if follow-up question needed. Respond only with valid JSON."

NO_TRANSCRIPTION = "No transcription available"

RESUME_MIN_LENGTH = 200
RESUME_MAX_LENGTH = 6000  # roughly 1500 tokens
FOLLOW_UP_MAX_ANSWER_LENGTH = 500

# At least three of these must appear for text to count as a resume
_RESUME_INDICATORS = (
    "experience", "work", "education", "skills", "project", "company",
    "university", "college", "degree", "certification", "employment",
    "job", "position", "role", "responsibilities", "achievements",
    "technologies", "tools", "programming", "development", "engineer",
    "manager", "analyst", "specialist", "coordinator", "director",
)  # fmt: skip


def strip_code_fences(content: str) -> str:
    """Remove a surrounding ```json ... ``` block, if any."""
    content = content.strip()
    if content.startswith("```"):
        content = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", content))
    return content


def extract_json(content: str, opening: str = "{", closing: str = "}") -> Any:
    """Parse JSON from an LLM reply.

    Falls back to the outermost ``opening``…``closing`` span when the reply
    wraps the JSON in prose.
    """
    content = strip_code_fences(content)
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        first = content.find(opening)
        last = content.rfind(closing)
        if first == -1 or last <= first:
            raise ValueError(f"No JSON {'object' if opening == '{' else 'array'} found in response")
        return json.loads(content[first : last + 1])


def calculate_overall_score(scores: list[float | None]) -> int:
    """Rounded mean of the answered questions' scores (0 if none)."""
    answered = [s for s in scores if s is not None]
    if not answered:
        return 0
    return round(sum(answered) / len(answered))


def check_resume_text(resume_text: str) -> None:
    """Reject text that is too short or does not read like a resume."""
    if len(resume_text.strip()) < RESUME_MIN_LENGTH:
        raise InvalidInputError(
            "Resume text is too short. Please ensure you have copied the complete resume content."
        )

    lower = resume_text.lower()
    found = sum(1 for indicator in _RESUME_INDICATORS if indicator in lower)
    if found < 3:
        raise InvalidInputError(
            "This text does not appear to be a professional resume. Include work experience, "
            "education and skills."
        )


def _raise_for_provider_status(resp: httpx.Response, service: str) -> None:
    if resp.is_success:
        return

    try:
        message = resp.json().get("error", {}).get("message", "Unknown error")
    except (ValueError, AttributeError):
        message = resp.text[:200] or "Unknown error"

    detail = f"OpenAI {service} API error ({resp.status_code}): {message}"
    if resp.status_code == 401:
        raise NonRetryableRemoteError(detail, upstream_status=401)
    raise RetryableRemoteError(detail, upstream_status=resp.status_code)


# ---------------------------------------------------------------------------
# Reply normalisation
# ---------------------------------------------------------------------------


def _finite_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def normalize_evaluation(raw: Any) -> dict:
    """Coerce a parsed evaluation reply into score/feedback/strengths/improvements.

    Raises:
        RetryableRemoteError: not an object, or no finite score.
    """
    if not isinstance(raw, dict):
        raise RetryableRemoteError("Evaluation response is not a JSON object")

    score = _finite_number(raw.get("score"))
    if score is None:
        raise RetryableRemoteError(f"Evaluation response has no usable score: {raw.get('score')!r}")

    feedback = raw.get("feedback")
    return {
        "score": max(0, min(100, round(score))),
        "feedback": feedback if isinstance(feedback, str) else "",
        "strengths": _string_list(raw.get("strengths")),
        "improvements": _string_list(raw.get("improvements")),
    }


def normalize_question(raw: Any, question_id: str) -> dict | None:
    """A clean question dict, or None when ``raw`` has no usable text."""
    if not isinstance(raw, dict):
        return None
    text = _optional_str(raw.get("text"))
    if text is None:
        return None

    duration = _finite_number(raw.get("expectedDuration"))
    return {
        "id": question_id,
        "text": text,
        "category": _optional_str(raw.get("category")),
        "difficulty": _optional_str(raw.get("difficulty")),
        "expectedDuration": round(duration) if duration is not None else None,
        "resumeContext": _optional_str(raw.get("resumeContext")),
        "isFollowUp": raw.get("isFollowUp") is True,
    }


def normalize_questions(raw: Any, id_prefix: str) -> list[dict]:
    """Keep the usable questions, numbered ``{id_prefix}1``, ``{id_prefix}2``, ...

    Raises:
        RetryableRemoteError: not an array, or no usable question in it.
    """
    if not isinstance(raw, list):
        raise RetryableRemoteError("Questions response is not a JSON array")

    usable = [q for q in raw if normalize_question(q, "") is not None]
    if not usable:
        raise RetryableRemoteError("Questions response contains no usable questions")
    return [normalize_question(q, f"{id_prefix}{i}") for i, q in enumerate(usable, start=1)]


def normalize_resume_analysis(raw: Any) -> dict:
    if not isinstance(raw, dict):
        raise RetryableRemoteError("Resume analysis response is not a JSON object")

    years = _finite_number(raw.get("yearsOfExperience"))
    return {
        "actual_role": _optional_str(raw.get("actualRole")) or "Professional",
        "skills": _string_list(raw.get("skills")),
        "experience": _string_list(raw.get("experience")),
        "education": _string_list(raw.get("education")),
        "projects": _string_list(raw.get("projects")),
        "companies": _string_list(raw.get("companies")),
        "technologies": _string_list(raw.get("technologies")),
        "strengths": _string_list(raw.get("strengths")),
        "gaps": _string_list(raw.get("gaps")),
        "years_of_experience": max(0, round(years)) if years is not None else 0,
        "key_technologies": _string_list(raw.get("keyTechnologies")),
        "seniority": _optional_str(raw.get("seniority")) or "mid",
    }


def _parse_reply(content: str, what: str, opening: str = "{", closing: str = "}") -> Any:
    try:
        return extract_json(content, opening, closing)
    except ValueError as e:
        raise RetryableRemoteError(f"Unparseable {what} response: {e}") from e


def _json_body(resp: httpx.Response, service: str) -> dict:
    try:
        data = resp.json()
    except ValueError as e:
        raise RetryableRemoteError(f"OpenAI {service} returned a non-JSON body") from e
    if not isinstance(data, dict):
        raise RetryableRemoteError(f"OpenAI {service} returned an unexpected body")
    return data


class InterviewAIService:
    """OpenAI-backed interview operations on top of the gateway.

    Usage:
        service = InterviewAIService(gateway, settings)
        transcript = await service.transcribe_audio(audio_bytes)
        evaluation = await service.evaluate_answer(question, transcript, "Backend Engineer")
    """

    def __init__(self, gateway: AIGateway, settings: Settings):
        self.gateway = gateway
        self.settings = settings
        self.base_url = settings.openai_base_url.rstrip("/")

    async def _post(self, path: str, api_key: str, service: str, **kwargs) -> httpx.Response:
        # The gateway enforces its own per-attempt timeout; this one only
        # guards against a stuck connection outliving it.
        timeout = self.settings.request_timeout_seconds + 5
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.post(
                    f"{self.base_url}{path}",
                    headers={"Authorization": f"Bearer {api_key}"},
                    **kwargs,
                )
        except httpx.TimeoutException as e:
            raise RetryableRemoteError(f"OpenAI {service} request timed out") from e
        except httpx.TransportError as e:
            raise RetryableRemoteError(f"OpenAI {service} transport error: {e}") from e

        _raise_for_provider_status(resp, service)
        return resp

    async def _chat(self, api_key: str, system_prompt: str, user_prompt: str, temperature: float, max_tokens: int) -> str:
        resp = await self._post(
            "/chat/completions",
            api_key,
            "chat",
            json={
                "model": self.settings.evaluation_model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )
        data = _json_body(resp, "chat")
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise RetryableRemoteError("OpenAI chat returned no completion choices") from e
        return content if isinstance(content, str) else ""

    # ── Transcription ────────────────────────────────────────────

    async def transcribe_audio(self, audio: bytes, filename: str = "audio.webm") -> str:
        """Speech-to-text for a recorded answer."""
        if not audio:
            raise InvalidInputError("No audio data available for transcription")

        async def _call(api_key: str) -> str:
            resp = await self._post(
                "/audio/transcriptions",
                api_key,
                "Whisper",
                files={"file": (filename, audio, "audio/webm")},
                data={"model": self.settings.transcription_model, "language": "en"},
            )
            text = _json_body(resp, "Whisper").get("text")
            return text if isinstance(text, str) and text else NO_TRANSCRIPTION

        return await self.gateway.execute(
            AIOperation.TRANSCRIPTION,
            _call,
            cache_key=transcription_cache_key(audio),
        )

    # ── Evaluation ───────────────────────────────────────────────

    async def evaluate_answer(
        self,
        question: str,
        transcript: str,
        role: str = "General",
        resume_context: str | None = None,
        job_requirements: str | None = None,
        resume_analysis: dict | None = None,
    ) -> dict:
        """Score a transcribed answer 0–100 with feedback, strengths, improvements."""
        if not transcript.strip():
            raise InvalidInputError("No speech detected in audio")

        prompt = build_evaluation_prompt(
            question, transcript, role, resume_context, job_requirements, resume_analysis
        )

        async def _call(api_key: str) -> dict:
            content = await self._chat(api_key, EVALUATION_SYSTEM_PROMPT, prompt, temperature=0.3, max_tokens=1000)
            return normalize_evaluation(_parse_reply(content, "evaluation"))

        return await self.gateway.execute(
            AIOperation.EVALUATION,
            _call,
            cache_key=evaluation_cache_key(
                question, transcript, role, resume_context, job_requirements, resume_analysis
            ),
        )

    # ── Question generation ──────────────────────────────────────

    async def generate_questions(self, role: str, experience_level: str = "mid-level") -> list[dict]:
        prompt = build_questions_prompt(role, experience_level)

        async def _call(api_key: str) -> list[dict]:
            content = await self._chat(api_key, QUESTIONS_SYSTEM_PROMPT, prompt, temperature=0.7, max_tokens=1500)
            return normalize_questions(_parse_reply(content, "questions", "[", "]"), "ai-q")

        return await self.gateway.execute(
            AIOperation.QUESTIONS,
            _call,
            cache_key=questions_cache_key(role, experience_level),
        )

    # ── Resume-driven operations ─────────────────────────────────

    async def analyze_resume(self, resume_text: str) -> dict:
        """Extract the candidate's actual profile (role, skills, seniority) from a resume."""
        check_resume_text(resume_text)

        text = resume_text
        if len(text) > RESUME_MAX_LENGTH:
            text = text[:RESUME_MAX_LENGTH] + "...[truncated]"
        prompt = build_resume_analysis_prompt(text)

        async def _call(api_key: str) -> dict:
            content = await self._chat(api_key, RESUME_ANALYSIS_SYSTEM_PROMPT, prompt, temperature=0.1, max_tokens=800)
            return normalize_resume_analysis(_parse_reply(content, "resume analysis"))

        return await self.gateway.execute(
            AIOperation.RESUME_ANALYSIS,
            _call,
            cache_key=resume_analysis_cache_key(resume_text),
        )

    async def generate_resume_questions(self, resume_analysis: dict, job_requirements: str | None = None) -> list[dict]:
        prompt = build_resume_questions_prompt(resume_analysis, job_requirements)

        async def _call(api_key: str) -> list[dict]:
            content = await self._chat(api_key, RESUME_QUESTIONS_SYSTEM_PROMPT, prompt, temperature=0.3, max_tokens=1000)
            return normalize_questions(_parse_reply(content, "resume questions", "[", "]"), "resume-q")

        return await self.gateway.execute(
            AIOperation.QUESTIONS,
            _call,
            cache_key=resume_questions_cache_key(resume_analysis, job_requirements),
        )

    async def generate_follow_up(self, question: str, answer: str, resume_analysis: dict) -> dict | None:
        """A probing follow-up question when the answer is too shallow, else None."""
        if not answer.strip():
            raise InvalidInputError("No answer provided for follow-up analysis")

        truncated = answer
        if len(truncated) > FOLLOW_UP_MAX_ANSWER_LENGTH:
            truncated = truncated[:FOLLOW_UP_MAX_ANSWER_LENGTH] + "..."
        prompt = build_follow_up_prompt(question, truncated, resume_analysis)
        follow_up_id = f"followup-{content_digest(question + answer)[:12]}"

        async def _call(api_key: str) -> dict | None:
            content = await self._chat(api_key, FOLLOW_UP_SYSTEM_PROMPT, prompt, temperature=0.2, max_tokens=400)
            decision = _parse_reply(content, "follow-up")
            if not isinstance(decision, dict):
                raise RetryableRemoteError("Follow-up response is not a JSON object")
            if decision.get("needsFollowUp") is not True:
                return None

            follow_up = normalize_question(decision.get("question"), follow_up_id)
            if follow_up is None:
                raise RetryableRemoteError("Follow-up response has no question text")
            follow_up["isFollowUp"] = True
            return follow_up

        return await self.gateway.execute(
            AIOperation.FOLLOW_UP,
            _call,
            cache_key=follow_up_cache_key(question, answer, resume_analysis),
        )

    # ── Text-to-speech ───────────────────────────────────────────

    async def synthesize_speech(self, text: str) -> bytes:
        """MP3 audio of ``text`` read aloud, exactly as given."""
        if not text or not text.strip():
            raise InvalidInputError("Empty text provided for speech synthesis")

        async def _call(api_key: str) -> bytes:
            resp = await self._post(
                "/audio/speech",
                api_key,
                "TTS",
                json={
                    "model": self.settings.speech_model,
                    "input": text,
                    "voice": self.settings.speech_voice,
                    "speed": 0.9,
                },
            )
            return resp.content

        logger.debug("Synthesizing speech for: %s", text[:100])
        return await self.gateway.execute(
            AIOperation.SPEECH,
            _call,
            cache_key=speech_cache_key(text),
        )


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


def build_evaluation_prompt(
    question: str,
    transcript: str,
    role: str,
    resume_context: str | None = None,
    job_requirements: str | None = None,
    resume_analysis: dict | None = None,
) -> str:
    context_info = f"\n**Resume Context**: {resume_context}" if resume_context else ""
    experience_info = ""
    if resume_analysis:
        technologies = ", ".join(resume_analysis.get("key_technologies") or []) or "N/A"
        experience_info = (
            f"\n**Experience Level**: {resume_analysis.get('years_of_experience', 0)} years "
            f"({resume_analysis.get('seniority', 'mid')} level)"
            f"\n**Key Technologies**: {technologies}"
        )
    requirements_info = f"\n**Job Requirements**: {job_requirements}" if job_requirements else ""
    alignment_note = (
        "\n\n**Additional Context**: Evaluate how well their response aligns with the job requirements provided."
        if job_requirements
        else ""
    )

    return f"""
You are an expert interview evaluator analyzing a candidate's response based on their actual background.

**Question**: "{question}"
**Candidate's Response Transcript**: "{transcript}"
**Candidate's Actual Role**: {role}{context_info}{experience_info}{requirements_info}

Evaluation Criteria (each worth 25%):
1. **Relevance & Content Quality** (25%): How well does the response address the question?
2. **Communication Skills** (25%): Clarity, structure, and articulation
3. **Technical/Professional Knowledge** (25%): Depth of understanding and expertise
4. **Examples & Evidence** (25%): Use of specific examples, quantifiable results{alignment_note}

Respond in this exact JSON format:
{{
  "score": <number between 0-100>,
  "feedback": "<2-3 sentence feedback explaining the score based on the transcript>",
  "strengths": ["<strength 1>", "<strength 2>", "<strength 3>"],
  "improvements": ["<improvement 1>", "<improvement 2>", "<improvement 3>"]
}}
"""


def build_questions_prompt(role: str, experience_level: str) -> str:
    return f"""
Generate 7 comprehensive interview questions for a {experience_level} {role} professional.

Requirements:
- Mix of behavioral, technical, and situational questions
- Progressive difficulty (start easier, get more challenging)
- Relevant to {role} responsibilities
- Allow for detailed responses (30-90 seconds each)

Return as JSON array with this exact format:
[
  {{
    "id": "q1",
    "text": "Question text here",
    "category": "behavioral|technical|situational",
    "difficulty": "easy|medium|hard",
    "expectedDuration": 60
  }}
]
"""


def build_resume_analysis_prompt(resume_text: str) -> str:
    return f"""
PRIORITY: Analyze the RESUME CONTENT first, ignore job title if it doesn't match resume.

**Resume Text:**
{resume_text}

**Task:** Analyze this resume and extract the person's actual professional profile.

Extract ACTUAL information from resume content:
{{
  "actualRole": "what role this person actually has based on resume",
  "skills": ["actual technical skills from resume"],
  "experience": ["specific work experiences with companies/projects"],
  "education": ["actual degrees/certifications"],
  "projects": ["real projects mentioned"],
  "companies": ["companies worked at"],
  "technologies": ["specific technologies/tools used"],
  "strengths": ["clear strengths from experience"],
  "gaps": ["areas needing improvement for growth"],
  "yearsOfExperience": <number>,
  "keyTechnologies": ["main technologies from resume"],
  "seniority": "junior/mid/senior based on experience"
}}

Focus on RESUME CONTENT, not job title. Be factual and specific.
"""


def build_resume_questions_prompt(resume_analysis: dict, job_requirements: str | None = None) -> str:
    requirements_info = f"\n**Job Requirements**: {job_requirements}" if job_requirements else ""
    last_goal = (
        "6. Assess fit for the job requirements provided"
        if job_requirements
        else "6. Evaluate their overall professional competency"
    )
    seniority = resume_analysis.get("seniority", "mid")
    skills = ", ".join((resume_analysis.get("skills") or [])[:8])
    technologies = ", ".join((resume_analysis.get("key_technologies") or [])[:6])
    companies = ", ".join((resume_analysis.get("companies") or [])[:3]) or "Not specified"

    return f"""
Generate 7 comprehensive interview questions based on this person's ACTUAL background from their resume.

**Candidate Profile:**
- Actual Role: {resume_analysis.get("actual_role", "Professional")}
- Experience: {resume_analysis.get("years_of_experience", 0)} years ({seniority} level)
- Key Skills: {skills}
- Technologies: {technologies}
- Companies: {companies}{requirements_info}

Generate questions that:
1. Test their ACTUAL skills and experience from resume
2. Validate their claimed experience and projects
3. Explore depth of knowledge in their technologies
4. Ask about specific companies/projects mentioned
5. Match their experience level ({seniority})
{last_goal}

Return as JSON array with this exact format:
[
  {{
    "id": "q1",
    "text": "Specific question about their actual experience/skills",
    "category": "technical|behavioral|experience",
    "difficulty": "easy|medium|hard",
    "resumeContext": "What part of resume this validates"
  }}
]

Make questions SPECIFIC to their background, not generic interview questions.
"""


def build_follow_up_prompt(question: str, answer: str, resume_analysis: dict) -> str:
    role = resume_analysis.get("actual_role", "Professional")
    years = resume_analysis.get("years_of_experience", 0)
    technologies = ", ".join((resume_analysis.get("key_technologies") or [])[:4])

    return f"""
Analyze if this response needs deeper exploration:

**Original Question:** {question}
**Candidate Response:** {answer}
**Their Background:** {role}, {years} years
**Key Technologies:** {technologies}

Criteria for follow-up:
- Response too vague/generic
- Claims specific experience but lacks detail
- Mentions technology from resume but shallow explanation
- Senior level candidate giving junior-level answer

If follow-up needed (be selective):
{{
  "needsFollowUp": true,
  "question": {{
    "text": "Specific follow-up to dig deeper",
    "category": "technical/behavioral",
    "difficulty": "based on their level",
    "resumeContext": "What needs clarification"
  }}
}}

If response is adequate:
{{
  "needsFollowUp": false
}}

Only ask follow-ups for important gaps, not every response.
"""
