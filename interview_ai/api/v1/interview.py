"""Interview endpoints backed by the AI gateway."""

import logging

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import Response

from interview_ai.core.config import settings
from interview_ai.core.dependencies import get_ai_service, require_capacity
from interview_ai.core.exceptions import InvalidInputError
from interview_ai.core.rate_limit import limiter
from interview_ai.schemas.interview import (
    EvaluationRequest,
    EvaluationResponse,
    FollowUpRequest,
    FollowUpResponse,
    OverallScoreRequest,
    OverallScoreResponse,
    QuestionsRequest,
    QuestionsResponse,
    ResumeAnalysis,
    ResumeAnalysisRequest,
    ResumeQuestionsRequest,
    SpeechRequest,
    TranscriptionResponse,
)
from interview_ai.services.ai_evaluator import InterviewAIService, calculate_overall_score

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/interview", tags=["interview"])

_MAX_AUDIO_BYTES = 25 * 1024 * 1024  # Whisper upload limit


@router.post("/transcribe", response_model=TranscriptionResponse, dependencies=[Depends(require_capacity)])
@limiter.limit(settings.interview_rate_limit)
async def transcribe(
    request: Request,
    audio: UploadFile = File(...),
    service: InterviewAIService = Depends(get_ai_service),
):
    content = await audio.read()
    if not content:
        raise InvalidInputError("No audio data available for transcription")
    if len(content) > _MAX_AUDIO_BYTES:
        raise InvalidInputError("Audio file exceeds the 25 MB limit")

    transcript = await service.transcribe_audio(content, filename=audio.filename or "audio.webm")
    return TranscriptionResponse(transcript=transcript)


@router.post("/evaluate", response_model=EvaluationResponse, dependencies=[Depends(require_capacity)])
@limiter.limit(settings.interview_rate_limit)
async def evaluate(
    request: Request,
    body: EvaluationRequest,
    service: InterviewAIService = Depends(get_ai_service),
):
    evaluation = await service.evaluate_answer(
        body.question,
        body.transcript,
        role=body.role,
        resume_context=body.resume_context,
        job_requirements=body.job_requirements,
        resume_analysis=body.resume_analysis.model_dump() if body.resume_analysis else None,
    )
    return EvaluationResponse(**evaluation)


@router.post("/questions", response_model=QuestionsResponse, dependencies=[Depends(require_capacity)])
@limiter.limit(settings.interview_rate_limit)
async def generate_questions(
    request: Request,
    body: QuestionsRequest,
    service: InterviewAIService = Depends(get_ai_service),
):
    questions = await service.generate_questions(body.role, body.experience_level)
    return {"questions": questions}


@router.post("/resume/analyze", response_model=ResumeAnalysis, dependencies=[Depends(require_capacity)])
@limiter.limit(settings.interview_rate_limit)
async def analyze_resume(
    request: Request,
    body: ResumeAnalysisRequest,
    service: InterviewAIService = Depends(get_ai_service),
):
    return await service.analyze_resume(body.resume_text)


@router.post("/resume/questions", response_model=QuestionsResponse, dependencies=[Depends(require_capacity)])
@limiter.limit(settings.interview_rate_limit)
async def generate_resume_questions(
    request: Request,
    body: ResumeQuestionsRequest,
    service: InterviewAIService = Depends(get_ai_service),
):
    questions = await service.generate_resume_questions(body.analysis.model_dump(), body.job_requirements)
    return {"questions": questions}


@router.post("/follow-up", response_model=FollowUpResponse, dependencies=[Depends(require_capacity)])
@limiter.limit(settings.interview_rate_limit)
async def follow_up(
    request: Request,
    body: FollowUpRequest,
    service: InterviewAIService = Depends(get_ai_service),
):
    question = await service.generate_follow_up(body.question, body.answer, body.analysis.model_dump())
    return FollowUpResponse(follow_up=question)


@router.post("/speech", dependencies=[Depends(require_capacity)])
@limiter.limit(settings.interview_rate_limit)
async def speech(
    request: Request,
    body: SpeechRequest,
    service: InterviewAIService = Depends(get_ai_service),
):
    audio = await service.synthesize_speech(body.text)
    return Response(content=audio, media_type="audio/mpeg")


@router.post("/overall-score", response_model=OverallScoreResponse)
async def overall_score(body: OverallScoreRequest):
    answered = sum(1 for s in body.scores if s is not None)
    return OverallScoreResponse(overall_score=calculate_overall_score(body.scores), answered=answered)
