from typing import Annotated

from pydantic import BaseModel, Field


class TranscriptionResponse(BaseModel):
    transcript: str


class ResumeAnalysis(BaseModel):
    actual_role: str = "Professional"
    skills: list[str] = []
    experience: list[str] = []
    education: list[str] = []
    projects: list[str] = []
    companies: list[str] = []
    technologies: list[str] = []
    strengths: list[str] = []
    gaps: list[str] = []
    years_of_experience: int = Field(0, ge=0)
    key_technologies: list[str] = []
    seniority: str = "mid"


class EvaluationRequest(BaseModel):
    question: str = Field(min_length=1, max_length=2000)
    transcript: str = Field(min_length=1, max_length=20000)
    role: str = Field("General", min_length=1, max_length=255)
    resume_context: str | None = Field(None, max_length=10000)
    job_requirements: str | None = Field(None, max_length=10000)
    resume_analysis: ResumeAnalysis | None = None


class EvaluationResponse(BaseModel):
    score: int = Field(ge=0, le=100)
    feedback: str
    strengths: list[str] = []
    improvements: list[str] = []


class QuestionsRequest(BaseModel):
    role: str = Field(min_length=1, max_length=255)
    experience_level: str = Field("mid-level", max_length=50)


class GeneratedQuestion(BaseModel):
    id: str
    text: str = ""
    category: str | None = None
    difficulty: str | None = None
    expectedDuration: int | None = None
    resumeContext: str | None = None
    isFollowUp: bool = False


class QuestionsResponse(BaseModel):
    questions: list[GeneratedQuestion]


class ResumeAnalysisRequest(BaseModel):
    resume_text: str = Field(min_length=1, max_length=50000)


class ResumeQuestionsRequest(BaseModel):
    analysis: ResumeAnalysis
    job_requirements: str | None = Field(None, max_length=10000)


class FollowUpRequest(BaseModel):
    question: str = Field(min_length=1, max_length=2000)
    answer: str = Field(min_length=1, max_length=20000)
    analysis: ResumeAnalysis


class FollowUpResponse(BaseModel):
    follow_up: GeneratedQuestion | None = None


class SpeechRequest(BaseModel):
    text: str = Field(min_length=1, max_length=4096)


class OverallScoreRequest(BaseModel):
    scores: list[Annotated[float, Field(allow_inf_nan=False)] | None] = Field(default_factory=list, max_length=200)


class OverallScoreResponse(BaseModel):
    overall_score: int
    answered: int
