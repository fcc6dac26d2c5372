from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class UpstreamModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ExperienceInput(UpstreamModel):
    title: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1)
    start_date: str
    end_date: str
    achievement: str = ""
    tags: list[str] = Field(default_factory=list)


class ExperienceSummary(UpstreamModel):
    id: Optional[int] = None
    title: str
    role: str
    summary: str
    tags: list[str] = Field(default_factory=list)


class SelfIntroFeedbackRequest(UpstreamModel):
    subject: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)


class SelfIntroFeedback(UpstreamModel):
    id: Optional[int] = None
    subject: str
    content: str
    feedback: str


class ChatRequest(UpstreamModel):
    content: str = Field(..., min_length=1)


class ChatReply(UpstreamModel):
    # The backend names the generated text "genera".
    content: str = Field(..., alias="genera")

    model_config = ConfigDict(alias_generator=None)


class ChatMessage(UpstreamModel):
    user_id: int
    content: str
    is_user: bool
    timestamp: datetime


class ProfileMatch(UpstreamModel):
    name: str
    role: Optional[str] = None
    match: Optional[float] = None
    skills: list[str] = Field(default_factory=list)
    description: Optional[str] = None
    img_url: Optional[str] = None


class SkillRecommendation(UpstreamModel):
    name: str
    importance: int = Field(..., ge=0, le=100)


class CloneRecommendations(UpstreamModel):
    career_path: str
    next_steps: list[str] = Field(default_factory=list)
    skills: list[SkillRecommendation] = Field(default_factory=list)


class AIClone(UpstreamModel):
    user_id: int
    name: str
    role: str
    personality: str
    summary: str
    strengths: list[str] = Field(default_factory=list)
    recommendations: Optional[CloneRecommendations] = None
