"""
AI and matchmaking settings models
"""
from enum import Enum
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, validator


class HarmCategory(str, Enum):
    """Content-safety categories understood by the Gemini API"""
    HARASSMENT = "HARM_CATEGORY_HARASSMENT"
    HATE_SPEECH = "HARM_CATEGORY_HATE_SPEECH"
    SEXUALLY_EXPLICIT = "HARM_CATEGORY_SEXUALLY_EXPLICIT"
    DANGEROUS_CONTENT = "HARM_CATEGORY_DANGEROUS_CONTENT"


class HarmBlockThreshold(str, Enum):
    BLOCK_NONE = "BLOCK_NONE"
    BLOCK_ONLY_HIGH = "BLOCK_ONLY_HIGH"
    BLOCK_MEDIUM_AND_ABOVE = "BLOCK_MEDIUM_AND_ABOVE"
    BLOCK_LOW_AND_ABOVE = "BLOCK_LOW_AND_ABOVE"


class SafetySetting(BaseModel):
    category: HarmCategory
    threshold: HarmBlockThreshold = HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE

    def to_api(self) -> Dict[str, str]:
        return {"category": self.category.value, "threshold": self.threshold.value}


def default_safety_settings() -> List[SafetySetting]:
    return [SafetySetting(category=category) for category in HarmCategory]


class GenerationSettings(BaseModel):
    """Sampling parameters sent with every generateContent call"""
    temperature: float = Field(default=0.4, ge=0.0, le=2.0, description="Generation temperature")
    top_k: int = Field(default=40, ge=1, description="Top-k sampling")
    top_p: float = Field(default=0.95, ge=0.0, le=1.0, description="Top-p sampling")
    max_output_tokens: int = Field(default=8192, ge=1, description="Output token budget")

    def to_api(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topK": self.top_k,
            "topP": self.top_p,
            "maxOutputTokens": self.max_output_tokens,
        }


class ModelTier(BaseModel):
    """One model endpoint plus the generation budget it runs with"""
    model_name: str
    generation: GenerationSettings = Field(default_factory=GenerationSettings)


def default_primary_tier() -> ModelTier:
    return ModelTier(model_name="gemini-1.5-flash", generation=GenerationSettings(max_output_tokens=8192))


def default_fallback_tier() -> ModelTier:
    return ModelTier(model_name="gemini-pro", generation=GenerationSettings(max_output_tokens=4096))


class LLMSettings(BaseModel):
    """Model service configuration"""
    api_key: Optional[str] = Field(default=None, description="Gemini API key")
    base_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta", description="Gemini REST base URL")
    timeout: int = Field(default=120, ge=1, le=600, description="Request timeout in seconds")
    primary: ModelTier = Field(default_factory=default_primary_tier)
    fallback: ModelTier = Field(default_factory=default_fallback_tier)
    safety_settings: List[SafetySetting] = Field(default_factory=default_safety_settings)


class MatchingRules(BaseModel):
    """Hard constraints stated to the model in every prompt"""
    min_score: float = Field(default=0.35, ge=0.0, le=1.0, description="Pairings below this score are omitted")
    max_suggestions: int = Field(default=5, ge=1, description="Maximum projects suggested per person")
    reason_max_chars: int = Field(default=80, ge=1, description="Maximum justification length")


class MatchmakingSettings(BaseModel):
    """Batch coordinator configuration"""
    job_limit: int = Field(default=100, ge=1, description="Jobs drained per run")
    chunk_size: int = Field(default=30, ge=1, description="People per model call")
    ttl_days: int = Field(default=14, ge=1, description="Days until a match expires")
    defer_job_deletion: bool = Field(default=False, description="Delete resolved jobs only after the run persisted")
    rules: MatchingRules = Field(default_factory=MatchingRules)

    schedule_enabled: bool = Field(default=False, description="Run the daily timer inside the API process")
    interval_hours: float = Field(default=24, gt=0, description="Hours between scheduled runs")
    timezone: str = Field(default="UTC", description="Time zone the schedule is anchored to")
    retries: int = Field(default=3, ge=0, le=10, description="Retries for a failed scheduled run")
    watch_inserts: bool = Field(default=False, description="Enqueue jobs from a change stream")

    @validator("timezone")
    def validate_timezone(cls, v):
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown time zone: {v}")
        return v


class Settings(BaseModel):
    mongo_details: str = "mongodb://localhost:27017/?replicaSet=rs0"
    db_name: str = "matchmaker"
    llm: LLMSettings = Field(default_factory=LLMSettings)
    matchmaking: MatchmakingSettings = Field(default_factory=MatchmakingSettings)
