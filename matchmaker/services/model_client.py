"""
Matching client: primary model with a single fallback tier
"""
import asyncio
import functools

from matchmaker.models.ai_settings import LLMSettings, ModelTier
from matchmaker.utils.exceptions import ConfigurationError, ModelError
from matchmaker.utils.logging_config import PerformanceMonitor, get_logger
from matchmaker.utils.utils import gemini_generate

logger = get_logger(__name__)


class MatchingClient:
    """Sends a prompt to the primary model and, on any failure, once to the fallback."""

    def __init__(self, settings: LLMSettings):
        self.settings = settings

    @property
    def primary(self) -> ModelTier:
        return self.settings.primary

    @property
    def fallback(self) -> ModelTier:
        return self.settings.fallback

    async def generate(self, prompt: str) -> str:
        if not self.settings.api_key:
            raise ConfigurationError("Gemini API key is not configured", config_key="GEMINI_API_KEY")

        try:
            return await self._call(self.primary, prompt)
        except Exception as e:
            logger.error(f"Error calling {self.primary.model_name}: {e}")

        try:
            return await self._call(self.fallback, prompt)
        except Exception as fallback_error:
            logger.error(f"Fallback model {self.fallback.model_name} also failed: {fallback_error}")
            raise ModelError(
                "All AI models failed to generate matches",
                model_name=self.fallback.model_name,
                model_type="llm",
                cause=fallback_error,
            ) from fallback_error

    async def _call(self, tier: ModelTier, prompt: str) -> str:
        # requests is blocking; keep it off the event loop
        loop = asyncio.get_running_loop()
        call = functools.partial(
            gemini_generate,
            prompt,
            tier,
            api_key=self.settings.api_key,
            safety_settings=self.settings.safety_settings,
            base_url=self.settings.base_url,
            timeout=self.settings.timeout,
        )
        with PerformanceMonitor(f"generateContent[{tier.model_name}]", logger, threshold_ms=30000):
            text = await loop.run_in_executor(None, call)
        logger.debug(f"{tier.model_name} returned {len(text)} characters")
        return text
