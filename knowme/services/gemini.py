import asyncio

from google import genai
from loguru import logger

from knowme.core.config import settings


class GeminiService:
    def __init__(self, model: str = settings.DEFAULT_GEMINI_MODEL, api_key: str | None = None):
        self.model = model
        self.client = None
        if api_key := api_key or settings.GEMINI_API_KEY:
            try:
                self.client = genai.Client(api_key=api_key)
            except Exception as e:
                logger.warning(f"Failed to initialize Gemini client: {e}")
        else:
            logger.warning("GEMINI_API_KEY not set. Bio enhancement will be disabled.")

    @staticmethod
    def get_prompt(current_bio: str, name: str, facts: str) -> str:
        return f"""
        You are a helpful assistant for a social app where colleagues learn each other's names.
        Write a short, engaging and friendly bio (max 2 sentences) for a user profile card.

        User Name: {name}
        Current Bio Draft: {current_bio}
        Fun Facts: {facts}

        If the current bio is empty, create one based on the fun facts.
        Make it sound natural and approachable. Only return the bio and nothing else.
        """

    def enhance_bio(self, current_bio: str, name: str, facts: str) -> str:
        """Return an improved bio, or ``current_bio`` unchanged when Gemini is unavailable."""
        if not self.client:
            logger.warning("Gemini client not initialized. Returning bio unchanged.")
            return current_bio
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=self.get_prompt(current_bio, name, facts),
            )
            text = (response.text or "").strip()
            return text or current_bio
        except Exception as e:
            logger.exception(f"Error enhancing bio with Gemini: {e}")
            return current_bio

    async def enhance_bio_async(self, current_bio: str, name: str, facts: str) -> str:
        """Async wrapper to avoid blocking the event loop during network calls."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self.enhance_bio(current_bio, name, facts))


gemini_service = GeminiService()
