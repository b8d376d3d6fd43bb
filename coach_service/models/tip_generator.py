"""
FITSIGHT Coach Service - Motivational Tip Generator

Turns a form correction into a short encouraging tip using Google Gemini.
Tips are best-effort: without an API key, or when the API fails, a canned
message is returned instead. Nothing here ever raises into the caller.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple, Union

from google import genai
from google.genai import types

from core.config import settings

from .exercises import ExerciseType

logger = logging.getLogger("fitsight.coach.tips")


DISABLED_TIP = "Keep trying! You can do it."
EMPTY_TIP = "Focus on your form and keep pushing!"
ERROR_TIP = "Breathe and focus. You're doing great."

# Offline tips keyed by correction message
CANNED_TIPS: Dict[str, str] = {
    "Squat deeper!": "Sit back as if into a chair and let your hips drop a little lower. You've got this!",
    "Keep your chest up!": "Lift your chest and keep your eyes forward as you lower. Nice work!",
    "Keep your back straight!": "Squeeze your glutes and brace your core to hold a straight line. Strong!",
    "Go lower!": "Bend your elbows a bit more until your chest nearly reaches the floor. Keep going!",
    "Raise your hands higher!": "Reach all the way overhead on every jump. Great energy!",
    "Spread your feet wider!": "Jump your feet out past shoulder width. You're doing great!",
    "Please make sure your full body is visible.": "Step back so the camera can see you from head to toe.",
    "Please position yourself sideways to the camera.": "Turn side-on to the camera so your whole body line is visible.",
}

EXERCISE_NAMES = frozenset(e.value for e in ExerciseType)

PROMPT_TEMPLATE = """
You are an encouraging AI fitness coach. A user is doing {exercise} and needs a correction.
The specific issue is: "{correction}".
Provide a very short, positive, and actionable tip (max 1-2 sentences) to help them improve their form.
Do not greet the user. Be direct and encouraging.
Example for 'Squat deeper!': "Great job! Try to lower your hips just a bit more, as if you're sitting in a chair. You've got this!"
"""


class TipGenerator:
    """
    Wrapper for Google Gemini tip generation.

    Features:
    - Cache of successful tips for the known correction messages
    - Timeout on every API call
    - Canned fallbacks when disabled or failing
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        client: Optional[Any] = None,
        timeout_seconds: Optional[float] = None
    ):
        """
        Initialize tip generator.

        Args:
            api_key: Gemini API key (uses settings.GEMINI_API_KEY if None)
            model_name: Gemini model to use
            client: Pre-built client exposing models.generate_content() (skips configuration)
            timeout_seconds: Per-request timeout
        """
        self.model_name = model_name or settings.GEMINI_MODEL
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.TIP_TIMEOUT_SECONDS
        self._cache: Dict[Tuple[str, str], str] = {}
        self.client = client

        if self.client is None:
            api_key = api_key or settings.GEMINI_API_KEY
            if not api_key:
                logger.warning("Gemini API key not found. Motivational tips will be disabled.")
                return
            self.client = genai.Client(api_key=api_key)
            logger.info(f"TipGenerator initialized with model: {self.model_name}")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _generate(self, prompt: str) -> str:
        # Thinking disabled so the short output budget goes to the tip itself
        config = types.GenerateContentConfig(
            temperature=settings.TIP_TEMPERATURE,
            max_output_tokens=settings.TIP_MAX_OUTPUT_TOKENS,
            thinking_config=types.ThinkingConfig(thinking_budget=0),
        )
        response = self.client.models.generate_content(
            model=self.model_name,
            contents=prompt,
            config=config,
        )
        return (response.text or "").strip()

    async def get_motivational_tip(self, exercise: Union[ExerciseType, str], correction: str) -> str:
        """
        Get a short tip for a form correction.

        Args:
            exercise: Exercise being performed
            correction: The correction message shown to the user

        Returns:
            Tip text (a canned message on any failure)
        """
        exercise_name = exercise.value if isinstance(exercise, ExerciseType) else str(exercise)

        if not self.enabled:
            return CANNED_TIPS.get(correction, DISABLED_TIP)

        # Cache only analyzer corrections for known exercises
        cache_key = (exercise_name, correction)
        cacheable = exercise_name in EXERCISE_NAMES and correction in CANNED_TIPS
        if cache_key in self._cache:
            return self._cache[cache_key]

        prompt = PROMPT_TEMPLATE.format(exercise=exercise_name, correction=correction)

        try:
            tip = await asyncio.wait_for(asyncio.to_thread(self._generate, prompt), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"Gemini tip request timed out after {self.timeout_seconds}s")
            return ERROR_TIP
        except Exception as e:
            logger.error(f"Error fetching motivational tip from Gemini API: {e}")
            return ERROR_TIP

        if not tip:
            logger.warning(f"Gemini returned an empty tip for {cache_key}")
            return EMPTY_TIP

        if cacheable:
            self._cache[cache_key] = tip
        return tip


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL SINGLETON
# ═══════════════════════════════════════════════════════════════════════════════

_generator_instance: Optional[TipGenerator] = None


def get_tip_generator() -> TipGenerator:
    """Get or create the global tip generator instance."""
    global _generator_instance
    if _generator_instance is None:
        _generator_instance = TipGenerator()
    return _generator_instance
