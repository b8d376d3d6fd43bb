import asyncio
import time

import pytest

from core.config import settings
from coach_service.models import ExerciseType, TipGenerator
from coach_service.models.tip_generator import CANNED_TIPS, DISABLED_TIP, EMPTY_TIP, ERROR_TIP


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModels:
    def __init__(self, text, error, delay):
        self.text = text
        self.error = error
        self.delay = delay
        self.calls = []

    def generate_content(self, model=None, contents=None, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return FakeResponse(self.text)


class FakeClient:
    """Stands in for genai.Client: only client.models.generate_content is used."""

    def __init__(self, text="Nice work!", error=None, delay=0.0):
        self.models = FakeModels(text, error, delay)

    @property
    def prompts(self):
        return [call["contents"] for call in self.models.calls]


def tip(generator, exercise, correction):
    return asyncio.run(generator.get_motivational_tip(exercise, correction))


@pytest.fixture
def no_api_key(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", None)


def test_disabled_without_api_key(no_api_key):
    generator = TipGenerator()
    assert not generator.enabled
    assert tip(generator, "squats", "Squat deeper!") == CANNED_TIPS["Squat deeper!"]
    assert tip(generator, "squats", "Something new") == DISABLED_TIP


def test_request_disables_thinking():
    client = FakeClient()
    generator = TipGenerator(client=client, model_name="gemini-2.5-flash")
    tip(generator, "squats", "Squat deeper!")

    call = client.models.calls[0]
    assert call["model"] == "gemini-2.5-flash"
    assert call["config"].thinking_config.thinking_budget == 0
    assert call["config"].max_output_tokens == settings.TIP_MAX_OUTPUT_TOKENS
    assert call["config"].temperature == pytest.approx(settings.TIP_TEMPERATURE)


def test_tip_is_stripped_and_cached():
    client = FakeClient(text="  Drop those hips a little lower!  ")
    generator = TipGenerator(client=client)

    first = tip(generator, ExerciseType.SQUATS, "Squat deeper!")
    second = tip(generator, "squats", "Squat deeper!")

    assert first == "Drop those hips a little lower!"
    assert second == first
    assert len(client.prompts) == 1
    assert "squats" in client.prompts[0]
    assert '"Squat deeper!"' in client.prompts[0]


def test_cache_is_per_correction():
    client = FakeClient()
    generator = TipGenerator(client=client)
    tip(generator, "pushups", "Go lower!")
    tip(generator, "pushups", "Keep your back straight!")
    assert len(client.prompts) == 2


def test_free_text_corrections_are_not_cached():
    client = FakeClient()
    generator = TipGenerator(client=client)
    for _ in range(3):
        tip(generator, "squats", "My knees hurt")
    tip(generator, "burpees", "Squat deeper!")
    tip(generator, "burpees", "Squat deeper!")
    assert len(client.prompts) == 5
    assert generator._cache == {}


def test_api_error_falls_back():
    generator = TipGenerator(client=FakeClient(error=RuntimeError("quota exceeded")))
    assert tip(generator, "pushups", "Go lower!") == ERROR_TIP


def test_empty_response_is_not_cached():
    client = FakeClient(text="   ")
    generator = TipGenerator(client=client)
    assert tip(generator, "jumping_jacks", "Spread your feet wider!") == EMPTY_TIP
    assert tip(generator, "jumping_jacks", "Spread your feet wider!") == EMPTY_TIP
    assert len(client.prompts) == 2


def test_timeout_falls_back():
    generator = TipGenerator(client=FakeClient(delay=0.3), timeout_seconds=0.05)
    assert tip(generator, "squats", "Keep your chest up!") == ERROR_TIP
