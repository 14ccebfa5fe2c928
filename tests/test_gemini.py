from types import SimpleNamespace

from knowme.services.gemini import GeminiService


class FakeModels:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def generate_content(self, model, contents):
        self.calls.append((model, contents))
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)


def service_with(models: FakeModels) -> GeminiService:
    service = GeminiService(model="test-model", api_key="")
    service.client = SimpleNamespace(models=models)
    return service


def test_prompt_mentions_name_and_facts():
    prompt = GeminiService.get_prompt("Loves hiking", "Carol", "Speaks four languages")
    assert "Carol" in prompt
    assert "Speaks four languages" in prompt


async def test_enhanced_bio_is_returned():
    models = FakeModels(text="  Carol designs things people love.  ")
    bio = await service_with(models).enhance_bio_async("Designer", "Carol", "")
    assert bio == "Carol designs things people love."
    assert models.calls[0][0] == "test-model"


def test_falls_back_to_current_bio_on_error():
    service = service_with(FakeModels(error=RuntimeError("quota exceeded")))
    assert service.enhance_bio("Designer", "Carol", "") == "Designer"


def test_falls_back_on_empty_reply():
    assert service_with(FakeModels(text="")).enhance_bio("Designer", "Carol", "") == "Designer"


def test_without_client_bio_is_unchanged():
    service = GeminiService(model="test-model", api_key="")
    service.client = None
    assert service.enhance_bio("Designer", "Carol", "") == "Designer"
