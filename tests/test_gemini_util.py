"""Tests for the AI diagnosis client: parsing, fallbacks and request settings."""
from types import SimpleNamespace

import pytest

from mediscript.utils.gemini_util import (
    FALLBACK_TREATMENT, GENERATION_SETTINGS, GeminiClient,
    build_prompt, fallback_diagnosis, parse_ai_response,
)

SAMPLE_RESPONSE = """DIAGNOSIS: Acute bronchitis, most likely viral in origin.

TREATMENT:
- *Rest* and fluids for 5 days.
* Paracetamol 500mg every 6 hours as needed.
• Follow-up in 1 week if cough persists.
"""


class FakeModels:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)


def make_client(text=None, error=None):
    client = GeminiClient()
    models = FakeModels(text=text, error=error)
    client.client = SimpleNamespace(models=models)
    return client, models


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

class TestParseAiResponse:
    def test_splits_sections_and_normalises_bullets(self):
        diagnosis, treatment = parse_ai_response(SAMPLE_RESPONSE)
        assert diagnosis == "Acute bronchitis, most likely viral in origin."
        assert treatment.splitlines() == [
            "• *Rest* and fluids for 5 days.",
            "• Paracetamol 500mg every 6 hours as needed.",
            "• Follow-up in 1 week if cough persists.",
        ]

    def test_markers_are_case_insensitive(self):
        diagnosis, treatment = parse_ai_response("diagnosis: Migraine\ntreatment: - Dark room rest")
        assert diagnosis == "Migraine"
        assert treatment == "• Dark room rest"

    def test_missing_treatment(self):
        assert parse_ai_response("DIAGNOSIS: Tension headache") == ("Tension headache", "")

    def test_no_markers(self):
        assert parse_ai_response("I cannot help with that.") == ("", "")
        assert parse_ai_response("") == ("", "")

    def test_leading_bold_line_is_left_alone(self):
        _, treatment = parse_ai_response("DIAGNOSIS: x\nTREATMENT: *Ibuprofen* 200mg")
        assert treatment == "*Ibuprofen* 200mg"


class TestFallbacks:
    def test_fallback_diagnosis_embeds_symptoms(self):
        assert "(sore throat)" in fallback_diagnosis("sore throat")

    def test_fallback_treatment_is_bulleted(self):
        lines = FALLBACK_TREATMENT.splitlines()
        assert len(lines) == 4
        assert all(line.startswith("• ") for line in lines)

    def test_prompt_carries_patient_details(self):
        prompt = build_prompt("fever", "likely flu", 34, "Female")
        assert "- Age: 34" in prompt
        assert "- Sex: Female" in prompt
        assert "- Symptoms: fever" in prompt
        assert "likely flu" in prompt
        assert '"DIAGNOSIS: "' in prompt and '"TREATMENT: "' in prompt


# ---------------------------------------------------------------------------
# Client behaviour
# ---------------------------------------------------------------------------

class TestGeminiClient:
    def test_unconfigured_client_uses_fallback(self):
        client = GeminiClient()
        assert not client.is_configured
        result = client.generate_diagnosis_and_treatment("cough", "cold", 30, "Male")
        assert result.used_fallback
        assert result.treatment == FALLBACK_TREATMENT
        assert "(cough)" in result.diagnosis

    def test_successful_generation(self):
        client, models = make_client(text=SAMPLE_RESPONSE)
        result = client.generate_diagnosis_and_treatment("cough", "chest infection", 51, "Male")
        assert not result.used_fallback
        assert result.diagnosis.startswith("Acute bronchitis")
        assert result.treatment.startswith("• *Rest*")
        assert len(models.calls) == 1

    def test_request_uses_generation_settings(self):
        client, models = make_client(text=SAMPLE_RESPONSE)
        client.generate_diagnosis_and_treatment("cough", "cold", 30, "Male")
        call = models.calls[0]
        assert call["model"] == client.model
        assert "- Symptoms: cough" in call["contents"]
        config = call["config"]
        assert config.temperature == GENERATION_SETTINGS["temperature"]
        assert config.top_p == GENERATION_SETTINGS["top_p"]
        assert config.top_k == GENERATION_SETTINGS["top_k"]
        assert config.max_output_tokens == GENERATION_SETTINGS["max_output_tokens"]

    def test_api_error_maps_to_fallback(self):
        client, models = make_client(error=RuntimeError("quota exceeded"))
        result = client.generate_diagnosis_and_treatment("rash", "eczema", 8, "Female")
        assert result.used_fallback
        assert result.treatment == FALLBACK_TREATMENT
        assert len(models.calls) == 1

    @pytest.mark.parametrize("text", [None, ""])
    def test_empty_payload_maps_to_fallback(self, text):
        client, _ = make_client(text=text)
        result = client.generate_diagnosis_and_treatment("rash", "eczema", 8, "Female")
        assert result.used_fallback
        assert "(rash)" in result.diagnosis

    def test_missing_section_is_filled_individually(self):
        client, _ = make_client(text="DIAGNOSIS: Contact dermatitis")
        result = client.generate_diagnosis_and_treatment("rash", "eczema", 8, "Female")
        assert result.used_fallback
        assert result.diagnosis == "Contact dermatitis"
        assert result.treatment == FALLBACK_TREATMENT

    def test_init_app_without_key(self, app):
        client = GeminiClient(app)
        assert client.client is None
        assert client.model == app.config["GEMINI_MODEL"]
