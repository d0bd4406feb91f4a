# /mediscript/utils/gemini_util.py
import logging
import re
from dataclasses import dataclass

from google import genai
from google.genai import types

logger = logging.getLogger(__name__)

DEFAULT_MODEL = 'gemini-2.0-flash'

GENERATION_SETTINGS = {
    'temperature': 0.4,
    'top_p': 0.8,
    'top_k': 40,
    'max_output_tokens': 1024,
}

_DIAGNOSIS_RE = re.compile(r'DIAGNOSIS:\s*([\s\S]+?)(?=TREATMENT:|$)', re.IGNORECASE)
_TREATMENT_RE = re.compile(r'TREATMENT:\s*([\s\S]+)$', re.IGNORECASE)
_BULLET_RE = re.compile(r'^[ \t]*[-•*][ \t]+', re.MULTILINE)

FALLBACK_TREATMENT = (
    "• Rest and adequate hydration.\n"
    "• Over-the-counter pain relief medication as needed for discomfort.\n"
    "• Monitor symptoms and return if condition worsens.\n"
    "• Follow-up appointment in 7-10 days to reassess."
)


@dataclass(frozen=True)
class DiagnosisResult:
    diagnosis: str
    treatment: str
    used_fallback: bool = False


def fallback_diagnosis(symptoms):
    return (
        f"Based on the reported symptoms ({symptoms}) and the doctor's initial assessment, "
        "a preliminary diagnosis indicates a potential medical condition that requires further evaluation."
    )


def fallback_result(symptoms):
    """The fixed, always renderable pair used when generation fails."""
    return DiagnosisResult(
        diagnosis=fallback_diagnosis(symptoms),
        treatment=FALLBACK_TREATMENT,
        used_fallback=True,
    )


def build_prompt(symptoms, diagnosis_description, age, sex):
    return f"""
Acting as an expert medical professional, provide a detailed medical diagnosis and treatment plan based on the following information:

Patient Information:
- Age: {age}
- Sex: {sex}
- Symptoms: {symptoms}
- Doctor's initial diagnosis description: {diagnosis_description}

First, write a paragraph starting with "DIAGNOSIS: " that provides a professional, detailed explanation of the most likely medical condition based on the provided information.

Then, provide a section starting with "TREATMENT: " that includes a concise treatment plan with 3-5 specific bullet points. Each bullet point should be brief (1-2 sentences maximum) and should address:
- Medications (with dosage when applicable)
- Lifestyle recommendations
- Follow-up care suggestions
- Any special instructions

Format each bullet point with a proper dash or bullet and place important terms or emphasis in *asterisks* to indicate they should be bolded.

Make your response concise yet professional. Use medical terminology appropriately but ensure it's still clear to patients.
"""


def parse_ai_response(text):
    """Split raw model output into (diagnosis, treatment).

    Either part may be empty when its marker is missing. Leading bullet
    markers on treatment lines are normalised to '• '.
    """
    if not text:
        return '', ''

    diagnosis_match = _DIAGNOSIS_RE.search(text)
    treatment_match = _TREATMENT_RE.search(text)

    diagnosis = diagnosis_match.group(1).strip() if diagnosis_match else ''
    treatment = treatment_match.group(1).strip() if treatment_match else ''
    treatment = _BULLET_RE.sub('• ', treatment).strip()

    return diagnosis, treatment


class GeminiClient:
    """Generates a diagnosis and treatment plan through the Gemini API."""

    def __init__(self, app=None):
        self.client = None
        self.model = DEFAULT_MODEL
        if app:
            self.init_app(app)

    def init_app(self, app):
        api_key = app.config.get('GEMINI_API_KEY')
        self.model = app.config.get('GEMINI_MODEL') or DEFAULT_MODEL
        if not api_key:
            self.client = None
            app.logger.warning('GEMINI_API_KEY not set - AI diagnoses will use fallback text')
            return
        self.client = genai.Client(api_key=api_key)

    @property
    def is_configured(self):
        return self.client is not None

    def _request_text(self, prompt):
        """Send one prompt; returns the response text or None if absent."""
        response = self.client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(**GENERATION_SETTINGS),
        )
        return response.text

    def generate_diagnosis_and_treatment(self, symptoms, diagnosis_description, age, sex):
        """
        Ask the model for a diagnosis and treatment plan.

        Never raises: transport errors, API errors and unusable output all
        map to the fallback pair. No retry at this layer.

        Returns:
            DiagnosisResult
        """
        if not self.is_configured:
            return fallback_result(symptoms)

        try:
            logger.info("Sending diagnosis request to Gemini model '%s'", self.model)
            text = self._request_text(build_prompt(symptoms, diagnosis_description, age, sex))
        except Exception as e:
            logger.warning("Gemini request failed: %s", e)
            return fallback_result(symptoms)

        if not text:
            logger.warning("Gemini response contained no text payload")
            return fallback_result(symptoms)

        diagnosis, treatment = parse_ai_response(text)
        used_fallback = not diagnosis or not treatment
        if used_fallback:
            logger.warning(
                "Gemini response missing sections (diagnosis=%s, treatment=%s)",
                bool(diagnosis), bool(treatment)
            )

        return DiagnosisResult(
            diagnosis=diagnosis or fallback_diagnosis(symptoms),
            treatment=treatment or FALLBACK_TREATMENT,
            used_fallback=used_fallback,
        )


gemini_client = GeminiClient()
