"""
This module provides MediSync's interface to the Google Gemini generative model.

It is responsible for:
- Defining `MedicalAssistant`, the capability interface used by the service and the GUI.
- `GeminiAssistant`, which configures the Gemini API, builds the prompt for each feature
  (assistant chat, interaction checks, wound and pill scans, smart replies, product search,
  prescription matching, prescription extraction, diet plans) and parses the reply.
- `OfflineAssistant`, which answers every call with the static fallback. It is used when no
  API key is configured, so the demo stays usable offline.

Every Gemini call is wrapped in a catch-all: a failure is logged and the caller receives the
same fallback the offline assistant returns. Network errors and malformed replies are not
distinguished.
"""
# medisync/gemini.py

from __future__ import annotations

import base64
import json
import logging
import re
from typing import Dict, List, Optional

import google.generativeai as genai

from medisync.config import DEFAULT_MODEL, Settings
from medisync.models import Medication, Product

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = """You are MediSync, a helpful, empathetic medical AI assistant.
Your goal is to explain medical concepts simply, provide reminders, and suggest lifestyle improvements.
CRITICAL SAFETY RULES:
1. NEVER diagnose a condition.
2. NEVER tell a patient to stop prescribed medication without doctor consultation.
3. If symptoms seem severe (chest pain, difficulty breathing, heavy bleeding), advise them to call emergency services immediately.
4. Keep answers concise and actionable."""

JSON_CONFIG = {"response_mime_type": "application/json"}

CHAT_EMPTY_REPLY = "I apologize, I couldn't process that response."
CHAT_FALLBACK = "I'm having trouble connecting to the medical database right now. Please try again later."
SINGLE_MED_SUMMARY = "No interactions found (single medication)."
INTERACTION_FALLBACK = "Unable to verify interactions at this time."
EXPLANATION_FALLBACK = "A detailed explanation is not available right now. Please ask your pharmacist or doctor."
DIET_FALLBACK_SUMMARY = "Dietary recommendations are unavailable right now. Please consult your doctor or a dietitian."

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class InteractionReport:
    """Result of a drug-interaction check.

    Attributes:
        has_interactions (bool): True when the model reported at least one interaction.
        summary (str): Patient-readable list, one finding per line, prefixed
            'Major:', 'Moderate:' or 'Minor:'.
    """
    def __init__(self, has_interactions: bool, summary: str):
        self.has_interactions = has_interactions
        self.summary = summary


def wound_fallback() -> Dict:
    return {
        "severity": 0,
        "analysis": "Error analyzing image. Please ensure the photo is clear and try again.",
        "recommendations": ["Consult a doctor manually."],
    }


def pill_fallback() -> Dict:
    return {
        "name": "Unknown",
        "description": "Could not identify pill.",
        "confidence": "Low",
        "warning": "Please consult your pharmacist.",
    }


def diet_fallback() -> Dict:
    return {"recommended": [], "avoid": [], "summary": DIET_FALLBACK_SUMMARY}


def parse_json_reply(text: Optional[str]):
    """Parses a model reply as JSON, tolerating a surrounding Markdown code fence.

    Raises:
        json.JSONDecodeError: If the reply is not valid JSON.
    """
    cleaned = _FENCE_RE.sub("", (text or "").strip())
    return json.loads(cleaned or "{}")


def _medication_list(medications: List[Medication]) -> str:
    return ", ".join(f"{m.name} ({m.dosage})" for m in medications)


def _catalog(products: List[Product]) -> str:
    return json.dumps([
        {"id": p.id, "name": p.name, "category": p.category, "description": p.description}
        for p in products
    ])


def _image_part(base64_image: str, mime_type: str = "image/jpeg") -> Dict:
    return {"mime_type": mime_type, "data": base64.b64decode(base64_image)}


class MedicalAssistant:
    """Capability interface for every AI-backed feature of the app."""

    def send_chat_message(self, history: List[Dict], message: str) -> str:
        raise NotImplementedError

    def check_drug_interactions(self, medications: List[Medication]) -> InteractionReport:
        raise NotImplementedError

    def get_detailed_interaction_explanation(self, medications: List[Medication]) -> str:
        raise NotImplementedError

    def analyze_wound_image(self, base64_image: str) -> Dict:
        raise NotImplementedError

    def identify_pill(self, base64_image: str) -> Dict:
        raise NotImplementedError

    def generate_smart_replies(self, last_message: str, role: str) -> List[str]:
        raise NotImplementedError

    def smart_product_search(self, query: str, products: List[Product]) -> List[str]:
        raise NotImplementedError

    def analyze_prescription_and_match(self, base64_image: str, products: List[Product]) -> List[Dict]:
        raise NotImplementedError

    def extract_medication_details(self, base64_image: str) -> Optional[Dict]:
        raise NotImplementedError

    def get_dietary_recommendations(self, conditions: List[str], medications: List[Medication]) -> Dict:
        raise NotImplementedError


class OfflineAssistant(MedicalAssistant):
    """Answers every request with its static fallback."""

    def send_chat_message(self, history, message):
        return CHAT_FALLBACK

    def check_drug_interactions(self, medications):
        if len(medications) < 2:
            return InteractionReport(False, SINGLE_MED_SUMMARY)
        return InteractionReport(False, INTERACTION_FALLBACK)

    def get_detailed_interaction_explanation(self, medications):
        return EXPLANATION_FALLBACK

    def analyze_wound_image(self, base64_image):
        return wound_fallback()

    def identify_pill(self, base64_image):
        return pill_fallback()

    def generate_smart_replies(self, last_message, role):
        return []

    def smart_product_search(self, query, products):
        return []

    def analyze_prescription_and_match(self, base64_image, products):
        return []

    def extract_medication_details(self, base64_image):
        return None

    def get_dietary_recommendations(self, conditions, medications):
        return diet_fallback()


class GeminiAssistant(MedicalAssistant):
    """`MedicalAssistant` backed by a hosted Gemini model."""

    def __init__(self, api_key: Optional[str] = None, model_name: str = DEFAULT_MODEL,
                 model=None, chat_model=None) -> None:
        """Creates the assistant. Models are built lazily on first use.

        Args:
            api_key: The Gemini API key.
            model_name: The Gemini model to call.
            model: A pre-built model for one-shot generation (tests inject fakes here).
            chat_model: A pre-built model carrying the assistant system instruction.
        """
        self._api_key = api_key
        self._model_name = model_name
        self._model = model
        self._chat_model = chat_model

    def _configure(self) -> None:
        genai.configure(api_key=self._api_key)

    @property
    def model(self):
        if self._model is None:
            self._configure()
            self._model = genai.GenerativeModel(self._model_name)
        return self._model

    @property
    def chat_model(self):
        if self._chat_model is None:
            self._configure()
            self._chat_model = genai.GenerativeModel(self._model_name, system_instruction=SYSTEM_INSTRUCTION)
        return self._chat_model

    def _generate_json(self, contents):
        response = self.model.generate_content(contents, generation_config=JSON_CONFIG)
        return parse_json_reply(response.text)

    # 1. General medical assistant chat
    def send_chat_message(self, history: List[Dict], message: str) -> str:
        """Continues the assistant conversation.

        Args:
            history: Previous turns as `{"role": "user" | "model", "parts": [{"text": ...}]}`.
            message: The new user message.
        """
        # The API expects the conversation to open with a user turn, so the canned greeting is dropped.
        turns = list(history)
        while turns and turns[0].get("role") != "user":
            turns.pop(0)
        try:
            chat = self.chat_model.start_chat(history=turns)
            response = chat.send_message(message)
            return response.text or CHAT_EMPTY_REPLY
        except Exception:
            logger.exception("Chat error")
            return CHAT_FALLBACK

    # 2. Drug interaction checker
    def check_drug_interactions(self, medications: List[Medication]) -> InteractionReport:
        if len(medications) < 2:
            return InteractionReport(False, SINGLE_MED_SUMMARY)

        prompt = f"""Analyze the following list of medications for potential drug-drug interactions,
        food interactions, or alcohol contraindications: {_medication_list(medications)}.

        Return ONLY valid JSON with this schema:
        {{
          "hasInteractions": boolean,
          "summary": "One finding per line, each prefixed with 'Major:', 'Moderate:' or 'Minor:'. If there are no known serious interactions, explicitly state that."
        }}
        Keep it brief and easy to read for a patient."""
        try:
            data = self._generate_json(prompt)
            return InteractionReport(
                bool(data.get("hasInteractions", False)),
                data.get("summary") or "Analysis complete.",
            )
        except Exception:
            logger.exception("Interaction check error")
            return InteractionReport(False, INTERACTION_FALLBACK)

    def get_detailed_interaction_explanation(self, medications: List[Medication]) -> str:
        """Explains the interactions between the patient's medications in Markdown sections."""
        prompt = f"""A patient takes: {_medication_list(medications)}.
        Explain the clinically relevant interactions between these medications for a patient.
        Structure the answer in sections that each start with '### ' followed by a title:
        ### Mechanism
        ### What You Might Notice
        ### How To Stay Safe
        Use short sentences. Do not diagnose and do not advise stopping any medication."""
        try:
            response = self.model.generate_content(prompt)
            return response.text or EXPLANATION_FALLBACK
        except Exception:
            logger.exception("Interaction explanation error")
            return EXPLANATION_FALLBACK

    # 3. Wound analysis (vision)
    def analyze_wound_image(self, base64_image: str) -> Dict:
        prompt = """Analyze this image of a wound.
        Identify signs of infection (redness, pus, swelling).
        Estimate severity on a scale of 1-10 (1=minor scratch, 10=emergency).
        Provide 3 non-diagnostic first aid steps.

        Return ONLY valid JSON with this schema:
        {
          "severity": number,
          "analysis": "string description",
          "recommendations": ["step 1", "step 2", "step 3"]
        }"""
        try:
            data = self._generate_json([_image_part(base64_image), prompt])
            return {
                "severity": data.get("severity") or 0,
                "analysis": data.get("analysis") or "Could not analyze image clearly.",
                "recommendations": data.get("recommendations") or ["Consult a doctor."],
            }
        except Exception:
            logger.exception("Vision error")
            return wound_fallback()

    # 4. Pill verification (vision)
    def identify_pill(self, base64_image: str) -> Dict:
        prompt = """Identify this pill. Analyze its shape, color, and any visible imprints.
        Provide the likely medication name and a brief visual description.
        Assess confidence level (High/Medium/Low).

        Return ONLY valid JSON with this schema:
        {
          "name": "Likely Name",
          "description": "Visual description (e.g. White round tablet with '10' imprint)",
          "confidence": "High" | "Medium" | "Low",
          "warning": "Optional warning if identification is difficult"
        }"""
        try:
            data = self._generate_json([_image_part(base64_image), prompt])
            fallback = pill_fallback()
            return {
                "name": data.get("name") or fallback["name"],
                "description": data.get("description") or fallback["description"],
                "confidence": data.get("confidence") or "Low",
                "warning": data.get("warning"),
            }
        except Exception:
            logger.exception("Pill ID error")
            return pill_fallback()

    # 5. Smart replies for doctor/patient chat
    def generate_smart_replies(self, last_message: str, role: str) -> List[str]:
        prompt = f"""You are helping a {role} reply in a medical chat.
        The last message they received was: "{last_message}"
        Suggest 3 short (under 12 words), polite replies the {role} could send.
        Return ONLY a JSON array of 3 strings."""
        try:
            data = self._generate_json(prompt)
            if not isinstance(data, list):
                return []
            return [str(s) for s in data if isinstance(s, str) and s.strip()][:3]
        except Exception:
            logger.exception("Smart reply error")
            return []

    # 6. Natural-language product search
    def smart_product_search(self, query: str, products: List[Product]) -> List[str]:
        prompt = f"""A pharmacy customer searched for: "{query}".
        Catalog (JSON): {_catalog(products)}
        Select the products that address the customer's need, including symptom-based queries.
        Return ONLY a JSON array of product ids, best match first. Return [] if nothing fits."""
        try:
            data = self._generate_json(prompt)
            if not isinstance(data, list):
                return []
            known = {p.id for p in products}
            return [pid for pid in data if pid in known]
        except Exception:
            logger.exception("Smart search error")
            return []

    # 7. Prescription photo to cart
    def analyze_prescription_and_match(self, base64_image: str, products: List[Product]) -> List[Dict]:
        prompt = f"""This image is a prescription or a shopping list for a pharmacy.
        Match every item it lists to the catalog below and estimate the quantity requested.
        Catalog (JSON): {_catalog(products)}

        Return ONLY a JSON array with this schema:
        [{{"productId": "catalog id", "quantity": number, "confidence": number between 0 and 1}}]
        Return [] if nothing matches."""
        try:
            data = self._generate_json([_image_part(base64_image), prompt])
            if not isinstance(data, list):
                return []
            known = {p.id for p in products}
            matches = []
            for item in data:
                if not isinstance(item, dict) or item.get("productId") not in known:
                    continue
                matches.append({
                    "product_id": item["productId"],
                    "quantity": item.get("quantity") or 1,
                    "confidence": item.get("confidence") or 0,
                })
            return matches
        except Exception:
            logger.exception("Prescription match error")
            return []

    # 8. Prescription label extraction
    def extract_medication_details(self, base64_image: str) -> Optional[Dict]:
        prompt = """Read this prescription or medication label.
        Extract the medication details.

        Return ONLY valid JSON with this schema:
        {
          "name": "Medication name",
          "dosage": "e.g. 10mg",
          "frequency": "e.g. Daily, 2x Daily",
          "times": ["HH:MM", ...],
          "instructions": "How to take it"
        }"""
        try:
            data = self._generate_json([_image_part(base64_image), prompt])
        except Exception:
            logger.exception("Prescription extraction error")
            return None
        if not isinstance(data, dict) or not data.get("name"):
            return None
        times = data.get("times") or ["08:00"]
        if isinstance(times, str):
            times = [t.strip() for t in times.split(",") if t.strip()]
        return {
            "name": data["name"],
            "dosage": data.get("dosage") or "",
            "frequency": data.get("frequency") or "Daily",
            "times": times,
            "instructions": data.get("instructions") or "",
        }

    # 9. Diet plan
    def get_dietary_recommendations(self, conditions: List[str], medications: List[Medication]) -> Dict:
        prompt = f"""A patient has these conditions: {", ".join(conditions) or "none reported"}.
        They take: {_medication_list(medications) or "no medications"}.
        Suggest foods to favour and foods to limit, considering food-drug interactions.

        Return ONLY valid JSON with this schema:
        {{
          "summary": "One sentence overview",
          "recommended": [{{"food": "name", "reason": "why"}}],
          "avoid": [{{"food": "name", "reason": "why"}}]
        }}"""
        try:
            data = self._generate_json(prompt)
            return {
                "recommended": data.get("recommended") or [],
                "avoid": data.get("avoid") or [],
                "summary": data.get("summary") or "",
            }
        except Exception:
            logger.exception("Diet recommendation error")
            return diet_fallback()


def build_assistant(settings: Settings) -> MedicalAssistant:
    """Returns a Gemini-backed assistant when an API key is configured, else the offline one."""
    if settings.ai_enabled:
        return GeminiAssistant(api_key=settings.gemini_api_key, model_name=settings.model_name)
    logger.warning("GEMINI_API_KEY is not configured; AI features will return offline fallbacks.")
    return OfflineAssistant()
