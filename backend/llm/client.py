"""
LLM Client wrapper for the Gemini REST API.
Handles text generation (coach, evaluator) and speech synthesis.
"""
import base64
import time
import requests
import logging
from typing import Dict, Any, List, Optional
from dataclasses import dataclass

from utils.config import config, LLMConfig
from utils.errors import TransportError

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Structured response from the LLM."""
    content: str
    is_valid: bool
    raw_response: Dict[str, Any]


class LLMClient:
    """
    Client for the Gemini `generateContent` endpoint.
    Transport failures surface as TransportError; nothing is swallowed.
    """

    def __init__(self, settings: Optional[LLMConfig] = None, session: Optional[requests.Session] = None):
        self.settings = settings or config.llm
        self.timeout = self.settings.timeout
        self.max_retries = self.settings.max_retries
        self.http = session or requests.Session()
        logger.info(f"LLM Client initialized: model={self.settings.model} (timeout={self.timeout}s)")

    def _make_request(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST to Gemini, retrying only timeouts and connection errors."""
        if not self.settings.api_key:
            raise TransportError("GEMINI_API_KEY is not set")

        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.settings.api_key,
        }
        last_error = None

        for attempt in range(self.max_retries + 1):
            try:
                response = self.http.post(url, json=payload, headers=headers, timeout=self.timeout)
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                last_error = e
                logger.warning(f"LLM request attempt {attempt + 1} failed: {e}")
                if attempt < self.max_retries:
                    time.sleep(1 * (attempt + 1))
                continue
            except requests.exceptions.RequestException as e:
                raise TransportError(f"LLM request failed: {e}") from e

            if not response.ok:
                raise TransportError(
                    f"LLM server returned {response.status_code}: {response.text[:300]}",
                    status=response.status_code,
                )
            try:
                return response.json()
            except ValueError as e:
                raise TransportError(f"LLM server returned a non-JSON body: {e}") from e

        raise TransportError(
            f"Failed to reach LLM server after {self.max_retries + 1} attempts: {last_error}"
        )

    @staticmethod
    def _parts(data: Dict[str, Any]) -> List[Dict[str, Any]]:
        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback") or {}
            reason = feedback.get("blockReason", "no candidates")
            raise TransportError(f"LLM returned no candidates ({reason})")
        return (candidates[0].get("content") or {}).get("parts") or []

    def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """
        Generate a completion.

        Args:
            prompt: The user prompt
            system_instruction: Optional system instruction
            temperature: Sampling temperature (None uses the model default)
            json_mode: Ask the model for an application/json response
            max_tokens: Optional output token cap

        Returns:
            LLMResponse with the concatenated text parts
        """
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        generation_config: Dict[str, Any] = {}
        if temperature is not None:
            generation_config["temperature"] = temperature
        if json_mode:
            generation_config["responseMimeType"] = "application/json"
        if max_tokens:
            generation_config["maxOutputTokens"] = max_tokens
        if generation_config:
            payload["generationConfig"] = generation_config

        data = self._make_request(self.settings.generate_url(self.settings.model), payload)
        content = "".join(p.get("text", "") for p in self._parts(data) if isinstance(p, dict))

        return LLMResponse(
            content=content,
            is_valid=bool(content.strip()),
            raw_response=data,
        )

    def synthesize(self, text: str) -> bytes:
        """
        Synthesize speech for `text`.

        Returns:
            Raw 16-bit little-endian PCM as produced by the TTS model
        """
        payload = {
            "contents": [{"role": "user", "parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self.settings.tts_voice}}
                },
            },
        }
        data = self._make_request(self.settings.generate_url(self.settings.tts_model), payload)

        for part in self._parts(data):
            inline = part.get("inlineData") if isinstance(part, dict) else None
            if inline and inline.get("data"):
                return base64.b64decode(inline["data"])

        raise TransportError("TTS response contained no audio data")


# Global client instance
llm_client = LLMClient()
