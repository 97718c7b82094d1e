"""Remote categorization oracle.

The oracle is untrusted and best-effort. Its responses are parsed into typed
``OracleVerdict`` records; anything that does not fit is discarded.
"""

import os
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import google.generativeai as genai

from .models import Category
from .exceptions import FileZenError, OracleError
from .error_handler import CircuitBreaker


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OracleVerdict:
    """One validated (name, category) answer from the oracle."""
    name: str
    category: Category


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if "```json" in text:
        return text.split("```json", 1)[1].split("```", 1)[0].strip()
    if text.startswith("```"):
        return text.split("```")[1].strip()
    return text


def parse_oracle_response(payload: Any) -> List[OracleVerdict]:
    """
    Parse an oracle payload into verdicts.

    The well-formed shape is a JSON array of ``{"fileName": str, "category": label}``
    objects, given either as text or already decoded. Items with a missing name or
    a label outside the closed category set are dropped. Any other shape yields an
    empty list. Never raises.

    Args:
        payload: Raw response text, or a decoded JSON value

    Returns:
        Validated verdicts in response order
    """
    if payload is None:
        return []

    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Oracle response is not valid UTF-8")
            return []

    if isinstance(payload, str):
        text = _strip_code_fence(payload)
        if not text:
            return []
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Oracle returned invalid JSON: {e}")
            return []

    if not isinstance(payload, list):
        logger.warning(f"Oracle response has unexpected shape: {type(payload).__name__}")
        return []

    verdicts = []
    dropped = 0
    for item in payload:
        if not isinstance(item, dict):
            dropped += 1
            continue
        name = item.get("fileName")
        category = Category.from_label(item.get("category"))
        if not isinstance(name, str) or not name or category is None:
            dropped += 1
            continue
        verdicts.append(OracleVerdict(name=name, category=category))

    if dropped:
        logger.warning(f"Dropped {dropped} malformed oracle record(s)")
    return verdicts


class CategorizationOracle:
    """Interface for services that suggest a category per file name."""

    def classify(self, names: Sequence[str]) -> Dict[str, Category]:
        """
        Suggest a category for each name in one batched request.

        Returns:
            Mapping of name to category; names without an answer are absent

        Raises:
            OracleError: If the service cannot be used
        """
        raise NotImplementedError


class NullOracle(CategorizationOracle):
    """Oracle that never answers, used when the remote service is disabled."""

    def classify(self, names: Sequence[str]) -> Dict[str, Category]:
        return {}


class GeminiOracle(CategorizationOracle):
    """Categorization oracle backed by the Google Gemini API."""

    def __init__(self, api_key: str, model: str = "gemini-1.5-flash", timeout: float = 30.0,
                 failure_threshold: int = 3, recovery_timeout: float = 60.0):
        """
        Initialize the Gemini oracle.

        Args:
            api_key: Google API key
            model: Gemini model name
            timeout: Request timeout in seconds
            failure_threshold: Consecutive failures before requests are skipped
            recovery_timeout: Seconds to wait before trying again after the breaker opens
        """
        if not api_key:
            raise OracleError("A Google API key is required for the Gemini oracle")

        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.circuit_breaker = CircuitBreaker(failure_threshold, recovery_timeout)
        genai.configure(api_key=self.api_key)

    def build_prompt(self, names: Sequence[str]) -> str:
        labels = ", ".join(Category.labels())
        files = "\n".join(f"- {name}" for name in names)
        return f"""Categorize each of the following file names into exactly one of these categories:
{labels}.

Respond ONLY with a JSON array containing one object per file, in this format:
[{{"fileName": "original file name", "category": "one of the categories"}}]

Files:
{files}"""

    def _generate(self, prompt: str) -> str:
        gemini_model = genai.GenerativeModel(
            model_name=self.model,
            generation_config=genai.GenerationConfig(
                temperature=0.1,
                response_mime_type="application/json"
            )
        )
        response = gemini_model.generate_content(
            prompt,
            request_options={"timeout": self.timeout}
        )
        return response.text or ""

    def classify(self, names: Sequence[str]) -> Dict[str, Category]:
        if not names:
            return {}

        try:
            text = self.circuit_breaker.call(self._generate, self.build_prompt(names))
        except FileZenError as e:
            raise OracleError(f"Gemini oracle unavailable: {e}") from e
        except Exception as e:
            raise OracleError(f"Gemini request failed: {e}") from e

        verdicts = parse_oracle_response(text)
        logger.info(f"Gemini categorized {len(verdicts)} of {len(names)} file(s)")
        return {verdict.name: verdict.category for verdict in verdicts}


def create_oracle(config=None) -> CategorizationOracle:
    """
    Build the oracle described by the oracle configuration.

    Falls back to NullOracle when the oracle is disabled or no API key is set.

    Args:
        config: Optional application configuration
    """
    from .config import get_config

    oracle_config = (config or get_config()).oracle

    if not oracle_config.enabled:
        logger.info("Categorization oracle disabled by configuration")
        return NullOracle()

    api_key: Optional[str] = os.getenv(oracle_config.api_key_env) or oracle_config.api_key
    if not api_key:
        logger.warning(
            f"No API key found in ${oracle_config.api_key_env}; using the local extension table only"
        )
        return NullOracle()

    return GeminiOracle(
        api_key=api_key,
        model=oracle_config.model,
        timeout=oracle_config.timeout,
        failure_threshold=oracle_config.failure_threshold,
        recovery_timeout=oracle_config.recovery_timeout,
    )
