# artisan_sync/certificate_text.py

import logging
from typing import Callable, List, Optional

from artisan_sync.base_utils import BaseUtils
from artisan_sync.google_helpers import LLM_MODEL, LLM_TIMEOUT, PROJECT_ID, REGION
from artisan_sync.llm_client import LlmClient


logger = logging.getLogger("artisan_sync")

LANGUAGE_NAMES = {
    "en": "English",
    "hi": "Hindi",
    "bn": "Bengali",
    "ta": "Tamil",
    "te": "Telugu",
    "mr": "Marathi",
}

CERTIFICATE_INSTRUCTIONS = "You write the body text of volunteer recognition certificates for an artisan marketplace."

CERTIFICATE_PROMPT = """Issuer (artisan): {issuer_name}
Recipient (volunteer): {recipient_name}
Project: {project_title}
Volunteer hours: {duration_hours}
Skills applied: {skills}

Write two or three formal sentences, in {language_name}, that thank the recipient,
name the project and highlight the skills they contributed. Do not include a title,
a signature line, placeholders or markdown. Return only the certificate text.
"""


class CertificateGenerationError(Exception):
    pass


class CertificateTextGenerator(BaseUtils):
    """
    Text-generation collaborator for certificate issuance.

    One attempt per call: failures are wrapped in CertificateGenerationError
    and the caller decides what the user sees.
    """

    def __init__(
        self,
        model_name: str = LLM_MODEL,
        *,
        timeout: float = LLM_TIMEOUT,
        llm: Optional[LlmClient] = None,
        api_key_loader: Optional[Callable[[], str]] = None,
    ):
        self.model_name = model_name
        self.timeout = timeout
        self._llm = llm
        self._api_key_loader = api_key_loader

    def _get_llm(self) -> LlmClient:
        if self._llm is None:
            if self._api_key_loader is not None:
                self._api_key_loader()
            self._llm = LlmClient(
                model_name=self.model_name,
                vertex_project=PROJECT_ID,
                vertex_region=REGION,
                timeout=self.timeout,
                instructions=CERTIFICATE_INSTRUCTIONS,
            )
        return self._llm

    def build_prompt(
        self,
        issuer_name: str,
        recipient_name: str,
        project_title: str,
        duration_hours: int,
        skills: List[str],
        language: str = "en",
    ) -> str:
        return self.fill_template(
            CERTIFICATE_PROMPT,
            issuer_name=issuer_name,
            recipient_name=recipient_name,
            project_title=project_title,
            duration_hours=duration_hours,
            skills=", ".join(skills) if skills else "general support",
            language_name=LANGUAGE_NAMES.get(language, "English"),
        )

    def generate(
        self,
        issuer_name: str,
        recipient_name: str,
        project_title: str,
        duration_hours: int,
        skills: List[str],
        language: str = "en",
    ) -> str:
        prompt = self.build_prompt(issuer_name, recipient_name, project_title, duration_hours, skills, language)
        try:
            text = self._get_llm().invoke(prompt, retries=1)
        except Exception as e:
            logger.error(f"Error generating certificate text with {self.model_name}: {e}")
            raise CertificateGenerationError(str(e)) from e
        text = self.strip_markup(text)
        if not text:
            raise CertificateGenerationError("Empty certificate text")
        return text
