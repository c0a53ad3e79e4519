from typing import Dict, List, Optional
import logging

import openai
from openai import OpenAI

from chatrelay.config import Settings
from chatrelay.errors import UpstreamError

logger = logging.getLogger(__name__)

IMAGE_DESCRIPTION_PROMPT = (
    "Describe this image in detail: the objects, people, any visible text and the overall scene. "
    "The description will be used later to answer questions about the image."
)
SUMMARY_SYSTEM_PROMPT = "You are a helpful assistant that writes concise, factual summaries of documents."
SUMMARY_PROMPT = (
    "Summarize the following document in at most 10 sentences. "
    "Keep names, numbers, dates and amounts.\n\nDocument:\n{text}"
)


class CompletionGateway:
    """Thin wrapper around an OpenAI-compatible chat completion API.

    Timeouts and retries with exponential backoff are handled by the
    ``openai`` client; any failure that survives them is raised as
    ``UpstreamError``.
    """

    def __init__(
        self,
        client: OpenAI,
        model: str,
        vision_model: Optional[str] = None,
        temperature: float = 0.7,
        summary_input_chars: int = 12000,
    ):
        self.client = client
        self.model = model
        self.vision_model = vision_model or model
        self.temperature = temperature
        self.summary_input_chars = summary_input_chars

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionGateway":
        client = OpenAI(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.OPENAI_TIMEOUT,
            max_retries=settings.OPENAI_MAX_RETRIES,
        )
        return cls(
            client,
            model=settings.OPENAI_MODEL,
            vision_model=settings.OPENAI_VISION_MODEL,
            temperature=settings.OPENAI_TEMPERATURE,
            summary_input_chars=settings.SUMMARY_INPUT_CHARS,
        )

    def complete(self, messages: List[Dict], model: Optional[str] = None, temperature: Optional[float] = None) -> str:
        """Send ``messages`` and return the generated reply text"""
        try:
            response = self.client.chat.completions.create(
                model=model or self.model,
                messages=messages,
                temperature=self.temperature if temperature is None else temperature,
            )
        except openai.OpenAIError as e:
            logger.error(f"Completion request failed: {str(e)}")
            raise UpstreamError() from e

        if not response.choices or not response.choices[0].message.content:
            logger.error(f"Completion returned no content (model={model or self.model})")
            raise UpstreamError("The completion service returned an empty reply")
        return response.choices[0].message.content.strip()

    def describe_image(self, image_b64: str, mime_type: str, prompt: str = IMAGE_DESCRIPTION_PROMPT) -> str:
        messages = [{
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{image_b64}"}},
            ],
        }]
        return self.complete(messages, model=self.vision_model)

    def summarize(self, text: str) -> str:
        messages = [
            {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
            {"role": "user", "content": SUMMARY_PROMPT.format(text=text[:self.summary_input_chars])},
        ]
        return self.complete(messages, temperature=0.2)
