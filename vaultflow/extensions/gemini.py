import base64
import logging
import os
from typing import Optional

from google import genai
from google.genai import types

from vaultflow.config import DEFAULT_MODEL_NAME
from vaultflow.providers import Attachment, ModelRequest, ModelResult

logger = logging.getLogger(__name__)

WEB_SEARCH_SETTING = "__websearch__"


class GeminiModelProvider:
    def __init__(self, api_key: str, model_name: Optional[str] = None, client: Optional[genai.Client] = None):
        self.client = client or genai.Client(api_key=api_key)
        self.model_name = model_name or os.getenv("GEMINI_MODEL_NAME", DEFAULT_MODEL_NAME)

    def _contents(self, request: ModelRequest) -> list:
        parts = [types.Part.from_text(text=request.prompt)]
        for attachment in request.attachments:
            parts.append(types.Part.from_bytes(data=base64.b64decode(attachment.data), mime_type=attachment.mime_type))
        return [types.Content(role="user", parts=parts)]

    def _config(self, request: ModelRequest) -> types.GenerateContentConfig:
        tools = None
        if request.rag_setting == WEB_SEARCH_SETTING:
            tools = [types.Tool(google_search=types.GoogleSearch())]
        return types.GenerateContentConfig(
            system_instruction=request.system_prompt or None,
            tools=tools,
        )

    async def generate(self, request: ModelRequest) -> ModelResult:
        model = request.model or self.model_name
        logger.debug(f"Gemini request to {model}: {request.prompt[:200]}")

        response = await self.client.aio.models.generate_content(
            model=model,
            contents=self._contents(request),
            config=self._config(request),
        )

        texts = []
        images = []
        for candidate in response.candidates or []:
            if candidate.content is None:
                continue
            for part in candidate.content.parts or []:
                if part.text and not part.thought:
                    texts.append(part.text)
                elif part.inline_data is not None and part.inline_data.data:
                    images.append(Attachment(
                        mime_type=part.inline_data.mime_type or "image/png",
                        data=base64.b64encode(part.inline_data.data).decode("ascii"),
                    ))
            break

        usage = {}
        if response.usage_metadata is not None:
            usage = {
                "inputTokens": response.usage_metadata.prompt_token_count,
                "outputTokens": response.usage_metadata.candidates_token_count,
                "totalTokens": response.usage_metadata.total_token_count,
            }

        logger.debug(f"Gemini response: {''.join(texts)[:200]}")
        return ModelResult(text="".join(texts), model=model, images=images, usage=usage)
