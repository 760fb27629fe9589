"""
BioNova-X - Gemini Gateway
===========================
The only module that talks to Gemini.

``generate_structured``
    One-shot call through the ``google-genai`` async client with
    ``response_mime_type="application/json"`` and the operation's
    pydantic model as ``response_schema``.  The returned JSON is
    re-validated against the same model; anything short of a fully
    conformant object raises ``ProviderError``.

``stream_chat``
    Conversation through LangChain's ``ChatGoogleGenerativeAI``:
    system instruction + client-supplied history + new message,
    streamed with ``astream``.  Fragments are yielded in arrival order
    with no buffering.

Nothing here retries.  Both clients are injected so tests can swap in
fakes; ``GeminiGateway.from_settings()`` builds the production pair.
"""

from __future__ import annotations

import time
from typing import Any, AsyncIterator, Mapping, Sequence

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from pydantic import ValidationError

from bionova.config.settings import settings
from bionova.src.core.errors import ProviderError
from bionova.src.core.prompt_builder import Prompt
from bionova.src.core.result_schemas import SCHEMA_BY_OPERATION, Operation
from bionova.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type aliases ───────────────────────────────────────────────────────
ChatHistory = Sequence[Mapping[str, Any]]
StructuredResult = dict[str, Any]


class GeminiGateway:
    """
    Structured and streaming access to Gemini.

    Parameters
    ----------
    client
        A ``google.genai.Client`` (only ``client.aio.models`` is used).
    chat_model
        A LangChain chat model exposing ``astream(messages)``.
    model_name
        Gemini model for structured calls.  Defaults to ``settings.LLM_MODEL``.
    """

    __slots__ = ("_client", "_chat_model", "_model_name")

    def __init__(self, client: Any, chat_model: Any, model_name: str | None = None) -> None:
        self._client = client
        self._chat_model = chat_model
        self._model_name = model_name or settings.LLM_MODEL


    @classmethod
    def from_settings(cls) -> "GeminiGateway":
        """Build the gateway from ``settings`` (one instance per process)."""
        from langchain_google_genai import ChatGoogleGenerativeAI

        api_key = settings.GOOGLE_API_KEY.get_secret_value()
        client = genai.Client(api_key=api_key)
        chat_model = ChatGoogleGenerativeAI(model=settings.LLM_MODEL, temperature=settings.LLM_TEMPERATURE, google_api_key=api_key)
        logger.info("Gemini gateway initialised: %s (chat temperature=%.1f)", settings.LLM_MODEL, settings.LLM_TEMPERATURE)
        return cls(client=client, chat_model=chat_model)

    # ══════════════════════════════════════════════════════════════════
    #  STRUCTURED CALLS
    # ══════════════════════════════════════════════════════════════════

    async def generate_structured(self, prompt: Prompt, operation: Operation) -> StructuredResult:
        """
        Run *prompt* under the schema registered for *operation*.

        Returns
        -------
        dict
            The validated response, dumped back to plain JSON types.

        Raises
        ------
        ProviderError
            API/transport failure, empty output, malformed JSON, or a
            response that violates the schema.
        """
        schema = SCHEMA_BY_OPERATION[operation]
        config = types.GenerateContentConfig(
            system_instruction=prompt.system_instruction,
            response_mime_type="application/json",
            response_schema=schema,
        )

        t_llm = time.perf_counter()
        try:
            response = await self._client.aio.models.generate_content(model=self._model_name, contents=prompt.user_content, config=config)
        except genai_errors.APIError as exc:
            logger.error("[LLM] %s: Gemini API error %s: %s", operation.value, exc.code, exc.message)
            raise ProviderError(f"Gemini API error {exc.code}: {exc.message}", operation.value) from exc
        except Exception as exc:
            logger.exception("[LLM] %s: request to Gemini failed.", operation.value)
            raise ProviderError(f"Request to Gemini failed: {exc}", operation.value) from exc

        llm_ms = (time.perf_counter() - t_llm) * 1000
        text = getattr(response, "text", None)
        if not text:
            raise ProviderError("Gemini returned an empty response.", operation.value)

        try:
            parsed = schema.model_validate_json(text)
        except ValidationError as exc:
            logger.error("[LLM] %s: response violates %s schema: %s", operation.value, schema.__name__, exc)
            raise ProviderError(f"Gemini response does not match the {schema.__name__} schema: {exc.error_count()} error(s).", operation.value) from exc

        logger.info("[LLM] %s: %.1fms (%d chars)", operation.value, llm_ms, len(text))
        return parsed.model_dump()

    # ══════════════════════════════════════════════════════════════════
    #  STREAMING CHAT
    # ══════════════════════════════════════════════════════════════════

    async def stream_chat(self, system_instruction: str, history: ChatHistory, message: str) -> AsyncIterator[str]:
        """
        Stream the model's reply to *message* as text fragments.

        Raises ``ProviderError`` from the point of failure; fragments
        already yielded stay delivered.
        """
        messages = build_chat_messages(system_instruction, history, message)
        fragments = 0
        t_llm = time.perf_counter()
        try:
            async for chunk in self._chat_model.astream(messages):
                text = chunk_text(getattr(chunk, "content", ""))
                if text:
                    fragments += 1
                    yield text
        except Exception as exc:
            logger.error("[LLM] chat stream failed after %d fragment(s): %s", fragments, exc)
            raise ProviderError(f"Chat stream failed: {exc}", "chat") from exc

        logger.info("[LLM] chat: %d fragment(s) in %.1fms", fragments, (time.perf_counter() - t_llm) * 1000)


def build_chat_messages(system_instruction: str, history: ChatHistory, message: str) -> list[BaseMessage]:
    """Map ``{role, parts:[{text}]}`` turns onto LangChain messages."""
    messages: list[BaseMessage] = [SystemMessage(content=system_instruction)]
    for turn in history:
        text = "".join(str(part.get("text", "")) for part in turn.get("parts", []))
        if turn.get("role") == "model":
            messages.append(AIMessage(content=text))
        else:
            messages.append(HumanMessage(content=text))
    messages.append(HumanMessage(content=message))
    return messages


def chunk_text(content: Any) -> str:
    """Extract plain text from a chunk's ``content`` (string or block list)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, Mapping) and block.get("type", "text") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return ""
