"""
LLM client for OpenRouter using LangChain.

Completion engine for query generation, repair and result analysis.
"""

from typing import Any, Dict, List, Optional

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import SecretStr

from ..config import LLMConfig
from ..domain.errors import LLMError
from ..utils.logging import get_module_logger
from ..utils.text_utils import InputValidator
from ..utils.tracing import current_trace_id


logger = get_module_logger()


def _content_text(content: Any) -> str:
    """Flatten a chat message content (string or list of content blocks) to text."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    parts: List[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


class LLMClient:
    """
    LLM client using LangChain's ChatOpenAI with OpenRouter.

    Thin infrastructure layer: prompts are built by repositories, this
    client only sends them.

    An empty completion is returned as "" rather than raised; the repair
    loop counts it as a failed generation attempt. API failures raise
    LLMError.

    Usage:
        client = LLMClient(config)
        await client.connect()
        text = await client.generate(prompt, system_prompt=GENERATION_SYSTEM_PROMPT)
        await client.close()
    """

    def __init__(self, config: LLMConfig):
        self.config = config
        self._llm: Optional[ChatOpenAI] = None
        self._is_connected = False

        logger.info(
            "LLMClient initialized",
            default_model=config.default_model,
            base_url=config.base_url,
            temperature=config.temperature,
            max_tokens=config.max_tokens
        )

    async def connect(self) -> None:
        """
        Initialize LangChain ChatOpenAI client.

        No API call is made here; credentials are checked on first use.

        Raises:
            LLMError: If initialization fails
        """
        if self._is_connected:
            logger.warning("LLM client already connected")
            return

        trace_id = current_trace_id()
        logger.info("Initializing LLM client", trace_id=trace_id)

        try:
            self._llm = ChatOpenAI(
                model=self.config.default_model,
                api_key=SecretStr(self.config.openrouter_api_key),
                base_url=self.config.base_url,
                temperature=self.config.temperature,
                max_completion_tokens=self.config.max_tokens,
                top_p=self.config.top_p,
                timeout=self.config.timeout_seconds,
                max_retries=self.config.max_retries
            )

            self._is_connected = True
            logger.info("LLM client initialized successfully", trace_id=trace_id)

        except Exception as e:
            error_msg = f"Failed to initialize LLM client: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=trace_id)
            raise LLMError(error_msg) from e

    async def close(self) -> None:
        """Close LLM client and release resources."""
        # ChatOpenAI holds no resources that need explicit cleanup
        self._is_connected = False
        self._llm = None
        logger.info("LLM client closed", trace_id=current_trace_id())

    def is_connected(self) -> bool:
        """Check if LLM client is connected."""
        return self._is_connected and self._llm is not None

    async def health_check(self) -> Dict[str, Any]:
        """Report readiness without spending a completion."""
        if not self.is_connected():
            return {"status": "unhealthy", "connected": False, "error": "LLM client not connected"}
        return {"status": "healthy", "connected": True, "model": self.config.default_model}

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None
    ) -> str:
        """
        Generate a completion.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt
            temperature: Optional temperature override (0.0-1.0)
            max_tokens: Optional max tokens override
            model: Optional model override

        Returns:
            Completion text, "" when the model returned no content

        Raises:
            LLMError: If the client is not connected, the input is too large,
                or the API call fails
        """
        if not self.is_connected() or self._llm is None:
            raise LLMError("LLM client is not connected")

        try:
            InputValidator.validate_total_chars(
                prompt=prompt,
                system_prompt=system_prompt,
                max_chars=self.config.max_input_chars
            )
        except ValueError as e:
            raise LLMError(str(e)) from e

        trace_id = current_trace_id()

        logger.info(
            "Generating LLM response",
            prompt_length=len(prompt),
            system_prompt_length=len(system_prompt) if system_prompt else 0,
            temperature=temperature if temperature is not None else self.config.temperature,
            trace_id=trace_id
        )

        messages: List[BaseMessage] = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))

        llm = self._llm
        bind_kwargs: Dict[str, Any] = {}
        if model is not None:
            bind_kwargs["model"] = model
        if temperature is not None:
            bind_kwargs["temperature"] = temperature
        if max_tokens is not None:
            bind_kwargs["max_completion_tokens"] = max_tokens

        try:
            runnable = llm.bind(**bind_kwargs) if bind_kwargs else llm
            response = await runnable.ainvoke(messages)
        except Exception as e:
            error_msg = f"LLM generation failed: {e}"
            logger.error(
                error_msg,
                error_type=type(e).__name__,
                prompt_length=len(prompt),
                trace_id=trace_id
            )
            raise LLMError(error_msg) from e

        content = _content_text(getattr(response, "content", None))

        if not content.strip():
            logger.warning("LLM returned empty response", trace_id=trace_id)
            return ""

        logger.info(
            "LLM response generated successfully",
            response_length=len(content),
            trace_id=trace_id
        )
        return content
