"""Client wrapper for an OpenAI-compatible model API with error handling."""
import httpx
from typing import Any, Dict, List, Optional
import structlog

from kb_assistant import config

logger = structlog.get_logger()


class LLMError(RuntimeError):
    """Raised when the model service cannot produce a result."""


class LLMConfigurationError(LLMError):
    """Raised when the client is used without credentials."""


def extract_reply(data: Dict[str, Any]) -> str:
    """Pull the assistant text out of a Responses API payload.

    Prefers the aggregated ``output_text`` field. Otherwise walks every
    ``output`` event and joins the text of its content items, where the
    text may be a plain string or an object with a ``value``.

    Args:
        data: Decoded JSON body of a ``/responses`` call

    Returns:
        Reply text, or an empty string if the payload holds none
    """
    output_text = data.get("output_text")
    if output_text:
        return output_text

    parts = []
    for event in data.get("output") or []:
        if not isinstance(event, dict):
            continue
        for item in event.get("content") or []:
            if not isinstance(item, dict):
                continue
            text = item.get("text")
            if isinstance(text, dict):
                text = text.get("value")
            parts.append(text or "")

    return "\n".join(parts).strip()


class OpenAIClient:
    """Async client for the embeddings and responses endpoints."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            api_key: API key (defaults to config.OPENAI_API_KEY)
            base_url: API base URL (defaults to config.OPENAI_BASE_URL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used by tests
        """
        self.api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self.base_url = (base_url or config.OPENAI_BASE_URL).rstrip("/")
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        if not self.api_key:
            raise LLMConfigurationError("OPENAI_API_KEY is not set")
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            headers={"Authorization": f"Bearer {self.api_key}"},
            transport=self.transport,
        )

    async def embed(self, texts: List[str], model: str = None) -> List[List[float]]:
        """Generate embeddings for a batch of texts.

        Args:
            texts: Texts to embed
            model: Model to use (defaults to config.EMBEDDING_MODEL)

        Returns:
            One vector per input text, in input order

        Raises:
            LLMError: If the response does not hold one vector per text
            httpx.HTTPError: On API errors
        """
        model = model or config.EMBEDDING_MODEL

        try:
            async with self._client() as client:
                logger.debug("embedding_request", model=model, input_count=len(texts))

                response = await client.post(
                    "/embeddings",
                    json={"model": model, "input": texts},
                )
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPError as e:
            logger.error(
                "embedding_http_error",
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise

        items = sorted(data.get("data", []), key=lambda item: item.get("index", 0))
        vectors = [item.get("embedding", []) for item in items]

        if len(vectors) != len(texts):
            raise LLMError(
                f"Expected {len(texts)} embeddings, got {len(vectors)}"
            )

        logger.debug(
            "embedding_response",
            model=model,
            count=len(vectors),
            dimension=len(vectors[0]) if vectors else 0,
        )

        return vectors

    async def create_response(
        self,
        messages: List[Dict[str, str]],
        model: str = None,
    ) -> Dict[str, Any]:
        """Send a request to the responses endpoint.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use (defaults to config.CHAT_MODEL)

        Returns:
            Decoded response body

        Raises:
            httpx.HTTPError: On API errors
            httpx.ConnectError: If the service is unavailable
        """
        model = model or config.CHAT_MODEL

        try:
            async with self._client() as client:
                logger.info(
                    "chat_completion_request",
                    model=model,
                    message_count=len(messages),
                )

                response = await client.post(
                    "/responses",
                    json={"model": model, "input": messages},
                )
                response.raise_for_status()
                data = response.json()

                logger.info(
                    "chat_completion_response",
                    model=model,
                    response_length=len(extract_reply(data)),
                )

                return data

        except httpx.ConnectError as e:
            logger.error("model_connection_error", error=str(e), base_url=self.base_url)
            raise
        except httpx.HTTPError as e:
            logger.error(
                "model_http_error",
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise

    async def list_models(self) -> List[str]:
        """List the model ids the service exposes.

        Raises:
            httpx.HTTPError: On API errors
        """
        try:
            async with self._client(timeout=5.0) as client:
                response = await client.get("/models")
                response.raise_for_status()
                data = response.json()
                return [m["id"] for m in data.get("data", [])]
        except httpx.HTTPError as e:
            logger.error("list_models_error", error=str(e))
            raise


# Global client instance
llm_client = OpenAIClient()
