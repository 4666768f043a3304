"""Generation client backed by an LLM provider."""

import httpx

from app.config import Config
from app.core.contracts import GenerationRequest
from app.core.prompt import SYSTEM_PROMPT, build_user_prompt
from app.llm.llm_adapter import generate_text
from app.logging import get_logger

logger = get_logger(__name__)


class RecommendationGenerator:
    """Turns a preference summary into an LLM call.

    Returns the raw response body; validation is the orchestrator's job.
    """

    def __init__(
        self,
        cfg: Config,
        client: httpx.AsyncClient | None = None,
        max_tokens: int = 1200,
        temperature: float = 0.3,
    ) -> None:
        self.cfg = cfg
        self.client = client
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def generate(self, request: GenerationRequest) -> str:
        """Request ``request.count`` recommendations.

        Raises:
            UpstreamServiceError: On transport errors or when the LLM is unavailable
        """
        logger.debug(
            f"Requesting {request.count} {request.domain} recommendations "
            f"for {len(request.choices)} choices"
        )
        return await generate_text(
            SYSTEM_PROMPT,
            build_user_prompt(request),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            idempotency_key=request.idempotency_key,
            cfg=self.cfg,
            client=self.client,
        )
