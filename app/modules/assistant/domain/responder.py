import asyncio
import json
import os
from typing import Any, Dict, List, Optional, Tuple

import structlog
import yaml
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate

from app.schemas.assistant import AssistantAnswer, QueryContext
from app.shared.core.exceptions import AIAnalysisError
from app.shared.llm.guardrails import LLMGuardrails

logger = structlog.get_logger()

PROMPTS_PATH = os.path.join(os.path.dirname(__file__), "prompts.yaml")
PROMPT_KEY = "account_assistant"

APOLOGY_TEMPLATE = "Sorry, an error occurred while processing your question: {error}"

FALLBACK_SYSTEM_PROMPT = (
    "You are a cloud operations assistant with access to current data from the "
    "user's AWS account. Answer using only the account data provided, quote "
    "exact figures, and format currency values like $123.45."
)
FALLBACK_USER_PROMPT = "AWS Account Data: {account_data}\n\nUser Question: {question}"

ALWAYS_PRESENT = ("compute", "storage", "database")
ONLY_WHEN_QUERIED = ("costs", "database_costs", "load_balancers")


def normalize_inventory(context: QueryContext) -> Dict[str, Any]:
    """
    Stable answer shape: compute, storage and database are always lists;
    cost and load balancer fields exist only when they were queried.
    """
    payload = context.to_payload()
    inventory: Dict[str, Any] = {key: payload.get(key, []) for key in ALWAYS_PRESENT}
    for key in ONLY_WHEN_QUERIED:
        if key in payload:
            inventory[key] = payload[key]
    if "errors" in payload:
        inventory["errors"] = payload["errors"]
    inventory["timestamp"] = payload["timestamp"]
    return inventory


class NarrativeResponder:
    """
    Turns an assembled context into a prose answer from the chat model.
    A failed model call yields an apology, never an exception.
    """

    def __init__(self, llm: BaseChatModel, prompts_path: str = PROMPTS_PATH):
        self.llm = llm
        self.prompts_path = prompts_path
        self.prompt: Optional[ChatPromptTemplate] = None

    async def _get_prompt(self) -> ChatPromptTemplate:
        if self.prompt is not None:
            return self.prompt

        system_prompt, user_prompt = await self._load_prompts_async()
        self.prompt = ChatPromptTemplate.from_messages(
            [("system", "{instructions}"), ("user", user_prompt)]
        ).partial(instructions=system_prompt)
        return self.prompt

    async def _load_prompts_async(self) -> Tuple[str, str]:
        """Reads the prompt registry off the event loop, falling back to built-ins."""
        try:
            if os.path.exists(self.prompts_path):
                loop = asyncio.get_running_loop()

                def _read_file() -> Any:
                    with open(self.prompts_path, "r", encoding="utf-8") as f:
                        return yaml.safe_load(f)

                registry = await loop.run_in_executor(None, _read_file)
                entry = registry.get(PROMPT_KEY) if isinstance(registry, dict) else None
                if isinstance(entry, dict):
                    system = entry.get("system")
                    user = entry.get("user")
                    if isinstance(system, str) and system.strip():
                        if not (isinstance(user, str) and user.strip()):
                            user = FALLBACK_USER_PROMPT
                        return system, user
        except Exception as e:
            logger.error("failed_to_load_prompts_yaml", error=str(e), path=self.prompts_path)

        logger.warning("using_fallback_system_prompt")
        return FALLBACK_SYSTEM_PROMPT, FALLBACK_USER_PROMPT

    async def respond(self, context: QueryContext) -> AssistantAnswer:
        inventory = normalize_inventory(context)
        account_data = json.dumps(
            LLMGuardrails.sanitize_input(context.to_payload()), indent=2, default=str
        )

        try:
            answer = await self._complete(account_data, context.query, sorted(inventory))
        except AIAnalysisError as e:
            logger.error("llm_response_failed", error=e.message, code=e.code, **e.details)
            return AssistantAnswer(
                answer=APOLOGY_TEMPLATE.format(error=e.message),
                inventory=inventory,
                error=e.message,
                error_code=e.code,
            )
        return AssistantAnswer(answer=answer, inventory=inventory)

    async def _complete(self, account_data: str, question: str, fields: List[str]) -> str:
        try:
            prompt = await self._get_prompt()
            chain = prompt | self.llm
            logger.info("invoking_llm", domains=fields)
            response = await chain.ainvoke(
                {"account_data": account_data, "question": question}
            )
        except Exception as e:
            raise AIAnalysisError(
                str(e),
                code="llm_backend_failed",
                details={"exception": type(e).__name__},
            ) from e

        content = response.content
        return content if isinstance(content, str) else self._flatten(content)

    @staticmethod
    def _flatten(content: Any) -> str:
        """Joins the text parts of a multi-part message."""
        parts = []
        for part in content or []:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
