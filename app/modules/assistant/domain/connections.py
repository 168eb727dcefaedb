from typing import Any, Callable, Dict

import structlog
from langchain_core.language_models.chat_models import BaseChatModel

from app.shared.adapters.aws_utils import AWSClientProvider

logger = structlog.get_logger()

TEST_MESSAGE = "Reply with the single word: ok"


async def verify_connections(
    provider: AWSClientProvider, llm_factory: Callable[[], BaseChatModel]
) -> Dict[str, Dict[str, Any]]:
    """
    Checks that both backends answer: STS for AWS credentials, a short
    test message for the chat model. Never raises.

    The model is built through `llm_factory` so a missing or malformed
    API key is reported as an `llm` failure instead of aborting the
    AWS check.
    """
    results: Dict[str, Dict[str, Any]] = {}

    try:
        async with provider.client("sts") as sts:
            identity = await sts.get_caller_identity()
        results["aws"] = {
            "success": True,
            "account_id": identity.get("Account"),
            "arn": identity.get("Arn"),
            "region": provider.region,
        }
    except Exception as e:
        logger.warning("aws_connection_check_failed", error=str(e))
        results["aws"] = {"success": False, "error": str(e)}

    try:
        llm = llm_factory()
        response = await llm.ainvoke(TEST_MESSAGE)
        content = response.content
        results["llm"] = {
            "success": True,
            "response": content if isinstance(content, str) else str(content),
        }
    except Exception as e:
        logger.warning("llm_connection_check_failed", error=str(e))
        results["llm"] = {"success": False, "error": str(e)}

    return results
