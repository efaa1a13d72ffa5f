"""Error memory tools: analyze_error, search_memory and record_fix."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from ..domain.exceptions import ToolValidationError
from ..memory.signatures import classify_error
from .definitions import DEFAULT_SEARCH_LIMIT, ToolName
from .environment import ToolEnvironment

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any]]


class MemoryTools:
    """Handlers backed by the error memory store."""

    def __init__(self, env: ToolEnvironment):
        self.env = env

    def handlers(self) -> dict[ToolName, ToolHandler]:
        return {
            ToolName.ANALYZE_ERROR: self.analyze_error,
            ToolName.SEARCH_MEMORY: self.search_memory,
            ToolName.RECORD_FIX: self.record_fix,
        }

    async def analyze_error(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Look the error up, then record this occurrence.

        The lookup runs first so a brand-new error is not reported as an
        exact match of itself.
        """
        error_message = arguments["errorMessage"]
        if not isinstance(error_message, str) or not error_message.strip():
            raise ToolValidationError("errorMessage must not be empty")
        context = arguments.get("context")
        if context is not None and not isinstance(context, dict):
            context = {"value": context}

        similar = await self.env.memory.search_similar(error_message)
        signature = await self.env.memory.record_error(error_message, context=context)

        suggestions = [match.fix.description for match in similar.fixes]
        for fuzzy in similar.fuzzy_matches:
            suggestions.extend(
                match.fix.description
                for match in fuzzy.fixes
                if match.fix.description not in suggestions
            )

        result = similar.to_dict()
        result.update({
            "signatureHash": signature,
            "errorType": classify_error(error_message),
            "knownError": similar.exact_match is not None,
            "suggestions": suggestions,
        })
        return result

    async def search_memory(self, arguments: dict[str, Any]) -> dict[str, Any]:
        query = arguments["query"]
        try:
            limit = int(arguments.get("limit", DEFAULT_SEARCH_LIMIT))
        except (TypeError, ValueError):
            raise ToolValidationError(f"limit must be a number, got {arguments.get('limit')!r}")

        similar = await self.env.memory.search_similar(str(query), limit=limit)
        return similar.to_dict()

    async def record_fix(self, arguments: dict[str, Any]) -> dict[str, Any]:
        signature = arguments["errorSignature"]
        description = arguments["fix"]
        if not isinstance(signature, str) or not signature.strip():
            raise ToolValidationError("errorSignature must not be empty")
        if not isinstance(description, str) or not description.strip():
            raise ToolValidationError("fix must not be empty")

        context = arguments.get("context")
        if context is not None and not isinstance(context, dict):
            context = {"value": context}

        fix = await self.env.memory.record_fix(
            signature,
            description,
            code=arguments.get("code"),
            context=context,
        )
        logger.info(f"Agent recorded fix {fix.id}")
        return {"fix": fix.to_dict()}
