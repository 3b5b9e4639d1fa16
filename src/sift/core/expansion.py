"""
AI-assisted query expansion.

Asks the reasoning service for synonyms and related concepts so the semantic
retriever can match messages that never use the literal query words.
"""

from typing import Protocol

from loguru import logger

from sift.core.tokenizer import tokenize

EXPANSION_SYSTEM_PROMPT = (
    "You are an expert at understanding semantic relationships and expanding "
    "search queries to find relevant information."
)

EXPANSION_PROMPT_TEMPLATE = """Analyze this search query and expand it with related concepts, synonyms, and semantic variations that would help find relevant information:

Query: "{query}"

Provide related terms, concepts, and semantic variations that someone might use when discussing this topic. Include:
- Synonyms and alternative phrasings
- Related concepts and themes
- Technical terms if applicable
- Common ways people might express this idea

Respond with a comma-separated list of terms and phrases."""


class ReasoningClient(Protocol):
    """Anything that can answer a single prompt, such as ``ClaudeClient``."""

    async def complete(
        self, user_prompt: str, system_prompt: str, temperature: float = 0.7
    ) -> str: ...


class QueryExpander:
    """Turns a query into a list of related terms using the reasoning service."""

    def __init__(self, client: ReasoningClient, temperature: float = 0.3):
        self.client = client
        self.temperature = temperature

    def build_prompt(self, query: str) -> str:
        return EXPANSION_PROMPT_TEMPLATE.format(query=query)

    async def expand(self, query: str) -> list[str]:
        """
        Expand ``query`` into related search terms.

        Failures of the reasoning service are not errors for the search: they
        are logged and produce an empty expansion.

        Args:
            query: The user's search query

        Returns:
            Tokenized expansion terms (possibly empty)
        """
        try:
            response = await self.client.complete(
                self.build_prompt(query),
                EXPANSION_SYSTEM_PROMPT,
                self.temperature,
            )
        except Exception as e:
            logger.warning(f"Query expansion failed, continuing without it: {e}")
            return []

        if not isinstance(response, str):
            logger.warning(
                f"Query expansion returned {type(response).__name__}, expected text"
            )
            return []

        terms = tokenize(response)
        logger.debug(f"Expanded '{query[:50]}' into {len(terms)} terms")
        return terms
