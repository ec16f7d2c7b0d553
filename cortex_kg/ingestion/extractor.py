"""
LLM Extractor

Extracts typed entities, a short summary, and key points from document
text in one model call.

The model is asked for a JSON object and the reply is validated against
ExtractionResult with pydantic. Replies wrapped in markdown fences or
surrounded by prose are accepted as long as one JSON object can be found.

Example:
    >>> extractor = LLMExtractor(FallbackLLMProvider.from_config(config))
    >>> result = await extractor.extract(text)
    >>> [e.name for e in result.entities]
"""

import json
import logging
import re
from typing import TYPE_CHECKING

from pydantic import ValidationError

from cortex_kg.exceptions import ParseError
from cortex_kg.providers.base import Extractor
from cortex_kg.types import ExtractionResult, NodeType
from cortex_kg.utils.telemetry import telemetry_stage

if TYPE_CHECKING:
    from cortex_kg.providers.base import LLMProvider

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Prompts
# -----------------------------------------------------------------------------

_EXTRACTION_SYSTEM_PROMPT = f"""\
You are building a personal knowledge graph from a user's documents.

## Your Task
Read the text and return:
1. **entities**: the important named things and ideas in the text
2. **summary**: 2-3 sentences capturing what the text is about
3. **key_points**: 3-7 short, self-contained takeaways

## Entity Types
Pick the most specific type for every entity:
{chr(10).join(f"- {t.value}" for t in NodeType if t != NodeType.DOCUMENT)}

Use "entity" only when nothing else fits.

## Rules
- Use the name as it appears in the text, without descriptions
- Do not repeat an entity
- At most 20 entities

## Output
Reply with a single JSON object and nothing else:
{{"entities": [{{"name": "...", "type": "..."}}], "summary": "...", "key_points": ["..."]}}"""

_EXTRACTION_USER_TEMPLATE = """\
TEXT:
{content}

Extract the entities, summary, and key points as JSON."""

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_extraction(reply: str) -> ExtractionResult:
    """
    Parse a model reply into an ExtractionResult.

    Unknown entity types fall back to the generic type.

    Raises:
        ParseError: If no valid JSON object is found
    """
    match = _JSON_OBJECT_RE.search(reply)
    if not match:
        raise ParseError(f"No JSON object in extraction reply: {reply[:200]!r}")

    try:
        result = ExtractionResult.model_validate_json(match.group(0))
    except ValidationError as e:
        # Unknown types or bare-string entities
        result = _lenient_parse(match.group(0), e)

    return result


def _lenient_parse(payload: str, original: ValidationError) -> ExtractionResult:
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise ParseError(f"Malformed extraction JSON: {e}") from original

    if not isinstance(data, dict):
        raise ParseError("Extraction reply is not a JSON object") from original

    entities = []
    for item in data.get("entities") or []:
        if isinstance(item, str) and item.strip():
            entities.append({"name": item})
        elif isinstance(item, dict) and item.get("name"):
            entities.append({"name": str(item["name"]), "type": NodeType.coerce(item.get("type"))})
    data["entities"] = entities
    data["summary"] = str(data.get("summary") or "")
    data["key_points"] = [str(k) for k in data.get("key_points") or [] if k]

    try:
        return ExtractionResult.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Invalid extraction result: {e}") from e


class LLMExtractor(Extractor):
    """
    Extractor backed by a chat model.

    Args:
        llm: Model used for extraction
        max_input_chars: Text beyond this is not sent to the model
    """

    def __init__(self, llm: "LLMProvider", *, max_input_chars: int = 12000) -> None:
        self._llm = llm
        self._max_input_chars = max_input_chars

    async def extract(self, text: str) -> ExtractionResult:
        """
        Raises:
            ParseError: If the reply cannot be interpreted
        """
        with telemetry_stage("extraction"):
            reply = await self._llm.generate(
                _EXTRACTION_USER_TEMPLATE.format(content=text[: self._max_input_chars]),
                system=_EXTRACTION_SYSTEM_PROMPT,
                temperature=0.1,
                max_tokens=1500,
            )
        result = parse_extraction(reply)
        logger.info(
            f"Extracted {len(result.entities)} entities, {len(result.key_points)} key points"
        )
        return result
