"""One-shot decoding of a call entry (and optional result) into a record."""
from __future__ import annotations

import logging
from typing import Optional

from toolstream.models import RawEntry, TransformResult
from toolstream.parsers.content import find_tool_use
from toolstream.parsers.registry import DecoderRegistry, create_default_registry

logger = logging.getLogger("toolstream.transformer")


class LogTransformer:
    def __init__(self, registry: Optional[DecoderRegistry] = None):
        self.registry = registry if registry is not None else create_default_registry()

    def transform(self, call: RawEntry, result: Optional[RawEntry] = None) -> Optional[TransformResult]:
        """Decode ``call``/``result``; returns ``None`` instead of raising."""
        tool_use = find_tool_use(call)
        if tool_use is None:
            logger.debug(f"Entry {call.uuid} has no tool_use block")
            return None

        decoder = self.registry.get_for_entry(call)
        if decoder is None:
            logger.warning(f"No decoder for tool {tool_use.name} in entry {call.uuid}")
            return None

        try:
            record = decoder.decode(call, result)
        except Exception as e:
            logger.error(f"Decoder {type(decoder).__name__} failed on {tool_use.name} ({tool_use.id}): {e}")
            return None

        return TransformResult(toolName=tool_use.name, toolId=tool_use.id, record=record)
