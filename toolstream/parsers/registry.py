"""Decoder registry: an ordered strategy table keyed by tool name."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from toolstream.models import RawEntry, ToolRecord
from toolstream.parsers.base import BaseToolDecoder
from toolstream.parsers.tools import (
    BashDecoder,
    EditDecoder,
    GenericDecoder,
    GlobDecoder,
    GrepDecoder,
    LsDecoder,
    McpDecoder,
    MultiEditDecoder,
    ReadDecoder,
    TodoReadDecoder,
    TodoWriteDecoder,
    WriteDecoder,
)

logger = logging.getLogger("toolstream.decoders")


class DecoderRegistry:
    """Decoders are tried in registration order; fallbacks always go last."""

    def __init__(self, decoders: Iterable[BaseToolDecoder] = ()):
        self._decoders: list[BaseToolDecoder] = []
        for decoder in decoders:
            self.register(decoder)

    def register(self, decoder: BaseToolDecoder) -> None:
        if decoder.is_fallback:
            self._decoders.append(decoder)
            return
        position = next(
            (index for index, existing in enumerate(self._decoders) if existing.is_fallback),
            len(self._decoders),
        )
        self._decoders.insert(position, decoder)

    @property
    def decoders(self) -> list[BaseToolDecoder]:
        return list(self._decoders)

    def get_for_entry(self, entry: RawEntry) -> Optional[BaseToolDecoder]:
        for decoder in self._decoders:
            if decoder.can_handle(entry):
                return decoder
        return None

    def decode(self, call: RawEntry, result: Optional[RawEntry] = None) -> Optional[ToolRecord]:
        """Decode with the first matching decoder; ``None`` when nothing matches.

        Decoder exceptions propagate to the caller.
        """
        decoder = self.get_for_entry(call)
        if decoder is None:
            logger.debug(f"No decoder for entry {call.uuid}")
            return None
        return decoder.decode(call, result)

    def describe(self) -> list[dict[str, Any]]:
        return [decoder.describe() for decoder in self._decoders]

    def registered_tools(self) -> list[str]:
        tools: list[str] = []
        for decoder in self._decoders:
            tools.extend(decoder.describe()["toolNames"])
        return tools


def create_default_registry() -> DecoderRegistry:
    return DecoderRegistry(
        [
            BashDecoder(),
            ReadDecoder(),
            WriteDecoder(),
            EditDecoder(),
            MultiEditDecoder(),
            GrepDecoder(),
            GlobDecoder(),
            LsDecoder(),
            TodoReadDecoder(),
            TodoWriteDecoder(),
            McpDecoder(),
            GenericDecoder(),
        ]
    )
