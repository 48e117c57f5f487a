from toolstream.parsers.tools.bash import BashDecoder
from toolstream.parsers.tools.files import EditDecoder, MultiEditDecoder, ReadDecoder, WriteDecoder
from toolstream.parsers.tools.mcp import GenericDecoder, McpDecoder
from toolstream.parsers.tools.search import GlobDecoder, GrepDecoder, LsDecoder
from toolstream.parsers.tools.todos import TodoReadDecoder, TodoWriteDecoder

__all__ = [
    "BashDecoder",
    "EditDecoder",
    "GenericDecoder",
    "GlobDecoder",
    "GrepDecoder",
    "LsDecoder",
    "McpDecoder",
    "MultiEditDecoder",
    "ReadDecoder",
    "TodoReadDecoder",
    "TodoWriteDecoder",
    "WriteDecoder",
]
