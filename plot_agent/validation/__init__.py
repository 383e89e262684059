"""回复解析与 Schema 校验。"""

from plot_agent.validation.reply_parser import ParsedReply, parse, parse_reply
from plot_agent.validation.schema_validator import (
    SchemaValidator,
    ValidationReport,
    get_default_validator,
)

__all__ = [
    "ParsedReply",
    "parse",
    "parse_reply",
    "SchemaValidator",
    "ValidationReport",
    "get_default_validator",
]
