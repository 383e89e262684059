"""模型回复解析。

把助手的原始回复解码为 JSON 文档。解析失败时不抛异常，而是把原文原样返回，
后续的 Schema 校验自然会失败，因此调用方只会看到统一的“无效图表”路径。
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Optional

from plot_agent.infrastructure.logging.logger import logger


# 仅在整段回复被一个 ``` 代码块包裹时才剥离；前后带说明文字的回复保持原样
_FENCE_RE = re.compile(r"^```(?:json|JSON)?\s*\n(?P<body>.*?)\n?```$", re.DOTALL)


@dataclass(frozen=True)
class ParsedReply:
    value: Any
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _strip_fence(text: str) -> str:
    match = _FENCE_RE.match(text.strip())
    if match:
        return match.group("body")
    return text


def parse_reply(raw: Optional[str]) -> ParsedReply:
    text = raw if raw is not None else ""
    try:
        value = json.loads(_strip_fence(text))
    except (ValueError, RecursionError, TypeError) as e:
        # JSONDecodeError 是 ValueError 的子类；超长整数与过深嵌套同样算作解析失败
        logger.warning(
            f"Failed to parse JSON: {e}",
            extra={"extra": {"reply_preview": text[:200]}},
        )
        return ParsedReply(value=text, error=str(e))
    if value is None:
        return ParsedReply(value=text, error="reply decoded to JSON null")
    return ParsedReply(value=value)


def parse(raw: Optional[str]) -> Any:
    """返回解码后的文档；失败时返回原始文本。"""
    return parse_reply(raw).value
