"""生成调用的标签化结果。

一次 start/refine 调用只会得到以下四种结果之一：

- Accepted: 回复被解析且通过 Schema 校验，携带图表规格。
- TransportFailure: HTTP 交换本身失败（网络、鉴权、响应格式）。
- ParseFailure: 回复不是合法 JSON，原文原样保留。
- SchemaFailure: 回复是 JSON 但不满足绘图 Schema。

所有失败都提供 diagnostic 文本，供 Web 层直接展示。
"""

import json
from dataclasses import dataclass, field
from typing import Any, List, Literal, Optional, Union

from plot_agent.domain.models import ChartArtifact, ChatUsage


DIAGNOSTIC_PREFIX = "Invalid plot specification generated: "


@dataclass(frozen=True)
class CompletionReply:
    """CompletionClient 成功时返回的助手原始文本。"""

    text: str
    usage: Optional[ChatUsage] = None


@dataclass(frozen=True)
class Accepted:
    artifact: ChartArtifact
    kind: Literal["accepted"] = "accepted"

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class TransportFailure:
    """HTTP 交换失败；message 形如 "Error during API call: ..."。"""

    message: str
    code: str = "TRANSPORT_ERROR"
    kind: Literal["transport_failure"] = "transport_failure"

    @property
    def ok(self) -> bool:
        return False

    @property
    def diagnostic(self) -> str:
        return DIAGNOSTIC_PREFIX + self.message


@dataclass(frozen=True)
class ParseFailure:
    """回复无法解码为 JSON。"""

    raw: str
    error: str
    kind: Literal["parse_failure"] = "parse_failure"

    @property
    def ok(self) -> bool:
        return False

    @property
    def diagnostic(self) -> str:
        return DIAGNOSTIC_PREFIX + self.raw


@dataclass(frozen=True)
class SchemaFailure:
    """回复解码成功但未通过 Schema 校验。"""

    document: Any
    errors: List[str] = field(default_factory=list)
    kind: Literal["schema_failure"] = "schema_failure"

    @property
    def ok(self) -> bool:
        return False

    @property
    def diagnostic(self) -> str:
        return DIAGNOSTIC_PREFIX + json.dumps(self.document, ensure_ascii=False, default=str)


Rejected = Union[TransportFailure, ParseFailure, SchemaFailure]
GenerationOutcome = Union[Accepted, TransportFailure, ParseFailure, SchemaFailure]
