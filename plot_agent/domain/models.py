"""统一的对话与结果数据模型。

本模块定义了 Provider 适配层与生成引擎之间共享的标准数据结构：

- ChatMessage: 一条对话消息（system/user/assistant）。
- ChatRequest: 发给底层 LLM Provider 的完整请求。
- ChatResult: 从 Provider 解析后的统一响应结果。

Provider 适配器（如 OpenAIClient）只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional


# LLM 消息角色类型（与 OpenAI chat/completions 的 role 字段对应）
Role = Literal["system", "user", "assistant"]

# 通过校验的图表规格：一棵由标量/列表/映射构成的 JSON 文档
ChartArtifact = Dict[str, Any]


@dataclass(frozen=True)
class ChatMessage:
    """一条对话消息，追加进会话后不可再修改。"""

    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    引擎把会话快照（已按上下文上限裁剪）包装成 ChatRequest，
    Provider 适配层负责把本结构转换成 API 的 JSON 请求体。
    """

    provider: str  # 逻辑 Provider 名，如 "openai"
    model: str  # 逻辑模型名，如 "plot-chat"（再由 registry 映射为真实模型名）
    messages: List[ChatMessage]


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatChoice:
    """单个候选回答（只使用 index=0 的一条）。"""

    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次对话调用的最终结果。

    - provider / model: 逻辑 Provider 名与逻辑模型名。
    - choices: 一个或多个候选回答。
    - usage: 可选的 token 使用统计。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    provider: str
    model: str
    choices: List[ChatChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None
