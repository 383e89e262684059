"""CompletionClient 抽象接口。

GenerationEngine 不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- chat(req): 执行一次对话调用，失败时抛出 domain.exceptions 中的异常。
- complete(messages): 引擎使用的入口，把异常转换为 TransportFailure 值，永不抛出。
"""

from typing import Protocol, Sequence, Union

from plot_agent.domain.models import ChatMessage, ChatRequest, ChatResult
from plot_agent.domain.results import CompletionReply, TransportFailure


class CompletionClient(Protocol):
    name: str

    def chat(self, req: ChatRequest) -> ChatResult:
        ...

    def complete(self, messages: Sequence[ChatMessage]) -> Union[CompletionReply, TransportFailure]:
        ...
