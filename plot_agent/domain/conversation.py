import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from .models import ChartArtifact, ChatMessage


class ConversationStore:
    """单个会话的有序消息列表，首条永远是唯一的 system 消息。

    插入顺序即时间顺序；snapshot() 返回元组，读取方无法修改会话。
    """

    def __init__(self, system_prompt: str):
        self._system = ChatMessage(role="system", content=system_prompt)
        self._messages: List[ChatMessage] = [self._system]

    def reset(self) -> None:
        """丢弃所有轮次，只保留 system 消息。"""
        self._messages = [self._system]

    def append(self, message: ChatMessage) -> None:
        if message.role == "system":
            raise ValueError("conversation already has a system message")
        self._messages.append(message)

    def snapshot(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def last(self) -> ChatMessage:
        return self._messages[-1]

    @property
    def system_message(self) -> ChatMessage:
        return self._system

    def __len__(self) -> int:
        return len(self._messages)


@dataclass(frozen=True)
class HistoryEntry:
    raw_input: str
    instruction: str
    artifact: ChartArtifact
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class PlotHistory:
    """已接受图表的只追加日志，按位置索引用于画廊展示。"""

    def __init__(self) -> None:
        self._entries: List[HistoryEntry] = []

    def append(self, raw_input: Optional[str], instruction: str, artifact: ChartArtifact) -> HistoryEntry:
        entry = HistoryEntry(raw_input=raw_input or "", instruction=instruction, artifact=artifact)
        self._entries.append(entry)
        return entry

    def entries(self) -> Tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def __getitem__(self, index: int) -> HistoryEntry:
        return self._entries[index]

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class PlotSession:
    """一次逻辑会话：会话消息、画廊历史以及串行化同一会话调用的锁。"""

    id: str
    conversation: ConversationStore
    history: PlotHistory
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_raw_input: Optional[str] = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)
