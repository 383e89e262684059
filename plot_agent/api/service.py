"""对外 API 服务模块。

提供面向 Web 层的调用接口。每个调用方持有自己的会话 ID，
会话之间的消息与画廊历史互不可见。
"""

from datetime import timezone
from typing import Any, Dict, List, Optional, Union

from plot_agent.agents.generation_engine import EngineConfig, GenerationEngine
from plot_agent.config.settings import settings
from plot_agent.domain.models import ChartArtifact
from plot_agent.domain.results import Accepted, GenerationOutcome
from plot_agent.infrastructure.logging.logger import logger
from plot_agent.infrastructure.storage.memory_store import InMemorySessionStore
from plot_agent.providers import create_provider
from plot_agent.validation.schema_validator import get_default_validator


class PlotService:
    def __init__(self, store: InMemorySessionStore, engine: GenerationEngine):
        self._store = store
        self._engine = engine

    @property
    def store(self) -> InMemorySessionStore:
        return self._store

    def create_session(self) -> str:
        session = self._store.create_session()
        logger.info("Created new session", extra={"extra": {"session_id": session.id}})
        return session.id

    def generate(self, session_id: str, raw_input: str, instruction: str) -> GenerationOutcome:
        session = self._store.get_session(session_id)
        return self._engine.start_new_plot(session, raw_input, instruction)

    def refine(self, session_id: str, instruction: str) -> GenerationOutcome:
        session = self._store.get_session(session_id)
        return self._engine.refine_plot(session, instruction)

    def start_new_plot(self, session_id: str, raw_input: str, instruction: str) -> Union[ChartArtifact, str]:
        """生成新图，返回图表规格或可读的诊断文本。

        Raises:
            BusinessError: 会话不存在（SESSION_NOT_FOUND）。
        """
        return _unwrap(self.generate(session_id, raw_input, instruction))

    def refine_plot(self, session_id: str, instruction: str) -> Union[ChartArtifact, str]:
        """在上一次接受的图表基础上修改。"""
        return _unwrap(self.refine(session_id, instruction))

    def current_conversation(self, session_id: str) -> List[Dict[str, str]]:
        session = self._store.get_session(session_id)
        return [m.to_dict() for m in session.conversation.snapshot()]

    def history(self, session_id: str) -> List[Dict[str, Any]]:
        """画廊视图：按接受顺序排列的 (输入, 指令, 图表)。"""
        session = self._store.get_session(session_id)
        return [
            {
                "index": i,
                "raw_input": e.raw_input,
                "instruction": e.instruction,
                "artifact": e.artifact,
                "created_at": e.created_at.astimezone(timezone.utc).isoformat(),
            }
            for i, e in enumerate(session.history.entries())
        ]


def _unwrap(outcome: GenerationOutcome) -> Union[ChartArtifact, str]:
    if isinstance(outcome, Accepted):
        return outcome.artifact
    return outcome.diagnostic


_service: Optional[PlotService] = None


def build_service() -> PlotService:
    """组装默认服务；Schema 无法加载时抛出 SchemaLoadError。"""
    validator = get_default_validator()
    provider = create_provider()
    engine = GenerationEngine(
        client=provider,
        validator=validator,
        config=EngineConfig(
            provider=provider.name,
            model=settings.default_model,
            max_context_messages=settings.max_context_messages,
        ),
    )
    return PlotService(store=InMemorySessionStore(), engine=engine)


def get_default_service() -> PlotService:
    """获取默认的 PlotService 实例（单例）。"""
    global _service
    if _service is None:
        _service = build_service()
    return _service
