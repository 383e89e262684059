import threading
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from plot_agent.domain.conversation import ConversationStore, PlotHistory, PlotSession
from plot_agent.domain.exceptions import BusinessError
from plot_agent.prompts import load_system_prompt


class InMemorySessionStore:
    """按会话 ID 保存 PlotSession，进程重启后不保留。"""

    def __init__(self, system_prompt_loader: Callable[[], str] = load_system_prompt):
        self._system_prompt = system_prompt_loader()
        self._sessions: Dict[str, PlotSession] = {}
        self._lock = threading.Lock()

    def create_session(self) -> PlotSession:
        sid = f"s-{uuid4().hex}"
        session = PlotSession(
            id=sid,
            conversation=ConversationStore(self._system_prompt),
            history=PlotHistory(),
        )
        with self._lock:
            self._sessions[sid] = session
        return session

    def get_session(self, session_id: str) -> PlotSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise BusinessError(code="SESSION_NOT_FOUND", message=session_id, http_status=404)
        return session

    def get_or_create(self, session_id: Optional[str]) -> PlotSession:
        if session_id:
            with self._lock:
                session = self._sessions.get(session_id)
            if session is not None:
                return session
        return self.create_session()

    def list_sessions(self) -> List[PlotSession]:
        with self._lock:
            items = list(self._sessions.values())
        items.sort(key=lambda s: s.created_at)
        return items

    def delete_session(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                raise BusinessError(code="SESSION_NOT_FOUND", message=session_id, http_status=404)
