"""图表生成引擎核心模块。

一次调用的状态流转：
Idle -> AwaitingCompletion -> Parsing -> Validating -> {Accepted | Rejected}

- 追加 user 消息，按上下文上限裁剪后调用 CompletionClient。
- 回复经 ReplyParser 解码、SchemaValidator 校验。
- 仅在 Accepted 时追加 assistant 消息（规范化后的 JSON）并写入 PlotHistory；
  Rejected 时会话只多出这条 user 消息。

引擎对模型输出、网络、解析、Schema 的任何问题都返回结果值，不抛异常。
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union
from uuid import uuid4

from plot_agent.config.settings import settings
from plot_agent.domain.conversation import PlotSession
from plot_agent.domain.exceptions import BusinessError
from plot_agent.domain.models import ChatMessage
from plot_agent.domain.results import (
    Accepted,
    CompletionReply,
    GenerationOutcome,
    ParseFailure,
    SchemaFailure,
    TransportFailure,
)
from plot_agent.infrastructure.logging.logger import logger
from plot_agent.providers.base import CompletionClient
from plot_agent.validation.reply_parser import parse_reply
from plot_agent.validation.schema_validator import SchemaValidator


def compose_user_message(raw_input: str, instruction: str) -> str:
    return f"Data: {raw_input}\nInstructions: {instruction}"


def serialize_artifact(artifact: Dict[str, Any]) -> str:
    """assistant 消息中保存的规范化 JSON。"""
    return json.dumps(artifact, ensure_ascii=False)


@dataclass
class EngineConfig:
    provider: str = "openai"
    model: str = "plot-chat"
    max_context_messages: int = field(default_factory=lambda: settings.max_context_messages)


class GenerationEngine:
    def __init__(
        self,
        client: CompletionClient,
        validator: SchemaValidator,
        config: Optional[EngineConfig] = None,
    ):
        self._client = client
        self._validator = validator
        self._config = config or EngineConfig(provider=getattr(client, "name", "openai"))

    def start_new_plot(self, session: PlotSession, raw_input: str, instruction: str) -> GenerationOutcome:
        """重置会话后基于数据与指令生成一张新图。"""

        with session.lock:
            session.conversation.reset()
            session.last_raw_input = raw_input
            return self._run_turn(
                session,
                compose_user_message(raw_input, instruction),
                instruction,
                operation="start",
            )

    def refine_plot(self, session: PlotSession, instruction: str) -> GenerationOutcome:
        """在现有会话上追加修改指令，模型可以看到此前接受的所有图表。"""

        with session.lock:
            return self._run_turn(session, instruction, instruction, operation="refine")

    def _run_turn(
        self,
        session: PlotSession,
        user_content: str,
        instruction: str,
        operation: str,
    ) -> GenerationOutcome:
        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "session_id": session.id,
            "operation": operation,
        }
        conversation = session.conversation
        conversation.append(ChatMessage(role="user", content=user_content))

        # AwaitingCompletion
        outgoing = self._context_window(conversation.snapshot())
        self._log(
            logging.INFO,
            "Calling provider",
            log_ctx,
            provider=self._config.provider,
            model=self._config.model,
            message_count=len(outgoing),
            stored_count=len(conversation),
        )
        reply = self._complete(outgoing, log_ctx)

        outcome: GenerationOutcome
        if isinstance(reply, TransportFailure):
            outcome = reply
        else:
            if reply.usage:
                self._log(
                    logging.INFO,
                    "Token usage",
                    log_ctx,
                    prompt_tokens=reply.usage.prompt_tokens,
                    completion_tokens=reply.usage.completion_tokens,
                    total_tokens=reply.usage.total_tokens,
                )
            # Parsing
            parsed = parse_reply(reply.text)
            if not parsed.ok:
                outcome = ParseFailure(raw=parsed.value, error=parsed.error or "")
            else:
                # Validating
                report = self._validator.check(parsed.value)
                if report.valid:
                    outcome = Accepted(artifact=parsed.value)
                else:
                    outcome = SchemaFailure(document=parsed.value, errors=report.errors)

        if isinstance(outcome, Accepted):
            conversation.append(ChatMessage(role="assistant", content=serialize_artifact(outcome.artifact)))
            session.history.append(session.last_raw_input, instruction, outcome.artifact)
            self._log(
                logging.INFO,
                "Plot accepted",
                log_ctx,
                stored_count=len(conversation),
                history_size=len(session.history),
                elapsed_seconds=round(time.time() - start_time, 2),
            )
        else:
            self._log(
                logging.WARNING,
                "Plot rejected",
                log_ctx,
                kind=outcome.kind,
                detail=self._rejection_detail(outcome),
                stored_count=len(conversation),
                elapsed_seconds=round(time.time() - start_time, 2),
            )
        return outcome

    def _complete(
        self, outgoing: List[ChatMessage], log_ctx: Dict[str, Any]
    ) -> Union[CompletionReply, TransportFailure]:
        """调用 CompletionClient；客户端自身抛出的异常也折叠为 TransportFailure。"""

        try:
            return self._client.complete(outgoing)
        except BusinessError as e:
            return TransportFailure(message=f"Error during API call: {e.message}", code=e.code)
        except Exception as e:
            self._log(
                logging.ERROR,
                "Completion client raised",
                log_ctx,
                error_type=type(e).__name__,
                error=str(e),
            )
            return TransportFailure(message=f"Error during API call: {e}", code="CLIENT_ERROR")

    def _context_window(self, messages: Sequence[ChatMessage]) -> List[ChatMessage]:
        """system 消息 + 最近 max_context_messages 条轮次。"""

        system, turns = messages[0], list(messages[1:])
        limit = self._config.max_context_messages
        if len(turns) > limit:
            turns = turns[-limit:]
            # 裁剪后不能以 assistant 开头
            while turns and turns[0].role == "assistant":
                turns = turns[1:]
        return [system] + turns

    @staticmethod
    def _rejection_detail(outcome: GenerationOutcome) -> Any:
        if isinstance(outcome, TransportFailure):
            return outcome.message
        if isinstance(outcome, ParseFailure):
            return outcome.error
        if isinstance(outcome, SchemaFailure):
            return outcome.errors[:5]
        return None

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
