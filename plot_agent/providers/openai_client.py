"""OpenAI Chat Completions 适配器。

本模块负责：

1. 接收统一的 ChatRequest，转换为 {model, messages} 请求体。
2. 通过 httpx 调用 {base_url}/chat/completions（Bearer 鉴权，固定超时）。
3. 把响应 JSON 解析为 ChatResult；choices[0].message.content 即模型回复。
4. complete() 把 chat() 抛出的网络/API 异常转换为 TransportFailure 值。

不做重试，也不做退避。
"""

from typing import Any, Dict, List, Sequence, Union

import httpx

from plot_agent.config.settings import settings
from plot_agent.domain.exceptions import ApiError, BusinessError, NetworkError, RateLimitError
from plot_agent.domain.models import ChatChoice, ChatMessage, ChatRequest, ChatResult, ChatUsage
from plot_agent.domain.results import CompletionReply, TransportFailure
from plot_agent.infrastructure.logging.logger import logger
from plot_agent.providers.registry import OPENAI_CONFIG


# 未配置密钥时发送的占位符；请求会以鉴权错误失败，而不是让进程崩溃
API_KEY_PLACEHOLDER = "your-api-key-here"


class OpenAIClient:
    """OpenAI 客户端实现。"""

    name = "openai"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def chat(self, req: ChatRequest) -> ChatResult:
        """执行一次非流式对话调用。

        步骤：
        1. 逻辑模型名 -> 厂商模型 ID。
        2. 构造请求 payload 并发送。
        3. 网络错误 -> NetworkError，429 -> RateLimitError，其他 >=400 -> ApiError。
        4. 解析响应为 ChatResult；缺少 choices 同样视为 ApiError。
        """

        payload = self._build_payload(req)
        base = getattr(self._settings, "openai_base_url", None) or OPENAI_CONFIG.base_url
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self._api_key()}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            # DNS 失败、连接超时、读超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__)
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="OpenAI rate limit", http_status=429)
        if resp.status_code >= 400:
            raise ApiError(
                code="API_ERROR",
                message=f"status {resp.status_code}: {resp.text}",
                http_status=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(code="BAD_RESPONSE", message=f"response body is not JSON: {e}", http_status=502)
        return self._parse_response(data, req)

    def complete(self, messages: Sequence[ChatMessage]) -> Union[CompletionReply, TransportFailure]:
        """发送完整消息序列，返回首个候选的文本或 TransportFailure。"""

        req = ChatRequest(
            provider=self.name,
            model=getattr(self._settings, "default_model", None) or "plot-chat",
            messages=list(messages),
        )
        try:
            result = self.chat(req)
        except BusinessError as e:
            logger.error(
                "Completion call failed",
                extra={"extra": {"provider": self.name, "code": e.code, "error": e.message}},
            )
            return TransportFailure(message=f"Error during API call: {e.message}", code=e.code)
        return CompletionReply(text=result.choices[0].message.content, usage=result.usage)

    def _api_key(self) -> str:
        key = getattr(self._settings, "openai_api_key", None)
        if not key:
            logger.warning("OPENAI_API_KEY not set, using placeholder credential")
            return API_KEY_PLACEHOLDER
        return key

    def _resolve_model(self, logical_name: str) -> str:
        override = getattr(self._settings, "openai_model", None)
        if override:
            return override
        model_cfg = OPENAI_CONFIG.models.get(logical_name)
        return model_cfg.provider_model if model_cfg else logical_name

    def _build_payload(self, req: ChatRequest) -> Dict[str, Any]:
        return {
            "model": self._resolve_model(req.model),
            "messages": [m.to_dict() for m in req.messages],
        }

    def _parse_response(self, data: Any, req: ChatRequest) -> ChatResult:
        raw_choices = data.get("choices") if isinstance(data, dict) else None
        if not raw_choices or not isinstance(raw_choices, list):
            raise ApiError(code="BAD_RESPONSE", message="response has no choices", http_status=502)
        choices: List[ChatChoice] = []
        for i, ch in enumerate(raw_choices):
            msg = ch.get("message") if isinstance(ch, dict) else None
            if not isinstance(msg, dict):
                if i == 0:
                    raise ApiError(code="BAD_RESPONSE", message="first choice has no message", http_status=502)
                continue
            content = msg.get("content")
            if i == 0 and not isinstance(content, str):
                raise ApiError(code="BAD_RESPONSE", message="first choice has no message content", http_status=502)
            choices.append(
                ChatChoice(
                    index=i,
                    message=ChatMessage(role="assistant", content=content if isinstance(content, str) else ""),
                    finish_reason=ch.get("finish_reason"),
                )
            )
        # usage 仅用于日志，形状不对时直接忽略
        usage_raw = data.get("usage")
        usage = None
        if isinstance(usage_raw, dict) and usage_raw:
            usage = ChatUsage(
                prompt_tokens=usage_raw.get("prompt_tokens", 0),
                completion_tokens=usage_raw.get("completion_tokens", 0),
                total_tokens=usage_raw.get("total_tokens", 0),
            )
        return ChatResult(provider=self.name, model=req.model, choices=choices, usage=usage, raw=data)
