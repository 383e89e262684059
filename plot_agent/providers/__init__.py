"""LLM Provider 集成层。

该包下的模块负责：
- 定义 CompletionClient 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供具体实现 (openai_client)。
"""

from typing import Optional

from plot_agent.config.settings import settings
from plot_agent.providers.base import CompletionClient
from plot_agent.providers.openai_client import OpenAIClient
from plot_agent.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None) -> CompletionClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    provider_name = (name or getattr(settings, "default_provider", "openai")).lower()
    # 未知名称在这里直接报 KeyError
    get_provider_config(provider_name)
    return OpenAIClient(settings)
