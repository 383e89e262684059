"""Plot Agent 顶层包。

该包提供对话式 Plotly 图表生成助手的核心实现，
包括配置加载、领域模型、Provider 适配、回复解析与 Schema 校验、
生成引擎、会话存储以及 Web 入口。
"""

from plot_agent.api.service import PlotService, get_default_service

__all__ = ["PlotService", "get_default_service"]
