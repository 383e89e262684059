"""领域层模型与协议。

包含：
- models: 统一的 ChatMessage / ChatRequest / ChatResult 模型。
- conversation: 单会话的 ConversationStore 与已接受图表的 PlotHistory。
- results: 一次生成调用的标签化结果（Accepted / 各类失败）。
- exceptions: 业务异常类型定义。
"""
