"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("PLOT_AGENT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class PlotAgentSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    default_provider: str = Field(default="openai", description="默认使用的 Provider 名称")
    default_model: str = Field(
        default="plot-chat",
        description="逻辑模型名，由 registry 映射为具体厂商模型",
    )

    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API 密钥；未设置时使用占位符，调用会以鉴权错误失败",
    )
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI API 基础URL")
    openai_model: Optional[str] = Field(default=None, description="覆盖 registry 中的厂商模型 ID")

    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    log_dir: str = Field(default="logs", description="日志目录")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否截断日志中的数据与模型回复")
    max_context_messages: int = Field(
        default=20,
        ge=1,
        le=100,
        description="发送给模型的最大上下文消息数（不含 system 消息）",
    )
    schema_path: Optional[str] = Field(default=None, description="覆盖内置的绘图 JSON Schema 文件路径")

    # ---- Web ----
    web_host: str = Field(default="127.0.0.1", description="Web 服务监听地址")
    web_port: int = Field(default=3000, ge=1, le=65535, description="Web 服务端口")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("openai_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        # 空字符串等同于未设置
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = PlotAgentSettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = PlotAgentSettings
