"""绘图 Schema 校验器。

进程启动时从内置资源（或配置中的 schema_path）加载一次 JSON Schema，
之后只读共享。加载失败抛出 SchemaLoadError，服务不得带着缺失的 Schema 运行；
校验失败只记录日志并返回 False，不向调用方抛异常。
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from jsonschema import SchemaError
from jsonschema.validators import validator_for

from plot_agent.config.settings import settings
from plot_agent.domain.exceptions import SchemaLoadError
from plot_agent.infrastructure.logging.logger import logger


DEFAULT_SCHEMA_PATH = Path(__file__).resolve().parents[1] / "schemas" / "plot-schema.json"


@dataclass(frozen=True)
class ValidationReport:
    valid: bool
    errors: List[str] = field(default_factory=list)


class SchemaValidator:
    """对候选图表文档做 pass/fail 检查。"""

    def __init__(self, schema: Dict[str, Any]):
        cls = validator_for(schema)
        try:
            cls.check_schema(schema)
        except SchemaError as e:
            raise SchemaLoadError(code="SCHEMA_LOAD_ERROR", message=f"Invalid plot schema: {e.message}")
        self._schema = schema
        self._validator = cls(schema)

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> "SchemaValidator":
        schema_path = Path(path or settings.schema_path or DEFAULT_SCHEMA_PATH)
        try:
            schema = json.loads(schema_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise SchemaLoadError(code="SCHEMA_LOAD_ERROR", message=f"{schema_path}: {e}")
        if not isinstance(schema, dict):
            raise SchemaLoadError(code="SCHEMA_LOAD_ERROR", message=f"{schema_path}: schema must be a JSON object")
        logger.info("Loaded plot schema", extra={"extra": {"schema_path": str(schema_path)}})
        return cls(schema)

    @property
    def schema(self) -> Dict[str, Any]:
        return self._schema

    def check(self, doc: Any) -> ValidationReport:
        """返回带错误列表的校验结果；不修改 doc。"""

        if not isinstance(doc, dict):
            return ValidationReport(valid=False, errors=[f"expected a JSON object, got {type(doc).__name__}"])
        errors = []
        for err in sorted(self._validator.iter_errors(doc), key=lambda e: list(e.absolute_path)):
            location = "/".join(str(p) for p in err.absolute_path) or "<root>"
            errors.append(f"{location}: {err.message}")
        return ValidationReport(valid=not errors, errors=errors)

    def validate(self, doc: Any) -> bool:
        report = self.check(doc)
        if not report.valid:
            logger.warning("Validation error", extra={"extra": {"errors": report.errors[:5]}})
        return report.valid


_default_validator: Optional[SchemaValidator] = None


def get_default_validator() -> SchemaValidator:
    """进程级共享的校验器，首次调用时加载 Schema。"""
    global _default_validator
    if _default_validator is None:
        _default_validator = SchemaValidator.from_file()
    return _default_validator
