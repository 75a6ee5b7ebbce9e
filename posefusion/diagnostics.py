"""
诊断信息出口。

引擎不直接抛异常，所有配置错误/未知标签都写入 DiagnosticSink，
默认实现转发给项目 logger。
"""
from typing import Protocol

from core.logger import logger


class DiagnosticSink(Protocol):
    def report_error(self, message: str, is_serious: bool = False) -> None: ...

    def report_warning(self, message: str, is_serious: bool = False) -> None: ...


class LoggerDiagnostics:
    """把诊断信息写入 core.logger；is_serious 时提升一个等级"""

    def report_error(self, message: str, is_serious: bool = False) -> None:
        if is_serious:
            logger.critical(message)
        else:
            logger.error(message)

    def report_warning(self, message: str, is_serious: bool = False) -> None:
        if is_serious:
            logger.error(message)
        else:
            logger.warning(message)
