# core/logger.py
import logging
import os
from datetime import datetime
from typing import Optional

CONSOLE_LOG_LEVEL = logging.INFO
FILE_LOG_LEVEL = logging.WARNING

LOG_DIR = os.path.join(os.path.dirname(__file__), '../.log')

# 控制台/文件使用的详细格式（含时间/等级/模块名）
_FMT = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')


class Logger:
    """
    项目统一日志入口。
    - 控制台 handler 在构造时添加（只添加一次）
    - 文件 handler 默认关闭，调用 enable_file() 后按 file_level 写入 .log/
    """
    def __init__(self, name: str = 'posefusion',
                 console_level: int = logging.INFO,
                 file_level: int = logging.WARNING,
                 logfile: Optional[str] = None):
        self._logger = logging.getLogger(name)
        self._logger.setLevel(logging.DEBUG)

        # 控制台 handler（只添加一次）
        if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
                   for h in self._logger.handlers):
            ch = logging.StreamHandler()
            ch.setLevel(console_level)
            ch.setFormatter(_FMT)
            self._logger.addHandler(ch)

        self._file_level = file_level
        self._logfile_path = logfile
        self._file_handler: Optional[logging.FileHandler] = None

    @property
    def name(self) -> str:
        return self._logger.name

    # ---------- 文件日志 ----------
    def _ensure_file_handler(self) -> None:
        if self._file_handler:
            return
        if not self._logfile_path:
            ts = datetime.now().strftime('%Y%m%d_%H%M%S')
            self._logfile_path = os.path.join(LOG_DIR, f'posefusion_{ts}.log')
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self._logfile_path)), exist_ok=True)
            fh = logging.FileHandler(self._logfile_path, encoding='utf-8')
            fh.setLevel(self._file_level)
            fh.setFormatter(_FMT)
            self._logger.addHandler(fh)
            self._file_handler = fh
        except OSError as e:
            # 失败也要在控制台可见
            self._logger.error(f'无法创建日志文件 {self._logfile_path}: {e}')

    def enable_file(self, logfile: Optional[str] = None) -> None:
        if logfile:
            self._logfile_path = logfile
        self._ensure_file_handler()

    def disable_file(self) -> None:
        if self._file_handler is None:
            return
        self._logger.removeHandler(self._file_handler)
        self._file_handler.close()
        self._file_handler = None

    # ---------- 统一记录入口 ----------
    def _log(self, level: int, msg, *args, **kwargs) -> None:
        self._logger.log(level, msg, *args, **kwargs)

    # ---------- 常用方法 ----------
    def debug(self, msg, *args, **kwargs):    self._log(logging.DEBUG, msg, *args, **kwargs)
    def info(self, msg, *args, **kwargs):     self._log(logging.INFO, msg, *args, **kwargs)
    def warning(self, msg, *args, **kwargs):  self._log(logging.WARNING, msg, *args, **kwargs)
    def error(self, msg, *args, **kwargs):    self._log(logging.ERROR, msg, *args, **kwargs)
    def critical(self, msg, *args, **kwargs): self._log(logging.CRITICAL, msg, *args, **kwargs)


# 单例
logger = Logger(
    console_level=CONSOLE_LOG_LEVEL,
    file_level=FILE_LOG_LEVEL,
)
