"""
Loguru 日志配置

业务代码统一写事件式日志：logger.info("role_created", extra={...})。
extra 中的字段会被展开进 record["extra"]，JSON 模式下直接成为顶层字段。
"""
import logging
import sys

from loguru import logger

from app.core.config import settings

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level> {extra}"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message} {extra}"

_NOISY_LOGGERS = ("watchfiles", "watchfiles.main", "aiosqlite", "asyncio", "sqlalchemy.engine.Engine")


def _flatten_extra(record) -> None:
    nested = record["extra"].pop("extra", None)
    if isinstance(nested, dict):
        record["extra"].update(nested)


class InterceptHandler(logging.Handler):
    """标准库 logging -> Loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging():
    logger.remove()
    logger.configure(patcher=_flatten_extra)

    # 测试环境关闭 enqueue，规避 semlock 权限问题
    sinks = [(sys.stderr, {"format": _CONSOLE_FORMAT, "backtrace": True, "diagnose": settings.DEBUG})]
    if settings.LOG_FILE_PATH:
        sinks.append(
            (
                settings.LOG_FILE_PATH,
                {
                    "format": _FILE_FORMAT,
                    "rotation": settings.LOG_ROTATION,
                    "retention": settings.LOG_RETENTION,
                    "compression": "zip",
                    "encoding": "utf-8",
                },
            )
        )
    for sink, options in sinks:
        logger.add(
            sink,
            level=settings.LOG_LEVEL,
            serialize=settings.LOG_JSON_FORMAT,
            enqueue=settings.LOG_ASYNC,
            **options,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).handlers = [InterceptHandler()]
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
