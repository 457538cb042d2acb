import json
import logging
import os
import pathlib
from logging import Handler, Logger, LoggerAdapter, handlers
from typing import Any, Dict, Optional, Union

import ray

from tensorcat.constants import (
    TENSORCAT_APP_DEBUG_LOG_BASE_FILE_NAME,
    TENSORCAT_APP_INFO_LOG_BASE_FILE_NAME,
    TENSORCAT_APP_LOG_DIR,
    TENSORCAT_APP_LOG_LEVEL,
    TENSORCAT_LOGGER_CONTEXT,
    TENSORCAT_SYS_DEBUG_LOG_BASE_FILE_NAME,
    TENSORCAT_SYS_INFO_LOG_BASE_FILE_NAME,
    TENSORCAT_SYS_LOG_DIR,
    TENSORCAT_SYS_LOG_LEVEL,
)

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = {
    "level": "levelname",
    "message": "message",
    "loggerName": "name",
    "processID": "process",
    "threadName": "threadName",
    "timestamp": "asctime",
    "filename": "filename",
    "lineno": "lineno",
}
DEFAULT_MAX_BYTES_PER_LOG = 2**20 * 128  # 128 MiB
DEFAULT_BACKUP_COUNT = 0


def _env_logger_context() -> Dict[str, Any]:
    if not TENSORCAT_LOGGER_CONTEXT:
        return {}
    try:
        context = json.loads(TENSORCAT_LOGGER_CONTEXT)
    except ValueError:
        return {"raw": TENSORCAT_LOGGER_CONTEXT}
    return context if isinstance(context, dict) else {"raw": context}


class JsonFormatter(logging.Formatter):
    """
    Formats each log record as a single line JSON object.

    Args:
        fmt_dict: Maps each output key to the LogRecord attribute it holds.
            Defaults to {"message": "message"}.
        time_format: time.strftime() format used for `asctime`.
        msec_format: Format used to append milliseconds to `asctime`.
        context_kwargs: Additional context logged with every record. Merged
            with the JSON object held by TENSORCAT_LOGGER_CONTEXT.
    """

    def __init__(
        self,
        fmt_dict: Optional[Dict[str, str]] = None,
        time_format: str = "%Y-%m-%dT%H:%M:%S",
        msec_format: str = "%s.%03dZ",
        context_kwargs: Optional[Dict[str, Any]] = None,
    ):
        super().__init__()
        self.fmt_dict = fmt_dict if fmt_dict is not None else {"message": "message"}
        self.default_time_format = time_format
        self.default_msec_format = msec_format
        self.additional_context = dict(context_kwargs or {})
        self.additional_context.update(_env_logger_context())

    def usesTime(self) -> bool:
        return "asctime" in self.fmt_dict.values()

    def formatMessage(self, record: logging.LogRecord) -> Dict[str, Any]:
        # raises KeyError for unknown record attributes
        return {key: record.__dict__[attr] for key, attr in self.fmt_dict.items()}

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        if self.usesTime():
            record.asctime = self.formatTime(record, self.datefmt)
        message = self.formatMessage(record)
        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            message["exc_info"] = record.exc_text
        if record.stack_info:
            message["stack_info"] = self.formatStack(record.stack_info)
        ray_context = _ray_runtime_context()
        if ray_context:
            message["ray_runtime_context"] = ray_context
        if self.additional_context:
            message["additional_context"] = self.additional_context
        return json.dumps(message, default=str)


def _ray_runtime_context() -> Dict[str, Any]:
    if not ray.is_initialized():
        return {}
    runtime_ctx = ray.get_runtime_context()
    context = {
        "worker_id": runtime_ctx.get_worker_id(),
        "node_id": runtime_ctx.get_node_id(),
        "job_id": runtime_ctx.get_job_id(),
    }
    # only workers run tasks
    task_id = runtime_ctx.get_task_id()
    if task_id is not None:
        context["task_id"] = task_id
        context["assigned_resources"] = runtime_ctx.get_assigned_resources()
    return context


class TensorCatLoggerAdapter(logging.LoggerAdapter):
    def __init__(self, logger: Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def debug_conditional(self, msg, do_print: bool, *args, **kwargs):
        if do_print:
            self.debug(msg, *args, **kwargs)

    def info_conditional(self, msg, do_print: bool, *args, **kwargs):
        if do_print:
            self.info(msg, *args, **kwargs)


def _create_rotating_file_handler(
    log_directory: str,
    log_base_file_name: str,
    logging_level: Union[str, int] = DEFAULT_LOG_LEVEL,
    context_kwargs: Optional[Dict[str, Any]] = None,
) -> Handler:
    assert log_directory, "log directory is required"
    assert log_base_file_name, "log file name is required"
    if isinstance(logging_level, str):
        logging_level = logging.getLevelName(logging_level.upper())
    pathlib.Path(log_directory).mkdir(parents=True, exist_ok=True)
    handler = handlers.RotatingFileHandler(
        os.path.join(log_directory, log_base_file_name),
        maxBytes=DEFAULT_MAX_BYTES_PER_LOG,
        backupCount=DEFAULT_BACKUP_COUNT,
    )
    handler.setFormatter(JsonFormatter(DEFAULT_LOG_FORMAT, context_kwargs=context_kwargs))
    handler.setLevel(logging_level)
    return handler


def _file_handler_exists(logger: Logger, log_dir: str, log_base_file_name: str) -> bool:
    path = os.path.normpath(os.path.join(log_dir, log_base_file_name))
    return any(
        isinstance(handler, logging.FileHandler)
        and os.path.normpath(handler.baseFilename) == path
        for handler in logger.handlers
    )


def _configure_logger(
    logger: Logger,
    log_level: int,
    log_dir: str,
    log_base_file_name: str,
    debug_log_base_file_name: str,
    context_kwargs: Optional[Dict[str, Any]] = None,
) -> Union[Logger, LoggerAdapter]:
    if isinstance(logger, LoggerAdapter):
        logger = logger.logger
    logger.propagate = False
    logger.setLevel(logging.DEBUG)
    info_log_level = log_level
    if log_level <= logging.DEBUG:
        # debug records go to their own file, and the main file keeps INFO+
        info_log_level = logging.INFO
        if not _file_handler_exists(logger, log_dir, debug_log_base_file_name):
            logger.addHandler(
                _create_rotating_file_handler(
                    log_dir,
                    debug_log_base_file_name,
                    logging.DEBUG,
                    context_kwargs,
                )
            )
    if not _file_handler_exists(logger, log_dir, log_base_file_name):
        logger.addHandler(
            _create_rotating_file_handler(
                log_dir,
                log_base_file_name,
                info_log_level,
                context_kwargs,
            )
        )
    return TensorCatLoggerAdapter(logger)


def configure_tensorcat_logger(
    logger: Logger,
    level: Optional[int] = None,
    context_kwargs: Optional[Dict[str, Any]] = None,
) -> Union[Logger, LoggerAdapter]:
    """Attaches the library's rotating JSON log file handlers to the given
    logger, configured by the TENSORCAT_SYS_* environment variables."""
    if level is None:
        level = logging.getLevelName(TENSORCAT_SYS_LOG_LEVEL)
    return _configure_logger(
        logger,
        level,
        TENSORCAT_SYS_LOG_DIR,
        TENSORCAT_SYS_INFO_LOG_BASE_FILE_NAME,
        TENSORCAT_SYS_DEBUG_LOG_BASE_FILE_NAME,
        context_kwargs,
    )


def configure_application_logger(
    logger: Logger,
    level: Optional[int] = None,
    context_kwargs: Optional[Dict[str, Any]] = None,
) -> Union[Logger, LoggerAdapter]:
    """Attaches rotating JSON log file handlers for applications built on
    this library, configured by the TENSORCAT_APP_* environment variables."""
    if level is None:
        level = logging.getLevelName(TENSORCAT_APP_LOG_LEVEL)
    return _configure_logger(
        logger,
        level,
        TENSORCAT_APP_LOG_DIR,
        TENSORCAT_APP_INFO_LOG_BASE_FILE_NAME,
        TENSORCAT_APP_DEBUG_LOG_BASE_FILE_NAME,
        context_kwargs,
    )
