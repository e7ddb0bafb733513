import os
import sys
import logging
import pathlib
import contextvars
from logging.handlers import RotatingFileHandler
from pythonjsonlogger.json import JsonFormatter

_request_ctx_var = contextvars.ContextVar('request_ctx', default={})


def set_request_context(request_id: str, user_id: str = None):
    _request_ctx_var.set({'request_id': request_id, 'user_id': user_id})


def get_request_context():
    return _request_ctx_var.get()


def _inject_request_context(record):
    ctx = get_request_context()
    # explicit extra= values win over the context
    if getattr(record, 'request_id', None) is None:
        record.request_id = ctx.get('request_id')
    if getattr(record, 'user_id', None) is None:
        record.user_id = ctx.get('user_id')
    return True


def get_logger(name: str = 'study_aid'):
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'json')
    LOG_FILE_ENABLED = os.getenv('LOG_FILE_ENABLED', 'true').lower() in ('1', 'true', 'yes')
    # relative to the working directory so local dev doesn't need /app
    LOG_FILE_PATH = os.getenv('LOG_FILE_PATH', 'logs')
    LOG_MAX_SIZE = int(os.getenv('LOG_MAX_SIZE', str(10 * 1024 * 1024)))
    LOG_MAX_FILES = int(os.getenv('LOG_MAX_FILES', '7'))

    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(LOG_LEVEL.upper())

    ch = logging.StreamHandler(sys.stdout)
    if LOG_FORMAT == 'json':
        fmt = JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s %(user_id)s')
    else:
        fmt = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if LOG_FILE_ENABLED:
        log_path = pathlib.Path(LOG_FILE_PATH)
        if not log_path.is_absolute():
            log_path = pathlib.Path(os.getcwd()) / log_path
        log_path.mkdir(parents=True, exist_ok=True)

        combined = RotatingFileHandler(log_path / 'combined.log', maxBytes=LOG_MAX_SIZE, backupCount=LOG_MAX_FILES)
        combined.setFormatter(fmt)
        logger.addHandler(combined)

        errors = RotatingFileHandler(log_path / 'error.log', maxBytes=LOG_MAX_SIZE, backupCount=LOG_MAX_FILES)
        errors.setLevel(logging.ERROR)
        errors.setFormatter(fmt)
        logger.addHandler(errors)

    f = logging.Filter()
    f.filter = _inject_request_context
    logger.addFilter(f)

    logging.captureWarnings(True)

    return logger


def log_request(request_id: str, method: str, path: str, status_code: int, duration_ms: float, ip: str = None):
    logger = get_logger()
    logger.info('http_request', extra={'request_id': request_id, 'method': method, 'path': path, 'status_code': status_code, 'duration_ms': duration_ms, 'ip': ip})


def log_error(error: Exception, context: dict = None):
    logger = get_logger()
    logger.error('error', exc_info=error, extra=context or {})


def log_llm_call(request_id: str, model: str, prompt_tokens: int, completion_tokens: int, duration_ms: float, cost: float = None):
    logger = get_logger()
    logger.info('llm_call', extra={'request_id': request_id, 'model': model, 'prompt_tokens': prompt_tokens, 'completion_tokens': completion_tokens, 'duration_ms': duration_ms, 'cost': cost})


def log_keyword_extraction(request_id: str, keyword_count: int, text_length: int, duration_ms: float, cache_hit: bool = False):
    logger = get_logger()
    logger.info('keyword_extraction', extra={
        'request_id': request_id,
        'keyword_count': keyword_count,
        'text_length': text_length,
        'duration_ms': duration_ms,
        'cache_hit': cache_hit,
    })


def log_flashcard_generation(request_id: str, flashcard_count: int, keyword_count: int, duration_ms: float, cost: float = None):
    logger = get_logger()
    logger.info('flashcard_generation', extra={
        'request_id': request_id,
        'flashcard_count': flashcard_count,
        'keyword_count': keyword_count,
        'duration_ms': duration_ms,
        'cost': cost,
    })


def log_highlight(request_id: str, text_length: int, keyword_count: int, segment_count: int, matched_count: int):
    logger = get_logger()
    logger.info('highlight', extra={
        'request_id': request_id,
        'text_length': text_length,
        'keyword_count': keyword_count,
        'segment_count': segment_count,
        'matched_count': matched_count,
    })
