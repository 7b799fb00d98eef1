import json
import logging
import re
from datetime import datetime, timezone
from typing import Dict, Any, Optional, MutableMapping, Tuple


class SecretMasker:
    """Masks sensitive information in log messages."""

    def __init__(self):
        """Initialize secret masker with patterns."""
        self.patterns = [
            # API tokens and keys
            r'(?i)(token|key|secret|password|auth)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
            # Spotify access and refresh tokens
            r'(?i)(access_token|refresh_token)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
            # Client secrets
            r'(?i)(client_secret)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
            # Authorization headers
            r'(?i)(bearer)[\s]+["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
        ]

        self.compiled_patterns = [re.compile(pattern) for pattern in self.patterns]
        self.sensitive_keys = {'token', 'refresh_token', 'access_token', 'client_secret', 'secret'}

    @staticmethod
    def _mask_value(secret: str) -> str:
        # Keep first 4 and last 4 characters, mask the rest
        if len(secret) > 8:
            return secret[:4] + '*' * (len(secret) - 8) + secret[-4:]
        return '*' * len(secret)

    def mask_secrets(self, text: str) -> str:
        """Mask sensitive information in text."""
        if not text:
            return text

        masked_text = text

        for pattern in self.compiled_patterns:
            def replace_match(match):
                return f"{match.group(1)}: {self._mask_value(match.group(2))}"

            masked_text = pattern.sub(replace_match, masked_text)

        return masked_text

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive information in dictionary.

        Values stored under a sensitive key are masked whole; other strings are scanned.
        """
        if not data:
            return data

        masked_data = {}

        for key, value in data.items():
            if isinstance(value, str) and str(key).lower() in self.sensitive_keys:
                masked_data[key] = self._mask_value(value)
            elif isinstance(value, str):
                masked_data[key] = self.mask_secrets(value)
            elif isinstance(value, dict):
                masked_data[key] = self.mask_dict(value)
            elif isinstance(value, list):
                masked_data[key] = [self.mask_dict(item) if isinstance(item, dict)
                                    else self.mask_secrets(item) if isinstance(item, str)
                                    else item for item in value]
            else:
                masked_data[key] = value

        return masked_data


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self):
        """Initialize formatter."""
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': self.masker.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_entry['exception'] = self.masker.mask_secrets(self.formatException(record.exc_info))

        fields = getattr(record, 'fields', None)
        if fields:
            log_entry['fields'] = self.masker.mask_dict(fields)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class UserLoggerAdapter(logging.LoggerAdapter):
    """Logger handle bound to one user.

    The user key is merged into the record's ``fields`` next to any per-call fields.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get('extra') or {})
        fields = dict(self.extra)
        fields.update(extra.get('fields') or {})
        extra['fields'] = fields
        kwargs['extra'] = extra
        return msg, kwargs


def bind_user(logger: logging.Logger, user_key: str) -> UserLoggerAdapter:
    """Return a logging handle that tags every record with ``user_key``."""
    return UserLoggerAdapter(logger, {'user': user_key})


def setup_logging(level: str = 'INFO') -> logging.Logger:
    """Setup structured logging."""
    logger = logging.getLogger('tomorrowify')
    logger.setLevel(getattr(logging, level.upper()))

    logger.handlers.clear()
    formatter = StructuredFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Lambda installs its own root handler; avoid double emission
    logger.propagate = False

    return logger


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None, **kwargs):
    """Log message with additional fields."""
    merged = dict(fields or {})
    merged.update(kwargs)
    logger.log(getattr(logging, level.upper()), message, extra={'fields': merged})


def log_error(logger, message: str, error: Exception, **kwargs):
    """Log error with exception details."""
    logger.error(message, exc_info=error, extra={'fields': {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    }})
