"""
Retry — error classification and exponential backoff for Gemini calls.

Classes of failure:
- safety block      → terminal, never retried
- rate limit / 503  → retried with backoff here; if still failing, tagged
                      `is_rate_limit = True` so the batch driver can cool down
- transient (500, dropped connection, timeout) → retried with backoff
- anything else     → raised immediately
"""
import time

RATE_LIMIT_MESSAGE = "Service Busy/Rate Limit. Waiting..."

RATE_LIMIT_CODES = (429, 503)
TRANSIENT_CODES = (500, 502, 504)

RATE_LIMIT_PHRASES = (
    "429",
    "quota",
    "exhausted",
    "too many requests",
    "rate limit",
    "overloaded",
    "unavailable",
)
TRANSIENT_PHRASES = (
    "internal error",
    "rpc failed",
    "fetch failed",
    "deadline exceeded",
    "timed out",
    "connection reset",
    "server disconnected",
)


class GenerationError(Exception):
    """The service answered, but without a usable result."""


class SafetyBlockError(GenerationError):
    """The prompt or output was blocked by the service's safety filter."""


def _error_codes(error):
    codes = set()
    for attr in ("code", "status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            codes.add(value)
        elif isinstance(value, str) and value.isdigit():
            codes.add(int(value))
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        codes.add(status)
    return codes


def _error_text(error):
    parts = [str(error)]
    status = getattr(error, "status", None)
    if isinstance(status, str):
        parts.append(status)
    return " ".join(parts).lower()


def is_safety_block(error):
    return isinstance(error, SafetyBlockError)


def is_rate_limit_error(error):
    """Throttling or overload: explicit tag, 429/503, or quota/overload wording."""
    if is_safety_block(error):
        return False
    if getattr(error, "is_rate_limit", False):
        return True
    if _error_codes(error) & set(RATE_LIMIT_CODES):
        return True
    text = _error_text(error)
    return any(phrase in text for phrase in RATE_LIMIT_PHRASES)


def is_transient_error(error):
    if is_safety_block(error):
        return False
    if isinstance(error, (ConnectionError, TimeoutError)):
        return True
    if _error_codes(error) & set(TRANSIENT_CODES):
        return True
    text = _error_text(error)
    return any(phrase in text for phrase in TRANSIENT_PHRASES)


def is_retryable(error):
    return is_rate_limit_error(error) or is_transient_error(error)


def generate_with_retry(operation, retries=5, initial_delay=15.0, backoff=1.5,
                        classify=is_retryable, sleep=time.sleep, label="api"):
    """
    Run `operation()` and retry retryable failures with exponential backoff.

    Args:
        operation: Zero-argument callable doing one service call
        retries: Extra attempts after the first one
        initial_delay: Seconds to wait before the first retry
        backoff: Delay multiplier per retry
        classify: error -> bool, whether the error is worth retrying
        sleep: Injected for tests
        label: Log tag

    Returns:
        Whatever `operation()` returns

    Raises:
        The last error. Rate-limit errors get `is_rate_limit = True`.
    """
    delay = initial_delay
    for attempt in range(retries + 1):
        try:
            return operation()
        except Exception as e:
            if attempt < retries and classify(e):
                print(f"[{label}] API error ({e}). Pausing for {delay:.0f}s... (Attempt {attempt + 1}/{retries})")
                sleep(delay)
                delay *= backoff
                continue
            if is_rate_limit_error(e):
                try:
                    e.is_rate_limit = True
                except AttributeError:
                    pass
            raise
    raise GenerationError("Max retries exceeded")
