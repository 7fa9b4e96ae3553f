from typing import Any, Callable, Optional, TypeVar

from moderation_engine.core.exceptions import (
    InvalidInputException,
    ModelUnavailableException,
    NetworkFailureException,
)
from moderation_engine.core.logger import logger

T = TypeVar("T")


def attempt_signal(signal: str, fn: Callable[..., Optional[T]], *args: Any) -> Optional[T]:
    """
    Run one optional moderation signal, degrading to ``None`` on failure.

    Every analyzer routes its optional signals (classifier scores, sentiment,
    remote fetches) through here so that a single failing axis never aborts
    the whole analysis. ``InvalidInputException`` is the exception: malformed
    input is an item-level failure and propagates.

    Args:
        signal: Signal name used in log records
        fn: Callable producing the signal value
        *args: Positional arguments for ``fn``

    Returns:
        The signal value, or None if the signal is unavailable
    """
    try:
        return fn(*args)
    except InvalidInputException:
        raise
    except ModelUnavailableException as e:
        logger.warning(
            f"Signal {signal} degraded: {e.message}",
            extra={"signal": signal, "model": e.details.get("model", "unknown")}
        )
        return None
    except NetworkFailureException as e:
        logger.info(
            f"Signal {signal} degraded: {e.message}",
            extra={"signal": signal, "url": e.details.get("url", "unknown")}
        )
        return None
    except Exception as e:
        logger.error(
            f"Signal {signal} failed unexpectedly",
            extra={"signal": signal, "error": str(e)},
            exc_info=True
        )
        return None
