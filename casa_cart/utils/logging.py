# casa_cart/utils/logging.py
import logging
import sys

from casa_cart.utils.settings import LOG_LEVEL

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def _configure_root() -> None:
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))

    root = logging.getLogger("casa_cart")
    root.addHandler(handler)
    root.setLevel(LOG_LEVEL.upper())
    # handler sits on the package logger, don't duplicate through root
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    _configure_root()
    return logging.getLogger(name)
