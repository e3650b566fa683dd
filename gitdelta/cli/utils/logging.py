import logging
import sys


logger = logging.getLogger("gitdelta")

_handler = None


def configure_logging(debug: bool):
    """
    Send gitdelta log records to stderr, keeping stdout for command output.

    Debug mode also shows the level and the emitting module.
    """
    global _handler
    if _handler is not None:
        logger.removeHandler(_handler)
    _handler = logging.StreamHandler(sys.stderr)
    if debug:
        _handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    else:
        _handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(_handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
