import logging

from digiformatter import logger as digilogger

TRACE = logging.DEBUG - 1
DEBUG = logging.DEBUG
INFO = logging.INFO
WARNING = logging.WARNING
ERROR = logging.ERROR

logging.addLevelName(TRACE, "TRACE")


def setup(level: int = DEBUG) -> None:
    logging.basicConfig(level=logging.INFO)
    dfhandler = digilogger.DigiFormatterHandler()

    logger = logging.getLogger("stepline")
    logger.setLevel(level)
    logger.handlers = []
    logger.propagate = False
    logger.addHandler(dfhandler)

    # Chart-load warnings (unterminated tails and so on) go through the
    # logging system instead of straight to stderr.
    logging.captureWarnings(True)
    warnlogger = logging.getLogger("py.warnings")
    warnlogger.handlers = []
    warnlogger.propagate = False
    warnlogger.addHandler(digilogger.DigiFormatterHandler(showsource=True))
