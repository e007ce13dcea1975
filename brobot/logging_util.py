import logging
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(level=logging.INFO) -> None:
    """
    Configures the root logger once with a stdout handler.

    discord.py, aiohttp and SQLAlchemy loggers propagate to the root logger,
    so they share the same format.
    """
    root = logging.getLogger()
    root.setLevel(level)

    if not any(getattr(h, '_brobot', False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        handler._brobot = True
        root.addHandler(handler)

    for handler in root.handlers:
        handler.setLevel(level)

    # discord.http is very chatty at DEBUG
    logging.getLogger('discord.http').setLevel(max(level, logging.INFO))
    logging.getLogger('discord.gateway').setLevel(max(level, logging.INFO))
