import logging
import sys
import warnings

import orjson

from ens_indexer import env

LOG_FORMAT = '%(asctime)s %(levelname)-8s %(name)-22s %(message)s'
JSON_LOG_FIELDS = '%(levelname)s %(name)s %(message)s'


def _get_formatter() -> logging.Formatter:
    if not env.JSON_LOG:
        return logging.Formatter(LOG_FORMAT)

    from pythonjsonlogger import jsonlogger

    return jsonlogger.JsonFormatter(  # type: ignore[no-untyped-call]
        JSON_LOG_FIELDS,
        timestamp=True,
        json_serializer=lambda *a, **kw: orjson.dumps(*a, default=str).decode(),
    )


def set_up_logging() -> None:
    """Send all records to stdout; levels are configured separately"""
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(_get_formatter())
    logging.getLogger().addHandler(handler)

    # NOTE: Format warnings as normal log messages
    logging.captureWarnings(True)
    warnings.formatwarning = lambda msg, *a, **kw: str(msg)

    # NOTE: Query logs are too verbose even for debugging
    logging.getLogger('tortoise').setLevel(logging.WARNING)
    logging.getLogger('aiosqlite').setLevel(logging.WARNING)

    if env.DEBUG:
        logging.getLogger('ens_indexer').setLevel(logging.DEBUG)
