# -*- coding: utf-8 -*-
import logging
import sys
import time

FORMAT = '[%(asctime)sZ] %(message)s'


def setup_logging(level: int = logging.INFO) -> None:
    """Send every module logger to stdout with UTC timestamps."""
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(FORMAT, datefmt='%Y-%m-%dT%H:%M:%S')
    formatter.converter = time.gmtime
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger('httpx').setLevel(logging.WARNING)
