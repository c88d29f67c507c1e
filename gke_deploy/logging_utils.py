import logging
import sys


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(verbosity: int = 0) -> None:
    """
    CI 로그에서 kubectl/gcloud 출력과 순서가 섞이지 않도록 stdout 으로 로그를 보낸다.
    verbosity >= 1 (또는 PLUGIN_VERBOSE) 이면 DEBUG.
    """
    level = logging.DEBUG if verbosity >= 1 else logging.INFO

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        stream=sys.stdout,
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
