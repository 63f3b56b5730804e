import logging

from courtside.config import Environment, environment


def create_logger(level: int) -> logging.Logger:
    formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    logger = logging.getLogger("courtside")
    logger.setLevel(level)
    if not logger.handlers:
        logger.addHandler(handler)

    return logger


logger = create_logger(logging.DEBUG if environment is Environment.DEVELOPMENT else logging.INFO)
