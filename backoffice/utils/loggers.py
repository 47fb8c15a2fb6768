import logging

ROOT_LOGGER = "backoffice"


def get_logger(name=ROOT_LOGGER):
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        root.setLevel(logging.INFO)
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        root.addHandler(ch)
    return logging.getLogger(name)
