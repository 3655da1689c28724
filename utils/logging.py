import logging
import sys

def configure_logging(level: str = "INFO"):
    root = logging.getLogger()
    root.setLevel(level)
    if any(getattr(h, "_monitor_handler", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
    ))
    handler._monitor_handler = True
    root.addHandler(handler)
    # discord.py is chatty at INFO
    logging.getLogger("discord").setLevel(logging.WARNING)
