import logging
import os
from logging.handlers import TimedRotatingFileHandler

logger = logging.getLogger("loadplan")
logger.setLevel(logging.DEBUG)

formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

# file logging is opt-in
log_dir = os.environ.get("LOADPLAN_LOG_DIR")
if log_dir:
    file_handler = TimedRotatingFileHandler(
        filename=os.path.join(log_dir, "loadplan.log"),
        when='midnight',
        interval=1,
        backupCount=7,
        encoding='utf-8'
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
else:
    logger.addHandler(logging.NullHandler())
