import os
import logging
import pytz
from datetime import datetime

class LocalTimeFormatter(logging.Formatter):
    def __init__(self, *args, timezone=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.timezone = pytz.timezone(timezone or os.environ.get('APP_TIMEZONE', 'Asia/Manila'))

    def formatTime(self, record, datefmt=None):
        # Render the timestamp in the application's timezone
        record_time = datetime.fromtimestamp(record.created, self.timezone)
        return record_time.strftime(datefmt) if datefmt else record_time.isoformat()

def setup_logging():
    logger = logging.getLogger()
    if not logger.handlers:
        formatter = LocalTimeFormatter(
            fmt='%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

        logger.setLevel(logging.INFO)
        logger.addHandler(handler)

    return logger
