import logging
import os
import sys
from logging.handlers import RotatingFileHandler


def _default_log_dir() -> str:
    cache_home = os.environ.get('XDG_CACHE_HOME') or os.path.join(os.path.expanduser('~'), '.cache')
    return os.path.join(cache_home, 'samlvpn', 'logs')


class Logger:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Logger, cls).__new__(cls)
            cls._instance._setup_logger()
        return cls._instance

    def _setup_logger(self):
        self.logger = logging.getLogger('samlvpn')
        self.logger.setLevel(logging.INFO)
        self.console_handler = None

        log_dir = os.environ.get('SAMLVPN_LOG_DIR') or _default_log_dir()
        try:
            os.makedirs(log_dir, mode=0o700, exist_ok=True)
        except OSError:
            # Read-only home, no file handler
            return
        log_file = os.path.join(log_dir, 'samlvpn.log')

        # Use RotatingFileHandler to limit log file size
        file_handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024,
                                           backupCount=3)
        formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(name)s:%(lineno)d - %(pathname)s - %(message)s')
        file_handler.setFormatter(formatter)

        self.logger.addHandler(file_handler)

    def enable_console(self, level: int = logging.DEBUG):
        """Mirror log records to stderr."""
        if self.console_handler is None:
            self.console_handler = logging.StreamHandler(sys.stderr)
            self.console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
            self.logger.addHandler(self.console_handler)
        self.console_handler.setLevel(level)
        self.logger.setLevel(min(self.logger.level, level))

    def get_logger(self):
        return self.logger


logger = Logger().get_logger()
