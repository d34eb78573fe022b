import sys
from samlvpn.cli import main
from samlvpn.logging_utility import logger


if __name__=='__main__':
    logger.info("Starting samlvpn")
    sys.exit(main())
