import argparse
import logging
import sys

from .Core.errors import ConfigError
from .Core.header import AGENT_NAME, AGENT_VERSION
from .RelayNetProxyServer import run
from .Settings import SETTINGS_FILE, Settings, load_context
from .logger import setup_logging

logger = logging.getLogger(__name__)


# ========== CLI ==========
def main(argv=None):
    parser = argparse.ArgumentParser(description="RelayNet HTTP/HTTPS forward proxy")
    parser.add_argument("-c", "--config", default=SETTINGS_FILE, help="Settings file (created with defaults if missing)")
    parser.add_argument("-H", "--host", default=None, help="Bind address, overrides the settings file")
    parser.add_argument("-p", "--port", type=int, default=None, help="Port to listen, overrides the settings file")
    parser.add_argument("--connect-timeout", type=float, default=None, help="Seconds allowed to resolve and connect upstream")
    parser.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    parser.add_argument("-d", "--dashboard", action='store_true', help="Show the live dashboard")
    parser.add_argument("-V", "--version", action='version', version=f"{AGENT_NAME} {AGENT_VERSION}")
    args = parser.parse_args(argv)

    setup_logging(args.log_level, log_file=args.log_file, dashboard=args.dashboard)

    try:
        context = load_context(
            Settings(args.config),
            address=args.host,
            port=args.port,
            connect_timeout=args.connect_timeout,
        )
    except ConfigError as e:
        logger.error(str(e))
        return 2

    return run(context, dashboard=args.dashboard)


if __name__ == "__main__":
    sys.exit(main())
