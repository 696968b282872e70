
import sys

import load_config
from gateway import Gateway
from logger import logging, set_level
from signals import ShutdownFlag, install_signal_handlers

def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    config_path = argv[0] if argv else None

    try:
        config = load_config.load(config_path)
        set_level(config.log_level)
    except (FileNotFoundError, ValueError, TypeError) as e:
        logging.error(f"Invalid configuration: {e}")
        return 1

    shutdown = ShutdownFlag()
    install_signal_handlers(shutdown)

    gateway = Gateway(config, shutdown)
    if not gateway.start():
        return 1

    try:
        gateway.run()
    finally:
        gateway.stop()
    logging.info("Gateway stopped")
    return 0

if __name__ == "__main__":
    sys.exit(main())
