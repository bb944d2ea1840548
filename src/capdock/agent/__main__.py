"""Run the controller with ``python -m capdock.agent [CONFIG_DIR]``."""

import asyncio
import logging
import sys
from pathlib import Path

from capdock.agent.main import run_agent


logger = logging.getLogger("capdock.agent")


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    config_dir = Path(args[0]) if args else None
    try:
        asyncio.run(run_agent(config_dir))
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        logger.critical(f"Controller stopped: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
