from __future__ import annotations

import argparse
import logging
import sys

from fnrun.config import read_config_file
from fnrun.errors import FnrunError
from fnrun.settings import Settings
from fnrun.supervisor import Supervisor

logger = logging.getLogger("fnrun")


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Build, run and serve the configured functions")
    p.add_argument("--config", default="functions.json", help="Path to the functions config file")
    p.add_argument("--host", default="127.0.0.1", help="Address the HTTP front end binds to")
    p.add_argument("--port", type=int, default=8080, help="Port the HTTP front end listens on")
    args = p.parse_args(argv)

    settings = Settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = read_config_file(args.config)
        Supervisor(config, settings).run(args.host, args.port)
    except FnrunError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
