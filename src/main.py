"""
Entry point of the certificate exporter.

All settings come from environment variables, see utils.config.
"""

import logging
import sys
from typing import Mapping, Optional

from app import CertExporterApp
from utils import Config

logger = logging.getLogger(__name__)


def main(environ: Optional[Mapping[str, str]] = None) -> None:
    """Run the exporter with the configuration read from the environment and exit with its status."""
    config = Config(environ=environ)
    try:
        exit_code = CertExporterApp(config).run()
    except Exception:
        logger.exception("❌ Certificate exporter crashed")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
