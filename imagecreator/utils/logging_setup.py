# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: Logging bootstrap shared by the CLI and the MCP stdio server. Logs always go to stderr because stdout
#          carries results (CLI) or protocol frames (MCP).
# SRP and DRY check: Pass. Entry points call configure_logging once; library modules only use getLogger(__name__).
import logging
import sys
from typing import Optional, TextIO

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> None:
    """Install a single stderr handler on the root logger at ``level``."""
    numeric_level = logging.getLevelName(str(level).upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        stream=stream or sys.stderr,
        force=True,
    )
    # httpx logs every request URL at INFO; keep it quiet unless debugging.
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))
