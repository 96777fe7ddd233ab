"""Chart data-processing and statistics for heat pump efficiency dashboards."""

import logging

logger = logging.getLogger("analytics")
if not logger.handlers:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


__all__ = ["logger"]
