"""Prometheus exporter for the wallet.

`start_metrics` is what the CLI calls: it binds the exporter from the
`metrics` config section and publishes the current cash balance so the gauge
has a value before the first trade. A port of 0 keeps the exporter off.
"""

import logging
from typing import Optional

from prometheus_client import start_http_server

from ..config.loader import MetricsConfig
from . import wallet as wallet_metrics

logger = logging.getLogger(__name__)


def start_server_safe(port: int, addr: str = "0.0.0.0") -> Optional[int]:
    """Bind the exporter; return the port, or None when disabled or the bind fails."""
    if not port:
        return None
    try:
        start_http_server(port, addr=addr)
    except OSError as e:
        logger.warning(f"metrics exporter not started on {addr}:{port}: {e}")
        return None
    logger.info(f"metrics exporter listening on {addr}:{port}")
    return port


def start_metrics(config: MetricsConfig, ledger=None) -> Optional[int]:
    port = start_server_safe(config.port, config.addr)
    if port is not None and ledger is not None:
        wallet_metrics.set_cash(ledger.snapshot()["cash"])
    return port
