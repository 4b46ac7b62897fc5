"""
Diagnostic Probe
================

Black-box check of the forwarding path. Each run calls the backend health
endpoint and then runs a synthetic echo command through the terminal
endpoint, recording what came back.

Both steps are independent and never raise: any failure is written into the
report's ``error`` field for that step.
"""

import json
import logging
from typing import Union

from ..config import BackendConfig, describe_secret
from ..models import (
    DiagnosticReport,
    HealthProbeResult,
    ProbeFailure,
    TerminalProbeResult,
    utc_timestamp,
)
from ..tunnel import ForwardError, ForwardOptions, TunnelClient

logger = logging.getLogger(__name__)

HEALTH_PATH = "/health"
TERMINAL_PATH = "/api/terminal"
HEALTH_TIMEOUT_MS = 5000
TERMINAL_TIMEOUT_MS = 10000
TEST_COMMAND = "echo __terminal_test_ok__"
PREVIEW_LIMIT = 500


class DiagnosticProbe:
    """
    Runs the health and terminal probe steps against the tunnel.

    Args:
        client: Tunnel client used for both steps
        config: Backend configuration reported alongside the results
        preview_limit: Maximum characters of terminal body kept in the report
    """

    def __init__(
        self,
        client: TunnelClient,
        config: BackendConfig,
        preview_limit: int = PREVIEW_LIMIT,
    ):
        self.client = client
        self.config = config
        self.preview_limit = preview_limit

    async def run_probe(self) -> DiagnosticReport:
        report = DiagnosticReport(
            timestamp=utc_timestamp(),
            tunnelUrl=self.config.base_url,
            sharedSecret=describe_secret(self.config.shared_secret),
            health=await self.probe_health(),
            terminal=await self.probe_terminal(),
        )
        logger.info(
            "Diagnostic probe finished",
            extra={
                "health_ok": isinstance(report.health, HealthProbeResult),
                "terminal_ok": isinstance(report.terminal, TerminalProbeResult),
            },
        )
        return report

    async def probe_health(self) -> Union[HealthProbeResult, ProbeFailure]:
        try:
            result = await self.client.forward(HEALTH_PATH, None, HEALTH_TIMEOUT_MS)
            if isinstance(result, ForwardError):
                return ProbeFailure(error=result.message)
            return HealthProbeResult(status=result.status_code, body=result.text)
        except Exception as e:
            logger.warning("Health probe failed", exc_info=True)
            return ProbeFailure(error=str(e) or type(e).__name__)

    async def probe_terminal(self) -> Union[TerminalProbeResult, ProbeFailure]:
        options = ForwardOptions(
            method="POST",
            headers={"Content-Type": "application/json"},
            body=json.dumps({"command": TEST_COMMAND, "projectPath": "."}).encode("utf-8"),
        )
        try:
            result = await self.client.forward(TERMINAL_PATH, options, TERMINAL_TIMEOUT_MS)
            if isinstance(result, ForwardError):
                return ProbeFailure(error=result.message)
            raw_body = result.text
            return TerminalProbeResult(
                status=result.status_code,
                contentType=result.headers.get("content-type"),
                bodyLength=len(raw_body),
                bodyPreview=raw_body[: self.preview_limit],
            )
        except Exception as e:
            logger.warning("Terminal probe failed", exc_info=True)
            return ProbeFailure(error=str(e) or type(e).__name__)
