"""
Configuration management for the conformance test harness.
"""

import os
from dataclasses import dataclass, field
from typing import Dict

REFERENCE_CLIENT = "safehands-spec"


@dataclass
class ClientConfig:
    """Configuration for a single client endpoint."""
    name: str
    endpoint: str
    enabled: bool = True
    timeout: float = 30.0
    in_process: bool = False


@dataclass
class HarnessConfig:
    """Main configuration for the test harness."""
    # Client endpoints
    clients: Dict[str, ClientConfig] = field(default_factory=dict)

    # Paths
    vector_dir: str = "/vectors"
    result_dir: str = "/results"

    # Execution settings
    stop_on_first_failure: bool = False
    verbose: bool = False

    # Timeouts
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "HarnessConfig":
        """Load configuration from environment variables."""
        config = cls()

        # The Soroban adapter is only compared when an endpoint is given
        soroban_endpoint = os.environ.get("SOROBAN_ENDPOINT", "")

        config.request_timeout = float(os.environ.get("REQUEST_TIMEOUT", "30"))
        config.clients = {
            REFERENCE_CLIENT: ClientConfig(
                name="SafeHands Python spec",
                endpoint="in-process",
                in_process=True,
            ),
            "soroban": ClientConfig(
                name="SafeHands Soroban",
                endpoint=soroban_endpoint or "http://localhost:8081",
                enabled=bool(soroban_endpoint),
                timeout=config.request_timeout,
            ),
        }

        # Load paths
        config.vector_dir = os.environ.get("VECTOR_DIR", "/vectors")
        config.result_dir = os.environ.get("RESULT_DIR", "/results")

        # Load settings
        config.verbose = os.environ.get("VERBOSE", "").lower() in ("true", "1", "yes")
        config.stop_on_first_failure = os.environ.get(
            "STOP_ON_FIRST_FAILURE", ""
        ).lower() in ("true", "1", "yes")

        return config

    def get_enabled_clients(self) -> Dict[str, ClientConfig]:
        """Get only enabled client configurations."""
        return {
            name: client
            for name, client in self.clients.items()
            if client.enabled
        }
