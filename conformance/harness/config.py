"""
Harness settings, read from the environment and overridden by CLI flags.

    EVM_ENDPOINT           EVM contract adapter (default http://localhost:8545,
                           set it empty to skip the adapter)
    PY_ENDPOINT            optional HTTP server wrapping the Python model
    VECTOR_DIR, RESULT_DIR where vectors are read and reports written
    REQUEST_TIMEOUT        per-request timeout in seconds
    VERBOSE, STOP_ON_FIRST_FAILURE
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

# Pseudo-client whose results come from the vectors' expected outcome.
EXPECTED_CLIENT = "expected"

DEFAULT_EVM_ENDPOINT = "http://localhost:8545"

# Endpoint value that selects the in-process Python model.
LOCAL_ENDPOINT = "local"


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ClientConfig:
    """One implementation under test."""
    name: str
    endpoint: str
    enabled: bool = True
    timeout: float = 30.0


@dataclass
class HarnessConfig:
    clients: Dict[str, ClientConfig] = field(default_factory=dict)
    reference_client: str = EXPECTED_CLIENT
    vector_dir: str = "vectors"
    result_dir: str = "results"
    stop_on_first_failure: bool = False
    verbose: bool = False
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "HarnessConfig":
        timeout = float(os.environ.get("REQUEST_TIMEOUT", "30"))
        evm_endpoint = os.environ.get("EVM_ENDPOINT", DEFAULT_EVM_ENDPOINT)
        py_endpoint = os.environ.get("PY_ENDPOINT", "")
        return cls(
            clients={
                "evm": ClientConfig(
                    name="EVM contract adapter",
                    endpoint=evm_endpoint,
                    enabled=bool(evm_endpoint),
                    timeout=timeout,
                ),
                "python": ClientConfig(
                    name="Python settlement model",
                    endpoint=py_endpoint,
                    enabled=bool(py_endpoint),
                    timeout=timeout,
                ),
            },
            vector_dir=os.environ.get("VECTOR_DIR", "vectors"),
            result_dir=os.environ.get("RESULT_DIR", "results"),
            stop_on_first_failure=_env_flag("STOP_ON_FIRST_FAILURE"),
            verbose=_env_flag("VERBOSE"),
            request_timeout=timeout,
        )

    def get_enabled_clients(self) -> Dict[str, ClientConfig]:
        return {name: c for name, c in self.clients.items() if c.enabled}

    def apply_cli(
        self,
        evm_endpoint: Optional[str] = None,
        local: bool = False,
        no_evm: bool = False,
    ) -> None:
        """Fold the runner's client flags into the environment settings.

        ``--local`` replays through the in-process model only, unless an EVM
        endpoint is also given on the command line.
        """
        evm = self.clients["evm"]
        if evm_endpoint:
            evm.endpoint = evm_endpoint
            evm.enabled = True
        elif local:
            evm.enabled = False
        if no_evm:
            evm.enabled = False
        if local:
            self.clients["python"].endpoint = LOCAL_ENDPOINT
            self.clients["python"].enabled = True
