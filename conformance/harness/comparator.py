"""
Result comparison logic for conformance testing.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple


@dataclass
class Divergence:
    """Represents a divergence between an implementation and the reference."""
    field: str
    expected: Any
    actual: Any
    client: str
    reference_client: str
    vector_name: str
    details: Optional[str] = None


@dataclass
class ComparisonResult:
    """Result of comparing outputs from multiple clients."""
    success: bool
    divergences: List[Divergence]
    clients_compared: List[str]

    @property
    def has_divergences(self) -> bool:
        return len(self.divergences) > 0


def _error_details(expected: Any, actual: Any) -> str:
    return f"Error code mismatch: expected 0x{int(expected):04x}, got 0x{int(actual):04x}"


# (field, default, skip when either side is missing, details formatter)
_COMPARED_FIELDS: List[Tuple[str, Any, bool, Optional[Callable[[Any, Any], str]]]] = [
    ("success", True, False, None),
    ("error_code", 0, False, _error_details),
    ("state_digest", None, True, lambda e, a: "State digest mismatch after execution"),
]


class ResultComparator:
    """Compares call results from client implementations against a reference."""

    def __init__(self, reference_client: str = "expected"):
        """
        Args:
            reference_client: Client used as reference. The default, "expected",
                stands for the expected outcome recorded in the vector.
        """
        self.reference_client = reference_client

    def compare_results(
        self,
        results: Dict[str, Dict[str, Any]],
        vector_name: str,
    ) -> ComparisonResult:
        """Compare every client's call result against the reference result."""
        clients = list(results.keys())
        if len(clients) < 2:
            return ComparisonResult(success=True, divergences=[], clients_compared=clients)

        if self.reference_client not in results:
            raise ValueError(
                f"Reference client '{self.reference_client}' not in results"
            )
        reference = results[self.reference_client]

        divergences: List[Divergence] = []
        for client, result in results.items():
            if client == self.reference_client:
                continue
            for field, default, optional, details in _COMPARED_FIELDS:
                expected = reference.get(field, default)
                actual = result.get(field, default)
                if optional and (not expected or not actual):
                    continue
                if expected != actual:
                    divergences.append(Divergence(
                        field=field,
                        expected=expected,
                        actual=actual,
                        client=client,
                        reference_client=self.reference_client,
                        vector_name=vector_name,
                        details=details(expected, actual) if details else None,
                    ))

        return ComparisonResult(
            success=not divergences,
            divergences=divergences,
            clients_compared=clients,
        )

    def compare_state_digests(
        self,
        digests: Dict[str, str],
        vector_name: str,
    ) -> ComparisonResult:
        """Compare the digests clients report after loading the same state."""
        clients = list(digests.keys())
        if len(clients) < 2:
            return ComparisonResult(success=True, divergences=[], clients_compared=clients)

        reference_digest = digests.get(self.reference_client)
        if not reference_digest:
            raise ValueError(
                f"Reference client '{self.reference_client}' not in digests"
            )

        divergences = [
            Divergence(
                field="state_digest",
                expected=reference_digest,
                actual=digest,
                client=client,
                reference_client=self.reference_client,
                vector_name=vector_name,
                details="State digest mismatch after load",
            )
            for client, digest in digests.items()
            if client != self.reference_client and digest != reference_digest
        ]
        return ComparisonResult(
            success=not divergences,
            divergences=divergences,
            clients_compared=clients,
        )
