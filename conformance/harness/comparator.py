"""
Result comparison logic for conformance testing.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

# Fields every client reports after executing an action
COMPARED_FIELDS = ("success", "error_code", "value", "state_digest", "events")


@dataclass
class Divergence:
    """Represents a divergence between client implementations."""
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


class ResultComparator:
    """Compares action results from client implementations.

    Each client is compared against the reference client and, when the vector
    carries one, against the vector's recorded expectation.
    """

    def __init__(self, reference_client: str = "safehands-spec"):
        self.reference_client = reference_client

    def compare_results(
        self,
        results: Dict[str, Dict[str, Any]],
        vector_name: str,
        expected: Optional[Dict[str, Any]] = None,
    ) -> ComparisonResult:
        """
        Compare results from all clients.

        Args:
            results: Dict mapping client name to their result dict
            vector_name: Name of the test vector
            expected: The vector's expected outcome, if any

        Returns:
            ComparisonResult with any divergences found
        """
        divergences = []
        clients = list(results.keys())

        if expected is not None:
            for client, result in results.items():
                divergences.extend(self._compare_single(
                    reference=expected,
                    actual=result,
                    client=client,
                    vector_name=vector_name,
                    reference_name="vector",
                ))

        if len(clients) < 2:
            return ComparisonResult(
                success=len(divergences) == 0,
                divergences=divergences,
                clients_compared=clients,
            )

        if self.reference_client not in results:
            raise ValueError(
                f"Reference client '{self.reference_client}' not in results"
            )
        reference = results[self.reference_client]

        for client, result in results.items():
            if client == self.reference_client:
                continue
            divergences.extend(self._compare_single(
                reference=reference,
                actual=result,
                client=client,
                vector_name=vector_name,
                reference_name=self.reference_client,
            ))

        return ComparisonResult(
            success=len(divergences) == 0,
            divergences=divergences,
            clients_compared=clients,
        )

    def _compare_single(
        self,
        reference: Dict[str, Any],
        actual: Dict[str, Any],
        client: str,
        vector_name: str,
        reference_name: str,
    ) -> List[Divergence]:
        """Compare a single client result against a reference result."""
        divergences = []

        for name in COMPARED_FIELDS:
            ref_value = reference.get(name)
            act_value = actual.get(name)
            # Missing or empty reference fields are not checked
            if ref_value is None or ref_value == "":
                continue
            if ref_value == act_value:
                continue

            details = None
            if name == "error_code" and isinstance(act_value, int):
                details = f"Error code mismatch: expected 0x{ref_value:04x}, got 0x{act_value:04x}"
            elif name == "state_digest":
                details = "State digest mismatch after execution"
            divergences.append(Divergence(
                field=name,
                expected=ref_value,
                actual=act_value,
                client=client,
                reference_client=reference_name,
                vector_name=vector_name,
                details=details,
            ))

        return divergences

    def compare_state_digests(
        self,
        digests: Dict[str, str],
        vector_name: str,
    ) -> ComparisonResult:
        """
        Compare state digests from all clients.

        Args:
            digests: Dict mapping client name to state digest hex string
            vector_name: Name of the test vector

        Returns:
            ComparisonResult with any divergences found
        """
        divergences = []
        clients = list(digests.keys())

        if len(clients) < 2:
            return ComparisonResult(
                success=True,
                divergences=[],
                clients_compared=clients,
            )

        reference_digest = digests.get(self.reference_client)
        if not reference_digest:
            raise ValueError(
                f"Reference client '{self.reference_client}' not in digests"
            )

        for client, digest in digests.items():
            if client == self.reference_client:
                continue

            if digest != reference_digest:
                divergences.append(Divergence(
                    field="state_digest",
                    expected=reference_digest,
                    actual=digest,
                    client=client,
                    reference_client=self.reference_client,
                    vector_name=vector_name,
                    details="State digest mismatch",
                ))

        return ComparisonResult(
            success=len(divergences) == 0,
            divergences=divergences,
            clients_compared=clients,
        )
