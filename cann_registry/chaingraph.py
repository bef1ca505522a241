"""GraphQL client for a Chaingraph transaction-output index."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import requests
from requests import RequestException

logger = logging.getLogger(__name__)

SEARCH_OUTPUTS_QUERY = """
query SearchNameOwner($tokenId: bytea, $commitment: bytea) {
  output(
    where: {
      token_category: { _eq: $tokenId }
      nonfungible_token_commitment: { _eq: $commitment }
    }
  ) {
    transaction_hash
    transaction {
      block_inclusions {
        block {
          height
        }
      }
    }
  }
}
"""


class ChaingraphError(RuntimeError):
    """Raised when the Chaingraph endpoint fails or answers with errors."""


@dataclass(frozen=True)
class IndexedOutput:
    txid: str
    height: Optional[int]

    @property
    def confirmed(self) -> bool:
        return self.height is not None


def _bytea(hex_value: str) -> str:
    return "\\x" + hex_value


def _strip_bytea(value: str) -> str:
    return value[2:] if value.startswith("\\x") else value


class ChaingraphClient:
    """Issue the single output-search query used by indexed name resolution."""

    def __init__(self, url: str, *, timeout: float = 30.0, session: requests.Session | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    def query(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        logger.debug("Chaingraph query variables=%s", variables)
        try:
            response = self._session.post(
                self.url,
                json={"query": query, "variables": variables},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except RequestException as exc:
            logger.error("Chaingraph request failed: %s", exc, exc_info=logger.isEnabledFor(logging.DEBUG))
            raise ChaingraphError(
                f"Chaingraph request to {self.url} failed; check CANN_CHAINGRAPH_URL"
            ) from exc
        try:
            body = response.json()
        except ValueError as exc:
            raise ChaingraphError("Chaingraph returned malformed JSON") from exc
        if body.get("errors"):
            messages = "; ".join(str(error.get("message", error)) for error in body["errors"])
            raise ChaingraphError(f"Chaingraph query failed: {messages}")
        data = body.get("data")
        if not data:
            raise ChaingraphError("No data returned from Chaingraph query")
        return data

    def search_outputs(self, category: str, commitment: bytes) -> List[IndexedOutput]:
        """Return every output ever created with this token category and commitment."""

        data = self.query(
            SEARCH_OUTPUTS_QUERY,
            {"tokenId": _bytea(category), "commitment": _bytea(commitment.hex())},
        )
        results: List[IndexedOutput] = []
        for entry in data.get("output", []):
            inclusions = (entry.get("transaction") or {}).get("block_inclusions") or []
            height = int(inclusions[0]["block"]["height"]) if inclusions else None
            results.append(IndexedOutput(txid=_strip_bytea(entry["transaction_hash"]), height=height))
        return results
