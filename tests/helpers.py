"""Shared test doubles and builders."""

import io
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dataspace_broker.exceptions import DataTransportError
from dataspace_broker.policy.verifier import Decision, PolicyVerifier
from dataspace_broker.services.http import ArtifactRetriever

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_contract(
    target: str,
    pattern: Optional[str] = None,
    constraint: Optional[Dict[str, Any]] = None,
    post_duties: Optional[List[Dict[str, Any]]] = None,
    section: str = "permissions",
    issued: str = "2024-03-01T00:00:00Z",
) -> str:
    """Build a serialized contract with a single rule."""
    rule: Dict[str, Any] = {"target": target}
    if pattern is not None:
        rule["pattern"] = pattern
    if constraint is not None:
        rule["constraint"] = constraint
    if post_duties is not None:
        rule["post_duties"] = post_duties
    return json.dumps({"id": f"{target}/contract", "issued": issued, section: [rule]})


class FakeRetriever(ArtifactRetriever):
    """Retriever returning canned bytes and recording its calls."""

    def __init__(self, payload: bytes = b"fresh", error: Optional[Exception] = None):
        self.payload = payload
        self.error = error
        self.calls = []

    def retrieve(self, artifact_id, remote_address, transfer_contract, query_input=None):
        self.calls.append((artifact_id, remote_address, transfer_contract, query_input))
        if self.error is not None:
            raise self.error
        return io.BytesIO(self.payload)


class FailingRetriever(FakeRetriever):
    def __init__(self):
        super().__init__(error=DataTransportError("Could not connect to data source."))


class ScriptedVerifier(PolicyVerifier):
    """Verifier deciding per agreement id and recording every subject it sees."""

    name = "scripted"

    def __init__(self, denied: Optional[Dict[Optional[str], str]] = None):
        self.denied = denied or {}
        self.subjects = []

    def check(self, subject):
        self.subjects.append(subject)
        if subject.agreement_id in self.denied:
            return Decision.deny(self.denied[subject.agreement_id])
        return Decision.allow()
