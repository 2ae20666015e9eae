"""
Dataspace Broker

Usage-controlled access to data artifacts exchanged under contract agreements.
"""

import importlib.metadata

__version__ = importlib.metadata.version("dataspace-broker")

from .exceptions import (
    BrokerError,
    ContractConfigurationError,
    DataTransportError,
    PolicyRestrictionError,
    ResourceNotFoundError,
    StorageError,
    UnsupportedOperationError,
)
from .policy import PolicyVerifier, VerificationResult, get_verifier
from .schemas import QueryInput, RetrievalInformation
from .services import ArtifactDataBroker, ArtifactRetriever, HttpArtifactRetriever
from .worker import ScheduledDataRemoval

__all__ = [
    "ArtifactDataBroker",
    "ArtifactRetriever",
    "BrokerError",
    "ContractConfigurationError",
    "DataTransportError",
    "HttpArtifactRetriever",
    "PolicyRestrictionError",
    "PolicyVerifier",
    "QueryInput",
    "ResourceNotFoundError",
    "RetrievalInformation",
    "ScheduledDataRemoval",
    "StorageError",
    "UnsupportedOperationError",
    "VerificationResult",
    "get_verifier",
]
