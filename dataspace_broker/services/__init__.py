"""
Data access services: the artifact data broker and its HTTP collaborators.
"""

from .artifacts import ArtifactDataBroker
from .http import ArtifactRetriever, HttpArtifactRetriever, HttpService

__all__ = [
    "ArtifactDataBroker",
    "ArtifactRetriever",
    "HttpArtifactRetriever",
    "HttpService",
]
