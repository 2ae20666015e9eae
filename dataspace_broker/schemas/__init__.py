from .retrieval import QueryInput, RetrievalInformation

__all__ = ["QueryInput", "RetrievalInformation"]
