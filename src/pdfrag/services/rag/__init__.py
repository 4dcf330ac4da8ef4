from pdfrag.services.rag.chain import ConversationalRetrieverChain
from pdfrag.services.rag.extractor import PypdfExtractor
from pdfrag.services.rag.ingest import ingest_pdfs
from pdfrag.services.rag.query import Retriever
from pdfrag.services.rag.types import IngestionSummary, QueryHit
from pdfrag.services.rag.vector_store import DocumentStore

__all__ = [
    "ConversationalRetrieverChain",
    "DocumentStore",
    "IngestionSummary",
    "PypdfExtractor",
    "QueryHit",
    "Retriever",
    "ingest_pdfs",
]
