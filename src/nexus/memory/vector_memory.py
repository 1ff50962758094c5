"""
Long-term memory backed by Chroma.

Each memory is one document:
  text     = the memory content
  metadata = { "tier": "<tier>", "tags": "tag1,tag2", "timestamp": float }

Retrieval scoring is left to the vector store's own similarity search.
"""

import asyncio
import logging
import os
import time
import uuid
from enum import Enum
from typing import (
    Awaitable,
    Callable,
    Iterable,
    List,
    cast,
)

import chromadb
from chromadb.api.types import EmbeddingFunction
from chromadb.utils import embedding_functions

logger = logging.getLogger(__name__)

_DEFAULT_EMBED_MODEL = os.getenv("NEXUS_EMBED_MODEL", "all-MiniLM-L6-v2")  # small; runs CPU-only

CONSOLIDATION_MIN = 3


class MemoryTier(str, Enum):
    SHORT_TERM = "Short-Term"
    EPISODIC = "Episodic"
    SEMANTIC = "Semantic"
    PROCEDURAL = "Procedural"


Synthesizer = Callable[[str], Awaitable[str]]


class MemoryBank:
    """
    Tiered long-term memory on top of a Chroma collection.

    Parameters
    ----------
    collection_name:
        Chroma collection holding the memories.
    host, port:
        Address of the Chroma server (ignored when *client* is given).
    client:
        A ready Chroma client, e.g. ``chromadb.EphemeralClient()`` in tests.
    embedding_function:
        Override the sentence-transformers embedding.
    """

    def __init__(
        self,
        collection_name: str = "nexus",
        host: str = "chroma",  # service name in docker-compose
        port: int = 8000,
        client: chromadb.ClientAPI | None = None,
        embedding_function: EmbeddingFunction | None = None,
    ):
        self._client = client or chromadb.HttpClient(host=host, port=port)
        self._embed_fn: EmbeddingFunction = (
            embedding_function
            or embedding_functions.SentenceTransformerEmbeddingFunction(
                model_name=_DEFAULT_EMBED_MODEL
            )
        )
        self._col = self._client.get_or_create_collection(
            name=collection_name, embedding_function=cast(EmbeddingFunction, self._embed_fn)
        )

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def add_memory(self, content: str, tier: MemoryTier, tags: Iterable[str] = ()) -> str:
        """Store *content* in *tier* and return the new memory id."""
        memory_id = str(uuid.uuid4())
        self._col.add(
            ids=[memory_id],
            documents=[content],
            metadatas=[{"tier": tier.value, "tags": ",".join(tags), "timestamp": time.time()}],
        )
        logger.debug("Stored %s memory %s", tier.value, memory_id)
        return memory_id

    def get_context(self, query: str, limit: int = 5) -> str:
        """Return the *limit* most relevant memories as ``[TIER] content`` lines."""
        if self._col.count() == 0:
            return ""
        res = self._col.query(
            query_texts=[query],
            n_results=min(limit, self._col.count()),
            include=["documents", "metadatas"],
        )
        documents = (res.get("documents") or [[]])[0]
        metadatas = (res.get("metadatas") or [[]])[0]
        lines: List[str] = []
        for doc, meta in zip(documents, metadatas):
            tier = str((meta or {}).get("tier", MemoryTier.SEMANTIC.value))
            lines.append(f"[{tier.upper()}] {doc}")
        logger.debug("Memory query returned %d item(s)", len(lines))
        return "\n".join(lines)

    async def consolidate(self, synthesizer: Synthesizer) -> str | None:
        """
        Merge short-term memories into one episodic memory.

        Nothing happens with fewer than three short-term memories.  If *synthesizer* fails the
        short-term memories are kept and None is returned.  Collection calls run in worker
        threads so embedding never blocks the event loop.
        """
        res = await asyncio.to_thread(
            self._col.get, where={"tier": MemoryTier.SHORT_TERM.value}, include=["documents"]
        )
        ids = res.get("ids") or []
        documents = res.get("documents") or []
        if len(ids) < CONSOLIDATION_MIN:
            return None

        text = "\n".join(documents)
        try:
            summary = await synthesizer(
                "Synthesize these short-term execution logs into a concise Episodic Memory:\n"
                + text
            )
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Consolidation failed: %s", exc)
            return None

        memory_id = await asyncio.to_thread(
            self.add_memory, summary, MemoryTier.EPISODIC, ["consolidation", "auto-generated"]
        )
        await asyncio.to_thread(self._col.delete, ids=ids)
        logger.info("Consolidated %d short-term memories into %s", len(ids), memory_id)
        return memory_id

    def count(self) -> int:
        """Return number of memories in the collection."""
        return self._col.count()


class NullMemoryBank:  # pylint: disable=unused-argument
    """Stand-in used when long-term memory is switched off (``VECTOR_DB=none``)."""

    def add_memory(self, content: str, tier: MemoryTier, tags: Iterable[str] = ()) -> str:
        return ""

    def get_context(self, query: str, limit: int = 5) -> str:
        return ""

    async def consolidate(self, synthesizer: Synthesizer) -> str | None:
        return None

    def count(self) -> int:
        return 0
