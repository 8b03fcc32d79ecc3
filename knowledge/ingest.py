"""Build the knowledge base from a text document.

Usage:
    # Chunk, embed and write kb/kb.json + kb/kb_vectors.json
    python -m knowledge.ingest docs/admissions.txt

    # Custom output directory and source label
    python -m knowledge.ingest docs/admissions.md --out-dir kb --source "Admissions FAQ"
"""

import argparse
import asyncio
import json
import re
import time
from pathlib import Path

from knowledge.schema import KBItem, KBVector
from receptionist.llm import LLMClient

MAX_CHARS = 900
OVERLAP = 120
MIN_CHUNK_CHARS = 40
BATCH_SIZE = 32


def chunk_text(text: str, max_chars: int = MAX_CHARS, overlap: int = OVERLAP) -> list[str]:
    """Fixed-size character windows with overlap; tiny chunks are dropped."""
    clean = re.sub(r"\n{3,}", "\n\n", str(text or "").replace("\r", "")).strip()
    chunks = []
    i = 0
    while i < len(clean):
        end = min(i + max_chars, len(clean))
        chunks.append(clean[i:end])
        if end == len(clean):
            break
        i = max(0, end - overlap)
    return [c.strip() for c in chunks if len(c.strip()) >= MIN_CHUNK_CHARS]


def make_items(source_name: str, text: str) -> list[KBItem]:
    chunks = chunk_text(text)
    if not chunks:
        raise ValueError("No usable text found after chunking.")
    stamp = int(time.time() * 1000)
    return [
        KBItem(
            id=f"{stamp}_{idx}",
            title=f"{source_name} - chunk {idx + 1}",
            text=chunk,
            source=source_name,
        )
        for idx, chunk in enumerate(chunks)
    ]


async def embed_items(llm: LLMClient, items: list[KBItem]) -> list[KBVector]:
    """Embed items in batches of ``BATCH_SIZE``."""
    vectors: list[KBVector] = []
    for i in range(0, len(items), BATCH_SIZE):
        batch = items[i:i + BATCH_SIZE]
        embeddings = await llm.embed([item.to_embedding_text() for item in batch])
        for item, embedding in zip(batch, embeddings):
            vectors.append(KBVector(**item.model_dump(), embedding=embedding))
        print(f"  Batch {i // BATCH_SIZE + 1}: {len(batch)} chunks embedded")
    return vectors


async def build_kb(
    path: str | Path,
    out_dir: str | Path = "kb",
    source_name: str | None = None,
    llm: LLMClient | None = None,
) -> dict:
    """Chunk and embed one document; returns counts and written paths."""
    path = Path(path)
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    text = path.read_text(encoding="utf-8")
    items = make_items(source_name or path.stem, text)
    print(f"Loaded {len(items)} chunks from {path}")

    vectors = await embed_items(llm or LLMClient(), items)

    kb_json = out_dir / "kb.json"
    kb_vectors = out_dir / "kb_vectors.json"
    kb_json.write_text(
        json.dumps([i.model_dump() for i in items], ensure_ascii=False, indent=2), encoding="utf-8"
    )
    kb_vectors.write_text(
        json.dumps([v.model_dump() for v in vectors], ensure_ascii=False), encoding="utf-8"
    )
    print(f"Done: {len(vectors)} vectors written to {kb_vectors}")
    return {"kb_count": len(items), "kb_json": str(kb_json), "kb_vectors": str(kb_vectors)}


def main():
    parser = argparse.ArgumentParser(
        description="Chunk and embed a text document into the knowledge base",
        prog="python -m knowledge.ingest",
    )
    parser.add_argument("file", help="Path to a .txt or .md document")
    parser.add_argument("--out-dir", default="kb", help="Output directory (default: kb)")
    parser.add_argument("--source", help="Source label used in chunk titles (default: file name)")
    args = parser.parse_args()
    asyncio.run(build_kb(args.file, out_dir=args.out_dir, source_name=args.source))


if __name__ == "__main__":
    main()
