"""
Main entry point for the hybrid retrieval demo
Ingests the sample documents, builds the knowledge graph and runs a few
queries. Set NEXUS_EMBEDDING_BACKEND=none to run without an embedding
server (symbolic ranking only).
"""

import asyncio
import json
import sys

from core.embedding_service import create_embedding_service
from core.logging_config import set_log_level
from core.security_config import EngineConfig
from pipelines.knowledge_pipeline import KnowledgeBasePipeline
from sample_data.sample_documents import SAMPLE_DOCUMENTS


DEMO_QUERIES = [
    "transactions over $500",
    "invoice payment due",
    "compare cloud budget vs infrastructure costs",
]


def print_section(title: str):
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70)


async def run(env_file: str = ".env"):
    config = EngineConfig.from_env(env_file)
    set_log_level(config.log_level)
    embedder = None if config.embedding_backend.lower() == "none" else create_embedding_service(config)
    if embedder is None:
        config.symbolic_fallback = True
    pipeline = KnowledgeBasePipeline(embedding_service=embedder, config=config)

    print_section("INGESTION")
    for name, text in SAMPLE_DOCUMENTS.items():
        processed = await pipeline.ingest_document(text, title=name, source="sample_data")
        strategy = processed.strategy.value if processed.strategy else "-"
        print(f"{name}: {processed.chunk_count} chunks ({strategy}), "
              f"{processed.summary.entity_count} entities")

    await pipeline.rebuild_graph()
    print_section("GRAPH")
    print(json.dumps(pipeline.stats(), indent=2, default=str))

    for query in DEMO_QUERIES:
        print_section(f"QUERY: {query}")
        response = await pipeline.query(query)
        for result in response.results:
            print(f"[{result.score:.3f}] {result.title} ({result.node_id})")
            for match in result.explanation.entity_matches:
                print(f"    entity {match.type}: {match.value} x{match.boost}")
        print()
        print(response.explanation)


def main():
    env_file = sys.argv[1] if len(sys.argv) > 1 else ".env"
    asyncio.run(run(env_file))


if __name__ == "__main__":
    main()
