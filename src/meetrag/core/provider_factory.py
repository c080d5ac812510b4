"""Build configured providers from MeetRAGConfig."""

from __future__ import annotations

from meetrag.core.config import MeetRAGConfig
from meetrag.core.protocols import (
    EmbeddingProvider,
    GenerationProvider,
    RefinementProvider,
    RetrievalIndex,
    STTProvider,
)
from meetrag.core.retry_config import RetryConfig


def _model_kwargs(model: str | None) -> dict[str, str]:
    return {"model": model} if model else {}


def create_stt_provider(config: MeetRAGConfig, retry_config: RetryConfig) -> STTProvider:
    if config.stt_provider == "openai":
        from meetrag.transcribe.openai import OpenAITranscriber

        return OpenAITranscriber(
            api_key=config.openai_api_key or None,
            language=config.stt_language,
            retry_config=retry_config,
            **_model_kwargs(config.stt_model),
        )
    from meetrag.transcribe.groq import GroqTranscriber

    return GroqTranscriber(
        api_key=config.groq_api_key or None,
        language=config.stt_language,
        retry_config=retry_config,
        **_model_kwargs(config.stt_model),
    )


def create_refinement_provider(config: MeetRAGConfig, retry_config: RetryConfig) -> RefinementProvider:
    if config.refinement_provider == "passthrough":
        from meetrag.refine.passthrough import PassthroughRefiner

        return PassthroughRefiner(max_chunk_chars=config.refinement_max_chunk_chars)
    from meetrag.refine.groq import GroqRefiner

    return GroqRefiner(
        api_key=config.groq_api_key or None,
        max_chunk_chars=config.refinement_max_chunk_chars,
        retry_config=retry_config,
        **_model_kwargs(config.refinement_model),
    )


def create_embedding_provider(config: MeetRAGConfig, retry_config: RetryConfig) -> EmbeddingProvider:
    if config.embedding_provider == "openai":
        from meetrag.embed.openai import OpenAIEmbeddingProvider

        return OpenAIEmbeddingProvider(
            api_key=config.openai_api_key or None,
            retry_config=retry_config,
            **_model_kwargs(config.embedding_model),
        )
    from meetrag.embed.gemini import GeminiEmbeddingProvider

    return GeminiEmbeddingProvider(
        api_key=config.google_api_key or None,
        retry_config=retry_config,
        **_model_kwargs(config.embedding_model),
    )


def create_generation_provider(config: MeetRAGConfig, retry_config: RetryConfig) -> GenerationProvider:
    if config.generation_provider == "openai":
        from meetrag.generate.openai import OpenAIGenerator

        return OpenAIGenerator(
            api_key=config.openai_api_key or None,
            temperature=config.generation_temperature,
            max_output_tokens=config.generation_max_output_tokens,
            retry_config=retry_config,
            **_model_kwargs(config.generation_model),
        )
    from meetrag.generate.gemini import GeminiGenerator

    return GeminiGenerator(
        api_key=config.google_api_key or None,
        temperature=config.generation_temperature,
        max_output_tokens=config.generation_max_output_tokens,
        retry_config=retry_config,
        **_model_kwargs(config.generation_model),
    )


def create_retrieval_index(config: MeetRAGConfig, retry_config: RetryConfig) -> RetrievalIndex:
    from meetrag.store.chromadb import ChromaDBRetrievalIndex

    return ChromaDBRetrievalIndex(
        persist_directory=config.chromadb_persist_directory,
        collection_name=config.chromadb_collection_name,
        retry_config=retry_config,
    )
