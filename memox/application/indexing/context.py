"""Token-budgeted context assembly from ranked search hits."""

from memox.domain.ports.rag import CodeChunk, ScoredChunk


def estimate_tokens(text: str) -> int:
    """Rough token count: whitespace-delimited words."""
    return len(text.split())


def format_chunk(chunk: CodeChunk) -> str:
    """Chunk with a ``--- file (start-end) ---`` header line."""
    return f"\n--- {chunk.header()} ---\n{chunk.content}\n"


def build_context(hits: list[ScoredChunk], max_tokens: int) -> str:
    """Concatenate hits in rank order until the next one would exceed max_tokens.

    The estimate covers the header lines too, so the estimate of the returned
    string never exceeds the budget. Returns "" when even the first hit does
    not fit.
    """
    if max_tokens <= 0:
        return ""
    parts: list[str] = []
    used = 0
    for hit in hits:
        block = format_chunk(hit.chunk)
        cost = estimate_tokens(block)
        if used + cost > max_tokens:
            break
        parts.append(block)
        used += cost
    return "".join(parts)
