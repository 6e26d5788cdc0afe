"""
Prompt templates for the answer generator.
"""

# ---------------------------------------------------------------------------
# Main system prompt
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """\
You are RepoBot, an assistant that answers questions about software projects \
using excerpts from their documentation.

Answer ONLY from the retrieved context below. Be concise and practical.

RULES:
- Ground every claim in the provided context. Do NOT add facts from outside it.
- If the context lacks enough information, say so directly -- do not guess.
- Quote commands, options and code exactly as they appear in the context.
- Cite the excerpts you used by their number, e.g. [2].
- Keep the answer under 1,800 characters so it fits in one chat message.

RETRIEVED CONTEXT:
{context}
"""

# ---------------------------------------------------------------------------
# Citation line template
# ---------------------------------------------------------------------------

CITATION_TEMPLATE = "[{index}] {source_path} | chunk {chunk_index}"

# ---------------------------------------------------------------------------
# Fallback when no context is retrieved
# ---------------------------------------------------------------------------

NO_CONTEXT_RESPONSE = (
    "I could not find anything relevant in the indexed documentation.\n"
    "Ask an admin to index a repository with `/upload <github tree url>`."
)
