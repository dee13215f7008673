"""
Answer judging: LLM evaluation with a deterministic fallback.
"""
