"""
ChromaSift utilities: logging setup, identifiers and row batching.
"""
