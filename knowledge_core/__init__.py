"""
Local knowledge-retrieval core.
Vector store, document extraction, chunking and embedding gateway.
"""

VERSION = "0.1.0"
