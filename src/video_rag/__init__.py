"""YouTube video RAG pipeline.

This package resolves YouTube videos, fetches their transcripts, chunks and
embeds them, and stores the vectors in a namespaced Supabase vector index so
questions about a single video can be answered from its own transcript.
"""
