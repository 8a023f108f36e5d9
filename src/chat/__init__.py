"""Retrieval-augmented chat over indexed YouTube transcripts.

Answers are streamed from an OpenAI-compatible chat completion endpoint and
re-framed as server-sent events for the browser.
"""
