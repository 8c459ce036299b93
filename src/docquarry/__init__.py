"""docquarry: local document ingestion and hybrid retrieval.

Registers folders of documents as sources, chunks and embeds their files,
keeps the index current as files change, and ranks chunks for a query by a
blend of semantic similarity and keyword frequency.
"""
