"""Vocabulary, pipeline, suggestion oracle, corpus analysis and filling.

Submodules are imported explicitly (``from templater.tagging.pipeline import
tag_markup``); the engine in ``templater.documents.docx`` depends on
``templater.tagging.vocabulary``, so nothing is imported eagerly here.
"""
