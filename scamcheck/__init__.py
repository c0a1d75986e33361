"""
Scam Text Checker — Source Package
===================================

Modules:
    - main.py       : FastAPI application entry point
    - analyzer.py   : Offline check -> remote classifier -> history pipeline
    - patterns.py   : Offline heuristic scoring engine (six rule categories)
    - classifier.py : Remote LLM classifier client with response cache
    - storage.py    : Thread-safe JSON-file scan history and statistics
    - models.py     : Pydantic verdict, history and request schemas
"""

__version__ = "1.0.0"
