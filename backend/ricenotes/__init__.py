"""
Rice Notes Backend
==================

Private storage of PDF course notes for Rice University accounts.

    ┌─────────────────────────────────────┐
    │  Routes + dependencies (HTTP)       │  ← status codes, cookies, principal
    ├─────────────────────────────────────┤
    │  Services (NoteService, Token...)   │  ← validation, orchestration
    ├──────────────────┬──────────────────┤
    │  Repositories    │  Object stores   │  ← note rows │ PDF bytes
    └──────────────────┴──────────────────┘
"""

__version__ = "1.0.0"
