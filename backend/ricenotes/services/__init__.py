"""
Rice Notes Backend — Services Layer
=====================================

Service Inventory:
    - ObjectStore (abstract): S3ObjectStore, InMemoryObjectStore
    - OAuthProvider (abstract): GoogleOAuthProvider
    - TokenService: sign-in flow, session token issue/verify
    - NoteService: upload → persist workflow and owner-scoped note access
"""
