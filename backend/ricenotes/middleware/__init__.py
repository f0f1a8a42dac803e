"""
Rice Notes Backend — Middleware Package
=========================================

Execution order for a request (last added in create_app runs first):
    RateLimit → RequestID → UploadLimit → RequestLogging → CORS → route handler

RateLimit runs before RequestID, so a 429 carries no X-Request-ID.
"""
