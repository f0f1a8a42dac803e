"""
Rice Notes Backend — API Routes Package
=========================================

Route Inventory:
    - health.py:  GET  /                          (welcome)
                  GET  /health                    (service health check)
    - auth.py:    GET  /api/auth/google           (start Google sign-in)
                  GET  /api/auth/google/callback  (finish sign-in, set cookie)
                  GET  /api/auth/me               (current user)
                  POST /api/auth/logout           (clear session cookie)
    - notes.py:   POST   /api/notes               (upload a PDF note)
                  GET    /api/notes               (list own notes)
                  GET    /api/notes/{id}          (note metadata)
                  GET    /api/notes/{id}/download (presigned download link)
                  DELETE /api/notes/{id}          (delete note and file)

Routes stay thin: read the request, call a service, shape the response.
"""
