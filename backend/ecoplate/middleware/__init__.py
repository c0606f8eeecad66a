"""
EcoPlate Backend — Middleware Package
======================================

Middleware Chain (outermost first, as added in main.create_app):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

Rate limiting rejects before an id is assigned; the logging middleware
reads the id set by RequestIDMiddleware.
"""
