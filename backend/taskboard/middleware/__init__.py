"""
TaskBoard Backend - Middleware Package
======================================

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    - RateLimitMiddleware:       429 on /auth/signin and /auth/signup floods
    - RequestIDMiddleware:       X-Request-ID header and ContextVar
    - RequestLoggingMiddleware:  access log on `taskboard.access`
"""
