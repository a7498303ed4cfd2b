"""
TaskBoard Backend - API Routes Package
======================================

Route Inventory:
    - auth.py:    POST   /auth/signup       (register, sets session cookie)
                  POST   /auth/signin       (log in, sets session cookie)
                  DELETE /auth/logout       (revoke session, clears cookie)
    - users.py:   GET    /users             (paginated list)
                  GET    /users/me          (current user)
                  PATCH  /users/me          (update profile)
                  GET    /users/{user_id}   (single user)
    - health.py:  GET    /health            (Postgres + Redis status)

Routes stay thin: parse the request, call a service, shape the response.
"""
