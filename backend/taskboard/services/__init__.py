"""
TaskBoard Backend - Services Layer
==================================

What:  Business logic between the routes (HTTP) and the backing stores.

Service Inventory:
    - PasswordHasher (abstract) / BcryptHasher:   hash and verify passwords
    - SessionStore (abstract) / RedisSessionStore: per-user session buckets
    - IdentityStore, UserRepository (abstract) /
      SqlAlchemyUserRepository:                   users table access
    - AuthService:  sign-up, sign-in, check_auth, logout
    - UserService:  profile listing and updates

Services receive their collaborators through constructors; the providers in
dependencies.py wire the concrete implementations from settings.
"""
