"""서비스 패키지 — 비즈니스 로직 계층.

Service package — Business logic layer.
Contains the session authority and the account services built on it.
Services call repositories for DB operations and leave commits to the routes.
"""
