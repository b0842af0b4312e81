"""
Services Layer

Business logic for brackets, the match lifecycle and standings:
- Accept domain inputs (ids, sessions, plain input objects)
- Return domain outputs (models, dicts, dataclasses)
- Do NOT depend on HTTP request/response objects
- Raise arena.errors.AppError subclasses on rule violations
"""
