"""
Services Layer

Tournament logic over a SQLModel Session:
- Accept domain inputs (ids, sessions, explicit now)
- Return domain outputs (models, dataclasses, dicts)
- Do NOT depend on HTTP request/response objects
- Raise schoolcup.exceptions errors; routes translate them to HTTP
"""
