"""
Pydantic schemas for API request and response validation.

Python attributes are snake_case; JSON on the wire is camelCase (see CamelModel).
"""
