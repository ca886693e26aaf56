"""
LLM prompt templates.

Only intent extraction goes through a model; see agents/recommendation.
"""
