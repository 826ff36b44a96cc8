"""
Domain layer for the summarizer: request/response models, request
fingerprinting and the summarize orchestrator.
"""
