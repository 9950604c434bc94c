"""Provider Gateway Layer.

Issues generation requests to third-party model backends through one
uniform interface with:
  - Typed error taxonomy shared by adapters and callers
  - Sliding-window Rate Limiter (RPM per provider)
  - Provider Adapters (FAL, OpenRouter, ModelsLab)
  - Retry with exponential backoff (2^attempt seconds)
  - Provider Router (UnifiedResponse for every backend)
"""
