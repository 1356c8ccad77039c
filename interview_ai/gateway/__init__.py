"""AI Request Orchestration Layer.

Wraps every call to the upstream AI provider (transcription, answer
evaluation, question generation, speech synthesis) with:
  - Content Cache (SHA-256 keyed, per-operation TTL)
  - Admission Queue (global concurrency ceiling, FIFO overflow)
  - Retrying Invoker (exponential backoff, 401 short-circuit)
  - Key Rotator (round-robin over API keys, masked usage stats)
  - Metrics Tracker (rolling latency, error rate, throttle signal)
"""
