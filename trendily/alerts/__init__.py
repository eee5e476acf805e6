"""
Alert policy and delivery.

Modules:
  grouping    Subscriptions partitioned by keyword.
  decision    Send/skip classification (threshold, cooldown, volume floor).
  templates   Deterministic alert email rendering.
  pacing      Fixed-interval send pacer.
  dispatcher  Sequential sends with per-recipient outcomes.
"""
