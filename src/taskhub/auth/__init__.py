"""Authentication and authorization.

Learn: Three layers, applied in order on every protected route:
1. Authentication gate (dependencies.get_current_identity) — bearer JWT → Identity
2. Role gating (require_admin / require_non_admin) — coarse per-route checks
3. Authorization policy (policy.py) — per-task read/mutate decisions

Each layer is a plain function of its inputs; FastAPI's Depends() chains
them, so the resolved Identity is passed along explicitly.
"""
