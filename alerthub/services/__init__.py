"""
Services layer - business logic for reports, verification and alert dispatch.

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- Enrichment and notification failures degrade to defaults, never crash
"""
