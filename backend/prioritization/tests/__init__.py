# prioritization/tests/__init__.py
"""
Prioritization Test Suite
=========================

Modules:
--------
- test_engine: Pure aggregation math (positions, scores, tie-breaks)
- test_eligibility: Stage transitions, version bumps, compare-and-swap retries
- test_store: Ranking submission validation and replacement
- test_staleness: Stale / expired derivation and grace period boundaries
- test_service: The PrioritizationService façade end to end
- test_api: HTTP endpoints and error mapping
- test_sweep: Celery staleness sweep and cache warming

Running Tests:
--------------
    python manage.py test prioritization
    python manage.py test prioritization.tests.test_engine
"""
