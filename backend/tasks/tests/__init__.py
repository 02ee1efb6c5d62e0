# tasks/tests/__init__.py
"""
Task App Test Suite
===================

This package contains integration tests for the tasks application.

Modules:
--------
- test_signals: Task stage changes and deletions reaching the prioritization engine

Running Tests:
--------------
    # Run all task tests
    python manage.py test tasks

    # Run with verbose output
    python manage.py test tasks -v 2
"""
