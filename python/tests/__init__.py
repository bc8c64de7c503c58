"""
Test suite for the post scheduler.

Test Categories:
- Unit tests: models, job store, dispatcher, credentials, recovery, lock
- Scheduler tests: tick scenarios, aggregation, background loop
- Integration tests: settings, wiring and CLI commands
- Platform client tests with mocked HTTP
"""
