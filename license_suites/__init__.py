"""
License API test suites.

`license_suites` stays importable to support:
  - IDE navigation
  - programmatic runners (e.g., `run_tests.py`)
  - CI/CD module imports

No secrets live in this package; API keys come from the environment.
"""
