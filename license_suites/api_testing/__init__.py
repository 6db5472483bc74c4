"""Live API test suites and the framework they run on."""
