"""Small modules and classes that the test suites double."""
