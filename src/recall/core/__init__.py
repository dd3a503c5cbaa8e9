"""Pipeline orchestration, configuration, and errors."""
