from gunslinger.testing import clock, memory_app  # noqa: F401
