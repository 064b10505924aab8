"""tests.integration package

Integration-level suites that drive promptprobe through its public interface,
the ``promptprobe`` command line, against a stub inference engine.
"""
