"""tests.unit.classification package

Unit suites for confidence banding and batch summaries.
"""
