"""Scenario tests for devstack-cli.

End-to-end setup and database flows run against a fake host.
"""
