"""Integration tests for end-to-end flows.

Drives the exporter against a simulated status tool (a child Python process
printing canned JSON) and checks the resulting exposition text.
"""
