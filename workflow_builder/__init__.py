"""
Incremental workflow-graph builder.

A builder session wraps one workflow draft across many independent command
invocations: nodes and dependency edges are added one operation at a time,
the draft is validated (including cycle detection), inspected as a graph and
finally committed to the workflow-creation service.
"""

__version__ = "0.1.0"
