"""fnrun: a minimal function-execution runtime.

Builds one Docker image per configured function, runs exactly one container
per function published on loopback, and forwards invocations by name:
 - build-context packaging and image builds
 - reconciliation of desired vs. running containers
 - invocation routing to the running container
 - a small HTTP front end and event journal
"""

__version__ = "0.1.0"
