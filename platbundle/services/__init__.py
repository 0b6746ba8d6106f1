"""Pipeline stages: source resolution, acquisition, manifest reading, build,
platform bundlers, delivery, and the pipeline that chains them.

Import the submodules directly; this package does not re-export them.
"""
