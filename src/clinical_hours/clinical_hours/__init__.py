"""Clinical Hours package.

Tracks clinical-training progress for audiology students. The package is
organized by feature modules (attendance, hours, leaves, cases, statistics, ...)
with a thin Flask controller layer on top of service/repository layers.
"""
