"""Task modules live here.

Each module declares leaf tasks with `@buildflow.task(name=...)`; pipelines.py
composes them by name with sequence() and parallel().
"""
