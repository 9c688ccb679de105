"""Campus Attendance package.

This package is organized by feature modules (attendance, analytics, academic, ...)
with a thin Flask controller layer and SOLID service/repository layers.
"""
