"""shiftwatch package.

Feature modules (monitoring, attendance, payments, ...) with a thin Flask
controller layer on top of service/repository layers.
"""
