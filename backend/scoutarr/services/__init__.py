"""
Services Package

Search pipeline services: request building and execution, response parsing,
filters, quality extraction and matching, rate limiting, errors and logging.
"""
