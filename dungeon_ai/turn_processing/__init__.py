"""Turn processing: access validation, narrator context and the turn loop.

Message and roll turns flow through the same pipeline so they serialize per game
and show up consistently in server logs.
"""
