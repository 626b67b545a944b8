"""
Process-wide plumbing for the roommate listings service: the MongoDB store
handle that every request shares, and root logger setup.
"""
