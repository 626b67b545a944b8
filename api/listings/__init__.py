"""
Roommate listings: routes, ownership rules and store queries.
"""
