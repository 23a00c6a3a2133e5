"""
Static Analysis Package.

Recover-reachability analysis over parsed Go declarations.

Modules:
    - ``declarations``: Declaration records and the parse pass that extracts them.
    - ``registry``: Name and receiver-type lookup of declarations.
    - ``scope``: Local name binding and callee resolution.
    - ``suppression``: Doc-comment suppression marker check.
    - ``resolver``: Interprocedural recover reachability.
    - ``collector``: Discovery of unsafe ``go`` statements.
"""
