"""
Team Balancing

Modules:
- engine: Exact and greedy partitioning of the unassigned pool
- roster: Online/team session state and pre-balance checks
"""


def __getattr__(name):
    """Lazy imports to avoid RuntimeWarning when running modules directly."""
    if name in ("balance", "Candidate", "BalanceError"):
        from rematch.balance import engine
        return getattr(engine, name)
    if name == "BalanceSession":
        from rematch.balance.roster import BalanceSession
        return BalanceSession
    if name == "run_balance":
        from rematch.balance.roster import main
        return main
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
