from __future__ import annotations


class GatekeeperError(Exception):
    """Base class for errors raised by the gatekeeper daemon."""


class OracleUnavailableError(GatekeeperError):
    """The verification store could not be queried.

    The daemon must not guess "unverified" on an outage, so this is fatal
    for the current iteration and the process exits.
    """


class PersistenceError(GatekeeperError):
    """A registry, ledger or cursor write failed after all retries."""


__all__ = ["GatekeeperError", "OracleUnavailableError", "PersistenceError"]
