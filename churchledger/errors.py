"""Domain errors raised by the credential store, connectors and sync engine.

Route handlers map each class onto an HTTP status; nothing below the API
layer knows about HTTP.
"""


class LedgerSyncError(Exception):
    """Base class for ledger integration failures."""

    status_code = 500


class NotConnectedError(LedgerSyncError):
    """No stored credential for the requested provider."""

    status_code = 400


class ProviderConfigError(LedgerSyncError):
    """Client id/secret/redirect URI missing, or a required connect parameter absent."""

    status_code = 400


class ProviderError(LedgerSyncError):
    """Upstream provider rejected a token exchange, refresh or account lookup."""

    status_code = 502


class SettingsConflictError(LedgerSyncError):
    """Church settings were changed by another writer since they were read."""

    status_code = 409


class SyncInProgressError(LedgerSyncError):
    """Another sync for the same church is still running."""

    status_code = 409
